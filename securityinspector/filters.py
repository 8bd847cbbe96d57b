"""
Entity Filter -- row selection by regex, group membership and selection list.

The filter never fabricates rows: it narrows a host-supplied universe of
candidates.  The regex is compiled before any candidate is looked at, so a
malformed pattern fails the whole selection with ``InvalidCriteria`` and no
rows leak through.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, Optional

from securityinspector.errors import InvalidCriteria
from securityinspector.models import Entity, FilterCriteria, SelectionMode

logger = logging.getLogger(__name__)


def compile_criteria(criteria: FilterCriteria) -> re.Pattern:
    """Compile the inclusion regex of ``criteria``.

    Raises:
        InvalidCriteria: If the regex cannot be compiled.
    """
    try:
        return re.compile(criteria.include_regex)
    except re.error as exc:
        raise InvalidCriteria(
            f"Invalid include regex '{criteria.include_regex}': {exc}",
            pattern=criteria.include_regex,
        ) from exc


class EntityFilter:
    """Selects report rows from a universe of candidates."""

    def validate(self, criteria: FilterCriteria) -> None:
        """Fail fast on malformed criteria without selecting anything."""
        compile_criteria(criteria)
        if criteria.mode == SelectionMode.SELECTED and any(
            not name.strip() for name in criteria.selected
        ):
            raise InvalidCriteria("Selected names must not be blank.")

    def select(
        self,
        criteria: FilterCriteria,
        universe: Iterable[Entity],
        group_members: Optional[Iterable[str]] = None,
    ) -> list[Entity]:
        """Return the candidates matching ``criteria``.

        Args:
            criteria: The submitted selection criteria.
            universe: Host enumeration of candidates, in host order.
            group_members: Canonical names of the members of
                ``criteria.group``; ignored when the criteria name no group.

        Returns:
            Matching entities, deduplicated by canonical name, in
            first-seen order.  May be empty.

        Raises:
            InvalidCriteria: If the regex is malformed, or a group is
                named but its members were not supplied.
        """
        self.validate(criteria)
        pattern = compile_criteria(criteria)

        members: Optional[set[str]] = None
        if criteria.group is not None:
            if group_members is None:
                raise InvalidCriteria(f"Unknown group '{criteria.group}'.")
            members = set(group_members)

        wanted: Optional[set[str]] = None
        if criteria.mode == SelectionMode.SELECTED:
            wanted = set(criteria.selected)

        selected: list[Entity] = []
        seen: set[str] = set()
        for entity in universe:
            if entity.name in seen:
                continue
            if wanted is not None and entity.name not in wanted:
                continue
            if members is not None and entity.name not in members:
                continue
            if not pattern.fullmatch(entity.name):
                continue
            seen.add(entity.name)
            selected.append(entity)

        logger.debug(
            "Selected %d entities (regex=%r, group=%r, mode=%s)",
            len(selected), criteria.include_regex, criteria.group, criteria.mode.value,
        )
        return selected
