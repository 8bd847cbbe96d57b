"""
Tests for securityinspector.host -- In-memory reference host.
"""

from __future__ import annotations

import pytest
import yaml

from securityinspector.host import InMemoryHost, load_host_from_yaml
from securityinspector.models import EntityKind, Identity, Permission

READ = Permission(group="Job", name="Read")


class TestInMemoryHost:
    def test_grant_specific_items(self):
        host = InMemoryHost()
        alice = host.add_user("alice")
        job_a = host.add_entity(EntityKind.JOB, "proj-a")
        job_b = host.add_entity(EntityKind.JOB, "proj-b")
        host.grant("alice", "Job.Read", ["proj-a"])
        assert host.check_permission(alice, job_a, READ) is True
        assert host.check_permission(alice, job_b, READ) is False

    def test_wildcard_grant(self):
        host = InMemoryHost()
        alice = host.add_user("alice")
        job = host.add_entity(EntityKind.JOB, "anything")
        host.grant("alice", "Job.Read")
        assert host.check_permission(alice, job, READ) is True

    def test_administrator_holds_everything(self):
        host = InMemoryHost()
        admin = host.add_user("admin", administrator=True)
        job = host.add_entity(EntityKind.JOB, "proj-a")
        assert host.is_administrator(admin) is True
        assert host.check_permission(admin, job, READ) is True

    def test_removed_user_no_longer_resolves(self):
        host = InMemoryHost()
        host.add_user("alice")
        host.remove_entity(EntityKind.USER, "alice")
        assert host.resolve_identity("alice") is None
        assert host.resolve(EntityKind.USER, "alice") is None

    def test_offline_host_raises_connection_error(self):
        host = InMemoryHost()
        host.available = False
        with pytest.raises(ConnectionError):
            host.enumerate_candidates(EntityKind.JOB)

    def test_unknown_group_is_none(self):
        assert InMemoryHost().group_members(EntityKind.JOB, "nope") is None


class TestYAMLLoader:
    def test_load_full_model(self, tmp_path):
        path = tmp_path / "host.yaml"
        with open(path, "w") as f:
            yaml.dump(
                {
                    "host": {
                        "permissions": [{"group": "Job", "name": "Read", "label": "Read"}],
                        "users": [{"name": "admin", "administrator": True}, "alice"],
                        "jobs": ["proj-a", {"name": "infra-x", "display_name": "Infra X"}],
                        "nodes": ["agent-1"],
                        "groups": {"jobs": {"Projects": ["proj-a"]}},
                        "grants": {"alice": {"Job.Read": ["proj-a"], "Job.Build": "*"}},
                    }
                },
                f,
            )
        host = load_host_from_yaml(path)
        assert [p.permission_id for p in host.capability_catalog()] == ["Job.Read"]
        assert host.resolve(EntityKind.JOB, "infra-x").title == "Infra X"
        assert host.group_members(EntityKind.JOB, "Projects") == ["proj-a"]
        assert host.resolve(EntityKind.NODE, "agent-1") is not None
        alice = host.resolve_identity("alice")
        assert alice == Identity(name="alice")
        job = host.resolve(EntityKind.JOB, "infra-x")
        assert host.check_permission(alice, job, Permission(group="Job", name="Build")) is True
        assert host.check_permission(alice, job, READ) is False

    def test_missing_host_key_rejected(self, tmp_path):
        path = tmp_path / "host.yaml"
        path.write_text("nothing: here\n")
        with pytest.raises(ValueError, match="top-level 'host'"):
            load_host_from_yaml(path)

    def test_bad_group_section_rejected(self, tmp_path):
        path = tmp_path / "host.yaml"
        path.write_text("host:\n  groups:\n    pipelines: {}\n")
        with pytest.raises(ValueError, match="Invalid group section"):
            load_host_from_yaml(path)

    @pytest.mark.parametrize("body, message", [
        ("  permissions:\n    - {group: Job, name: Read, scope: global}\n", "unknown keys"),
        ("  permissions:\n    - {name: Read}\n", "missing required keys"),
        ("  users:\n    - {name: alice, role: dev}\n", "unknown keys"),
        ("  jobs:\n    - {display_name: Orphan}\n", "missing required keys"),
        ("  groups:\n    jobs:\n      Projects:\n", "Members of group 'Projects'"),
        ("  grants:\n    alice:\n      Job.Read:\n", "Grant 'Job.Read' of 'alice'"),
        ("  grants:\n    alice:\n      Job.Read: {proj-a: true}\n", "Grant 'Job.Read' of 'alice'"),
    ])
    def test_malformed_entries_raise_value_error(self, tmp_path, body, message):
        path = tmp_path / "host.yaml"
        path.write_text("host:\n" + body)
        with pytest.raises(ValueError, match=message):
            load_host_from_yaml(path)

    def test_empty_sections_are_allowed(self, tmp_path):
        path = tmp_path / "host.yaml"
        path.write_text("host:\n  permissions:\n  users:\n  grants:\n")
        host = load_host_from_yaml(path)
        assert host.capability_catalog() == []
        assert host.enumerate_candidates(EntityKind.USER) == []

    def test_nonexistent_file_raises(self):
        with pytest.raises(FileNotFoundError):
            load_host_from_yaml("/nonexistent/host.yaml")
