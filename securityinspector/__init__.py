"""
Security Inspector -- Permission Matrix Reporting Core
======================================================

A Python framework for auditing the access-control model of a CI/CD
orchestration server.  For a chosen set of subjects (users) and protected
resources (jobs, compute nodes) it answers "does subject S hold permission
P on resource R?" and produces an immutable, point-in-time permission
matrix for rendering.

The host server owns the identity store, the resource tree, and the
permission-evaluation primitive.  This package consumes them through the
narrow protocols in ``securityinspector.host``.
"""

__version__ = "0.1.0"
