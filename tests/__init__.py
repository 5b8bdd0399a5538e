"""
BlueprintFlow test suite.

Shared document builders and fake collaborators live in ``tests.factories``;
fixtures live in ``conftest.py``.
"""
