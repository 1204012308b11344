"""
Shared fixtures for Privileges Service tests.
"""

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_privileges.app.rbac.items import Permission, Role
from service_privileges.app.rbac.store import InMemoryAuthStore
from service_privileges.app.rbac.trace import Tracer


@pytest.fixture
def store():
    """Create an empty InMemoryAuthStore."""
    return InMemoryAuthStore()


@pytest.fixture
def tracer():
    """Create a Tracer."""
    return Tracer()


@pytest.fixture
def make_store():
    """Build a store holding roles, permissions and parent->child edges."""
    def _make(roles=(), permissions=(), edges=()):
        built = InMemoryAuthStore()
        for name in roles:
            built.add(Role(name=name))
        for name in permissions:
            built.add(Permission(name=name))
        for parent_name, child_name in edges:
            parent = built.get_item("role", parent_name)
            child = built.get_item("role", child_name) or built.get_item("permission", child_name)
            assert built.add_child(parent, child)
        return built
    return _make
