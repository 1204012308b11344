"""
Integration tests for the privilege migration flow.

Migration documents are loaded from disk and submitted through
PrivilegesClient to an in-process Privileges service.
"""

import pytest
import httpx
from fastapi.testclient import TestClient

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_privileges.app.client import PrivilegesClient
from service_privileges.app.loader import load_migration_document
from service_privileges.app.main import PrivilegesService
from service_privileges.app.rbac.items import OwnerRule
from service_privileges.app.rbac.models import ItemType
from service_privileges.app.rbac.store import InMemoryAuthStore


EDITORIAL_MIGRATION = """
default_flags:
  ensure: present
remove_on_migrate_down: true
privileges:
  - name: Editor
    type: role
    description: Edits posts
    children:
      - name: createPost
        description: Create a post
      - name: updateOwnPost
        description: Update own post
        rule:
          name: OwnerRule
          class: service_privileges.app.rbac.items:OwnerRule
      - name: Author
        type: role
        children:
          - name: readPost
"""

ADMIN_MIGRATION = """
privileges:
  - name: Editor
    type: role
    _exists: true
    children:
      - name: Admin
        type: role
        ensure: new
"""


class TestPrivilegesFlow:
    """Integration tests for the privilege migration flow."""

    @pytest.fixture
    def store(self):
        """Create the store shared by the service and the assertions."""
        return InMemoryAuthStore()

    @pytest.fixture
    def client(self, store):
        """Create a PrivilegesClient routed to an in-process service."""
        service_client = TestClient(PrivilegesService(store).app)

        def forward(request):
            response = service_client.request(
                request.method,
                request.url.path,
                content=request.content,
                headers={"content-type": "application/json"}
            )
            return httpx.Response(
                response.status_code,
                content=response.content,
                headers={"content-type": response.headers["content-type"]}
            )

        with PrivilegesClient("http://privileges:8013", transport=httpx.MockTransport(forward)) as client:
            yield client

    @pytest.fixture
    def migrations(self, tmp_path):
        """Write the migration documents to disk."""
        editorial = tmp_path / "m0001_editorial.yaml"
        editorial.write_text(EDITORIAL_MIGRATION)
        admin = tmp_path / "m0002_admin.yaml"
        admin.write_text(ADMIN_MIGRATION)
        return load_migration_document(editorial), load_migration_document(admin)

    def test_apply_migrations_in_order(self, client, store, migrations):
        """Test applying dependent migrations one after the other."""
        editorial, admin = migrations

        first = client.apply(editorial)
        second = client.apply(admin)

        assert first["success"] is True
        assert second["success"] is True
        editor = store.get_item(ItemType.ROLE, "Editor")
        assert [child.name for child in store.get_children(editor)] == [
            "Admin", "Author", "createPost", "updateOwnPost"
        ]
        assert isinstance(store.get_rule("OwnerRule"), OwnerRule)
        assert store.get_item(ItemType.PERMISSION, "updateOwnPost").rule_name == "OwnerRule"

    def test_reapply_is_idempotent(self, client, migrations):
        """Test that a PRESENT migration applied twice mutates nothing."""
        editorial, _ = migrations
        client.apply(editorial)

        body = client.apply(editorial)

        assert body["success"] is True
        assert body["mutations"] == 0

    def test_dependent_migration_requires_parent(self, client, store, migrations):
        """Test that a migration relying on an existing role fails without it."""
        _, admin = migrations

        body = client.apply(admin)

        assert body["success"] is False
        assert body["error_code"] == "NOT_FOUND_ERROR"
        assert store.get_item(ItemType.ROLE, "Admin") is None

    def test_teardown_reverses_apply(self, client, store, migrations):
        """Test that teardown removes the items but keeps rules."""
        editorial, _ = migrations
        client.apply(editorial)

        body = client.teardown(editorial)

        assert body["success"] is True
        assert store.items == {}
        assert store.edges == set()
        assert store.get_rule("OwnerRule") is not None
