"""
Unit tests for single-item privilege reconciliation.
"""

import pytest
from unittest.mock import MagicMock

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_privileges.app.rbac.items import OwnerRule, Permission, Role
from service_privileges.app.rbac.models import Ensure, ItemType, ResolvedFlags, TraceAction
from service_privileges.app.rbac.reconciler import PrivilegeReconciler
from shared.errors import ConflictError, NotFoundError, OperationError
from shared.test_helpers import OWNER_RULE_PATH


def flags(name="editPost", item_type=ItemType.PERMISSION, ensure=Ensure.NEW, **kwargs):
    return ResolvedFlags(name=name, type=item_type, ensure=ensure, **kwargs)


class TestPrivilegeReconciler:
    """Test cases for the ensure decision table."""

    @pytest.fixture
    def reconciler(self, store, tracer):
        """Create PrivilegeReconciler over an empty store."""
        return PrivilegeReconciler(store, tracer)

    def test_must_exist_missing(self, reconciler):
        """Test that MUST_EXIST fails when the item is missing."""
        with pytest.raises(NotFoundError) as exc_info:
            reconciler.reconcile(flags(ensure=Ensure.MUST_EXIST))

        assert exc_info.value.details == {"name": "editPost", "type": "permission"}

    def test_must_exist_present(self, reconciler, store, tracer):
        """Test that MUST_EXIST uses the stored item without mutation."""
        existing = Permission(name="editPost", description="original")
        store.add(existing)

        result = reconciler.reconcile(flags(ensure=Ensure.MUST_EXIST, description="changed", replace=True))

        assert result is existing
        assert existing.description == "original"
        assert [entry.action for entry in tracer.entries] == [TraceAction.FOUND]

    def test_new_present_conflicts(self, reconciler, store):
        """Test that NEW fails when the item exists."""
        store.add(Permission(name="editPost"))

        with pytest.raises(ConflictError):
            reconciler.reconcile(flags(ensure=Ensure.NEW))

    def test_new_missing_creates(self, reconciler, store, tracer):
        """Test that NEW creates a missing item."""
        result = reconciler.reconcile(flags(ensure=Ensure.NEW, description="Edit a post"))

        assert result is store.get_item(ItemType.PERMISSION, "editPost")
        assert result.description == "Edit a post"
        assert tracer.entries[-1].action is TraceAction.CREATED

    def test_present_missing_creates(self, reconciler, store):
        """Test that PRESENT creates a missing item."""
        result = reconciler.reconcile(flags(name="Admin", item_type=ItemType.ROLE, ensure=Ensure.PRESENT))

        assert isinstance(result, Role)
        assert store.get_item(ItemType.ROLE, "Admin") is result

    def test_present_without_replace_unchanged(self, reconciler, store, tracer):
        """Test that PRESENT leaves an existing item alone without replace."""
        store.add(Permission(name="editPost", description="original"))
        store.update = MagicMock(wraps=store.update)

        result = reconciler.reconcile(flags(ensure=Ensure.PRESENT, description="changed"))

        assert result.description == "original"
        store.update.assert_not_called()
        assert tracer.entries[-1].action is TraceAction.UNCHANGED

    def test_present_with_replace_updates(self, reconciler, store, tracer):
        """Test that PRESENT with replace overwrites the description."""
        store.add(Permission(name="editPost", description="original"))

        result = reconciler.reconcile(flags(ensure=Ensure.PRESENT, replace=True, description="changed"))

        assert result.description == "changed"
        assert store.get_item(ItemType.PERMISSION, "editPost").description == "changed"
        assert tracer.entries[-1].action is TraceAction.UPDATED

    def test_absent_is_not_applied(self, reconciler, store, tracer):
        """Test that ABSENT neither creates nor removes during apply."""
        store.add(Role(name="Admin"))
        parent = store.get_item(ItemType.ROLE, "Admin")

        missing = reconciler.reconcile(flags(ensure=Ensure.ABSENT), parent)
        assert missing is None
        assert store.get_item(ItemType.PERMISSION, "editPost") is None

        store.add(Permission(name="editPost"))
        existing = reconciler.reconcile(flags(ensure=Ensure.ABSENT), parent)
        assert existing is None
        assert store.has_child(parent, store.get_item(ItemType.PERMISSION, "editPost")) is False
        assert {entry.action for entry in tracer.entries} == {TraceAction.ABSENT_IGNORED}

    def test_rule_created_before_item(self, reconciler, store, tracer):
        """Test that the rule is reconciled before the item is added."""
        result = reconciler.reconcile(flags(
            ensure=Ensure.NEW,
            rule={"name": "OwnerRule", "class": OWNER_RULE_PATH}
        ))

        assert result.rule_name == "OwnerRule"
        assert isinstance(store.get_rule("OwnerRule"), OwnerRule)
        actions = [entry.action for entry in tracer.entries]
        assert actions.index(TraceAction.RULE_CREATED) < actions.index(TraceAction.CREATED)

    def test_rule_attached_on_replace(self, reconciler, store):
        """Test that replace attaches the declared rule."""
        store.add(Permission(name="editPost"))

        result = reconciler.reconcile(flags(
            ensure=Ensure.PRESENT,
            replace=True,
            rule={"name": "OwnerRule", "class": OwnerRule}
        ))

        assert result.rule_name == "OwnerRule"

    def test_rule_ignored_when_unchanged(self, reconciler, store):
        """Test that rules are not reconciled when the item is used as-is."""
        store.add(Permission(name="editPost"))

        result = reconciler.reconcile(flags(
            ensure=Ensure.PRESENT,
            rule={"name": "OwnerRule", "class": OwnerRule}
        ))

        assert result.rule_name is None
        assert store.get_rule("OwnerRule") is None

    def test_add_rejected(self, tracer):
        """Test that a rejected add raises OperationError."""
        store = MagicMock()
        store.get_item.return_value = None
        store.create_item.return_value = Permission(name="editPost")
        store.add.return_value = False

        with pytest.raises(OperationError):
            PrivilegeReconciler(store, tracer).reconcile(flags())

    def test_update_rejected_leaves_record(self, tracer):
        """Test that a rejected update raises without touching the stored record."""
        existing = Permission(name="editPost", description="original")
        store = MagicMock()
        store.get_item.return_value = existing
        store.update.return_value = False

        with pytest.raises(OperationError):
            PrivilegeReconciler(store, tracer).reconcile(
                flags(ensure=Ensure.PRESENT, replace=True, description="changed")
            )

        assert existing.description == "original"


class TestParentLinking:
    """Test cases for parent-child linking."""

    @pytest.fixture
    def reconciler(self, store, tracer):
        """Create PrivilegeReconciler over an empty store."""
        return PrivilegeReconciler(store, tracer)

    def test_links_to_parent(self, reconciler, store, tracer):
        """Test that a new child is linked to its parent."""
        store.add(Role(name="Admin"))
        parent = store.get_item(ItemType.ROLE, "Admin")

        child = reconciler.reconcile(flags(), parent)

        assert store.has_child(parent, child)
        assert tracer.entries[-1].action is TraceAction.LINKED
        assert tracer.entries[-1].parent == "Admin"

    def test_existing_link_is_kept(self, make_store, tracer):
        """Test that an existing edge is not added twice."""
        store = make_store(roles=["Admin"], permissions=["editPost"], edges=[("Admin", "editPost")])
        store.add_child = MagicMock(wraps=store.add_child)
        parent = store.get_item(ItemType.ROLE, "Admin")

        PrivilegeReconciler(store, tracer).reconcile(flags(ensure=Ensure.PRESENT), parent)

        store.add_child.assert_not_called()
        assert tracer.entries[-1].action is TraceAction.LINK_EXISTS
        assert len(store.edges) == 1

    def test_link_rejected(self, make_store, tracer):
        """Test that a rejected edge raises OperationError."""
        store = make_store(roles=["Admin"], permissions=["editPost"])
        parent = store.get_item(ItemType.PERMISSION, "editPost")

        with pytest.raises(OperationError) as exc_info:
            PrivilegeReconciler(store, tracer).reconcile(
                flags(name="Admin", item_type=ItemType.ROLE, ensure=Ensure.MUST_EXIST),
                parent
            )

        assert exc_info.value.details == {"parent": "editPost", "child": "Admin"}
