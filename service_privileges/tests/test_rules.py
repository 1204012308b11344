"""
Unit tests for rule reconciliation.
"""

import pytest
from dataclasses import dataclass
from unittest.mock import MagicMock

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_privileges.app.rbac.items import OwnerRule, Rule
from service_privileges.app.rbac.models import TraceAction
from service_privileges.app.rbac.rules import RuleReconciler
from shared.errors import OperationError, ValidationError
from shared.test_helpers import OWNER_RULE_PATH


@dataclass
class AdminRule(Rule):
    """Rule used to check rebinding."""

    def execute(self, user_id, item, params):
        return params.get("is_admin", False)


class NotARule:
    """Class that does not implement Rule."""

    def __init__(self, name):
        self.name = name


class TestRuleReconciler:
    """Test cases for RuleReconciler."""

    @pytest.fixture
    def reconciler(self, store, tracer):
        """Create RuleReconciler over an empty store."""
        return RuleReconciler(store, tracer)

    def test_creates_missing_rule(self, reconciler, store, tracer):
        """Test that a missing rule is created."""
        name = reconciler.reconcile({"name": "OwnerRule", "class": OWNER_RULE_PATH})

        assert name == "OwnerRule"
        assert isinstance(store.get_rule("OwnerRule"), OwnerRule)
        assert [entry.action for entry in tracer.entries] == [TraceAction.RULE_CREATED]

    def test_existing_rule_untouched(self, reconciler, store, tracer):
        """Test that an existing rule is kept without replace."""
        existing = OwnerRule(name="OwnerRule")
        store.add(existing)

        name = reconciler.reconcile({"name": "OwnerRule", "class": AdminRule})

        assert name == "OwnerRule"
        assert store.get_rule("OwnerRule") is existing
        assert tracer.entries[-1].action is TraceAction.RULE_EXISTS

    def test_replace_rebinds_rule(self, reconciler, store, tracer):
        """Test that replace rebinds an existing rule."""
        store.add(OwnerRule(name="OwnerRule"))

        reconciler.reconcile({"name": "OwnerRule", "class": AdminRule, "replace": True})

        assert isinstance(store.get_rule("OwnerRule"), AdminRule)
        assert tracer.entries[-1].action is TraceAction.RULE_UPDATED

    def test_deprecated_force_rebinds_rule(self, reconciler, store, tracer):
        """Test that the deprecated _force flag behaves like replace."""
        store.add(OwnerRule(name="OwnerRule"))

        reconciler.reconcile({"name": "OwnerRule", "class": AdminRule, "_force": True})

        assert isinstance(store.get_rule("OwnerRule"), AdminRule)
        actions = [entry.action for entry in tracer.entries]
        assert actions == [TraceAction.DEPRECATED_FLAG, TraceAction.RULE_UPDATED]

    @pytest.mark.parametrize("config", [
        {"class": OWNER_RULE_PATH},
        {"name": "OwnerRule"},
        {"name": "", "class": OWNER_RULE_PATH},
    ])
    def test_incomplete_rule_config(self, reconciler, config):
        """Test that name and class are required."""
        with pytest.raises(ValidationError):
            reconciler.reconcile(config)

    def test_class_type_mismatch(self, reconciler, store):
        """Test that a non-rule class is rejected."""
        with pytest.raises(ValidationError):
            reconciler.reconcile({"name": "Broken", "class": NotARule})

        assert store.get_rule("Broken") is None

    def test_add_rejected(self, tracer):
        """Test that a rejected add raises OperationError."""
        store = MagicMock()
        store.get_rule.return_value = None
        store.add.return_value = False

        with pytest.raises(OperationError):
            RuleReconciler(store, tracer).reconcile({"name": "OwnerRule", "class": OwnerRule})

    def test_update_rejected(self, tracer):
        """Test that a rejected update raises OperationError."""
        store = MagicMock()
        store.get_rule.return_value = OwnerRule(name="OwnerRule")
        store.update.return_value = False

        with pytest.raises(OperationError):
            RuleReconciler(store, tracer).reconcile(
                {"name": "OwnerRule", "class": OwnerRule, "replace": True}
            )
