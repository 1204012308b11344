"""
Rule reconciliation for permissions that reference a rule.
"""

from typing import Any, Mapping

from shared.errors import OperationError, ValidationError
from .flags import RULE_FORCE_DEPRECATION
from .items import create_rule_instance
from .models import FORCE_FLAG, TraceAction
from .store import AuthStore
from .trace import Tracer


class RuleReconciler:
    """Ensures a named rule exists in the store, bound to the requested class."""

    def __init__(self, store: AuthStore, tracer: Tracer):
        self.store = store
        self.tracer = tracer

    def reconcile(self, rule_spec: Mapping[str, Any]) -> str:
        """Create or update the rule described by ``rule_spec``; return its name."""
        name = rule_spec.get("name")
        reference = rule_spec.get("class")
        if not name or not reference:
            raise ValidationError(
                "'name' and 'class' must be defined in rule config",
                details={"rule": name}
            )

        replace = bool(rule_spec.get("replace"))
        if rule_spec.get(FORCE_FLAG):
            self.tracer.record(TraceAction.DEPRECATED_FLAG, name, message=RULE_FORCE_DEPRECATION)
            replace = True

        if self.store.get_rule(name) is None:
            rule = create_rule_instance(name, reference)
            if not self.store.add(rule):
                raise OperationError(f"Cannot create rule '{name}'", details={"rule": name})
            self.tracer.record(TraceAction.RULE_CREATED, name, message=rule.class_path)
        elif replace:
            rule = create_rule_instance(name, reference)
            if not self.store.update(name, rule):
                raise OperationError(f"Cannot update rule '{name}'", details={"rule": name})
            self.tracer.record(TraceAction.RULE_UPDATED, name, message=rule.class_path)
        else:
            self.tracer.record(TraceAction.RULE_EXISTS, name)

        return name
