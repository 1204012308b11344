"""
Reconciliation of a single role or permission against the store.

Decision on ``ensure``:

    MUST_EXIST  missing -> NotFoundError, present -> used as-is
    NEW         present -> ConflictError, missing -> created
    PRESENT     missing -> created, present -> used as-is or updated when
                ``replace`` is set
    ABSENT      not handled while applying; the item is left untouched and
                nothing is linked to or under it
"""

import copy
from typing import Optional

from shared.errors import ConflictError, NotFoundError, OperationError
from .items import Item
from .models import Ensure, ResolvedFlags, TraceAction
from .rules import RuleReconciler
from .store import AuthStore
from .trace import Tracer


class PrivilegeReconciler:
    """Creates, updates or verifies one item and links it to its parent."""

    def __init__(self, store: AuthStore, tracer: Tracer):
        self.store = store
        self.tracer = tracer
        self.rules = RuleReconciler(store, tracer)

    def reconcile(self, flags: ResolvedFlags, parent: Optional[Item] = None) -> Optional[Item]:
        """Bring the item described by ``flags`` into its declared state."""
        current = self.store.get_item(flags.type, flags.name)
        details = {"name": flags.name, "type": flags.type.value}

        if flags.ensure is Ensure.MUST_EXIST and current is None:
            raise NotFoundError(
                f"Item '{flags.name}' must exist but was not found",
                details=details
            )
        if flags.ensure is Ensure.NEW and current is not None:
            raise ConflictError(
                f"Item '{flags.name}' exists but must be new",
                details=details
            )

        if flags.ensure is Ensure.ABSENT:
            self.tracer.record(
                TraceAction.ABSENT_IGNORED, flags.name, flags.type,
                message="ensure=absent is not applied during apply passes"
            )
            return None

        if flags.ensure in (Ensure.NEW, Ensure.PRESENT):
            current = self._create_or_update(flags, current)
        else:
            self.tracer.record(TraceAction.FOUND, flags.name, flags.type)

        if parent is not None and current is not None:
            self.link(parent, current)

        return current

    def link(self, parent: Item, child: Item) -> None:
        """Add ``child`` under ``parent`` unless the edge already exists."""
        if self.store.has_child(parent, child):
            self.tracer.record(TraceAction.LINK_EXISTS, child.name, child.type, parent=parent.name)
            return
        if not self.store.add_child(parent, child):
            raise OperationError(
                f"Cannot add child '{child.name}' to parent '{parent.name}'",
                details={"parent": parent.name, "child": child.name}
            )
        self.tracer.record(TraceAction.LINKED, child.name, child.type, parent=parent.name)

    def _create_or_update(self, flags: ResolvedFlags, current: Optional[Item]) -> Optional[Item]:
        details = {"name": flags.name, "type": flags.type.value}

        if current is None:
            item = self.store.create_item(flags.type, flags.name)
            self._apply_attributes(item, flags)
            if not self.store.add(item):
                raise OperationError(
                    f"Cannot create {flags.type.value} '{flags.name}'",
                    details=details
                )
            self.tracer.record(TraceAction.CREATED, flags.name, flags.type)
        elif flags.replace:
            item = copy.copy(current)
            self._apply_attributes(item, flags)
            if not self.store.update(flags.name, item):
                raise OperationError(
                    f"Cannot update {flags.type.value} '{flags.name}'",
                    details=details
                )
            self.tracer.record(TraceAction.UPDATED, flags.name, flags.type)
        else:
            self.tracer.record(TraceAction.UNCHANGED, flags.name, flags.type)

        return self.store.get_item(flags.type, flags.name)

    def _apply_attributes(self, item: Item, flags: ResolvedFlags) -> None:
        item.describe(flags.description)
        if flags.rule:
            item.attach_rule(self.rules.reconcile(flags.rule))
