"""
Depth-first walks over a declared privilege tree.
"""

from typing import Any, Iterable, List, Mapping, Optional

from shared.errors import OperationError
from .flags import FlagResolver
from .items import Item
from .models import Ensure, ResolvedFlags, TraceAction, TraceEntry
from .reconciler import PrivilegeReconciler
from .store import AuthStore
from .trace import Tracer


class TreeWalker:
    """Applies or tears down a privilege tree against a store.

    Any error aborts the walk; whatever was reconciled before the error
    stays in the store.
    """

    def __init__(
        self,
        store: AuthStore,
        default_flags: Optional[Mapping[str, Any]] = None,
        tracer: Optional[Tracer] = None
    ):
        self.store = store
        self.resolver = FlagResolver(default_flags)
        self.tracer = tracer or Tracer()
        self.reconciler = PrivilegeReconciler(store, self.tracer)

    @property
    def trace(self) -> List[TraceEntry]:
        return self.tracer.entries

    def apply(self, privileges: Iterable[Any], parent: Optional[Item] = None) -> None:
        """Create and link every declared item, parents before children."""
        for node in privileges:
            flags = self._resolve(node, parent.name if parent else None)
            current = self.reconciler.reconcile(flags, parent)
            self.apply(flags.children, current)

    def teardown(self, privileges: Iterable[Any], parent_name: Optional[str] = None) -> None:
        """Remove every declared item not marked MUST_EXIST.

        Items are removed in declared order, each before its children.
        """
        for node in privileges:
            flags = self._resolve(node, parent_name)

            if flags.ensure is Ensure.MUST_EXIST:
                self.tracer.record(
                    TraceAction.SKIPPED, flags.name, flags.type,
                    message="marked must_exist"
                )
            else:
                handle = self.store.create_item(flags.type, flags.name)
                if not self.store.remove(handle):
                    raise OperationError(
                        f"Cannot remove {flags.type.value} '{flags.name}'",
                        details={"name": flags.name, "type": flags.type.value}
                    )
                self.tracer.record(TraceAction.REMOVED, flags.name, flags.type)

            self.teardown(flags.children, flags.name)

    def _resolve(self, node: Any, parent_name: Optional[str]) -> ResolvedFlags:
        flags = self.resolver.resolve(node)
        for diagnostic in flags.diagnostics:
            self.tracer.record(TraceAction.DEPRECATED_FLAG, flags.name, flags.type, message=diagnostic)
        self.tracer.record(TraceAction.PROCESSED, flags.name, flags.type, parent=parent_name)
        return flags
