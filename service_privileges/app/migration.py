"""
Privilege migrations: the entry point for apply and teardown passes.
"""

from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from shared.errors import ReconciliationError, ValidationError
from shared.logging import get_logger, set_pass_context, clear_context, pass_id_var
from shared.metrics import MetricsCollector
from .loader import load_migration_document
from .rbac.models import MUTATING_ACTIONS, MigrationResult
from .rbac.store import AuthStore
from .rbac.trace import Tracer
from .rbac.walker import TreeWalker

UP = "up"
DOWN = "down"


class PrivilegeMigration:
    """Applies a declared privilege tree to a store, or tears it down.

    ``up()`` walks the tree creating and linking items. ``down()`` removes
    them again, but only when ``remove_on_migrate_down`` is set.

    By default a reconciliation error ends the pass with a failed result
    carrying the error and the partial trace; with ``strict`` the error is
    raised to the caller instead.
    """

    def __init__(
        self,
        store: AuthStore,
        privileges: Iterable[Any],
        default_flags: Optional[Mapping[str, Any]] = None,
        remove_on_migrate_down: bool = False,
        strict: bool = False,
        name: Optional[str] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        if not isinstance(store, AuthStore):
            raise ValidationError(
                "store must implement the AuthStore interface",
                details={"store": type(store).__name__}
            )
        self.store = store
        self.privileges = list(privileges)
        self.default_flags = dict(default_flags or {})
        self.remove_on_migrate_down = remove_on_migrate_down
        self.strict = strict
        self.name = name or type(self).__name__
        self.metrics = metrics
        self.logger = get_logger("privileges.migration")

    @classmethod
    def from_file(cls, path: Union[str, Path], store: AuthStore, **kwargs) -> "PrivilegeMigration":
        """Build a migration from a YAML migration document."""
        document = load_migration_document(path)
        kwargs.setdefault("default_flags", document.default_flags)
        kwargs.setdefault("remove_on_migrate_down", document.remove_on_migrate_down)
        kwargs.setdefault("name", document.name)
        return cls(store, document.privileges, **kwargs)

    def up(self) -> MigrationResult:
        """Apply the privilege tree."""
        return self._run(UP, lambda walker: walker.apply(self.privileges))

    def down(self) -> MigrationResult:
        """Remove the privilege tree, if removal is enabled."""
        if not self.remove_on_migrate_down:
            message = f"{self.name} cannot be reverted"
            self.logger.warning(message, migration=self.name)
            return MigrationResult(
                direction=DOWN,
                success=False,
                error=message,
                error_code="TEARDOWN_DISABLED",
                status_code=403
            )
        return self._run(DOWN, lambda walker: walker.teardown(self.privileges))

    def _run(self, direction: str, walk: Callable[[TreeWalker], None]) -> MigrationResult:
        inherited = pass_id_var.get()
        set_pass_context(migration=self.name, pass_id=inherited)
        walker = TreeWalker(self.store, self.default_flags, Tracer())
        self.logger.info("Reconciliation pass started", direction=direction)

        try:
            if self.metrics:
                with self.metrics.time_operation("privilege_pass_duration_seconds", direction=direction):
                    walk(walker)
            else:
                walk(walker)
        except ReconciliationError as e:
            self.logger.error(
                "Reconciliation pass failed",
                direction=direction,
                code=e.code,
                error=e.message,
                details=e.details
            )
            result = MigrationResult(
                direction=direction,
                success=False,
                trace=walker.trace,
                error=e.message,
                error_code=e.code,
                status_code=e.status_code
            )
            self._record_metrics(result)
            if self.strict:
                raise
            return result
        else:
            result = MigrationResult(direction=direction, success=True, trace=walker.trace)
            self._record_metrics(result)
            self.logger.info(
                "Reconciliation pass completed",
                direction=direction,
                mutations=result.mutations
            )
            return result
        finally:
            clear_context()
            if inherited:
                set_pass_context(pass_id=inherited)

    def _record_metrics(self, result: MigrationResult) -> None:
        if not self.metrics:
            return
        self.metrics.record_pass(
            result.direction,
            result.success,
            [entry.action.value for entry in result.trace if entry.action in MUTATING_ACTIONS]
        )
