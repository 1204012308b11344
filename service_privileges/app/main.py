"""
Privileges service for 254Carbon Access Layer.
"""

import asyncio
import contextvars
from typing import Callable, List, Optional

from fastapi import HTTPException, Query
from fastapi.responses import JSONResponse

from shared.base_service import BaseService

from .migration import PrivilegeMigration
from .rbac.models import (
    ItemType, MigrationRequest, TeardownRequest, MigrationResponse,
    ItemResponse, RuleResponse, MigrationResult
)
from .rbac.items import Item
from .rbac.store import InMemoryAuthStore


class PrivilegesService(BaseService):
    """Privileges service implementation."""

    def __init__(self, store: Optional[InMemoryAuthStore] = None):
        super().__init__("privileges", 8013, capabilities=["apply", "teardown", "inspection"])

        self.store = store or InMemoryAuthStore()
        self.pass_lock = asyncio.Lock()

        self._setup_privileges_routes()

    def _setup_privileges_routes(self):
        """Set up privileges-specific routes."""

        @self.app.post("/privileges/apply", response_model=MigrationResponse)
        async def apply_privileges(request: MigrationRequest):
            """Apply a privilege tree to the store."""
            migration = self._build_migration(request)
            result = await self._run_pass(migration.up)
            return self._respond(result)

        @self.app.post("/privileges/teardown", response_model=MigrationResponse)
        async def teardown_privileges(request: TeardownRequest):
            """Remove a privilege tree from the store."""
            migration = self._build_migration(
                request,
                remove_on_migrate_down=request.remove or self.config.privileges_remove_on_migrate_down
            )
            result = await self._run_pass(migration.down)
            return self._respond(result)

        @self.app.get("/privileges/items", response_model=List[ItemResponse])
        async def list_items(item_type: Optional[ItemType] = Query(None, alias="type", description="Filter by item type")):
            """List stored roles and permissions."""
            return [self._item_response(item) for item in self.store.get_items(item_type)]

        @self.app.get("/privileges/items/{item_type}/{name}", response_model=ItemResponse)
        async def get_item(item_type: ItemType, name: str):
            """Get a stored role or permission."""
            item = self.store.get_item(item_type, name)
            if item is None:
                raise HTTPException(status_code=404, detail=f"{item_type.value} '{name}' not found")
            return self._item_response(item)

        @self.app.get("/privileges/rules", response_model=List[RuleResponse])
        async def list_rules():
            """List stored rules."""
            return [
                RuleResponse(name=rule.name, rule_class=rule.class_path)
                for rule in self.store.get_rules()
            ]

    async def _run_pass(self, run: Callable[[], MigrationResult]) -> MigrationResult:
        """Run one pass at a time in a worker thread, keeping the logging context."""
        async with self.pass_lock:
            loop = asyncio.get_event_loop()
            context = contextvars.copy_context()
            return await loop.run_in_executor(None, context.run, run)

    def _build_migration(self, request: MigrationRequest, **kwargs) -> PrivilegeMigration:
        default_flags = dict(self.config.privileges_default_flags)
        default_flags.update(request.default_flags)
        return PrivilegeMigration(
            self.store,
            [node.to_item() for node in request.privileges],
            default_flags=default_flags,
            strict=self.config.privileges_strict,
            name="api",
            metrics=self.metrics,
            **kwargs
        )

    def _respond(self, result: MigrationResult) -> JSONResponse:
        response = MigrationResponse.from_result(result)
        if result.success:
            self.metrics.record_business_event(f"privileges_{result.direction}_completed")
        else:
            self.metrics.record_error(result.error_code or "UNKNOWN")
        return JSONResponse(
            status_code=result.status_code,
            content=response.model_dump(mode="json")
        )

    def _item_response(self, item: Item) -> ItemResponse:
        return ItemResponse(
            name=item.name,
            type=item.type,
            description=item.description,
            rule_name=item.rule_name,
            children=[child.name for child in self.store.get_children(item)]
        )

    async def _check_dependencies(self):
        """Check service dependencies."""
        return {"store": "ok"}


def create_app():
    """Create privileges service application."""
    service = PrivilegesService()
    return service.app


if __name__ == "__main__":
    service = PrivilegesService()
    service.run()
