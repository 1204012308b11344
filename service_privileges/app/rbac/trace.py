"""
Action trace collected during a reconciliation pass.
"""

from typing import List, Optional

from shared.logging import get_logger
from .models import ItemType, TraceAction, TraceEntry


class Tracer:
    """Records and logs the actions taken during one pass."""

    def __init__(self):
        self.logger = get_logger("privileges.trace")
        self.entries: List[TraceEntry] = []

    def record(
        self,
        action: TraceAction,
        name: str,
        item_type: Optional[ItemType] = None,
        parent: Optional[str] = None,
        message: Optional[str] = None
    ) -> TraceEntry:
        entry = TraceEntry(action=action, name=name, item_type=item_type, parent=parent, message=message)
        self.entries.append(entry)

        log = self.logger.warning if action is TraceAction.DEPRECATED_FLAG else self.logger.info
        log(
            entry.describe(),
            action=action.value,
            name=name,
            type=item_type.value if item_type else None,
            parent=parent
        )
        return entry
