"""
Authorization store contract and in-memory implementation.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Protocol, Set, Tuple, Union, runtime_checkable

from shared.logging import get_logger
from .items import Item, Rule, item_class_for
from .models import ItemType

ItemKey = Tuple[ItemType, str]
StoreObject = Union[Item, Rule]


@runtime_checkable
class AuthStore(Protocol):
    """Capabilities the reconciliation engine needs from a store."""

    def get_item(self, item_type: ItemType, name: str) -> Optional[Item]:
        ...

    def create_item(self, item_type: ItemType, name: str) -> Item:
        ...

    def add(self, obj: StoreObject) -> bool:
        ...

    def update(self, name: str, obj: StoreObject) -> bool:
        ...

    def remove(self, obj: StoreObject) -> bool:
        ...

    def has_child(self, parent: Item, child: Item) -> bool:
        ...

    def add_child(self, parent: Item, child: Item) -> bool:
        ...

    def get_rule(self, name: str) -> Optional[Rule]:
        ...


def _key(item: Item) -> ItemKey:
    return (item.type, item.name)


class InMemoryAuthStore:
    """Authorization store kept in process memory."""

    def __init__(self):
        self.logger = get_logger("privileges.store")
        self.items: Dict[ItemKey, Item] = {}
        self.rules: Dict[str, Rule] = {}
        self.edges: Set[Tuple[ItemKey, ItemKey]] = set()

    def get_item(self, item_type: ItemType, name: str) -> Optional[Item]:
        """Get an item by type and name."""
        return self.items.get((ItemType(item_type), name))

    def create_item(self, item_type: ItemType, name: str) -> Item:
        """Construct an item without persisting it."""
        return item_class_for(item_type)(name=name)

    def get_rule(self, name: str) -> Optional[Rule]:
        """Get a rule by name."""
        return self.rules.get(name)

    def add(self, obj: StoreObject) -> bool:
        """Add a new item or rule."""
        if isinstance(obj, Rule):
            if obj.name in self.rules:
                return False
            self.rules[obj.name] = obj
            self.logger.debug("Rule added", rule=obj.name)
            return True

        key = _key(obj)
        if key in self.items:
            return False
        if obj.rule_name and obj.rule_name not in self.rules:
            self.logger.warning("Unknown rule referenced", item=obj.name, rule=obj.rule_name)
            return False
        self.items[key] = obj
        self.logger.debug("Item added", item=obj.name, type=obj.type.value)
        return True

    def update(self, name: str, obj: StoreObject) -> bool:
        """Replace the record stored under ``name``; renames carry edges along."""
        if isinstance(obj, Rule):
            if name not in self.rules:
                return False
            if obj.name != name:
                if obj.name in self.rules:
                    return False
                del self.rules[name]
                for item in self.items.values():
                    if item.rule_name == name:
                        item.rule_name = obj.name
            obj.updated_at = datetime.now()
            self.rules[obj.name] = obj
            return True

        old_key = (obj.type, name)
        new_key = _key(obj)
        if old_key not in self.items:
            return False
        if obj.rule_name and obj.rule_name not in self.rules:
            return False
        if new_key != old_key:
            if new_key in self.items:
                return False
            del self.items[old_key]
            self.edges = {
                (new_key if parent == old_key else parent, new_key if child == old_key else child)
                for parent, child in self.edges
            }
        obj.updated_at = datetime.now()
        self.items[new_key] = obj
        return True

    def remove(self, obj: StoreObject) -> bool:
        """Remove an item or rule; removing a missing record succeeds."""
        if isinstance(obj, Rule):
            self.rules.pop(obj.name, None)
            for item in self.items.values():
                if item.rule_name == obj.name:
                    item.rule_name = None
            return True

        key = _key(obj)
        self.items.pop(key, None)
        self.edges = {edge for edge in self.edges if key not in edge}
        return True

    def has_child(self, parent: Item, child: Item) -> bool:
        """Check whether ``child`` is a direct child of ``parent``."""
        return (_key(parent), _key(child)) in self.edges

    def add_child(self, parent: Item, child: Item) -> bool:
        """Link ``child`` under ``parent``."""
        parent_key, child_key = _key(parent), _key(child)
        if parent_key not in self.items or child_key not in self.items:
            return False
        if parent_key == child_key or (parent_key, child_key) in self.edges:
            return False
        if parent.type is ItemType.PERMISSION and child.type is ItemType.ROLE:
            return False
        if self._reaches(child_key, parent_key):
            self.logger.warning("Refusing loop", parent=parent.name, child=child.name)
            return False
        self.edges.add((parent_key, child_key))
        return True

    def get_items(self, item_type: Optional[ItemType] = None) -> List[Item]:
        """List items, optionally filtered by type."""
        return [
            item for key, item in sorted(self.items.items(), key=lambda pair: (pair[0][0].value, pair[0][1]))
            if item_type is None or key[0] == item_type
        ]

    def get_children(self, parent: Item) -> List[Item]:
        """List direct children of ``parent``."""
        parent_key = _key(parent)
        return [
            self.items[child] for owner, child in sorted(self.edges, key=lambda edge: edge[1][1])
            if owner == parent_key
        ]

    def get_rules(self) -> List[Rule]:
        """List rules ordered by name."""
        return [self.rules[name] for name in sorted(self.rules)]

    def _reaches(self, start: ItemKey, target: ItemKey) -> bool:
        """Check whether ``target`` is a descendant of ``start``."""
        stack = [start]
        seen: Set[ItemKey] = set()
        while stack:
            current = stack.pop()
            if current == target:
                return True
            if current in seen:
                continue
            seen.add(current)
            stack.extend(child for parent, child in self.edges if parent == current)
        return False
