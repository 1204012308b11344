"""
Store-side authorization items and rules.

Roles and permissions share one shape and differ only in their
``ItemType`` tag; ``item_class_for`` selects the variant for a type.
Rules are named predicates that can be bound to an item through its
``rule_name``.
"""

from __future__ import annotations

import importlib
import inspect
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Dict, Mapping, Optional, Type, Union

from shared.errors import ValidationError
from .models import ItemType


@dataclass
class Item:
    """Role or permission record."""
    name: str
    description: Optional[str] = None
    rule_name: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    type: ClassVar[ItemType]

    def describe(self, description: Optional[str]) -> None:
        self.description = description

    def attach_rule(self, rule_name: Optional[str]) -> None:
        self.rule_name = rule_name


@dataclass
class Role(Item):
    """Role item; may contain roles and permissions."""
    type: ClassVar[ItemType] = ItemType.ROLE


@dataclass
class Permission(Item):
    """Permission item; normally a leaf."""
    type: ClassVar[ItemType] = ItemType.PERMISSION


ITEM_CLASSES: Dict[ItemType, Type[Item]] = {
    ItemType.ROLE: Role,
    ItemType.PERMISSION: Permission,
}


def item_class_for(item_type: ItemType) -> Type[Item]:
    """Return the item variant for ``item_type``."""
    return ITEM_CLASSES[ItemType(item_type)]


@dataclass
class Rule(ABC):
    """Named authorization predicate.

    Subclasses implement :meth:`execute`; they are constructed with the
    rule name only, so any further configuration needs a default.
    """
    name: str
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    @abstractmethod
    def execute(self, user_id: str, item: Item, params: Mapping[str, Any]) -> bool:
        """Return whether ``user_id`` may use ``item`` given ``params``."""

    @property
    def class_path(self) -> str:
        return f"{type(self).__module__}:{type(self).__qualname__}"


@dataclass
class OwnerRule(Rule):
    """Grants access when the user owns the resource in ``params``."""
    owner_field: str = "owner_id"

    def execute(self, user_id: str, item: Item, params: Mapping[str, Any]) -> bool:
        owner = params.get(self.owner_field)
        return owner is not None and str(owner) == str(user_id)


RuleReference = Union[str, Type[Rule]]


def resolve_rule_class(reference: RuleReference) -> type:
    """Resolve a rule class from a class object or an import path.

    Import paths may be ``"package.module:Class"`` or
    ``"package.module.Class"``.
    """
    if isinstance(reference, type):
        return reference
    if not isinstance(reference, str) or not reference.strip():
        raise ValidationError(
            "Rule class must be a class or an import path",
            details={"class": repr(reference)}
        )

    path = reference.strip()
    if ":" in path:
        module_name, _, attribute = path.partition(":")
    else:
        module_name, _, attribute = path.rpartition(".")
    if not module_name or not attribute:
        raise ValidationError(f"Invalid rule class path '{path}'", details={"class": path})

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ValidationError(
            f"Cannot import rule module '{module_name}'",
            details={"class": path, "error": str(e)}
        ) from e

    target: Any = module
    for part in attribute.split("."):
        try:
            target = getattr(target, part)
        except AttributeError as e:
            raise ValidationError(
                f"Rule class '{path}' not found",
                details={"class": path}
            ) from e

    if not isinstance(target, type):
        raise ValidationError(f"Rule class '{path}' is not a class", details={"class": path})
    return target


def create_rule_instance(name: str, reference: RuleReference) -> Rule:
    """Instantiate the rule class for ``reference`` under ``name``."""
    rule_class = resolve_rule_class(reference)
    if not issubclass(rule_class, Rule) or inspect.isabstract(rule_class):
        raise ValidationError(
            f"Rule class must be a concrete subclass of {Rule.__qualname__}",
            details={"rule": name, "class": rule_class.__qualname__}
        )

    try:
        rule = rule_class(name=name)
    except TypeError as e:
        raise ValidationError(
            f"Rule class '{rule_class.__qualname__}' cannot be constructed",
            details={"rule": name, "error": str(e)}
        ) from e

    if not isinstance(rule, Rule):
        raise ValidationError(
            f"Rule class must be of type {Rule.__qualname__}",
            details={"rule": name, "class": rule_class.__qualname__}
        )
    return rule
