"""
Flag resolution for declared privilege items.

Resolution runs in two pure stages: deprecated flags are mapped onto
``ensure`` / ``replace`` first, then every default flag missing from the
item is filled in. Neither the declared item nor the defaults are mutated.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Tuple

from pydantic import BaseModel

from shared.errors import ValidationError
from .models import EXISTS_FLAG, FORCE_FLAG, Ensure, ItemType, ResolvedFlags

DEFAULT_FLAGS: Mapping[str, Any] = {
    "name": None,
    "ensure": Ensure.NEW,
    "replace": False,
    "rule": None,
    "description": None,
    "type": ItemType.PERMISSION,
}

REQUIRED_FLAGS: Tuple[str, ...] = ("name",)

EXISTS_DEPRECATION = "item uses deprecated flag '_exists'; replace it with ensure='must_exist'"
FORCE_DEPRECATION = "item uses deprecated flag '_force'; replace it with ensure='present' and replace=True"
RULE_FORCE_DEPRECATION = "rule uses deprecated flag '_force'; replace it with replace=True"


def as_item(node: Any) -> Mapping[str, Any]:
    """Return a declared node as a mapping of its explicitly set fields."""
    if isinstance(node, BaseModel):
        return node.model_dump(by_alias=True, exclude_unset=True, mode="json")
    if isinstance(node, Mapping):
        return node
    raise ValidationError(
        "Privilege items must be mappings",
        details={"item": repr(node)}
    )


def map_legacy_flags(item: Mapping[str, Any]) -> Tuple[Dict[str, Any], Tuple[str, ...]]:
    """Map the deprecated flags onto their canonical counterparts."""
    canonical = {key: value for key, value in item.items() if key not in (EXISTS_FLAG, FORCE_FLAG)}
    diagnostics = []

    if item.get(EXISTS_FLAG):
        diagnostics.append(EXISTS_DEPRECATION)
        canonical["ensure"] = Ensure.MUST_EXIST
    if item.get(FORCE_FLAG):
        diagnostics.append(FORCE_DEPRECATION)
        canonical["ensure"] = Ensure.PRESENT
        canonical["replace"] = True

    return canonical, tuple(diagnostics)


def merge_defaults(defaults: Mapping[str, Any], overrides: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """Shallow-merge per-migration overrides over the built-in defaults."""
    merged = dict(defaults)
    merged.update(overrides or {})
    return merged


class FlagResolver:
    """Resolves declared items against a set of default flags."""

    def __init__(self, default_flags: Optional[Mapping[str, Any]] = None):
        self.defaults = merge_defaults(DEFAULT_FLAGS, default_flags)

    def resolve(self, node: Any) -> ResolvedFlags:
        """Resolve ``node`` into a ResolvedFlags value."""
        item, diagnostics = map_legacy_flags(as_item(node))

        flags = {key: item[key] if key in item else value for key, value in self.defaults.items()}

        for flag in REQUIRED_FLAGS:
            if not flags.get(flag):
                raise ValidationError(
                    f"param '{flag}' has to be set for each privileges item",
                    details={"item": {key: value for key, value in item.items() if key != "children"}}
                )
        name = str(flags["name"])

        try:
            item_type = ItemType(flags["type"])
        except ValueError:
            raise ValidationError(
                f"Unknown item type '{flags['type']}'",
                details={"name": name}
            ) from None
        try:
            ensure = Ensure(flags["ensure"])
        except ValueError:
            raise ValidationError(
                f"Unknown ensure value '{flags['ensure']}'",
                details={"name": name}
            ) from None

        rule = flags["rule"] or None
        if rule is not None and not isinstance(rule, Mapping):
            raise ValidationError("Rule must be a mapping", details={"name": name})

        return ResolvedFlags(
            name=name,
            type=item_type,
            ensure=ensure,
            replace=bool(flags["replace"]),
            description=flags["description"],
            rule=rule,
            children=tuple(item.get("children") or ()),
            diagnostics=diagnostics,
        )
