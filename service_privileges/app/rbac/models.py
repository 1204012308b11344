"""
Privilege tree data models for the Privileges Service.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class ItemType(str, Enum):
    """Authorization item kinds."""
    ROLE = "role"
    PERMISSION = "permission"


class Ensure(str, Enum):
    """Existence policy of a declared item."""
    NEW = "new"
    PRESENT = "present"
    MUST_EXIST = "must_exist"
    ABSENT = "absent"


# Deprecated item flags, superseded by ``ensure`` / ``replace``
EXISTS_FLAG = "_exists"
FORCE_FLAG = "_force"


class TraceAction(str, Enum):
    """Actions recorded while walking a privilege tree."""
    PROCESSED = "processed"
    FOUND = "found"
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    LINKED = "linked"
    LINK_EXISTS = "link_exists"
    RULE_CREATED = "rule_created"
    RULE_UPDATED = "rule_updated"
    RULE_EXISTS = "rule_exists"
    SKIPPED = "skipped"
    REMOVED = "removed"
    DEPRECATED_FLAG = "deprecated_flag"
    ABSENT_IGNORED = "absent_ignored"


# Trace actions that correspond to a store mutation
MUTATING_ACTIONS = frozenset({
    TraceAction.CREATED,
    TraceAction.UPDATED,
    TraceAction.LINKED,
    TraceAction.RULE_CREATED,
    TraceAction.RULE_UPDATED,
    TraceAction.REMOVED,
})


@dataclass(frozen=True)
class ResolvedFlags:
    """A declared item merged with the default flags."""
    name: str
    type: ItemType
    ensure: Ensure
    replace: bool = False
    description: Optional[str] = None
    rule: Optional[Mapping[str, Any]] = None
    children: Tuple[Any, ...] = ()
    diagnostics: Tuple[str, ...] = ()


@dataclass
class TraceEntry:
    """One action taken during a reconciliation pass."""
    action: TraceAction
    name: str
    item_type: Optional[ItemType] = None
    parent: Optional[str] = None
    message: Optional[str] = None

    def describe(self) -> str:
        """Render the entry as a human readable line."""
        subject = f"{self.item_type.value} '{self.name}'" if self.item_type else f"'{self.name}'"
        line = f"{self.action.value}: {subject}"
        if self.parent:
            line += f" under '{self.parent}'"
        if self.message:
            line += f" ({self.message})"
        return line


@dataclass
class MigrationResult:
    """Outcome of a reconciliation pass."""
    direction: str
    success: bool
    trace: List[TraceEntry] = field(default_factory=list)
    error: Optional[str] = None
    error_code: Optional[str] = None
    status_code: int = 200

    @property
    def mutations(self) -> int:
        return len([entry for entry in self.trace if entry.action in MUTATING_ACTIONS])

    def lines(self) -> List[str]:
        return [entry.describe() for entry in self.trace]


class RuleSpecModel(BaseModel):
    """Request model for a rule attached to a permission."""
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., description="Rule name")
    class_: str = Field(..., alias="class", description="Import path of the rule class")
    replace: Optional[bool] = Field(None, description="Rebind an existing rule")
    force: Optional[bool] = Field(None, alias="_force", description="Deprecated, use replace")


class PrivilegeNode(BaseModel):
    """Request model for a declared role or permission."""
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., description="Item name")
    type: Optional[ItemType] = Field(None, description="Item type")
    ensure: Optional[Ensure] = Field(None, description="Existence policy")
    replace: Optional[bool] = Field(None, description="Overwrite an existing item")
    description: Optional[str] = Field(None, description="Item description")
    rule: Optional[RuleSpecModel] = Field(None, description="Rule bound to the item")
    children: List["PrivilegeNode"] = Field(default_factory=list, description="Child items")
    exists: Optional[bool] = Field(None, alias="_exists", description="Deprecated, use ensure=must_exist")
    force: Optional[bool] = Field(None, alias="_force", description="Deprecated, use ensure=present and replace")

    def to_item(self) -> Dict[str, Any]:
        """Return the explicitly declared fields as a plain mapping."""
        return self.model_dump(by_alias=True, exclude_unset=True, mode="json")


PrivilegeNode.model_rebuild()


class MigrationRequest(BaseModel):
    """Request model for an apply pass."""
    privileges: List[PrivilegeNode] = Field(..., description="Declared privilege tree")
    default_flags: Dict[str, Any] = Field(default_factory=dict, description="Per-migration default flags")


class TeardownRequest(MigrationRequest):
    """Request model for a teardown pass."""
    remove: bool = Field(False, description="Allow removal even if disabled by configuration")


class TraceEntryResponse(BaseModel):
    """Response model for a trace entry."""
    action: TraceAction
    name: str
    item_type: Optional[ItemType] = None
    parent: Optional[str] = None
    message: Optional[str] = None


class MigrationResponse(BaseModel):
    """Response model for a reconciliation pass."""
    direction: str
    success: bool
    error: Optional[str] = None
    error_code: Optional[str] = None
    mutations: int = 0
    trace: List[TraceEntryResponse] = Field(default_factory=list)
    lines: List[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: MigrationResult) -> "MigrationResponse":
        return cls(
            direction=result.direction,
            success=result.success,
            error=result.error,
            error_code=result.error_code,
            mutations=result.mutations,
            trace=[
                TraceEntryResponse(
                    action=entry.action,
                    name=entry.name,
                    item_type=entry.item_type,
                    parent=entry.parent,
                    message=entry.message
                )
                for entry in result.trace
            ],
            lines=result.lines()
        )


class ItemResponse(BaseModel):
    """Response model for a stored role or permission."""
    name: str
    type: ItemType
    description: Optional[str] = None
    rule_name: Optional[str] = None
    children: List[str] = Field(default_factory=list)


class RuleResponse(BaseModel):
    """Response model for a stored rule."""
    name: str
    rule_class: str
