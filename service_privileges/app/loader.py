"""
YAML privilege migration documents.

A document is either a bare list of privilege items or a mapping::

    default_flags:
      ensure: present
    remove_on_migrate_down: false
    privileges:
      - name: Admin
        type: role
        children:
          - name: editPost
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Union

import yaml

from shared.errors import ValidationError


@dataclass
class MigrationDocument:
    """Parsed privilege migration document."""
    name: str
    privileges: List[Dict[str, Any]]
    default_flags: Dict[str, Any] = field(default_factory=dict)
    remove_on_migrate_down: bool = False


def parse_migration_document(data: Any, name: str = "migration") -> MigrationDocument:
    """Validate the decoded contents of a migration document."""
    if isinstance(data, list):
        data = {"privileges": data}
    if not isinstance(data, dict):
        raise ValidationError(
            "Migration document must be a list or a mapping",
            details={"migration": name}
        )

    privileges = data.get("privileges")
    if not isinstance(privileges, list):
        raise ValidationError(
            "Migration document requires a 'privileges' list",
            details={"migration": name}
        )
    for item in privileges:
        if not isinstance(item, dict):
            raise ValidationError(
                "Privilege items must be mappings",
                details={"migration": name, "item": repr(item)}
            )

    default_flags = data.get("default_flags") or {}
    if not isinstance(default_flags, dict):
        raise ValidationError(
            "'default_flags' must be a mapping",
            details={"migration": name}
        )

    return MigrationDocument(
        name=name,
        privileges=privileges,
        default_flags=default_flags,
        remove_on_migrate_down=bool(data.get("remove_on_migrate_down", False))
    )


def load_migration_document(path: Union[str, Path]) -> MigrationDocument:
    """Read and parse a YAML migration document from ``path``."""
    path = Path(path)
    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValidationError(
            f"Invalid YAML in {path}",
            details={"migration": path.stem, "error": str(e)}
        ) from e
    except OSError as e:
        raise ValidationError(
            f"Cannot read migration {path}",
            details={"migration": path.stem, "error": str(e)}
        ) from e

    return parse_migration_document(data, name=path.stem)
