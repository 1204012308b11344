#!/usr/bin/env python3
"""
Apply or tear down a YAML privilege migration.

Submits the migration to the Privileges service, or with ``--dry-run``
replays it against an empty in-memory store and prints the actions that
would be taken.
"""

import argparse
import json
from pathlib import Path
import sys
import os

sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from service_privileges.app.client import PrivilegesClient  # noqa: E402
from service_privileges.app.loader import load_migration_document  # noqa: E402
from service_privileges.app.migration import PrivilegeMigration  # noqa: E402
from service_privileges.app.rbac.models import MigrationResponse  # noqa: E402
from service_privileges.app.rbac.store import InMemoryAuthStore  # noqa: E402
from shared.errors import AccessLayerException  # noqa: E402


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Apply or tear down a privilege migration.")
    parser.add_argument("migration", type=Path, help="Path to the YAML migration document")
    parser.add_argument("--url", default=os.getenv("ACCESS_PRIVILEGES_SERVICE_URL", "http://localhost:8013"), help="Privileges service URL")
    parser.add_argument("--down", action="store_true", help="Tear the migration down instead of applying it")
    parser.add_argument("--remove", action="store_true", help="Allow teardown even if the migration does not enable it")
    parser.add_argument("--dry-run", action="store_true", help="Replay against an empty in-memory store; nothing is sent")
    parser.add_argument("--json", action="store_true", help="Print the full JSON response")
    return parser.parse_args()


def _dry_run(path: Path, down: bool, remove: bool) -> dict:
    migration = PrivilegeMigration.from_file(path, InMemoryAuthStore())
    if down:
        migration.remove_on_migrate_down = migration.remove_on_migrate_down or remove
        result = migration.down()
    else:
        result = migration.up()
    return MigrationResponse.from_result(result).model_dump(mode="json")


def main() -> int:
    args = _parse_args()
    try:
        if args.dry_run:
            body = _dry_run(args.migration, args.down, args.remove)
        else:
            document = load_migration_document(args.migration)
            with PrivilegesClient(args.url) as client:
                if args.down:
                    body = client.teardown(document, remove=args.remove)
                else:
                    body = client.apply(document)
    except KeyboardInterrupt:
        return 130
    except AccessLayerException as exc:
        print(f"[privileges] failed: {exc.message}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(body, indent=2))
    else:
        for line in body.get("lines", []):
            print(f"[privileges] {line}")

    if not body["success"]:
        print(f"[privileges] failed: {body.get('error')}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
