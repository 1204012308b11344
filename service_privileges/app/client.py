"""
HTTP client for the Privileges service.
"""

from typing import Any, Dict, Optional

import httpx

from shared.logging import get_logger
from shared.errors import AccessLayerException
from .loader import MigrationDocument


class PrivilegesClientError(AccessLayerException):
    """Privileges service could not be reached or answered unexpectedly."""

    def __init__(self, message: str = "Privileges service error", details: Optional[Dict[str, Any]] = None):
        super().__init__("EXTERNAL_SERVICE_ERROR", f"privileges: {message}", details)


class PrivilegesClient:
    """Client for submitting privilege migrations to the Privileges service."""

    def __init__(self, base_url: str, timeout: float = 30.0, transport: Optional[httpx.BaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.logger = get_logger("privileges.client")
        self._client = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)

    def close(self):
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def apply(self, document: MigrationDocument) -> Dict[str, Any]:
        """Submit ``document`` for an apply pass."""
        return self._post("/privileges/apply", {
            "privileges": document.privileges,
            "default_flags": document.default_flags
        })

    def teardown(self, document: MigrationDocument, remove: bool = False) -> Dict[str, Any]:
        """Submit ``document`` for a teardown pass."""
        return self._post("/privileges/teardown", {
            "privileges": document.privileges,
            "default_flags": document.default_flags,
            "remove": remove or document.remove_on_migrate_down
        })

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = self._client.post(path, json=payload)
        except httpx.HTTPError as e:
            self.logger.error("Privileges service HTTP error", path=path, error=str(e))
            raise PrivilegesClientError(
                "service unavailable",
                details={"http_error": str(e)}
            ) from e

        try:
            body = response.json()
        except ValueError as e:
            raise PrivilegesClientError(
                f"unexpected response: {response.status_code}",
                details={"status_code": response.status_code}
            ) from e

        if "success" not in body:
            # Error handler payloads carry code/message instead of a trace
            body = {
                "success": False,
                "error": body.get("message") or body.get("detail"),
                "error_code": body.get("code"),
                "trace": [],
                "lines": []
            }

        self.logger.info(
            "Privileges pass submitted",
            path=path,
            status_code=response.status_code,
            success=body["success"]
        )
        return body
