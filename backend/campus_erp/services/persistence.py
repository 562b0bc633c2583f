"""
Persistence Backend - key -> JSON blob storage, local with an optional mirror.

Two layers:
1. Local storage (always present): synchronous read_local / write_local,
   plus the async get_data / save_data contract the rest of the system was
   written against.
2. Remote mirror (optional): fetch_remote / save_remote over MirrorClient.

Failure policy:
- A missing, unreadable or corrupt local value reads as the caller's
  default (an empty list unless told otherwise). The parse failure is
  logged, never raised.
- A failed local write is logged at ERROR and reported as {"ok": False}.
- Mirror failures are logged by the client and reported as None / not ok.
"""

import json
from typing import Any, Optional
from sqlalchemy.exc import SQLAlchemyError

from campus_erp.services.local_storage import LocalStorage
from campus_erp.services.mirror_client import MirrorClient
from campus_erp.logging_config import get_logger, log_with_context

logger = get_logger("storage")

_MISSING = object()


class PersistenceBackend:
    """JSON persistence over LocalStorage with an optional MirrorClient."""

    def __init__(self, local: LocalStorage, mirror: Optional[MirrorClient] = None):
        self.local = local
        self.mirror = mirror

    @property
    def has_mirror(self) -> bool:
        return self.mirror is not None

    # ── Local (synchronous) ──────────────────────────────────

    def read_local(self, key: str, default: Any = _MISSING) -> Any:
        """
        Read and decode the value stored under key.

        Returns `default` (an empty list if not given) when the key is
        absent, the storage read fails, or the payload is not valid JSON.
        """
        if default is _MISSING:
            default = []
        try:
            raw = self.local.get_item(key)
        except SQLAlchemyError as e:
            log_with_context(logger, "ERROR", "Local read failed for {}".format(key),
                             context={"key": key}, extra_data={"error": str(e)})
            return default

        if raw is None or raw == "":
            return default
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            log_with_context(logger, "WARNING", "Corrupt JSON in local storage for {}".format(key),
                             context={"key": key},
                             extra_data={"error": str(e), "bytes": len(raw)})
            return default

    def write_local(self, key: str, data: Any) -> dict:
        """Serialize data and store it under key. Never raises."""
        try:
            self.local.set_item(key, json.dumps(data, ensure_ascii=False))
        except (SQLAlchemyError, TypeError, ValueError) as e:
            log_with_context(logger, "ERROR", "Local write failed for {}".format(key),
                             context={"key": key}, extra_data={"error": str(e)})
            return {"ok": False, "error": str(e)}
        return {"ok": True}

    def remove_local(self, key: str) -> None:
        try:
            self.local.remove_item(key)
        except SQLAlchemyError as e:
            log_with_context(logger, "ERROR", "Local remove failed for {}".format(key),
                             context={"key": key}, extra_data={"error": str(e)})

    # ── Async contract ───────────────────────────────────────

    async def get_data(self, key: str) -> Any:
        """Resolve to the parsed value under key, or [] if absent or unparsable."""
        return self.read_local(key)

    async def save_data(self, key: str, data: Any) -> dict:
        """Resolve to {"ok": True} on success, {"ok": False, "error": ...} otherwise."""
        return self.write_local(key, data)

    # ── Remote mirror ────────────────────────────────────────

    async def fetch_remote(self, key: str) -> Optional[Any]:
        if self.mirror is None:
            return None
        return await self.mirror.get_data(key)

    async def save_remote(self, key: str, data: Any) -> dict:
        if self.mirror is None:
            return {"ok": False, "error": "no mirror configured"}
        return await self.mirror.save_data(key, data)
