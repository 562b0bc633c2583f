"""
File Mirror - stores each key as <data_dir>/<key>.json.

Backs the /get_data and /save_data endpoints. Keys are sanitized to
[A-Za-z0-9_-] before touching the filesystem. Writes take an exclusive
flock around truncate + write so concurrent requests never interleave
partial files. There are no transactions and no auth.
"""

import fcntl
import json
import os
import re
from typing import Any

from campus_erp.logging_config import get_logger, log_with_context

logger = get_logger("mirror")

_KEY_PATTERN = re.compile(r"[^A-Za-z0-9_\-]")


class MirrorError(Exception):
    """Carries the HTTP status and message the endpoint should answer with."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def sanitize_key(key) -> str:
    if key is None:
        return ""
    return _KEY_PATTERN.sub("", str(key))


class FileMirror:
    """Read and write JSON files keyed by sanitized name."""

    def __init__(self, data_dir: str):
        self.data_dir = data_dir

    def path_for(self, key: str) -> str:
        return os.path.join(self.data_dir, key + ".json")

    def public_path(self, key: str) -> str:
        folder = os.path.basename(os.path.normpath(self.data_dir)) or "data"
        return "{}/{}.json".format(folder, key)

    def read(self, raw_key) -> Any:
        """
        Return the stored value for a key.

        A missing file reads as []. A corrupt file is returned as a
        diagnostic object holding the raw text instead of failing.
        """
        key = sanitize_key(raw_key)
        if not key:
            raise MirrorError(400, "Missing or invalid key")

        path = self.path_for(key)
        if not os.path.exists(path):
            return []

        try:
            with open(path, "rb") as f:
                raw = f.read()
        except OSError as e:
            log_with_context(logger, "ERROR", "Unable to read mirror file",
                             context={"key": key}, extra_data={"error": str(e)})
            raise MirrorError(500, "Unable to read file")

        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            log_with_context(logger, "WARNING", "Corrupt JSON in mirror file",
                             context={"key": key}, extra_data={"bytes": len(raw)})
            return {"error": "Corrupt JSON file", "raw": raw.decode("utf-8", "replace")}

    def write(self, raw_key, data: Any) -> dict:
        key = sanitize_key(raw_key)
        if not key:
            raise MirrorError(400, "Invalid key")

        os.makedirs(self.data_dir, mode=0o755, exist_ok=True)
        path = self.path_for(key)

        try:
            fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o644)
        except OSError as e:
            log_with_context(logger, "ERROR", "Unable to open mirror file",
                             context={"key": key}, extra_data={"error": str(e)})
            raise MirrorError(500, "Unable to open file")

        with os.fdopen(fd, "r+", encoding="utf-8") as f:
            try:
                fcntl.flock(f, fcntl.LOCK_EX)
            except OSError as e:
                log_with_context(logger, "ERROR", "Unable to lock mirror file",
                                 context={"key": key}, extra_data={"error": str(e)})
                raise MirrorError(500, "Unable to lock file")
            try:
                f.seek(0)
                f.truncate()
                f.write(json.dumps(data, indent=4, ensure_ascii=False))
                f.flush()
            finally:
                fcntl.flock(f, fcntl.LOCK_UN)

        log_with_context(logger, "INFO", "Mirror file written",
                         context={"key": key})
        return {"ok": True, "file": self.public_path(key)}
