"""
Runtime configuration read from the environment.

Every setting has a local-development default so the service starts with
no environment at all: a SQLite file for the key-value store, no remote
mirror, and a ./data directory for the file mirror endpoint.
"""

import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# Local key-value store (stands in for the browser's persistent storage)
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./campus_erp.db")

# Remote mirror base URL, e.g. http://localhost:8000; unset means local only
MIRROR_URL = os.getenv("MIRROR_URL") or None
MIRROR_TIMEOUT = float(os.getenv("MIRROR_TIMEOUT", "10"))

# Directory the file mirror endpoint writes <key>.json files into
MIRROR_DATA_DIR = os.getenv("MIRROR_DATA_DIR", os.path.join(".", "data"))

# Fetch the remote overlay in the background when the app starts
OVERLAY_ON_STARTUP = _env_bool("OVERLAY_ON_STARTUP", True)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
