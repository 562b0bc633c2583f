"""
Mirror Client - async HTTP client for the remote file mirror.

Talks to the two mirror endpoints:
    GET  /get_data?key=<name>          -> JSON content of <name>.json
    POST /save_data {key, data}        -> {"ok": true, "file": "data/<name>.json"}

Each call opens its own httpx.AsyncClient, so the client can be used from
any event loop (the app's loop, or a short-lived asyncio.run from a
synchronous caller).

Every failure (connection error, timeout, non-2xx status, undecodable body,
error object returned by the mirror) is logged on the mirror channel and
reported as None / {"ok": False}. Nothing here raises to the caller and
nothing is retried.
"""

from typing import Any, Optional
import httpx

from campus_erp.logging_config import get_logger, log_with_context

logger = get_logger("mirror")


class MirrorClient:
    """get_data / save_data against a mirror base URL."""

    def __init__(self, base_url: str, timeout: float = 10.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout,
                                 transport=self._transport)

    async def get_data(self, key: str) -> Optional[Any]:
        """
        Fetch the mirrored value for key.

        Returns the decoded JSON value, or None when the request failed or
        the mirror answered with an error object (e.g. corrupt file).
        """
        try:
            async with self._client() as client:
                resp = await client.get("/get_data", params={"key": key})
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            log_with_context(logger, "WARNING", "Mirror fetch failed for {}".format(key),
                             context={"key": key},
                             extra_data={"error": str(e)})
            return None

        if isinstance(data, dict) and "error" in data:
            log_with_context(logger, "WARNING", "Mirror returned an error for {}".format(key),
                             context={"key": key},
                             extra_data={"error": data.get("error")})
            return None
        return data

    async def save_data(self, key: str, data: Any) -> dict:
        """Write data under key on the mirror. Returns {"ok": bool, ...}."""
        try:
            async with self._client() as client:
                resp = await client.post("/save_data", json={"key": key, "data": data})
                resp.raise_for_status()
                body = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            log_with_context(logger, "WARNING", "Mirror save failed for {}".format(key),
                             context={"key": key},
                             extra_data={"error": str(e)})
            return {"ok": False, "error": str(e)}

        file_path = body.get("file") if isinstance(body, dict) else None
        log_with_context(logger, "DEBUG", "Mirror saved {}".format(key),
                         context={"key": key}, extra_data={"file": file_path})
        return {"ok": True, "file": file_path}
