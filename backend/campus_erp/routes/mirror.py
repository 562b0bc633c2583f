"""
Mirror API routes - the file-backed JSON endpoint.

GET  /get_data?key=<name>   -> contents of <name>.json ([] if missing)
POST /save_data {key, data} -> {"ok": true, "file": "data/<name>.json"}

Errors are answered as {"error": "..."} with a 4xx/5xx status, matching
what existing mirror clients expect, rather than FastAPI's {"detail": ...}.
The request body is parsed by hand for the same reason.
"""

import json
from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from campus_erp.dependencies import get_file_mirror
from campus_erp.services.file_mirror import FileMirror, MirrorError

router = APIRouter()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.get("/get_data")
async def get_data(request: Request, mirror: FileMirror = Depends(get_file_mirror)):
    try:
        data = await run_in_threadpool(mirror.read, request.query_params.get("key", ""))
    except MirrorError as e:
        return _error(e.status_code, e.message)
    return JSONResponse(content=data)


@router.post("/save_data")
async def save_data(request: Request, mirror: FileMirror = Depends(get_file_mirror)):
    raw = await request.body()
    if not raw:
        return _error(400, "Empty request body")

    try:
        body = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return _error(400, "Invalid JSON")

    if not isinstance(body, dict) or not body.get("key") or "data" not in body or body["data"] is None:
        return _error(400, "Missing key or data")

    try:
        result = await run_in_threadpool(mirror.write, body["key"], body["data"])
    except MirrorError as e:
        return _error(e.status_code, e.message)
    return result
