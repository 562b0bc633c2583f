"""
FastAPI dependencies - hand the shared store and services to route handlers.

main.py builds the store, notifier, records service and file mirror once
at startup and keeps them on app.state; routes never touch module globals.
"""

from fastapi import Request

from campus_erp.services.file_mirror import FileMirror
from campus_erp.services.notifications import LogNotifier
from campus_erp.services.record_store import RecordStore
from campus_erp.services.records import RecordsService


def get_store(request: Request) -> RecordStore:
    return request.app.state.store


def get_notifier(request: Request) -> LogNotifier:
    return request.app.state.notifier


def get_records(request: Request) -> RecordsService:
    return request.app.state.records


def get_file_mirror(request: Request) -> FileMirror:
    return request.app.state.file_mirror
