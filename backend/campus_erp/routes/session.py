"""
Session API routes - current user profile, admin settings, notifications.

The profile is whatever the login form stored ({userType, fullName,
email, loginTime, ...}); there is no authentication behind it.
"""

from typing import Literal
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict

from campus_erp.dependencies import get_store, get_notifier
from campus_erp.services.notifications import LogNotifier
from campus_erp.services.record_store import RecordStore

router = APIRouter()


class ProfileForm(BaseModel):
    model_config = ConfigDict(extra="allow")

    userType: Literal["admin", "teacher", "student"]
    fullName: str
    email: str
    rememberMe: bool = False


@router.get("/api/session")
async def get_session(store: RecordStore = Depends(get_store)):
    profile = store.get_profile()
    if profile is None:
        raise HTTPException(status_code=404, detail="No active session")
    return profile


@router.put("/api/session")
async def save_session(form: ProfileForm, store: RecordStore = Depends(get_store)):
    return store.save_profile(form.model_dump())


@router.delete("/api/session")
async def clear_session(store: RecordStore = Depends(get_store)):
    store.clear_profile()
    return {"ok": True}


@router.get("/api/settings")
async def get_settings(store: RecordStore = Depends(get_store)):
    return store.get_settings()


@router.put("/api/settings")
async def save_settings(changes: dict, store: RecordStore = Depends(get_store)):
    return store.save_settings(changes)


@router.get("/api/notifications")
async def list_notifications(notifier: LogNotifier = Depends(get_notifier)):
    return {"notifications": notifier.recent()}
