"""API v1 router."""

from fastapi import APIRouter

from repairhub.api.v1 import chat_ws, notifications

router = APIRouter()

router.include_router(chat_ws.router, tags=["Chat Relay"])
router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
