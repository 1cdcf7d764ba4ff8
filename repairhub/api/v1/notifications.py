from fastapi import APIRouter, status
from pydantic import BaseModel

from repairhub.schemas.events import NotificationEvent
from repairhub.schemas.notification import NotificationCreate
from repairhub.services.chat_connection_manager import chat_manager

router = APIRouter()

class BroadcastResponse(BaseModel):
    delivered: int

@router.post("", response_model=BroadcastResponse, status_code=status.HTTP_202_ACCEPTED)
async def broadcast_notification(payload: NotificationCreate):
    """Push a notification to every connected client."""
    delivered = await chat_manager.broadcast(NotificationEvent(data=payload).to_wire())
    return {"delivered": delivered}
