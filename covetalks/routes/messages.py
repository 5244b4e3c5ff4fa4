"""Messaging endpoints"""

from fastapi import APIRouter, Depends

from covetalks.auth.session import SessionUser
from covetalks.dependencies import get_current_user, get_messaging_service
from covetalks.models.requests import MessageCreate
from covetalks.services.messaging_service import MessagingService

router = APIRouter(prefix="/api/messages", tags=["messages"])


@router.get("")
def conversations(
    user: SessionUser = Depends(get_current_user),
    messaging: MessagingService = Depends(get_messaging_service),
):
    return {"conversations": messaging.list_conversations(user.id)}


@router.post("", status_code=201)
def send(
    body: MessageCreate,
    user: SessionUser = Depends(get_current_user),
    messaging: MessagingService = Depends(get_messaging_service),
):
    return messaging.send_message(
        sender_id=user.id,
        recipient_id=body.recipient_id,
        body=body.message,
        subject=body.subject,
        parent_message_id=body.parent_message_id,
        opportunity_id=body.opportunity_id,
    )


@router.get("/unread-count")
def unread_count(
    user: SessionUser = Depends(get_current_user),
    messaging: MessagingService = Depends(get_messaging_service),
):
    return {"count": messaging.unread_count(user.id)}


@router.get("/conversations/{other_id}")
def conversation(
    other_id: str,
    user: SessionUser = Depends(get_current_user),
    messaging: MessagingService = Depends(get_messaging_service),
):
    return {"messages": messaging.get_conversation(user.id, other_id)}


@router.post("/{message_id}/read")
def mark_read(
    message_id: str,
    user: SessionUser = Depends(get_current_user),
    messaging: MessagingService = Depends(get_messaging_service),
):
    messaging.mark_read(message_id, user.id)
    return {"success": True}


@router.post("/{message_id}/archive")
def archive(
    message_id: str,
    user: SessionUser = Depends(get_current_user),
    messaging: MessagingService = Depends(get_messaging_service),
):
    return messaging.archive_message(message_id, user.id)
