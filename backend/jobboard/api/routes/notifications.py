"""Notification Routes: the caller's in-app inbox."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from jobboard.api.dependencies import get_inbox, require_actor
from jobboard.core.domain_types import Actor
from jobboard.schemas.notification import NotificationResponse
from jobboard.services.notification_inbox import NotificationInbox

router = APIRouter(prefix="/api/v1/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    limit: int = Query(50, ge=1, le=200),
    actor: Actor = Depends(require_actor),
    inbox: NotificationInbox = Depends(get_inbox),
):
    return await inbox.list_for_user(actor.id, limit)


@router.get("/unread-count")
async def unread_count(
    actor: Actor = Depends(require_actor),
    inbox: NotificationInbox = Depends(get_inbox),
):
    return {"unread": await inbox.unread_count(actor.id)}


@router.post("/read-all")
async def mark_all_read(
    actor: Actor = Depends(require_actor),
    inbox: NotificationInbox = Depends(get_inbox),
):
    return {"updated": await inbox.mark_all_read(actor.id)}


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: UUID,
    actor: Actor = Depends(require_actor),
    inbox: NotificationInbox = Depends(get_inbox),
):
    return await inbox.mark_read(notification_id, actor.id)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: UUID,
    actor: Actor = Depends(require_actor),
    inbox: NotificationInbox = Depends(get_inbox),
):
    await inbox.delete(notification_id, actor.id)
