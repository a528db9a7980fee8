"""
Notification endpoints.

GET /notifications merges the stored notifications with one entry per SAV
case holding unread client messages.
"""
import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from savtrack.core.db import get_db
from savtrack.core.security import get_current_shop, get_current_user
from savtrack.models.notification import Notification
from savtrack.models.shop import Shop
from savtrack.models.user import User
from savtrack.schemas.notification import MessageResponse, NotificationFeedResponse
from savtrack.services import case_service
from savtrack.services.clock import utcnow
from savtrack.services.notifications import unify

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _visible_to(shop: Shop, user: User):
    return (
        Notification.shop_id == shop.id,
        or_(Notification.user_id.is_(None), Notification.user_id == user.id),
    )


@router.get("", response_model=NotificationFeedResponse)
async def get_notifications(
    limit: int = 50,
    shop: Shop = Depends(get_current_shop),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> NotificationFeedResponse:
    result = await db.execute(
        select(Notification)
        .where(*_visible_to(shop, user))
        .order_by(Notification.created_at.desc())
        .limit(min(limit, 200))
    )
    notifications = result.scalars().all()
    groups = await case_service.fetch_unread_sav_groups(db, shop.id)
    feed = unify(notifications, groups, utcnow())
    return NotificationFeedResponse.model_validate(feed)


@router.post("/read-all", response_model=MessageResponse)
async def mark_all_read(
    shop: Shop = Depends(get_current_shop),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    result = await db.execute(
        update(Notification)
        .where(*_visible_to(shop, user), Notification.is_read.is_(False))
        .values(is_read=True)
    )
    await db.commit()
    return MessageResponse(message=f"{result.rowcount} notification(s) marked as read")


@router.post("/{notification_id}/read", response_model=MessageResponse)
async def mark_read(
    notification_id: uuid.UUID,
    shop: Shop = Depends(get_current_shop),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    result = await db.execute(
        update(Notification)
        .where(Notification.id == notification_id, *_visible_to(shop, user))
        .values(is_read=True)
    )
    if result.rowcount == 0:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    await db.commit()
    return MessageResponse(message="Notification marked as read")
