"""
Unified notification feed.

Two independent sources are merged into one list sorted newest first:
  - stored notifications (stock alerts, delay alerts, support replies, ...)
  - unread client messages, one synthetic entry per SAV case

The synthetic entries carry ``now`` as their timestamp because the latest
message time is not tracked per case at this layer.
"""
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

NOTIFICATION = "notification"
SAV_MESSAGE = "sav_message"

NOTIFICATION_ICONS = {
    "stock_alert": "📦",
    "order_needed": "🛒",
    "support_message": "💬",
    "sav_message": "🔧",
    "sav_delay_alert": "⏰",
}
DEFAULT_ICON = "🔔"


@dataclass(frozen=True)
class UnreadSavGroup:
    case_id: uuid.UUID
    case_number: str
    unread_count: int
    sav_type: str | None = None
    customer_first_name: str | None = None
    customer_last_name: str | None = None
    device_brand: str | None = None
    device_model: str | None = None

    @property
    def title(self) -> str:
        if self.customer_first_name or self.customer_last_name:
            name = " ".join(
                p for p in (self.customer_first_name, self.customer_last_name) if p
            )
            return f"{name} - Message SAV"
        if self.sav_type == "internal" and (self.device_brand or self.device_model):
            device = " ".join(p for p in (self.device_brand, self.device_model) if p)
            return f"{device} - SAV {self.case_number}"
        return f"SAV {self.case_number} - Nouveau message"


@dataclass(frozen=True)
class UnifiedNotification:
    id: str
    type: str
    title: str
    message: str
    icon: str
    created_at: datetime
    read: bool
    case_id: uuid.UUID | None = None
    part_id: uuid.UUID | None = None
    notification_type: str | None = None
    unread_count: int = 0


@dataclass(frozen=True)
class UnifiedFeed:
    items: tuple[UnifiedNotification, ...]
    total_unread_count: int
    notification_unread_count: int
    sav_unread_count: int


def icon_for(notification_type: str | None) -> str:
    return NOTIFICATION_ICONS.get(notification_type or "", DEFAULT_ICON)


def pluralize_messages(count: int) -> str:
    if count > 1:
        return f"{count} nouveaux messages"
    return f"{count} nouveau message"


def from_notification(row: Any) -> UnifiedNotification:
    return UnifiedNotification(
        id=str(row.id),
        type=NOTIFICATION,
        title=row.title,
        message=row.message or "",
        icon=icon_for(row.type),
        created_at=row.created_at,
        read=bool(row.is_read),
        case_id=row.sav_case_id,
        part_id=row.part_id,
        notification_type=row.type,
    )


def from_unread_group(group: UnreadSavGroup, now: datetime) -> UnifiedNotification:
    return UnifiedNotification(
        id=f"sav-{group.case_id}",
        type=SAV_MESSAGE,
        title=group.title,
        message=pluralize_messages(group.unread_count),
        icon=NOTIFICATION_ICONS[SAV_MESSAGE],
        created_at=now,
        read=False,
        case_id=group.case_id,
        notification_type=SAV_MESSAGE,
        unread_count=group.unread_count,
    )


def unify(
    notifications: Iterable[Any],
    unread_groups: Iterable[UnreadSavGroup],
    now: datetime,
) -> UnifiedFeed:
    stored = [from_notification(n) for n in notifications]
    groups = [g for g in unread_groups if g.unread_count > 0]
    synthetic = [from_unread_group(g, now) for g in groups]

    items = sorted(stored + synthetic, key=lambda n: n.created_at, reverse=True)
    notification_unread = sum(1 for n in stored if not n.read)
    sav_unread = sum(g.unread_count for g in groups)

    return UnifiedFeed(
        items=tuple(items),
        total_unread_count=notification_unread + sav_unread,
        notification_unread_count=notification_unread,
        sav_unread_count=sav_unread,
    )
