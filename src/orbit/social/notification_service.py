"""Notification sink for economy side effects.

Notifications are:
1. Persisted in the database, inside the caller's transaction
2. Queued for a push to the user via Redis pub/sub (``ws:user:{id}``)

Pushes leave only through ``publish_pending_notifications``, which the
caller awaits after its commit. A rollback drops the queue, so clients are
never told about changes that did not land. Delivery is fire-and-forget: a
failed push is logged and dropped, never raised.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from orbit.db.models import Notification

logger = logging.getLogger(__name__)

VALID_TYPES = {
    "tip-received",
    "referral-signup",
    "referral-subscription",
    "mission-completed",
}

_OUTBOX_KEY = "notification_outbox"


@event.listens_for(Session, "after_rollback")
def _drop_unpublished(session: Session) -> None:
    session.info.pop(_OUTBOX_KEY, None)


async def create_notification(
    db: AsyncSession,
    user_id: int,
    type_: str,
    title: str,
    body: str | None = None,
    metadata: dict[str, Any] | None = None,
    redis: Any | None = None,
) -> Notification:
    """Persist a notification and queue it for the user's live connections."""
    if type_ not in VALID_TYPES:
        raise ValueError(f"Invalid notification type: {type_}. Must be one of {VALID_TYPES}")

    notification = Notification(
        user_id=user_id,
        type=type_,
        title=title,
        body=body,
        notification_metadata=metadata or {},
    )
    db.add(notification)
    await db.flush()

    if redis is not None:
        ws_payload = {
            "event": "notification",
            "data": {
                "id": str(notification.id),
                "type": notification.type,
                "title": notification.title,
                "body": notification.body,
                "metadata": notification.notification_metadata,
                "timestamp": notification.created_at.isoformat() if notification.created_at else None,
                "read": False,
            },
        }
        db.info.setdefault(_OUTBOX_KEY, []).append(
            (redis, f"ws:user:{user_id}", json.dumps(ws_payload, default=str))
        )

    return notification


async def publish_pending_notifications(db: AsyncSession) -> int:
    """Push every notification queued on this session. Call after a successful commit.

    Returns how many pushes were delivered.
    """
    pending = db.info.pop(_OUTBOX_KEY, [])
    delivered = 0
    for redis, channel, payload in pending:
        try:
            await redis.publish(channel, payload)
            delivered += 1
        except Exception:
            logger.warning("Failed to push notification via %s", channel, exc_info=True)
    return delivered
