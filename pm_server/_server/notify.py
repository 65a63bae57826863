from __future__ import annotations

import logging

from .. import db


logger = logging.getLogger(__name__)


def notify(
    conn,
    *,
    recipients: list[int],
    organization_id: int,
    type: str,
    title: str,
    message: str,
    entity_type: str | None = None,
    entity_id: int | None = None,
    action: str | None = None,
    priority: str = "medium",
    url: str | None = None,
    exclude_user_id: int | None = None,
) -> int:
    targets = [int(uid) for uid in recipients if exclude_user_id is None or int(uid) != exclude_user_id]
    data = {
        "entity_type": entity_type,
        "entity_id": entity_id,
        "action": action,
        "priority": priority,
        "url": url,
    }
    count = db.create_notifications(
        conn,
        recipient_user_ids=targets,
        organization_id=organization_id,
        type=type,
        title=title,
        message=message,
        data=data,
    )
    logger.debug("Notification %r (%s/%s) sent to %d user(s)", title, type, action, count)
    return count
