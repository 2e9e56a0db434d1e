import logging
from datetime import datetime
from typing import Callable, Iterable, Optional

from safari_ops.exceptions import NotFoundError
from safari_ops.schemas import NotificationOut
from safari_ops.store import DataStore

logger = logging.getLogger(__name__)


def build_notification(
    target_user_id: str,
    title: str,
    message: str,
    event: str,
    type: str = "info",
    actor_user_id: Optional[str] = None,
    metadata: Optional[dict] = None,
) -> dict:
    return {
        "target_user_id": target_user_id,
        "title": title,
        "message": message,
        "type": type,
        "event": event,
        "actor_user_id": actor_user_id,
        "metadata": metadata or {},
    }


class NotificationService:
    def __init__(self, store: DataStore, clock: Callable[[], datetime] = datetime.utcnow):
        self.store = store
        self.clock = clock

    def user_ids_for_roles(self, roles: Iterable[str]) -> list[str]:
        rows = self.store.select("users", {"role": list(roles), "is_active": True}, order=["created_at"])
        return [row["id"] for row in rows]

    def send(self, payloads: list[dict]) -> list[NotificationOut]:
        if not payloads:
            return []
        rows = self.store.insert("notifications", payloads)
        logger.info("Sent %d notification(s): %s", len(rows), sorted({p["event"] for p in payloads}))
        return [NotificationOut(**row) for row in rows]

    def notify_user(self, target_user_id: str, title: str, message: str, event: str, **kwargs) -> NotificationOut:
        return self.send([build_notification(target_user_id, title, message, event, **kwargs)])[0]

    def notify_roles(self, roles: Iterable[str], title: str, message: str, event: str,
                     **kwargs) -> list[NotificationOut]:
        """Notify every active user holding one of ``roles``."""
        return self.send([
            build_notification(user_id, title, message, event, **kwargs)
            for user_id in self.user_ids_for_roles(roles)
        ])

    def list_for_user(self, user_id: str, include_dismissed: bool = False,
                      limit: int = 50) -> list[NotificationOut]:
        filters = {"target_user_id": user_id}
        if not include_dismissed:
            filters["dismissed_at"] = None
        rows = self.store.select("notifications", filters, order=["-created_at"], limit=limit)
        return [NotificationOut(**row) for row in rows]

    def _stamp(self, notification_id: str, user_id: str, column: str) -> NotificationOut:
        rows = self.store.update(
            "notifications",
            {column: self.clock()},
            {"id": notification_id, "target_user_id": user_id},
        )
        if not rows:
            raise NotFoundError("notification", notification_id)
        return NotificationOut(**rows[0])

    def mark_read(self, notification_id: str, user_id: str) -> NotificationOut:
        return self._stamp(notification_id, user_id, "read_at")

    def dismiss(self, notification_id: str, user_id: str) -> NotificationOut:
        return self._stamp(notification_id, user_id, "dismissed_at")

    def mark_all_read(self, user_id: str) -> int:
        return self.store.call_procedure("mark_notifications_read", user_id=user_id)
