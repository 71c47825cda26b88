# notices.py
import itertools
from collections import deque
from datetime import datetime, timezone
from typing import Deque, List, Optional

from pydantic import BaseModel

from medconsole.errors import ConsoleError

NOTICE_MESSAGES = {
    "load_notifications": ("Notifications loaded", "Could not load notifications"),
    "expand_notification": ("Notification opened", "Could not load notification details"),
    "mark_read": ("Notification marked as read", "Could not mark notification as read"),
    "mark_unread": ("Notification marked as unread", "Could not mark notification as unread"),
    "mark_all_read": ("All notifications marked as read", "Could not mark all notifications as read"),
    "mark_all_unread": ("All notifications marked as unread", "Could not mark all notifications as unread"),
    "delete_notification": ("Notification deleted", "Could not delete notification"),
    "open_order": ("Order details loaded", "Could not load order details"),
    "set_quantity": ("Item quantity updated", "Could not update item quantity"),
    "save_order": ("Order updated", "Could not update order"),
    "save_orders": ("Order updated", "Could not update order"),
    "delete_orders": ("Order deleted", "Could not delete order"),
    "load_orders": ("Orders loaded", "Could not load orders"),
    "save_users": ("User updated", "Could not update user"),
    "delete_users": ("User deleted", "Could not delete user"),
    "create_products": ("Product added", "Could not add product"),
    "save_products": ("Product updated", "Could not update product"),
    "delete_products": ("Product deleted", "Could not delete product"),
    "approve_feedback": ("Feedback approved", "Could not approve feedback"),
    "ignore_feedback": ("Feedback ignored", "Could not ignore feedback"),
}


def format_notice(action: str, ok: bool, detail: Optional[str] = None) -> str:
    """Operator-facing text for a settled action, with the failure detail appended."""
    if action in NOTICE_MESSAGES:
        text = NOTICE_MESSAGES[action][0 if ok else 1]
    else:
        verb = action.replace("_", " ")
        text = f"Done: {verb}" if ok else f"Failed: {verb}"
    if detail and not ok:
        text += f" ({detail})"
    return text


class Notice(BaseModel):
    id: int
    level: str  # success | error | info
    action: str
    message: str
    created_at: datetime


class NoticeBoard:
    """Transient, dismissible notices; the oldest fall off once the board is full."""

    def __init__(self, limit: int = 50):
        self._notices: Deque[Notice] = deque(maxlen=limit)
        self._ids = itertools.count(1)

    def push(self, level: str, action: str, message: str) -> Notice:
        notice = Notice(
            id=next(self._ids),
            level=level,
            action=action,
            message=message,
            created_at=datetime.now(timezone.utc),
        )
        self._notices.append(notice)
        return notice

    def success(self, action: str) -> Notice:
        return self.push("success", action, format_notice(action, True))

    def failure(self, action: str, error: ConsoleError) -> Notice:
        return self.push("error", action, format_notice(action, False, error.detail or None))

    def dismiss(self, notice_id: int) -> bool:
        for notice in self._notices:
            if notice.id == notice_id:
                self._notices.remove(notice)
                return True
        return False

    def clear(self):
        self._notices.clear()

    @property
    def active(self) -> List[Notice]:
        return list(self._notices)

    def errors(self) -> List[Notice]:
        return [n for n in self._notices if n.level == "error"]
