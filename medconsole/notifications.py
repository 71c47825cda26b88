# notifications.py
from typing import Callable, List, Optional, Tuple

from medconsole.errors import ConsoleError, ValidationRejected
from medconsole.logs import get_logger
from medconsole.notices import NoticeBoard
from medconsole.outcomes import failed, succeeded
from medconsole.schemas import ActionOutcome, Notification, RecordId, newest_first

logger = get_logger("notifications")

UnreadListener = Callable[[int], None]


class NotificationTracker:
    """
    Owns the notification list and the unread counter derived from it.

    The counter is never adjusted by deltas: after every settled mutation it is
    recounted from the whole collection and pushed to the listeners, so two
    requests in flight at once cannot make it drift. Results that settle after
    close() are dropped without touching state.
    """

    def __init__(self, gateway, notices: NoticeBoard):
        self.gateway = gateway
        self.notices = notices
        self._notifications: List[Notification] = []
        self._unread_count: Optional[int] = None
        self._listeners: List[UnreadListener] = []
        self.expanded_id: Optional[RecordId] = None
        self.selected: Optional[Notification] = None
        self.loading = False
        self.mounted = False
        self._generation = 0
        self._load_seq = 0

    # --------------------------------------------------
    # Read-only views
    # --------------------------------------------------
    @property
    def notifications(self) -> Tuple[Notification, ...]:
        return tuple(self._notifications)

    @property
    def unread(self) -> List[Notification]:
        return [n for n in self._notifications if not n.is_read]

    @property
    def read(self) -> List[Notification]:
        return [n for n in self._notifications if n.is_read]

    @property
    def unread_count(self) -> Optional[int]:
        """None until the first load settles."""
        return self._unread_count

    def find(self, notification_id: RecordId) -> Optional[Notification]:
        return next((n for n in self._notifications if n.id == notification_id), None)

    def subscribe(self, listener: UnreadListener) -> Callable[[], None]:
        self._listeners.append(listener)
        if self._unread_count is not None:
            listener(self._unread_count)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    # --------------------------------------------------
    # Internal state changes
    # --------------------------------------------------
    def _recount(self):
        count = sum(1 for n in self._notifications if not n.is_read)
        self._unread_count = count
        for listener in list(self._listeners):
            listener(count)

    def _replace(self, notification_id: RecordId, **changes):
        self._notifications = [
            n.model_copy(update=changes) if n.id == notification_id else n
            for n in self._notifications
        ]

    def _stale(self, generation: int, action: str) -> bool:
        if generation != self._generation:
            logger.info(f"{action}: panel closed while the request was in flight, result dropped")
            return True
        return False

    @staticmethod
    def _dropped(action: str) -> ActionOutcome:
        return ActionOutcome(action=action, ok=False, kind="dropped", error="panel closed")

    # --------------------------------------------------
    # Lifecycle
    # --------------------------------------------------
    async def load(self) -> ActionOutcome:
        """Replace the collection with the server's and recount from scratch."""
        action = "load_notifications"
        self.mounted = True
        self._load_seq += 1
        seq = self._load_seq
        generation = self._generation
        self.loading = True
        try:
            fresh = await self.gateway.list_notifications()
        except ConsoleError as e:
            return failed(action, e, self.notices, logger)
        finally:
            if seq == self._load_seq:
                self.loading = False

        if self._stale(generation, action):
            return self._dropped(action)
        if seq != self._load_seq:
            logger.info(f"{action}: superseded by a newer load, result dropped")
            return self._dropped(action)

        self._notifications = newest_first(fresh)
        self._recount()
        logger.info(f"Loaded {len(fresh)} notifications, {self._unread_count} unread")
        return succeeded(action)

    def close(self):
        """The panel went away: forget the collection and ignore anything still in flight."""
        self._generation += 1
        self.mounted = False
        self.loading = False
        self._notifications = []
        self.expanded_id = None
        self.selected = None

    # --------------------------------------------------
    # Operator actions
    # --------------------------------------------------
    async def expand(self, notification_id: RecordId) -> ActionOutcome:
        """
        Toggle the detail view of one notification.

        Expanding fetches the detail payload, which the server treats as reading
        it, so the record is marked read locally as well.
        """
        action = "expand_notification"
        if self.expanded_id == notification_id:
            self.expanded_id = None
            self.selected = None
            return succeeded(action, skipped=True)

        previous = (self.expanded_id, self.selected)
        self.expanded_id = notification_id
        self.selected = None
        generation = self._generation
        try:
            detail = await self.gateway.get_notification(notification_id)
        except ConsoleError as e:
            if generation == self._generation and self.expanded_id == notification_id:
                self.expanded_id, self.selected = previous
            return failed(action, e, self.notices, logger)

        if self._stale(generation, action):
            return self._dropped(action)
        # The operator may have moved on to another record meanwhile
        if self.expanded_id == notification_id:
            self.selected = detail
        changes = {"is_read": True}
        if detail.order is not None:
            changes["order"] = detail.order
        self._replace(notification_id, **changes)
        self._recount()
        return succeeded(action)

    async def mark_read(self, notification_id: RecordId) -> ActionOutcome:
        return await self._set_read(notification_id, True)

    async def mark_unread(self, notification_id: RecordId) -> ActionOutcome:
        return await self._set_read(notification_id, False)

    async def _set_read(self, notification_id: RecordId, read: bool) -> ActionOutcome:
        action = "mark_read" if read else "mark_unread"
        record = self.find(notification_id)
        if record is None:
            error = ValidationRejected(action, f"unknown notification {notification_id}")
            return failed(action, error, self.notices, logger)
        if record.is_read == read:
            return succeeded(action, skipped=True)

        generation = self._generation
        try:
            await self.gateway.set_notification_read(notification_id, read)
        except ConsoleError as e:
            return failed(action, e, self.notices, logger)

        if self._stale(generation, action):
            return self._dropped(action)
        self._replace(notification_id, is_read=read)
        self._recount()
        return succeeded(action)

    async def mark_all_read(self) -> ActionOutcome:
        return await self._set_all_read(True)

    async def mark_all_unread(self) -> ActionOutcome:
        return await self._set_all_read(False)

    async def _set_all_read(self, read: bool) -> ActionOutcome:
        action = "mark_all_read" if read else "mark_all_unread"
        generation = self._generation
        try:
            await self.gateway.bulk_set_notifications_read(read)
        except ConsoleError as e:
            return failed(action, e, self.notices, logger)

        if self._stale(generation, action):
            return self._dropped(action)
        self._notifications = [n.model_copy(update={"is_read": read}) for n in self._notifications]
        self._recount()
        return succeeded(action)

    async def remove(self, notification_id: RecordId) -> ActionOutcome:
        action = "delete_notification"
        generation = self._generation
        try:
            await self.gateway.delete_notification(notification_id)
        except ConsoleError as e:
            return failed(action, e, self.notices, logger)

        if self._stale(generation, action):
            return self._dropped(action)
        self._notifications = [n for n in self._notifications if n.id != notification_id]
        if self.expanded_id == notification_id:
            self.expanded_id = None
            self.selected = None
        self._recount()
        return succeeded(action)
