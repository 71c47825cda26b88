from typing import List, Optional

from medconsole.errors import ConsoleError
from medconsole.logs import get_logger
from medconsole.notices import NoticeBoard
from medconsole.outcomes import failed, succeeded
from medconsole.resources import FEEDBACKS, ResourceTable
from medconsole.schemas import ActionOutcome, Feedback, RecordId

logger = get_logger("feedback")


class FeedbackModeration:
    """Pinned feedback waiting for an operator decision, next to the published feedback table."""

    def __init__(self, gateway, notices: NoticeBoard, table: Optional[ResourceTable] = None):
        self.gateway = gateway
        self.notices = notices
        self.table = table or ResourceTable(gateway, FEEDBACKS, notices)
        self.pinned: List[Feedback] = []

    async def load_pinned(self) -> ActionOutcome:
        try:
            self.pinned = await self.gateway.list_pinned_feedback()
        except ConsoleError as e:
            return failed("load_pinned_feedback", e, self.notices, logger)
        return succeeded("load_pinned_feedback")

    async def approve(self, feedback_id: RecordId) -> ActionOutcome:
        try:
            await self.gateway.approve_feedback(feedback_id)
        except ConsoleError as e:
            return failed("approve_feedback", e, self.notices, logger)
        self.pinned = [fb for fb in self.pinned if fb.id != feedback_id]
        # Approved feedback is now published; pick it up
        await self.table.load()
        return succeeded("approve_feedback", self.notices)

    async def ignore(self, feedback_id: RecordId) -> ActionOutcome:
        try:
            await self.gateway.ignore_feedback(feedback_id)
        except ConsoleError as e:
            return failed("ignore_feedback", e, self.notices, logger)
        self.pinned = [fb for fb in self.pinned if fb.id != feedback_id]
        return succeeded("ignore_feedback", self.notices)
