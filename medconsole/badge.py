from typing import Optional


class UnreadBadge:
    """
    Sidebar badge for unread notifications.

    It only receives counts pushed by the tracker and has no way to change them.
    Until the first load settles there is no value and nothing is shown.
    """

    def __init__(self):
        self._count: Optional[int] = None

    def receive(self, count: int):
        self._count = count

    @property
    def count(self) -> Optional[int]:
        return self._count

    def render(self) -> str:
        if not self._count:
            return ""
        return str(self._count)
