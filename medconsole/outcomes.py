import logging

from medconsole.errors import ConsoleError
from medconsole.metrics import ACTIONS_SETTLED
from medconsole.notices import NoticeBoard
from medconsole.schemas import ActionOutcome


def succeeded(action: str, notices: NoticeBoard = None, skipped: bool = False) -> ActionOutcome:
    """Record a settled action. A notice is posted only when a board is given."""
    ACTIONS_SETTLED.labels(action=action, outcome="skipped" if skipped else "ok").inc()
    if notices is not None and not skipped:
        notices.success(action)
    return ActionOutcome(action=action, ok=True, skipped=skipped)


def failed(action: str, error: ConsoleError, notices: NoticeBoard, logger: logging.Logger) -> ActionOutcome:
    trace = f"[TRACE {error.trace_id}] " if error.trace_id else ""
    logger.warning(f"{trace}{action}: {error}")
    ACTIONS_SETTLED.labels(action=action, outcome=error.kind).inc()
    notices.failure(action, error)
    return ActionOutcome(action=action, ok=False, error=str(error), kind=error.kind)
