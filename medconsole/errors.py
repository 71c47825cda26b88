from typing import Optional


class ConsoleError(Exception):
    """A gateway call that did not produce the expected payload."""

    kind = "error"

    def __init__(
        self,
        action: str,
        detail: str = "",
        status_code: Optional[int] = None,
        trace_id: Optional[str] = None,
    ):
        self.action = action
        self.detail = detail
        self.status_code = status_code
        self.trace_id = trace_id
        message = f"{action} failed"
        if status_code is not None:
            message += f" ({status_code})"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class FetchFailed(ConsoleError):
    """Loading a list or a detail payload failed."""

    kind = "fetch_failed"


class MutationFailed(ConsoleError):
    """A write that would change server state failed."""

    kind = "mutation_failed"


class ValidationRejected(MutationFailed):
    """The request was refused as invalid, either locally or by the server (400/409/422)."""

    kind = "validation_rejected"


# Status codes the server uses to refuse a well-formed write
REJECTION_STATUSES = {400, 409, 422}
