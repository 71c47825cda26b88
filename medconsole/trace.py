# trace.py
import uuid
from typing import Dict, Optional, Tuple

TRACE_HEADER = "x-trace-id"
LANGUAGE_HEADER = "Accept-Language"


def ensure_trace_id(incoming: Optional[str] = None) -> str:
    """Keep the caller's trace id when it sent one, otherwise start a new trace."""
    return incoming or uuid.uuid4().hex


def outgoing_headers(language: str, incoming: Optional[str] = None) -> Tuple[str, Dict[str, str]]:
    trace_id = ensure_trace_id(incoming)
    return trace_id, {TRACE_HEADER: trace_id, LANGUAGE_HEADER: language}
