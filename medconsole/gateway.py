# gateway.py
from typing import Any, Dict, List, Optional, Type

import httpx
from pydantic import ValidationError
from pydantic_core import to_jsonable_python

from medconsole.config import get_settings
from medconsole.errors import FetchFailed, MutationFailed, ValidationRejected, REJECTION_STATUSES
from medconsole.logs import get_logger
from medconsole.metrics import GATEWAY_REQUESTS
from medconsole.schemas import Feedback, Notification, Order, Record, RecordId
from medconsole.trace import outgoing_headers

logger = get_logger("gateway")

# --------------------------------------------------
# Remote API paths
# --------------------------------------------------
NOTIFICATIONS = "notifications"
ORDERS = "dorders"
ORDER_ITEMS = "order-items"
PINNED_FEEDBACK = "pinnedFeedbacks"

ENVELOPE_KEYS = {"success", "data", "message"}


def _unwrap(payload: Any) -> Any:
    # Some endpoints answer {"success", "data", "message"} instead of the bare payload
    if isinstance(payload, dict) and "data" in payload and set(payload) <= ENVELOPE_KEYS:
        return payload["data"]
    return payload


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        return str(body.get("message") or body.get("detail") or body)
    return str(body)


class ResourceGateway:
    """
    Async client for the store's REST API.

    Every call either returns the decoded payload or raises FetchFailed (reads),
    MutationFailed or ValidationRejected (writes). There are no retries: a failed
    call is final and the operator re-triggers it.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        language: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.api_url).rstrip("/")
        self.language = language or settings.language
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or settings.request_timeout,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    # --------------------------------------------------
    # Transport
    # --------------------------------------------------
    async def _request(self, operation: str, method: str, path: str, *, body: Any = None, read: bool = False):
        trace_id, headers = outgoing_headers(self.language)
        failure = FetchFailed if read else MutationFailed
        json_body = to_jsonable_python(body) if body is not None else None

        try:
            response = await self._client.request(method, path, json=json_body, headers=headers)
        except httpx.RequestError as e:
            logger.error(f"[TRACE {trace_id}] {method} {path} unreachable: {e}")
            GATEWAY_REQUESTS.labels(operation=operation, outcome="unreachable").inc()
            raise failure(operation, str(e), trace_id=trace_id) from e

        logger.info(f"[TRACE {trace_id}] {method} {path} -> {response.status_code}")

        if response.status_code >= 400:
            detail = _error_detail(response)
            if not read and response.status_code in REJECTION_STATUSES:
                failure = ValidationRejected
            GATEWAY_REQUESTS.labels(operation=operation, outcome=failure.kind).inc()
            raise failure(operation, detail, status_code=response.status_code, trace_id=trace_id)

        GATEWAY_REQUESTS.labels(operation=operation, outcome="ok").inc()
        if not response.content:
            return None
        try:
            return _unwrap(response.json())
        except ValueError:
            if read:
                raise FetchFailed(operation, "response is not JSON", response.status_code, trace_id)
            return None

    async def _fetch(self, operation: str, path: str, model: Type[Record]):
        payload = await self._request(operation, "GET", path, read=True)
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise FetchFailed(operation, f"unexpected payload: {e.error_count()} errors") from e

    async def _fetch_list(self, operation: str, path: str, model: Type[Record]) -> List[Any]:
        payload = await self._request(operation, "GET", path, read=True)
        if not isinstance(payload, list):
            raise FetchFailed(operation, "expected a list")
        try:
            return [model.model_validate(row) for row in payload]
        except ValidationError as e:
            raise FetchFailed(operation, f"unexpected payload: {e.error_count()} errors") from e

    # --------------------------------------------------
    # Notifications
    # --------------------------------------------------
    async def list_notifications(self) -> List[Notification]:
        return await self._fetch_list("list_notifications", NOTIFICATIONS, Notification)

    async def get_notification(self, notification_id: RecordId) -> Notification:
        """Detail payload with the nested order. The server marks it read as a side effect."""
        return await self._fetch("get_notification", f"{NOTIFICATIONS}/{notification_id}", Notification)

    async def set_notification_read(self, notification_id: RecordId, read: bool):
        flag = "read" if read else "unread"
        await self._request(f"mark_{flag}", "PATCH", f"{NOTIFICATIONS}/{notification_id}/{flag}")

    async def bulk_set_notifications_read(self, read: bool):
        flag = "read" if read else "unread"
        await self._request(f"mark_all_{flag}", "PATCH", f"{NOTIFICATIONS}/mark-all-{flag}")

    async def delete_notification(self, notification_id: RecordId):
        await self._request("delete_notification", "DELETE", f"{NOTIFICATIONS}/{notification_id}")

    # --------------------------------------------------
    # Orders
    # --------------------------------------------------
    async def list_orders(self) -> List[Order]:
        return await self._fetch_list("list_orders", ORDERS, Order)

    async def get_order(self, order_id: RecordId) -> Order:
        return await self._fetch("get_order", f"{ORDERS}/{order_id}", Order)

    async def update_order(self, order_id: RecordId, fields: Dict[str, Any]):
        await self._request("update_order", "PUT", f"{ORDERS}/{order_id}", body=fields)

    async def update_order_item_quantity(self, item_id: RecordId, quantity: int):
        await self._request("update_order_item", "PUT", f"{ORDER_ITEMS}/{item_id}", body={"quantity": quantity})

    async def delete_order(self, order_id: RecordId):
        await self._request("delete_order", "DELETE", f"{ORDERS}/{order_id}")

    # --------------------------------------------------
    # Generic resources (users, products, feedbacks, ...)
    # --------------------------------------------------
    async def list_records(self, path: str, model: Type[Record]) -> List[Any]:
        return await self._fetch_list(f"list_{path}", path, model)

    async def create_record(self, path: str, fields: Dict[str, Any]):
        return await self._request(f"create_{path}", "POST", path, body=fields)

    async def update_record(self, path: str, record_id: RecordId, fields: Dict[str, Any]):
        return await self._request(f"update_{path}", "PUT", f"{path}/{record_id}", body=fields)

    async def delete_record(self, path: str, record_id: RecordId):
        await self._request(f"delete_{path}", "DELETE", f"{path}/{record_id}")

    # --------------------------------------------------
    # Pinned feedback
    # --------------------------------------------------
    async def list_pinned_feedback(self) -> List[Feedback]:
        return await self._fetch_list("list_pinned_feedback", PINNED_FEEDBACK, Feedback)

    async def approve_feedback(self, feedback_id: RecordId):
        await self._request("approve_feedback", "POST", f"approveFeedback/{feedback_id}")

    async def ignore_feedback(self, feedback_id: RecordId):
        await self._request("ignore_feedback", "DELETE", f"ignoreFeedback/{feedback_id}")
