# main.py
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Query, Request, Response, WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel

from medconsole import __version__
from medconsole.badge import UnreadBadge
from medconsole.feedback import FeedbackModeration
from medconsole.gateway import ResourceGateway
from medconsole.logs import get_logger
from medconsole.notices import NoticeBoard
from medconsole.notifications import NotificationTracker
from medconsole.orders import OrderEditor
from medconsole.resources import ResourceTable, build_tables
from medconsole.schemas import ActionOutcome
from medconsole.trace import TRACE_HEADER, ensure_trace_id
from medconsole.ws_manager import ConnectionManager

logger = get_logger("console")


# ------------------------
# Standard API Response
# ------------------------
class APIResponse(JSONResponse):
    def __init__(self, success: bool, data: Optional[Any] = None, message: Optional[str] = None):
        content = {"success": success, "data": jsonable_encoder(data), "message": message}
        super().__init__(content=content)


def outcome_response(outcome: ActionOutcome, data: Optional[Any] = None) -> APIResponse:
    return APIResponse(success=outcome.ok, data=data, message=outcome.error)


class QuantityUpdate(BaseModel):
    quantity: int


def coerce_id(raw: str):
    """Path ids arrive as text; the remote API uses integer ids where it can."""
    return int(raw) if raw.isdigit() else raw


# ------------------------
# One operator session
# ------------------------
class Console:
    def __init__(self, gateway):
        self.gateway = gateway
        self.notices = NoticeBoard()
        self.channel = ConnectionManager()
        self.badge = UnreadBadge()
        self.tracker = NotificationTracker(gateway, self.notices)
        self.tracker.subscribe(self.badge.receive)
        self.tracker.subscribe(self._push_badge)
        self.tables = build_tables(gateway, self.notices)
        self.orders = OrderEditor(gateway, self.notices, table=self.tables["orders"])
        self.feedback = FeedbackModeration(gateway, self.notices, table=self.tables["feedbacks"])

    def _push_badge(self, count: int):
        self.channel.publish({"type": "unread_count", "count": count})

    def notifications_view(self) -> dict:
        return {
            "unread_count": self.tracker.unread_count,
            "loading": self.tracker.loading,
            "expanded_id": self.tracker.expanded_id,
            "selected": self.tracker.selected,
            "unread": self.tracker.unread,
            "read": self.tracker.read,
        }

    def order_view(self) -> dict:
        return {"order": self.orders.current, "phase": self.orders.phase}


def create_app(gateway=None) -> FastAPI:
    app = FastAPI(title="Medicine Store Admin Console", version=__version__)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        allow_credentials=True,
    )

    console = Console(gateway or ResourceGateway())
    app.state.console = console

    # -------------------
    # Startup / Shutdown
    # -------------------
    @app.on_event("startup")
    async def startup():
        await console.tracker.load()
        logger.info(f"[Console] Ready, {console.tracker.unread_count} unread notifications.")

    @app.on_event("shutdown")
    async def shutdown():
        console.tracker.close()
        await console.gateway.aclose()
        logger.info("[Console] Shutdown complete.")

    @app.middleware("http")
    async def add_trace_id(request: Request, call_next):
        trace_id = ensure_trace_id(request.headers.get(TRACE_HEADER))
        request.state.trace_id = trace_id
        response = await call_next(request)
        response.headers[TRACE_HEADER] = trace_id
        logger.info(f"[TRACE {trace_id}] {request.method} {request.url.path}")
        return response

    @app.get("/health")
    def health():
        return {"status": "ok", "service": "medconsole"}

    @app.get("/metrics")
    def metrics():
        """Prometheus metrics endpoint."""
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # -------------------
    # Notifications
    # -------------------
    @app.get("/notifications")
    def list_notifications():
        return APIResponse(success=True, data=console.notifications_view())

    @app.post("/notifications/refresh")
    async def refresh_notifications():
        outcome = await console.tracker.load()
        return outcome_response(outcome, console.notifications_view())

    @app.post("/notifications/mark-all-read")
    async def mark_all_read():
        outcome = await console.tracker.mark_all_read()
        return outcome_response(outcome, console.notifications_view())

    @app.post("/notifications/mark-all-unread")
    async def mark_all_unread():
        outcome = await console.tracker.mark_all_unread()
        return outcome_response(outcome, console.notifications_view())

    @app.post("/notifications/{notification_id}/expand")
    async def expand_notification(notification_id: str):
        outcome = await console.tracker.expand(coerce_id(notification_id))
        return outcome_response(outcome, console.notifications_view())

    @app.post("/notifications/{notification_id}/read")
    async def mark_read(notification_id: str):
        outcome = await console.tracker.mark_read(coerce_id(notification_id))
        return outcome_response(outcome, console.notifications_view())

    @app.post("/notifications/{notification_id}/unread")
    async def mark_unread(notification_id: str):
        outcome = await console.tracker.mark_unread(coerce_id(notification_id))
        return outcome_response(outcome, console.notifications_view())

    @app.delete("/notifications/{notification_id}")
    async def delete_notification(notification_id: str):
        outcome = await console.tracker.remove(coerce_id(notification_id))
        return outcome_response(outcome, console.notifications_view())

    @app.get("/badge")
    def badge():
        return APIResponse(success=True, data={"count": console.badge.count, "label": console.badge.render()})

    @app.websocket("/ws/badge")
    async def badge_ws(websocket: WebSocket):
        queue = await console.channel.connect(websocket)
        try:
            await websocket.send_json({"type": "unread_count", "count": console.badge.count})
            await console.channel.stream(websocket, queue)
        except WebSocketDisconnect:
            pass
        finally:
            console.channel.disconnect(websocket)

    # -------------------
    # Orders
    # -------------------
    @app.get("/orders/current")
    def current_order():
        return APIResponse(success=console.orders.current is not None, data=console.order_view())

    @app.post("/orders/{order_id}/open")
    async def open_order(order_id: str):
        outcome = await console.orders.open_details(coerce_id(order_id))
        return outcome_response(outcome, console.order_view())

    @app.put("/orders/current/items/{item_index}")
    async def set_quantity(item_index: int, body: QuantityUpdate):
        outcome = await console.orders.set_quantity(item_index, body.quantity)
        return outcome_response(outcome, console.order_view())

    @app.post("/orders/current/save")
    async def save_order():
        outcome = await console.orders.save_order_edits()
        return outcome_response(outcome, console.order_view())

    @app.delete("/orders/{order_id}")
    async def delete_order(order_id: str):
        outcome = await console.orders.delete_order(coerce_id(order_id))
        return outcome_response(outcome)

    # -------------------
    # Plain list screens
    # -------------------
    def table_for(name: str) -> ResourceTable:
        table = console.tables.get(name)
        if table is None:
            raise HTTPException(status_code=404, detail=f"Unknown screen '{name}'")
        return table

    @app.get("/resources/{name}")
    async def list_resource(name: str, search: str = "", limit: Optional[int] = Query(None, gt=0)):
        table = table_for(name)
        if not table.loaded:
            outcome = await table.load()
            if not outcome.ok:
                return outcome_response(outcome)
        table.search(search)
        if limit is not None:
            table.visible_count = limit
        return APIResponse(success=True, data={"records": table.visible, "has_more": table.has_more})

    @app.post("/resources/{name}/refresh")
    async def refresh_resource(name: str):
        table = table_for(name)
        outcome = await table.load()
        return outcome_response(outcome, {"records": table.visible, "has_more": table.has_more})

    @app.delete("/resources/{name}/{record_id}")
    async def delete_resource(name: str, record_id: str):
        outcome = await table_for(name).delete(coerce_id(record_id))
        return outcome_response(outcome)

    # -------------------
    # Feedback moderation
    # -------------------
    @app.get("/feedback/pinned")
    async def pinned_feedback():
        outcome = await console.feedback.load_pinned()
        return outcome_response(outcome, console.feedback.pinned)

    @app.post("/feedback/pinned/{feedback_id}/approve")
    async def approve_feedback(feedback_id: str):
        outcome = await console.feedback.approve(coerce_id(feedback_id))
        return outcome_response(outcome, console.feedback.pinned)

    @app.post("/feedback/pinned/{feedback_id}/ignore")
    async def ignore_feedback(feedback_id: str):
        outcome = await console.feedback.ignore(coerce_id(feedback_id))
        return outcome_response(outcome, console.feedback.pinned)

    # -------------------
    # Notices
    # -------------------
    @app.get("/notices")
    def list_notices():
        return APIResponse(success=True, data=console.notices.active)

    @app.delete("/notices/{notice_id}")
    def dismiss_notice(notice_id: int):
        dismissed = console.notices.dismiss(notice_id)
        return APIResponse(success=dismissed, message=None if dismissed else "No such notice")

    return app


app = create_app()
