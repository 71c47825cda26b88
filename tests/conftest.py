"""
Shared fixtures: an in-memory stand-in for the store API.

The fake keeps its own server-side state, so tests can compare what the console
shows with what the server holds. Any operation can be made to fail, and any
operation (or one call of it, keyed by its first argument) can be held open
until the test releases it.
"""

import asyncio
import copy
from decimal import Decimal

import pytest

from medconsole.errors import FetchFailed, MutationFailed, ValidationRejected
from medconsole.notices import NoticeBoard
from medconsole.notifications import NotificationTracker
from medconsole.orders import OrderEditor
from medconsole.schemas import Feedback, Notification, Order

READS = {"list_notifications", "get_notification", "list_orders", "get_order", "list_records", "list_pinned_feedback"}


def seed_orders():
    return {
        10: {
            "id": 10,
            "user_id": 1,
            "user": {"id": 1, "name": "Mona Adel"},
            "address": "12 Nile St",
            "payment_method": "cash",
            "created_at": "2024-01-04T09:00:00",
            "items": [
                {"id": 101, "medicine_name": "Paracetamol", "medicine_name_ar": "باراسيتامول", "quantity": 2, "price": "12.50"},
                {"id": 102, "medicine_name": "Amoxicillin", "medicine_name_ar": "أموكسيسيلين", "quantity": 1, "price": "40.00"},
            ],
        },
        11: {
            "id": 11,
            "user_id": 2,
            "user": {"id": 2, "name": "Omar Said"},
            "address": "5 Tahrir Sq",
            "payment_method": "card",
            "created_at": "2024-01-06T09:00:00",
            "items": [
                {"id": 111, "medicine_name": "Insulin", "medicine_name_ar": "أنسولين", "quantity": 1, "price": "150.00"},
            ],
        },
    }


def seed_notifications():
    return [
        {"id": 1, "is_read": False, "created_at": "2024-01-01T10:00:00", "order_id": 11},
        {"id": 2, "is_read": True, "created_at": "2024-01-03T10:00:00", "order_id": 11},
        {"id": 3, "is_read": False, "created_at": "2024-01-02T10:00:00", "order_id": 11},
        {"id": 4, "is_read": False, "created_at": "2024-01-02T10:00:00", "order_id": 11},
        {"id": 7, "is_read": False, "created_at": "2024-01-05T10:00:00", "order_id": 10},
    ]


def seed_records():
    return {
        "users": [
            {"id": 1, "name": "Mona Adel", "email": "mona@gmail.com", "phone": "01001234567"},
            {"id": 2, "name": "Omar Said", "email": "omar@gmail.com", "phone": "01119876543"},
            {"id": 3, "name": "Salma Hany", "email": "salma@yahoo.com", "phone": "0122"},
        ],
        "products": [
            {"id": 1, "name": "Paracetamol", "name_ar": "باراسيتامول", "price": "12.50", "stock": 300},
            {"id": 2, "name": "Insulin", "name_ar": "أنسولين", "price": "150.00", "stock": 20},
        ],
        "feedbacks": [
            {"id": 1, "name": "Ali", "email": "ali@gmail.com", "feedback": "Fast delivery", "rating": 5, "created_at": "2024-01-01T10:00:00"},
            {"id": 2, "name": "Hoda", "email": "hoda@gmail.com", "feedback": "Late order", "rating": 2, "created_at": "2024-01-03T10:00:00"},
        ],
        "contacts": [
            {"id": 1, "name": "Karim", "email": "karim@gmail.com", "message": "Do you deliver to Giza?", "created_at": "2024-01-02T10:00:00"},
        ],
        "rare-medicine-requests": [
            {"id": 1, "name": "Nour", "medicine_name": "Orfadin", "quantity": 2, "phone": "01005556666", "address": "Alexandria", "created_at": "2024-01-02T10:00:00"},
        ],
    }


class FakeGateway:
    def __init__(self):
        self.notifications = seed_notifications()
        self.orders = seed_orders()
        self.records = seed_records()
        self.pinned = [
            {"id": 9, "name": "Laila", "email": "laila@gmail.com", "feedback": "Great pharmacists", "rating": 5},
            {"id": 8, "name": "Sara", "email": "sara@gmail.com", "feedback": "Spam", "rating": 1},
        ]
        # Added to every order total the server computes (delivery fee)
        self.order_fee = Decimal("0")
        self.calls = []
        self.failures = {}
        self.gates = {}
        self.closed = False

    # --------------------------------------------------
    # Test controls
    # --------------------------------------------------
    def fail(self, operation, error=None, status_code=500):
        if error is None:
            error_class = FetchFailed if operation in READS else MutationFailed
            if status_code in (400, 409, 422):
                error_class = ValidationRejected
            error = error_class(operation, "server error", status_code=status_code)
        self.failures[operation] = error

    def recover(self, operation):
        self.failures.pop(operation, None)

    def hold(self, operation, key=None):
        gate = asyncio.Event()
        self.gates[(operation, key) if key is not None else operation] = gate
        return gate

    def count(self, operation):
        return sum(1 for call in self.calls if call[0] == operation)

    async def _call(self, operation, *args):
        self.calls.append((operation, *args))
        key = (operation, args[0]) if args else None
        gate = self.gates.get(key) or self.gates.get(operation)
        if gate is not None:
            await gate.wait()
        error = self.failures.get(operation)
        if error is not None:
            raise error

    def _order_payload(self, order_id):
        order = copy.deepcopy(self.orders[order_id])
        total = sum((Decimal(i["price"]) * i["quantity"] for i in order["items"]), Decimal("0"))
        order["total_price"] = str(total + self.order_fee)
        return order

    async def aclose(self):
        self.closed = True

    # --------------------------------------------------
    # Notifications
    # --------------------------------------------------
    async def list_notifications(self):
        await self._call("list_notifications")
        return [Notification.model_validate(n) for n in copy.deepcopy(self.notifications)]

    async def get_notification(self, notification_id):
        await self._call("get_notification", notification_id)
        for n in self.notifications:
            if n["id"] == notification_id:
                n["is_read"] = True
                detail = dict(copy.deepcopy(n), order=self._order_payload(n["order_id"]))
                return Notification.model_validate(detail)
        raise FetchFailed("get_notification", "not found", status_code=404)

    async def set_notification_read(self, notification_id, read):
        await self._call("set_notification_read", notification_id, read)
        for n in self.notifications:
            if n["id"] == notification_id:
                n["is_read"] = read

    async def bulk_set_notifications_read(self, read):
        await self._call("bulk_set_notifications_read", read)
        for n in self.notifications:
            n["is_read"] = read

    async def delete_notification(self, notification_id):
        await self._call("delete_notification", notification_id)
        self.notifications = [n for n in self.notifications if n["id"] != notification_id]

    # --------------------------------------------------
    # Orders
    # --------------------------------------------------
    async def list_orders(self):
        await self._call("list_orders")
        return [Order.model_validate(self._order_payload(i)) for i in self.orders]

    async def get_order(self, order_id):
        await self._call("get_order", order_id)
        if order_id not in self.orders:
            raise FetchFailed("get_order", "not found", status_code=404)
        return Order.model_validate(self._order_payload(order_id))

    async def update_order(self, order_id, fields):
        await self._call("update_order", order_id, fields)
        self.orders[order_id].update(fields)

    async def update_order_item_quantity(self, item_id, quantity):
        await self._call("update_order_item_quantity", item_id, quantity)
        for order in self.orders.values():
            for item in order["items"]:
                if item["id"] == item_id:
                    item["quantity"] = quantity

    async def delete_order(self, order_id):
        await self._call("delete_order", order_id)
        self.orders.pop(order_id, None)

    # --------------------------------------------------
    # Generic resources
    # --------------------------------------------------
    async def list_records(self, path, model):
        await self._call("list_records", path)
        if path == "dorders":
            return [model.model_validate(self._order_payload(i)) for i in self.orders]
        return [model.model_validate(r) for r in copy.deepcopy(self.records[path])]

    async def create_record(self, path, fields):
        await self._call("create_record", path, fields)
        new_id = max((r["id"] for r in self.records[path]), default=0) + 1
        self.records[path].append(dict(fields, id=new_id))
        return {"id": new_id}

    async def update_record(self, path, record_id, fields):
        await self._call("update_record", path, record_id, fields)
        if path == "dorders":
            self.orders[record_id].update(fields)
            return None
        for record in self.records[path]:
            if record["id"] == record_id:
                record.update(fields)

    async def delete_record(self, path, record_id):
        await self._call("delete_record", path, record_id)
        if path == "dorders":
            self.orders.pop(record_id, None)
            return
        self.records[path] = [r for r in self.records[path] if r["id"] != record_id]

    # --------------------------------------------------
    # Pinned feedback
    # --------------------------------------------------
    async def list_pinned_feedback(self):
        await self._call("list_pinned_feedback")
        return [Feedback.model_validate(f) for f in copy.deepcopy(self.pinned)]

    async def approve_feedback(self, feedback_id):
        await self._call("approve_feedback", feedback_id)
        approved = [f for f in self.pinned if f["id"] == feedback_id]
        self.pinned = [f for f in self.pinned if f["id"] != feedback_id]
        self.records["feedbacks"].extend(approved)

    async def ignore_feedback(self, feedback_id):
        await self._call("ignore_feedback", feedback_id)
        self.pinned = [f for f in self.pinned if f["id"] != feedback_id]


async def settle():
    """Let every task that can make progress run until it blocks."""
    for _ in range(10):
        await asyncio.sleep(0)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def notices():
    return NoticeBoard()


@pytest.fixture
def tracker(gateway, notices):
    return NotificationTracker(gateway, notices)


@pytest.fixture
def editor(gateway, notices):
    return OrderEditor(gateway, notices)
