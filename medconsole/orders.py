# orders.py
from decimal import Decimal
from enum import Enum
from typing import Callable, Dict, List, Optional, Set

from medconsole.errors import ConsoleError, ValidationRejected
from medconsole.forms import EditForm
from medconsole.logs import get_logger
from medconsole.notices import NoticeBoard
from medconsole.outcomes import failed, succeeded
from medconsole.resources import ORDERS, ResourceTable
from medconsole.schemas import ORDER_HEADER_FIELDS, ActionOutcome, Order, RecordId

logger = get_logger("orders")


class TotalPhase(str, Enum):
    # Recomputed locally from the edited items, not yet seen by the server
    OPTIMISTIC = "optimistic"
    # Taken from the server's copy of the order
    CONFIRMED = "confirmed"


TotalListener = Callable[[TotalPhase, Decimal], None]


class OrderEditor:
    """
    The orders screen: list, header edit, delete, and the detail view where an
    operator changes line item quantities.

    A quantity edit updates the item and the order total locally first, then
    persists the item and re-fetches the order so the server has the final word
    on the total. A failed write puts the item's previous quantity back.
    """

    def __init__(self, gateway, notices: NoticeBoard, table: Optional[ResourceTable] = None):
        self.gateway = gateway
        self.notices = notices
        self.table = table or ResourceTable(gateway, ORDERS, notices)
        self.current: Optional[Order] = None
        self.phase: Optional[TotalPhase] = None
        self._listeners: List[TotalListener] = []
        self._in_flight: Dict[RecordId, int] = {}
        self._unconfirmed: Set[RecordId] = set()
        # Last copy of the open order that came from the server
        self._confirmed: Optional[Order] = None

    # --------------------------------------------------
    # Views
    # --------------------------------------------------
    @property
    def orders(self) -> List[Order]:
        return list(self.table.records)

    @property
    def header_form(self) -> Optional[EditForm]:
        return self.table.form

    def on_total_change(self, listener: TotalListener):
        self._listeners.append(listener)

    def _show(self, order: Order, phase: TotalPhase):
        self.current = order
        self.phase = phase
        if phase is TotalPhase.CONFIRMED:
            self._confirmed = order
        for listener in list(self._listeners):
            listener(phase, order.total_price)

    # --------------------------------------------------
    # List
    # --------------------------------------------------
    async def load_orders(self) -> ActionOutcome:
        return await self.table.load()

    async def delete_order(self, order_id: RecordId) -> ActionOutcome:
        outcome = await self.table.delete(order_id)
        if outcome.ok and self.current is not None and self.current.id == order_id:
            self.close_details()
        return outcome

    # --------------------------------------------------
    # Header edit (address, total price, payment method)
    # --------------------------------------------------
    def begin_header_edit(self, order_id: RecordId) -> EditForm:
        return self.table.begin_edit(order_id)

    async def save_header_edits(self) -> ActionOutcome:
        return await self.table.save()

    # --------------------------------------------------
    # Detail view
    # --------------------------------------------------
    async def open_details(self, order_id: RecordId) -> ActionOutcome:
        try:
            order = await self.gateway.get_order(order_id)
        except ConsoleError as e:
            return failed("open_order", e, self.notices, logger)
        self._show(order, TotalPhase.CONFIRMED)
        if order.id not in self._in_flight:
            self._unconfirmed.discard(order.id)
        return succeeded("open_order")

    def close_details(self):
        self.current = None
        self.phase = None
        self._confirmed = None

    async def save_order_edits(self) -> ActionOutcome:
        action = "save_order"
        order = self.current
        if order is None:
            return failed(action, ValidationRejected(action, "no order open"), self.notices, logger)
        fields = {name: getattr(order, name) for name in ORDER_HEADER_FIELDS}
        try:
            await self.gateway.update_order(order.id, fields)
        except ConsoleError as e:
            return failed(action, e, self.notices, logger)
        self.close_details()
        await self.table.load()
        return succeeded(action, self.notices)

    # --------------------------------------------------
    # Quantity edits
    # --------------------------------------------------
    def _apply_quantity(self, item_index: int, quantity: int, phase: TotalPhase):
        order = self.current
        items = list(order.items)
        items[item_index] = items[item_index].model_copy(update={"quantity": quantity})
        # Sum over the edited list, not the one the order held before
        total = sum((item.line_total for item in items), Decimal("0"))
        self._show(order.model_copy(update={"items": items, "total_price": total}), phase)

    async def set_quantity(self, item_index: int, quantity: int) -> ActionOutcome:
        action = "set_quantity"
        order = self.current
        if order is None:
            return failed(action, ValidationRejected(action, "no order open"), self.notices, logger)
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
            error = ValidationRejected(action, f"quantity must be a non-negative integer, got {quantity!r}")
            return failed(action, error, self.notices, logger)
        if not 0 <= item_index < len(order.items):
            error = ValidationRejected(action, f"order {order.id} has no item #{item_index}")
            return failed(action, error, self.notices, logger)

        order_id = order.id
        item = order.items[item_index]
        previous_quantity = item.quantity
        self._apply_quantity(item_index, quantity, TotalPhase.OPTIMISTIC)

        self._in_flight[order_id] = self._in_flight.get(order_id, 0) + 1
        try:
            await self.gateway.update_order_item_quantity(item.id, quantity)
        except ConsoleError as e:
            self._release(order_id)
            self._roll_back(order_id, item.id, quantity, previous_quantity)
            outcome = failed(action, e, self.notices, logger)
        else:
            self._release(order_id)
            self._unconfirmed.add(order_id)
            outcome = succeeded(action)

        # Only the last edit to settle re-fetches; earlier ones would show
        # server totals that do not include the edits still in flight.
        if order_id not in self._in_flight and order_id in self._unconfirmed:
            self._unconfirmed.discard(order_id)
            await self._reconcile(order_id)
        return outcome

    def _release(self, order_id: RecordId):
        remaining = self._in_flight.pop(order_id) - 1
        if remaining:
            self._in_flight[order_id] = remaining

    def _roll_back(self, order_id: RecordId, item_id: RecordId, written: int, previous: int):
        order = self.current
        if order is None or order.id != order_id:
            return
        settled = order_id not in self._in_flight and order_id not in self._unconfirmed
        confirmed = self._confirmed
        if settled and confirmed is not None and confirmed.id == order_id:
            # Every edit since the last server copy failed, so that copy still holds
            self._show(confirmed, TotalPhase.CONFIRMED)
            logger.info(f"Order {order_id}: failed edit of item {item_id}, server copy restored")
            return
        for index, item in enumerate(order.items):
            # A later edit of the same item wins over this rollback
            if item.id == item_id and item.quantity == written:
                self._apply_quantity(index, previous, TotalPhase.OPTIMISTIC)
                logger.info(f"Order {order_id}: item {item_id} quantity rolled back to {previous}")
                return

    async def _reconcile(self, order_id: RecordId):
        try:
            fresh = await self.gateway.get_order(order_id)
        except ConsoleError as e:
            # Keep the optimistic total on screen; the next settled edit re-fetches
            self._unconfirmed.add(order_id)
            failed("open_order", e, self.notices, logger)
            return
        if self.current is None or self.current.id != order_id:
            return
        if order_id in self._in_flight:
            # A new edit started meanwhile; it re-fetches when it settles
            self._unconfirmed.add(order_id)
            return
        self._show(fresh, TotalPhase.CONFIRMED)
        self.table.records = [
            r.model_copy(update={"total_price": fresh.total_price}) if r.id == order_id else r
            for r in self.table.records
        ]
