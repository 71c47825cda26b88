# schemas.py
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

RecordId = Union[int, str]


class Record(BaseModel):
    # The remote API adds columns freely; keep whatever it sends
    model_config = ConfigDict(extra="allow")


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class OrderItem(Record):
    id: RecordId
    medicine_name: Optional[str] = None
    medicine_name_ar: Optional[str] = None
    quantity: int = Field(ge=0)
    price: Decimal

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity

    def display_name(self, language: str = "en") -> Optional[str]:
        if language == "en":
            return self.medicine_name
        return self.medicine_name_ar


class OrderUser(Record):
    id: Optional[RecordId] = None
    name: Optional[str] = None


class Order(Record):
    id: RecordId
    user_id: Optional[RecordId] = None
    user: Optional[OrderUser] = None
    address: str = ""
    total_price: Decimal = Decimal("0")
    payment_method: str = ""
    items: List[OrderItem] = []
    created_at: Optional[datetime] = None

    def items_total(self) -> Decimal:
        return sum((item.line_total for item in self.items), Decimal("0"))


# Fields the operator edits on the order header form
ORDER_HEADER_FIELDS = ("address", "total_price", "payment_method")


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------
class Notification(Record):
    id: RecordId
    is_read: bool = False
    created_at: Optional[datetime] = None
    # Only present on the detail payload
    order: Optional[Order] = None


# ---------------------------------------------------------------------------
# Plain CRUD screens
# ---------------------------------------------------------------------------
class User(Record):
    id: RecordId
    name: str = ""
    email: str = ""
    phone: str = ""


class Product(Record):
    id: Optional[RecordId] = None
    name: str = ""
    name_ar: str = ""
    description: str = ""
    description_ar: str = ""
    price: Optional[Decimal] = None
    stock: Optional[int] = None
    image_url: str = ""
    category: str = ""
    category_ar: str = ""


class Feedback(Record):
    id: RecordId
    name: str = ""
    email: str = ""
    feedback: str = ""
    rating: Optional[int] = None
    created_at: Optional[datetime] = None


class Contact(Record):
    id: RecordId
    name: str = ""
    email: str = ""
    message: str = ""
    created_at: Optional[datetime] = None


class RareMedicineRequest(Record):
    id: RecordId
    name: str = ""
    medicine_name: str = ""
    quantity: Optional[int] = None
    phone: str = ""
    address: str = ""
    created_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Results handed back to the caller of an action
# ---------------------------------------------------------------------------
class ActionOutcome(BaseModel):
    action: str
    ok: bool
    error: Optional[str] = None
    kind: Optional[str] = None
    # True when the action was a no-op and nothing was sent
    skipped: bool = False


def newest_first(records):
    """Sort by created_at descending; equal or missing timestamps keep server order."""
    def key(record):
        created = record.created_at
        return created.timestamp() if created is not None else float("-inf")
    return sorted(records, key=key, reverse=True)
