# resources.py
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Tuple, Type

from medconsole.config import get_settings
from medconsole.errors import ConsoleError, ValidationRejected
from medconsole.forms import EditForm, Validator
from medconsole.logs import get_logger
from medconsole.notices import NoticeBoard
from medconsole.outcomes import failed, succeeded
from medconsole.schemas import (
    ORDER_HEADER_FIELDS,
    ActionOutcome,
    Contact,
    Feedback,
    Order,
    Product,
    RareMedicineRequest,
    Record,
    RecordId,
    User,
    newest_first,
)

logger = get_logger("resources")


@dataclass(frozen=True)
class ResourceConfig:
    """Everything that differs between two list screens."""

    name: str
    path: str
    model: Type[Record]
    search_fields: Tuple[str, ...]
    editable_fields: Tuple[str, ...] = ()
    sort_newest_first: bool = False
    validator: Optional[Validator] = None
    creatable: bool = False


def valid_user(values: Mapping[str, Any]) -> bool:
    phone = values.get("phone") or ""
    email = values.get("email") or ""
    return len(phone) == 11 and email.endswith("@gmail.com")


# ---------------------------------------------------------------------------
# Screens
# ---------------------------------------------------------------------------
USERS = ResourceConfig(
    name="users",
    path="users",
    model=User,
    search_fields=("name", "email", "phone"),
    editable_fields=("name", "phone"),
    validator=valid_user,
)

PRODUCTS = ResourceConfig(
    name="products",
    path="products",
    model=Product,
    search_fields=("name", "name_ar"),
    editable_fields=(
        "name", "name_ar", "description", "description_ar", "price",
        "stock", "image_url", "category", "category_ar",
    ),
    creatable=True,
)

FEEDBACKS = ResourceConfig(
    name="feedbacks",
    path="feedbacks",
    model=Feedback,
    search_fields=("name", "feedback"),
    sort_newest_first=True,
)

CONTACTS = ResourceConfig(
    name="contacts",
    path="contacts",
    model=Contact,
    search_fields=("name", "email"),
    sort_newest_first=True,
)

RARE_MEDICINE_REQUESTS = ResourceConfig(
    name="rare_medicine_requests",
    path="rare-medicine-requests",
    model=RareMedicineRequest,
    search_fields=("name", "medicine_name", "phone"),
    sort_newest_first=True,
)

ORDERS = ResourceConfig(
    name="orders",
    path="dorders",
    model=Order,
    search_fields=("address", "total_price", "payment_method"),
    editable_fields=ORDER_HEADER_FIELDS,
    sort_newest_first=True,
)

SCREENS = {
    config.name: config
    for config in (USERS, PRODUCTS, FEEDBACKS, CONTACTS, RARE_MEDICINE_REQUESTS, ORDERS)
}


class ResourceTable:
    """
    One list screen: load, search, page, edit through a dirty-tracked form, delete.

    Records are only replaced by a successful load; failed calls leave the list,
    the open form and the pending delete exactly as they were.
    """

    def __init__(self, gateway, config: ResourceConfig, notices: NoticeBoard, page_size: Optional[int] = None):
        self.gateway = gateway
        self.config = config
        self.notices = notices
        self.page_size = page_size or get_settings().page_size
        self.records: List[Record] = []
        self.search_term = ""
        self.visible_count = self.page_size
        self.form: Optional[EditForm] = None
        self.editing_id: Optional[RecordId] = None
        self.pending_delete_id: Optional[RecordId] = None
        self.loaded = False

    def _action(self, verb: str) -> str:
        return f"{verb}_{self.config.name}"

    # --------------------------------------------------
    # Loading / search / paging
    # --------------------------------------------------
    async def load(self) -> ActionOutcome:
        action = self._action("load")
        try:
            records = await self.gateway.list_records(self.config.path, self.config.model)
        except ConsoleError as e:
            return failed(action, e, self.notices, logger)
        if self.config.sort_newest_first:
            records = newest_first(records)
        self.records = records
        self.loaded = True
        return succeeded(action)

    def matches(self, record: Record, term: str) -> bool:
        if not term:
            return True
        needle = term.lower()
        for field in self.config.search_fields:
            value = getattr(record, field, None)
            if value is not None and needle in str(value).lower():
                return True
        return False

    def search(self, term: str) -> List[Record]:
        self.search_term = term
        return self.filtered

    @property
    def filtered(self) -> List[Record]:
        return [r for r in self.records if self.matches(r, self.search_term)]

    @property
    def visible(self) -> List[Record]:
        return self.filtered[:self.visible_count]

    @property
    def has_more(self) -> bool:
        return self.visible_count < len(self.filtered)

    def view_more(self):
        self.visible_count += self.page_size

    def view_less(self):
        self.visible_count = self.page_size

    def find(self, record_id: RecordId) -> Optional[Record]:
        return next((r for r in self.records if r.id == record_id), None)

    # --------------------------------------------------
    # Editing
    # --------------------------------------------------
    def begin_edit(self, record_id: RecordId) -> EditForm:
        record = self.find(record_id)
        if record is None:
            raise KeyError(f"{self.config.name}: no record {record_id!r}")
        current = record.model_dump()
        validator = None
        if self.config.validator is not None:
            # Read-only columns (a user's email) still take part in validation
            def validator(values, _check=self.config.validator):
                return _check({**current, **values})
        self.form = EditForm(
            current, fields=self.config.editable_fields, validator=validator, model=self.config.model,
        )
        self.editing_id = record_id
        return self.form

    def begin_create(self) -> EditForm:
        if not self.config.creatable:
            raise ValueError(f"{self.config.name} records cannot be created from the console")
        blank = self.config.model().model_dump()
        self.form = EditForm(
            blank, fields=self.config.editable_fields, validator=self.config.validator,
            is_new=True, model=self.config.model,
        )
        self.editing_id = None
        return self.form

    def cancel_edit(self):
        self.form = None
        self.editing_id = None

    async def save(self) -> ActionOutcome:
        form = self.form
        action = self._action("create" if form is not None and form.is_new else "save")
        if form is None or not form.can_save:
            return succeeded(action, skipped=True)
        try:
            if form.is_new:
                await self.gateway.create_record(self.config.path, form.values)
            else:
                await self.gateway.update_record(self.config.path, self.editing_id, form.values)
        except ConsoleError as e:
            return failed(action, e, self.notices, logger)
        self.cancel_edit()
        await self.load()
        return succeeded(action, self.notices)

    # --------------------------------------------------
    # Deleting
    # --------------------------------------------------
    def confirm_delete(self, record_id: RecordId):
        self.pending_delete_id = record_id

    def cancel_delete(self):
        self.pending_delete_id = None

    async def delete(self, record_id: Optional[RecordId] = None) -> ActionOutcome:
        action = self._action("delete")
        target = record_id if record_id is not None else self.pending_delete_id
        self.pending_delete_id = None
        if target is None:
            return failed(action, ValidationRejected(action, "nothing selected"), self.notices, logger)
        try:
            await self.gateway.delete_record(self.config.path, target)
        except ConsoleError as e:
            return failed(action, e, self.notices, logger)
        self.records = [r for r in self.records if r.id != target]
        return succeeded(action, self.notices)


def build_tables(gateway, notices: NoticeBoard, page_size: Optional[int] = None, screens=None):
    screens = screens or SCREENS
    return {name: ResourceTable(gateway, config, notices, page_size) for name, config in screens.items()}
