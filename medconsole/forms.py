# forms.py
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Type

from pydantic import BaseModel, ValidationError

Validator = Callable[[Mapping[str, Any]], bool]


class EditForm:
    """
    Edit form with snapshot-diff dirty tracking.

    The baseline is captured once when the form opens and never changes. Every
    change compares the whole candidate against it, so editing a field and then
    putting the original value back makes the form clean again.

    With a model, typed input is parsed through it before the comparison, so
    "65.00" typed into a Decimal field equals the stored Decimal("65.00").
    """

    def __init__(
        self,
        values: Mapping[str, Any],
        fields: Optional[Iterable[str]] = None,
        validator: Optional[Validator] = None,
        is_new: bool = False,
        model: Optional[Type[BaseModel]] = None,
    ):
        fields = tuple(fields) if fields is not None else tuple(values)
        self.fields = fields
        self.baseline = MappingProxyType({f: values.get(f) for f in fields})
        self._record = MappingProxyType(dict(values))
        self._candidate: Dict[str, Any] = dict(self.baseline)
        self._validator = validator
        self._model = model
        self.is_new = is_new

    def set(self, field: str, value: Any):
        if field not in self.baseline:
            raise KeyError(f"'{field}' is not editable on this form")
        self._candidate[field] = value

    def update(self, **values):
        for field, value in values.items():
            self.set(field, value)

    def _parsed(self) -> Optional[Dict[str, Any]]:
        """Candidate values as the model stores them; None when they do not parse."""
        if self._model is None:
            return dict(self._candidate)
        try:
            record = self._model.model_validate({**self._record, **self._candidate})
        except ValidationError:
            return None
        dumped = record.model_dump()
        return {f: dumped.get(f) for f in self.fields}

    @property
    def values(self) -> Dict[str, Any]:
        parsed = self._parsed()
        return parsed if parsed is not None else dict(self._candidate)

    def changed_fields(self) -> List[str]:
        current = self.values
        return [f for f in self.fields if current[f] != self.baseline[f]]

    @property
    def is_dirty(self) -> bool:
        return bool(self.changed_fields())

    @property
    def is_valid(self) -> bool:
        parsed = self._parsed()
        if parsed is None:
            return False
        if self._validator is None:
            return True
        return bool(self._validator(parsed))

    @property
    def can_save(self) -> bool:
        return self.is_dirty and self.is_valid
