"""
CloudKit "wire" models for /records/modify requests & responses.

Record fields are an ordered list on the Python side but a JSON object keyed
by field name on the wire:

    {"fields": {"MyField": {"value": "Hello"}, "Qty": {"type": "INT64", "value": 1000}}}

Both directions of that adaptation live in this module.
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Optional

from pydantic import (
    BeforeValidator,
    Field,
    JsonValue,
    PlainSerializer,
    field_validator,
    model_serializer,
)

from pycloudkit.enums import OperationType

from ._ck_base import CKModel

# Maximum number of operations in a single records request.
MAX_OPERATIONS_PER_REQUEST = 200


class CKField(CKModel):
    """
    A field of a record. ``name`` is never part of the field's JSON object;
    it is the key the object is stored under.
    """

    name: str
    # Inferred by the server when omitted (e.g. "STRING", "INT64", "REFERENCE").
    type: Optional[str] = None
    value: JsonValue = None


# ---------------------------------------------------------------------------
# Fields adaptation (list <-> object keyed by name)
# ---------------------------------------------------------------------------


def fields_to_wire(fields: List[CKField]) -> Dict[str, Dict[str, Any]]:
    """
    Serialize fields as ``{name: {"type": ..., "value": ...}}``.

    An empty type and a ``None`` value are omitted. If two fields share a
    name, the later one wins.
    """
    out: Dict[str, Dict[str, Any]] = {}
    for f in fields:
        entry: Dict[str, Any] = {}
        if f.type:
            entry["type"] = f.type
        if f.value is not None:
            entry["value"] = f.value
        out[f.name] = entry
    return out


def fields_from_wire(v: Any) -> Any:
    """
    Turn the wire object into a list of field dicts, injecting each key as
    the field's name. The resulting order is not significant.

    Lists (fields built in Python) are passed through untouched.
    """
    if v is None:
        return []
    if isinstance(v, dict):
        out = []
        for name, entry in v.items():
            if isinstance(entry, CKField):
                entry = entry.model_dump()
            if not isinstance(entry, dict):
                raise ValueError(f"field {name!r} must be an object, got {type(entry).__name__}")
            out.append({**entry, "name": name})
        return out
    return v


CKFields = Annotated[
    List[CKField],
    BeforeValidator(fields_from_wire),
    PlainSerializer(fields_to_wire, return_type=dict),
]


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


class CKRecord(CKModel):
    """
    A record in the database.

    ``name`` is assigned by the server when omitted on create.
    """

    name: Optional[str] = Field(None, alias="recordName")
    type: Optional[str] = Field(None, alias="recordType")
    fields: CKFields = Field(default_factory=list)
    # Returned by the server; send it back on update/replace to detect conflicts.
    change_tag: Optional[str] = Field(None, alias="recordChangeTag")

    @model_serializer(mode="wrap")
    def _omit_empty_fields(self, handler):
        data = handler(self)
        if not self.fields and isinstance(data, dict):
            data.pop("fields", None)
        return data

    def get_field(self, name: str) -> Optional[CKField]:
        found = None
        for f in self.fields:
            if f.name == name:
                found = f
        return found

    def get_value(self, name: str) -> JsonValue:
        f = self.get_field(name)
        return None if f is None else f.value


class CKRecordOperation(CKModel):
    """An operation on a single record."""

    type: OperationType = Field(alias="operationType")
    record: CKRecord = Field(default_factory=CKRecord)

    @field_validator("type", mode="before")
    @classmethod
    def _decode_type(cls, v):
        return OperationType.from_wire(v)


class CKRecordsRequest(CKModel):
    """
    Body of a /records/modify request. Operations are applied by the server
    in list order.
    """

    operations: List[CKRecordOperation] = Field(
        default_factory=list, max_length=MAX_OPERATIONS_PER_REQUEST
    )


class CKRecordsResponse(CKModel):
    records: List[CKRecord] = Field(default_factory=list)


__all__ = [
    "CKField",
    "CKFields",
    "CKRecord",
    "CKRecordOperation",
    "CKRecordsRequest",
    "CKRecordsResponse",
    "MAX_OPERATIONS_PER_REQUEST",
    "fields_from_wire",
    "fields_to_wire",
]
