"""Public exports for CloudKit wire models."""

from __future__ import annotations

from ._ck_base import CKModel, strict_context, supports_strict_decoding
from .error import CKErrorBody
from .records import (
    MAX_OPERATIONS_PER_REQUEST,
    CKField,
    CKFields,
    CKRecord,
    CKRecordOperation,
    CKRecordsRequest,
    CKRecordsResponse,
    fields_from_wire,
    fields_to_wire,
)

__all__ = [
    "CKErrorBody",
    "CKField",
    "CKFields",
    "CKModel",
    "CKRecord",
    "CKRecordOperation",
    "CKRecordsRequest",
    "CKRecordsResponse",
    "MAX_OPERATIONS_PER_REQUEST",
    "fields_from_wire",
    "fields_to_wire",
    "strict_context",
    "supports_strict_decoding",
]
