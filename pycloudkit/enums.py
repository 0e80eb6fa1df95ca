"""
Closed value sets used on the CloudKit wire.

Every member's value is the exact string the server sends and expects, so
``str(member)`` and JSON encoding both emit the canonical form.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Dict, Union


class _WireEnum(str, Enum):
    """Base for string enums that reject unknown wire values."""

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_wire(cls, value: Union[str, "_WireEnum"]):
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            for member in cls:
                if member.value == value:
                    return member
        label = re.sub(r"(?<!^)(?=[A-Z])", " ", cls.__name__).lower()
        raise ValueError(f"unknown {label} {value!r}")


class Environment(_WireEnum):
    """Environment of an app's container."""

    # Not accessible by apps available on the store.
    DEVELOPMENT = "development"
    # Accessible by development apps and apps available on the store.
    PRODUCTION = "production"


class Database(_WireEnum):
    """Database to store the data within the container."""

    PUBLIC = "public"
    PRIVATE = "private"
    SHARED = "shared"


class OperationType(_WireEnum):
    """
    Type of a record operation:

      - create: fails if a record with the same name exists
      - update: changes only the given fields, fails on conflict
      - forceUpdate: update ignoring conflicts, creates the record if absent
      - replace: unspecified fields are set to null, fails on conflict
      - forceReplace: replace ignoring conflicts, creates the record if absent
      - delete / forceDelete: removes the record, force ignores conflicts
    """

    CREATE = "create"
    UPDATE = "update"
    FORCE_UPDATE = "forceUpdate"
    REPLACE = "replace"
    FORCE_REPLACE = "forceReplace"
    DELETE = "delete"
    FORCE_DELETE = "forceDelete"


class ErrorCode(_WireEnum):
    """Server error code (``serverErrorCode``)."""

    UNKNOWN = "UNKNOWN"
    ACCESS_DENIED = "ACCESS_DENIED"
    ATOMIC_ERROR = "ATOMIC_ERROR"
    AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"
    AUTHENTICATION_REQUIRED = "AUTHENTICATION_REQUIRED"
    BAD_REQUEST = "BAD_REQUEST"
    CONFLICT = "CONFLICT"
    EXISTS = "EXISTS"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    NOT_FOUND = "NOT_FOUND"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    THROTTLED = "THROTTLED"
    TRY_AGAIN_LATER = "TRY_AGAIN_LATER"
    VALIDATING_REFERENCE_ERROR = "VALIDATING_REFERENCE_ERROR"
    ZONE_NOT_FOUND = "ZONE_NOT_FOUND"

    @property
    def description(self) -> str:
        return _ERROR_CODE_DESCRIPTIONS[self]


_ERROR_CODE_DESCRIPTIONS: Dict[ErrorCode, str] = {
    ErrorCode.UNKNOWN: "An unknown error occurred.",
    ErrorCode.ACCESS_DENIED: "You don't have permission to access the endpoint, record, zone, or database.",
    ErrorCode.ATOMIC_ERROR: "An atomic batch operation failed.",
    ErrorCode.AUTHENTICATION_FAILED: "Authentication was rejected.",
    ErrorCode.AUTHENTICATION_REQUIRED: "The request requires authentication but none was provided.",
    ErrorCode.BAD_REQUEST: "The request was not valid.",
    ErrorCode.CONFLICT: "The recordChangeTag value expired. (Retry the request with the latest tag.)",
    ErrorCode.EXISTS: "The resource that you attempted to create already exists.",
    ErrorCode.INTERNAL_ERROR: "An internal error occurred.",
    ErrorCode.NOT_FOUND: "The resource was not found.",
    ErrorCode.QUOTA_EXCEEDED: (
        "If accessing the public database, you exceeded the app's quota. "
        "If accessing the private database, you exceeded the user's iCloud quota."
    ),
    ErrorCode.THROTTLED: "The request was throttled. Try the request again later.",
    ErrorCode.TRY_AGAIN_LATER: "An internal error occurred. Try the request again.",
    ErrorCode.VALIDATING_REFERENCE_ERROR: "The request violates a validating reference constraint.",
    ErrorCode.ZONE_NOT_FOUND: "The zone specified in the request was not found.",
}


__all__ = ["Database", "Environment", "ErrorCode", "OperationType"]
