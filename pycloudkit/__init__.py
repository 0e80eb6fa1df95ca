"""Python bindings for the CloudKit Web Services API."""

from pycloudkit.client import CloudKitClient, default_session, is_icloud_container
from pycloudkit.config import ClientConfig
from pycloudkit.enums import Database, Environment, ErrorCode, OperationType
from pycloudkit.exceptions import (
    CloudKitAPIError,
    CloudKitConfigError,
    CloudKitException,
    CloudKitSigningError,
)
from pycloudkit.models import (
    MAX_OPERATIONS_PER_REQUEST,
    CKField,
    CKRecord,
    CKRecordOperation,
    CKRecordsRequest,
    CKRecordsResponse,
)

__version__ = "0.1.0"

__all__ = [
    "CKField",
    "CKRecord",
    "CKRecordOperation",
    "CKRecordsRequest",
    "CKRecordsResponse",
    "ClientConfig",
    "CloudKitAPIError",
    "CloudKitClient",
    "CloudKitConfigError",
    "CloudKitException",
    "CloudKitSigningError",
    "Database",
    "Environment",
    "ErrorCode",
    "MAX_OPERATIONS_PER_REQUEST",
    "OperationType",
    "default_session",
    "is_icloud_container",
]
