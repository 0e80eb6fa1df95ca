"""
Records service.

CloudKit Web Services Reference:
https://developer.apple.com/library/archive/documentation/DataManagement/Conceptual/CloudKitWebServicesReference/ModifyRecords.html
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Union

from pycloudkit.enums import Database
from pycloudkit.models.records import CKRecordsRequest, CKRecordsResponse

from .base import BaseService

if TYPE_CHECKING:  # pragma: no cover - import for type checking only
    from pycloudkit.client import CloudKitClient, Timeout

LOGGER = logging.getLogger(__name__)


class RecordsService(BaseService):
    """Record related operations of the CloudKit Web Services API."""

    def __init__(self, client: "CloudKitClient"):
        super().__init__(client, "/records/modify")

    def modify(
        self,
        database: Union[Database, str],
        request: CKRecordsRequest,
        *,
        timeout: "Timeout" = None,
    ) -> CKRecordsResponse:
        """
        Apply ``request.operations`` to records in ``database``, in order.
        Errors from the client propagate unchanged.
        """
        database = Database.from_wire(database)
        path = f"/{database.value}{self._base_path}"
        LOGGER.info(
            "Modifying records in %s database: %d operation(s)",
            database.value,
            len(request.operations),
        )
        resp: CKRecordsResponse = self._client.call(
            "POST", path, request, CKRecordsResponse, timeout=timeout
        )
        LOGGER.info("Modify returned %d records.", len(resp.records))
        return resp
