"""CloudKit Web Services API services."""

from .records import RecordsService

__all__ = ["RecordsService"]
