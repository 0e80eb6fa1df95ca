"""Wire model for the error body returned on non 2xx responses."""

from __future__ import annotations

from datetime import timedelta
from typing import Annotated

from pydantic import BeforeValidator, Field, PlainSerializer, WithJsonSchema, field_validator

from pycloudkit.enums import ErrorCode
from pycloudkit.exceptions import CloudKitAPIError, format_duration, parse_duration

from ._ck_base import CKModel


def _duration_from_wire(v):
    # Absent, null and "" all mean "no retry hint".
    if v is None:
        return timedelta(0)
    if isinstance(v, timedelta):
        return v
    return parse_duration(v)


DurationString = Annotated[
    timedelta,
    BeforeValidator(_duration_from_wire),
    PlainSerializer(format_duration, return_type=str, when_used="json"),
    WithJsonSchema({"type": "string", "description": 'duration such as "30s"'}),
]


class CKErrorBody(CKModel):
    """
    Error response, e.g.:
      {"reason": "...", "retryAfter": "30s", "serverErrorCode": "THROTTLED"}

    Missing keys default to an empty reason, no retry hint and UNKNOWN.
    """

    reason: str = ""
    retry_after: DurationString = Field(default_factory=lambda: timedelta(0), alias="retryAfter")
    code: ErrorCode = Field(ErrorCode.UNKNOWN, alias="serverErrorCode")

    @field_validator("reason", mode="before")
    @classmethod
    def _null_reason(cls, v):
        return "" if v is None else v

    @field_validator("code", mode="before")
    @classmethod
    def _decode_code(cls, v):
        return ErrorCode.UNKNOWN if v is None else ErrorCode.from_wire(v)

    def to_exception(self) -> CloudKitAPIError:
        return CloudKitAPIError(
            reason=self.reason, retry_after=self.retry_after, code=self.code
        )

    @classmethod
    def from_exception(cls, err: CloudKitAPIError) -> "CKErrorBody":
        return cls(reason=err.reason, retry_after=err.retry_after, code=err.code)


__all__ = ["CKErrorBody", "DurationString"]
