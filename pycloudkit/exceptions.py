"""Exceptions raised by pycloudkit, plus the duration helpers for ``retryAfter``."""

from __future__ import annotations

import re
from datetime import timedelta
from typing import Optional

from pycloudkit.enums import ErrorCode


class CloudKitException(Exception):
    """Base CloudKit client error."""


class CloudKitConfigError(CloudKitException):
    """The client could not be configured (e.g. malformed base URL)."""


class CloudKitSigningError(CloudKitException):
    """A request could not be signed (missing key or crypto failure)."""


class CloudKitAPIError(CloudKitException):
    """
    Error response returned by the server for a non 2xx status code.

    ``retry_after`` is the suggested wait before trying the operation again;
    it is zero when the server did not provide one.
    """

    def __init__(
        self,
        reason: str = "",
        retry_after: Optional[timedelta] = None,
        code: ErrorCode = ErrorCode.UNKNOWN,
    ):
        self._reason = reason
        self._retry_after = retry_after or timedelta(0)
        self._code = ErrorCode.from_wire(code)
        super().__init__(self._message())

    @property
    def reason(self) -> str:
        return self._reason

    @property
    def retry_after(self) -> timedelta:
        return self._retry_after

    @property
    def code(self) -> ErrorCode:
        return self._code

    @property
    def description(self) -> str:
        return self._code.description

    @property
    def is_retryable(self) -> bool:
        """Hint only: the client itself never retries."""
        return self._retry_after > timedelta(0) or self._code in (
            ErrorCode.THROTTLED,
            ErrorCode.TRY_AGAIN_LATER,
        )

    def _message(self) -> str:
        if self._retry_after > timedelta(0):
            return f"API error: {self._reason}, retry after {format_duration(self._retry_after)}"
        return f"API error: {self._reason}"

    def __repr__(self) -> str:
        return (
            f"CloudKitAPIError(reason={self._reason!r}, "
            f"retry_after={self._retry_after!r}, code={self._code.value})"
        )


# ------------------------------ Durations ------------------------------------

# Microseconds per unit; sub-microsecond precision is truncated by timedelta.
_UNIT_MICROS = {
    "ns": 0.001,
    "us": 1.0,
    "µs": 1.0,
    "μs": 1.0,
    "ms": 1_000.0,
    "s": 1_000_000.0,
    "m": 60_000_000.0,
    "h": 3_600_000_000.0,
}

_COMPONENT = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(value: Optional[str]) -> timedelta:
    """
    Parse a duration string such as ``"30s"``, ``"1m30s"`` or ``"1.5h"``.

    Missing or empty values yield a zero duration.
    """
    if value is None or value == "":
        return timedelta(0)
    if not isinstance(value, str):
        raise ValueError(f"invalid duration {value!r}")

    s = value
    sign = 1
    if s[0] in "+-":
        sign = -1 if s[0] == "-" else 1
        s = s[1:]
    if s == "0":
        return timedelta(0)
    if not s:
        raise ValueError(f"invalid duration {value!r}")

    micros = 0.0
    pos = 0
    while pos < len(s):
        m = _COMPONENT.match(s, pos)
        if not m:
            raise ValueError(f"invalid duration {value!r}")
        micros += float(m.group(1)) * _UNIT_MICROS[m.group(2)]
        pos = m.end()
    return timedelta(microseconds=sign * micros)


def format_duration(td: timedelta) -> str:
    """Format a timedelta the way the server writes ``retryAfter``."""
    total = int(td / timedelta(microseconds=1))
    if total == 0:
        return "0s"
    sign = "-" if total < 0 else ""
    total = abs(total)
    hours, rest = divmod(total, 3_600_000_000)
    minutes, rest = divmod(rest, 60_000_000)
    seconds, micros = divmod(rest, 1_000_000)

    out = ""
    if hours:
        out += f"{hours}h"
    if hours or minutes:
        out += f"{minutes}m"
    if micros:
        frac = f"{micros:06d}".rstrip("0")
        out += f"{seconds}.{frac}s"
    else:
        out += f"{seconds}s"
    return sign + out


__all__ = [
    "CloudKitAPIError",
    "CloudKitConfigError",
    "CloudKitException",
    "CloudKitSigningError",
    "format_duration",
    "parse_duration",
]
