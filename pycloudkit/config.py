"""
Client configuration.

Centralizes the tunables of CloudKitClient so callers can change defaults
without touching the engine. Environment fallbacks are read when the default
configuration is built:

  PYCLOUDKIT_USER_AGENT=my-app/1.0
  PYCLOUDKIT_STRICT_DECODING=1     # reject unknown keys in responses
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass
from typing import Optional, Tuple

DEFAULT_USER_AGENT = "pycloudkit"

# Caps for dialing and the TLS handshake of the default session.
DEFAULT_CONNECT_TIMEOUT = 5.0


def _env_flag(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if raw in {"1", "true", "yes", "on", "strict"}:
        return True
    if raw in {"0", "false", "no", "off", "lenient"}:
        return False
    return default


@dataclass(frozen=True)
class ClientConfig:
    user_agent: str = DEFAULT_USER_AGENT

    # Reject unknown keys when decoding success responses.
    strict_decoding: bool = False

    # Seconds; None means no deadline. Per-call timeouts take precedence.
    connect_timeout: Optional[float] = DEFAULT_CONNECT_TIMEOUT
    read_timeout: Optional[float] = None

    @classmethod
    def from_env(cls) -> "ClientConfig":
        return cls(
            user_agent=os.getenv("PYCLOUDKIT_USER_AGENT") or DEFAULT_USER_AGENT,
            strict_decoding=_env_flag("PYCLOUDKIT_STRICT_DECODING"),
        )

    @property
    def timeout(self) -> Tuple[Optional[float], Optional[float]]:
        return (self.connect_timeout, self.read_timeout)

    def replace(self, **changes) -> "ClientConfig":
        return dataclasses.replace(self, **changes)


__all__ = ["ClientConfig", "DEFAULT_CONNECT_TIMEOUT", "DEFAULT_USER_AGENT"]
