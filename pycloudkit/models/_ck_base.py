from __future__ import annotations

import dataclasses
from typing import Any, Dict, Set, get_args, get_origin

from pydantic import BaseModel, ConfigDict, ValidationInfo, model_validator

# Validation context key switching on strict decoding for a single decode.
STRICT_DECODING = "strict_decoding"


def strict_context(strict: bool) -> Dict[str, bool]:
    return {STRICT_DECODING: bool(strict)}


class CKModel(BaseModel):
    """
    Project-wide base model for CloudKit wire objects.

    Unknown keys are ignored by default. Decoding with
    ``context=strict_context(True)`` rejects them instead; the context
    reaches nested models as well, so a whole response is checked:
      CKRecordsResponse.model_validate(data, context=strict_context(True))
    """

    model_config = ConfigDict(
        extra="ignore",
        populate_by_name=True,
    )

    @classmethod
    def _wire_keys(cls) -> Set[str]:
        keys: Set[str] = set()
        for name, info in cls.model_fields.items():
            keys.add(name)
            if info.alias:
                keys.add(info.alias)
        return keys

    @model_validator(mode="before")
    @classmethod
    def _reject_unknown_keys(cls, data: Any, info: ValidationInfo) -> Any:
        if not isinstance(data, dict) or not (info.context or {}).get(STRICT_DECODING):
            return data
        unknown = sorted(set(data) - cls._wire_keys())
        if unknown:
            raise ValueError(
                f"unknown field(s) {', '.join(repr(k) for k in unknown)} "
                f"for {cls.__name__}"
            )
        return data

    def to_wire(self) -> Dict[str, Any]:
        """JSON-ready dict using wire names, ``None`` values omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def supports_strict_decoding(tp: Any) -> bool:
    """
    Report whether unknown keys can be rejected when decoding into ``tp``.

    CKModel subclasses, plain JSON types and containers of those qualify.
    Other structured types (plain BaseModel, dataclass, TypedDict) never see
    the strict context, so they would accept unknown keys silently.
    """
    return _strict_capable(tp, set())


def _strict_capable(tp: Any, seen: Set[type]) -> bool:
    if get_origin(tp) is not None:
        return all(_strict_capable(arg, seen) for arg in get_args(tp))
    if not isinstance(tp, type):
        return True
    if issubclass(tp, CKModel):
        if tp in seen:
            return True
        seen.add(tp)
        return all(_strict_capable(f.annotation, seen) for f in tp.model_fields.values())
    if issubclass(tp, BaseModel) or dataclasses.is_dataclass(tp):
        return False
    # TypedDict
    if issubclass(tp, dict) and hasattr(tp, "__total__"):
        return False
    return True


# Public API of this module
__all__ = ["CKModel", "STRICT_DECODING", "strict_context", "supports_strict_decoding"]
