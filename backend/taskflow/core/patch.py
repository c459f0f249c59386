"""
Tri-state partial updates.

Each patch field is either UNSET (leave untouched), None (clear) or a value (set).
"""
from dataclasses import dataclass, fields
from typing import Any, Mapping


class _Unset:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


@dataclass(frozen=True)
class Patch:
    """Base class for patch structures; subclasses declare fields defaulting to UNSET."""

    @classmethod
    def from_fields(cls, values: Mapping[str, Any]):
        """Build a patch from the fields a client actually sent."""
        known = {f.name for f in fields(cls)}
        return cls(**{name: value for name, value in values.items() if name in known})

    def is_set(self, name: str) -> bool:
        return getattr(self, name) is not UNSET

    def changes(self) -> dict[str, Any]:
        """Fields present in the patch, including explicit None."""
        return {f.name: getattr(self, f.name) for f in fields(self) if self.is_set(f.name)}

    def is_empty(self) -> bool:
        return not self.changes()
