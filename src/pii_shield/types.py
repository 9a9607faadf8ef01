"""Core types."""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, Protocol, TypeVar, runtime_checkable

if TYPE_CHECKING:
    from .accessor import FieldAccessor

T = TypeVar("T")

DEFAULT_ALGO = "default"


@dataclass(frozen=True, slots=True)
class Mask:
    """Redaction directive attached to a field.

    Usage:
        @dataclass
        class UserVo:
            phone: Annotated[str, Mask(PhoneAlgo)]
            email: Annotated[str, MaskEmail]                 # preset
            note: str = field(default="", metadata={"mask": Mask("text")})
            alias: Annotated[str, Mask(inherit=True)] = ""   # only under a masked parent
    """
    algo: Any = DEFAULT_ALGO      # Algorithm subclass or registered name
    inherit: bool = False         # apply only when an ancestor field is masked


@dataclass(frozen=True, slots=True)
class MaskField:
    """One concrete field instance discovered by the walker."""
    obj: Any
    name: str
    mask: Mask
    mask_flag: bool               # final should-mask decision
    behest: bool                  # inheritance gate passed
    accessor: FieldAccessor

    def get_value(self) -> Any:
        return self.accessor.get(self.obj)

    def set_value(self, value: Any) -> None:
        self.accessor.set(self.obj, value)

    @property
    def should_mask(self) -> bool:
        return self.mask_flag and self.behest


@runtime_checkable
class SupportsMaskFlag(Protocol):
    """Per-instance override.  ``None`` defers to the ambient decision."""
    mask_flag: bool | None


@dataclass
class MaskRow:
    """Dataclass mixin carrying a per-row ``mask_flag``."""
    mask_flag: bool | None = field(default=None, kw_only=True)


@dataclass
class Page(Generic[T]):
    """Paginated result.  Only ``records`` is redacted."""
    records: list[T] = field(default_factory=list)
    total: int = 0
    current: int = 1
    size: int = 10


@dataclass(frozen=True, slots=True)
class EntityMatch:
    """A single PII entity detected inside free text."""
    entity_type: str       # e.g. "EMAIL", "PERSON", "PHONE"
    start: int
    end: int
    text: str
    score: float           # 0.0–1.0 confidence
    source: str            # "regex" | "presidio"
