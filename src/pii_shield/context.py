"""Activation context — is redaction on for the current unit of work?

State lives in a ``ContextVar``, so every thread and every asyncio task
sees its own copy.  Each mutation installs a fresh immutable ``MaskState``;
a task that inherited its parent's context can never leak changes back.

    with masking("phone"):
        ...                      # is_active() is True in here
    is_active()                  # False again, even if the block raised
"""

from __future__ import annotations
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, replace
from typing import Iterator


@dataclass(frozen=True, slots=True)
class MaskState:
    enabled: bool = False
    include_fields: frozenset[str] = frozenset()


_state: ContextVar[MaskState | None] = ContextVar("pii_shield_mask_state", default=None)


def start() -> None:
    """Enable redaction; keeps previously registered include fields."""
    _state.set(replace(_state.get() or MaskState(), enabled=True))


def stop() -> None:
    """Drop all state for the current unit.  Safe without a prior start()."""
    _state.set(None)


def is_active() -> bool:
    state = _state.get()
    return state is not None and state.enabled


def current() -> MaskState | None:
    return _state.get()


def add_include_field(name: str) -> None:
    """Register a field name; also enables redaction."""
    state = _state.get() or MaskState()
    _state.set(replace(state, enabled=True, include_fields=state.include_fields | {name}))


def include_fields() -> frozenset[str]:
    state = _state.get()
    return state.include_fields if state is not None else frozenset()


@contextmanager
def masking(*fields: str) -> Iterator[MaskState]:
    """Scoped activation; the previous state is restored on exit."""
    token = _state.set(_state.get())
    try:
        start()
        for name in fields:
            add_include_field(name)
        yield _state.get()
    finally:
        _state.reset(token)
