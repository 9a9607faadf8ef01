"""Field accessors and their process-wide cache.

An accessor is built once per (declaring type, field name) and then shared
by every traversal:

    accessor = accessor_cache.get(UserVo, "phone")
    accessor.get(user)                 # "13812345678"
    accessor.set(user, "138****5678")
    accessor.set(user, 42)             # TypeMismatchError
"""

from __future__ import annotations
import logging
import operator
import threading
import types
import typing
from typing import Any, Callable, Literal, TypeVar, Union

from .directives import record_fields
from .exceptions import BindingError, ShieldError, TypeMismatchError

logger = logging.getLogger(__name__)

# Implicit numeric widening, the Python side of primitive/boxed equivalence
_WIDENING: dict[type, tuple[type, ...]] = {
    float: (int,),
    complex: (int, float),
}


def is_assignable(value: Any, declared: Any) -> bool:
    """Whether ``value`` may be stored in a slot declared as ``declared``."""
    if declared is None or declared is Any or isinstance(declared, (str, typing.ForwardRef, TypeVar)):
        return True
    origin = typing.get_origin(declared)
    if origin is Union or origin is types.UnionType:
        return any(is_assignable(value, arg) for arg in typing.get_args(declared))
    if origin is Literal:
        return value in typing.get_args(declared)
    if origin is not None:
        declared = origin
    if not isinstance(declared, type):
        return True
    try:
        if isinstance(value, declared):
            return True
    except TypeError:
        # non-runtime protocols and friends can't be checked
        return True
    widen = _WIDENING.get(declared)
    return widen is not None and isinstance(value, widen)


class FieldAccessor:
    """Bound get/set for one field of one record type."""

    __slots__ = ("owner", "name", "declared", "_getter")

    def __init__(self, owner: type, name: str) -> None:
        if not isinstance(owner, type):
            raise BindingError(f"Cannot bind {name!r} on non-type {owner!r}")
        try:
            schema = record_fields(owner)
        except Exception as e:
            raise BindingError(f"Cannot introspect {owner.__qualname__}") from e
        if name in schema.skipped:
            raise BindingError(f"{owner.__qualname__}.{name} is not a writable field")
        spec = schema.fields.get(name)
        if spec is None and schema.closed:
            raise BindingError(f"{owner.__qualname__} has no field {name!r}")

        self.owner = owner
        self.name = name
        self.declared = spec.declared if spec is not None else None
        self._getter = operator.attrgetter(name)
        logger.debug("Created accessor for %s.%s", owner.__qualname__, name)

    def get(self, target: Any) -> Any:
        if target is None:
            return None
        try:
            return self._getter(target)
        except AttributeError:
            # unset slot or attribute never assigned
            return None

    def get_typed(self, target: Any, expected: type) -> Any:
        value = self.get(target)
        if value is not None and not isinstance(value, expected):
            raise TypeMismatchError(
                f"{self}: expected {expected.__name__}, got {type(value).__name__}"
            )
        return value

    def set(self, target: Any, value: Any) -> None:
        if target is None:
            return
        if not is_assignable(value, self.declared):
            raise TypeMismatchError(
                f"{self}: {type(value).__name__} is not assignable to {self.declared!r}"
            )
        try:
            setattr(target, self.name, value)
        except Exception as e:
            raise ShieldError(
                f"Failed to set {self} on {type(target).__name__}"
            ) from e

    def __repr__(self) -> str:
        return f"FieldAccessor({self.owner.__qualname__}.{self.name})"


class AccessorCache:
    """Compute-if-absent cache of ``FieldAccessor`` keyed by (type, name).

    Reads are lock-free; a miss takes the lock and looks again, so concurrent
    misses for one key build exactly one accessor.  A failed build inserts
    nothing and the next call retries.
    """

    def __init__(self, factory: Callable[[type, str], FieldAccessor] = FieldAccessor) -> None:
        self._factory = factory
        self._cache: dict[tuple[type, str], FieldAccessor] = {}
        self._lock = threading.Lock()
        # guards the counters only; lookups stay lock-free
        self._stats_lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, owner: type, name: str) -> FieldAccessor:
        key = (owner, name)
        accessor = self._cache.get(key)
        if accessor is not None:
            self._hit()
            return accessor

        with self._lock:
            accessor = self._cache.get(key)
            if accessor is not None:
                self._hit()
                return accessor
            self._misses += 1
            try:
                accessor = self._factory(owner, name)
            except BindingError:
                raise
            except Exception as e:
                raise BindingError(f"Cannot bind {getattr(owner, '__qualname__', owner)}.{name}") from e
            self._cache[key] = accessor
            return accessor

    def _hit(self) -> None:
        with self._stats_lock:
            self._hits += 1

    def invalidate(self, owner: type, name: str) -> bool:
        with self._lock:
            return self._cache.pop((owner, name), None) is not None

    def invalidate_type(self, owner: type) -> int:
        with self._lock:
            keys = [k for k in self._cache if k[0] is owner]
            for k in keys:
                del self._cache[k]
        if keys:
            logger.debug("Removed %d accessors for %s", len(keys), owner.__qualname__)
        return len(keys)

    def clear(self) -> None:
        logger.debug("Clearing accessor cache: %s", self.stats())
        with self._lock, self._stats_lock:
            self._cache.clear()
            self._hits = 0
            self._misses = 0

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def size(self) -> int:
        return len(self._cache)

    @property
    def hits(self) -> int:
        return self._hits

    @property
    def misses(self) -> int:
        return self._misses

    @property
    def hit_rate(self) -> float:
        total = self._hits + self._misses
        return 0.0 if total == 0 else self._hits * 100.0 / total

    def stats(self) -> str:
        return (
            f"AccessorCache[size={self.size}, hits={self._hits}, "
            f"misses={self._misses}, hitRate={self.hit_rate:.2f}%]"
        )

    def __contains__(self, key: tuple[type, str]) -> bool:
        return key in self._cache


accessor_cache = AccessorCache()
