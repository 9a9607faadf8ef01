"""Graph walker — find every masked leaf field in an object graph.

Records (dataclasses, pydantic-style models, plain objects), sequences,
sets and mappings are walked; everything else is a leaf.  Mapping keys are
never inspected.  A directive on a container-typed field does not mask the
container, it only marks everything beneath it as "parent masked" for
``Mask(inherit=True)`` fields.

A failure while introspecting one node is logged and that subtree yields
nothing; the rest of the graph is still discovered.  ``ShieldError``s
(accessor binding failures) propagate.
"""

from __future__ import annotations
import dataclasses
import functools
import logging
import os
import sys
import sysconfig
from collections import deque
from collections.abc import Mapping, Sequence, Set
from enum import Enum
from typing import Any, Iterable

from .accessor import accessor_cache
from .directives import RecordSchema, record_fields
from .exceptions import ShieldError
from .types import MaskField, SupportsMaskFlag

logger = logging.getLogger(__name__)

_STRINGS = (str, bytes, bytearray, memoryview, range)
_CONTAINERS = (list, tuple, set, frozenset, deque)
_STDLIB_NAMES = frozenset(sys.stdlib_module_names) | {"builtins"}
_STDLIB_DIRS = tuple(
    os.path.join(os.path.realpath(p), "")
    for p in {
        sysconfig.get_path("stdlib"),
        sysconfig.get_path("platstdlib"),
        os.path.dirname(os.__file__),
    }
    if p
)

# Project types that must never be recursed into (money, ids, ...)
_extra_leaves: set[type] = set()


def register_leaf_type(cls: type) -> None:
    _extra_leaves.add(cls)
    is_complex.cache_clear()


def _is_container(cls: type) -> bool:
    return issubclass(cls, _CONTAINERS) or (
        issubclass(cls, (Sequence, Set)) and not issubclass(cls, _STRINGS)
    )


def _is_record(cls: type) -> bool:
    return dataclasses.is_dataclass(cls) or isinstance(getattr(cls, "model_fields", None), dict)


def is_stdlib_module(name: str) -> bool:
    """Whether module ``name`` is the interpreter's own, not a lookalike.

    A project package called ``profile`` or ``email`` shares its name with a
    stdlib module but lives outside the stdlib directory.
    """
    if name.partition(".")[0] not in _STDLIB_NAMES:
        return False
    module = sys.modules.get(name)
    if module is None:
        return False
    spec = getattr(module, "__spec__", None)
    origin = getattr(spec, "origin", None) or getattr(module, "__file__", None)
    if origin in ("built-in", "frozen"):
        return True
    if not origin:
        return False
    path = os.path.realpath(origin)
    parts = path.split(os.sep)
    if "site-packages" in parts or "dist-packages" in parts:
        return False
    return path.startswith(_STDLIB_DIRS)


@functools.lru_cache(maxsize=None)
def is_complex(cls: type) -> bool:
    """Records, sequences, sets and mappings are complex; the rest are leaves."""
    if issubclass(cls, _STRINGS):
        return False
    if issubclass(cls, Mapping) or _is_container(cls):
        return True
    if _extra_leaves and issubclass(cls, tuple(_extra_leaves)):
        return False
    if issubclass(cls, (Enum, type)):
        return False
    if _is_record(cls):
        return True
    return not is_stdlib_module(getattr(cls, "__module__", None) or "builtins")


def discover(root: Any, mask_flag: bool | None = None, parent_masked: bool = False) -> list[MaskField]:
    """Collect the masked leaf fields reachable from ``root``.

    Args:
        root: Any object; None yields nothing.
        mask_flag: Ambient decision.  None means "no override seen yet",
            which masks.  A row's own non-None ``mask_flag`` replaces it for
            that row and everything beneath.
        parent_masked: Whether an ancestor field on this path carried a
            directive.  Gates ``Mask(inherit=True)`` fields.
    """
    if root is None:
        return []
    try:
        if isinstance(root, Mapping):
            return _each(root.values(), mask_flag, parent_masked)
        if _is_container(type(root)):
            return _each(root, mask_flag, parent_masked)
        return _record(root, mask_flag, parent_masked)
    except ShieldError:
        raise
    except Exception:
        logger.exception("Field discovery failed for %s; skipping subtree", type(root).__name__)
        return []


def _each(items: Iterable[Any], mask_flag: bool | None, parent_masked: bool) -> list[MaskField]:
    found: list[MaskField] = []
    for item in items:
        # Bare scalars in a container have no field to write back to
        if item is not None and is_complex(type(item)):
            found.extend(discover(item, mask_flag, parent_masked))
    return found


def _field_names(obj: Any, schema: RecordSchema) -> list[str]:
    names = list(schema.fields)
    if not schema.closed:
        try:
            extra = vars(obj)
        except TypeError:
            extra = {}
        names.extend(n for n in extra if n not in schema.fields and n not in schema.skipped)
    return names


def _record(obj: Any, mask_flag: bool | None, parent_masked: bool) -> list[MaskField]:
    if isinstance(obj, SupportsMaskFlag) and obj.mask_flag is not None:
        mask_flag = obj.mask_flag

    cls = type(obj)
    schema = record_fields(cls)
    found: list[MaskField] = []
    for name in _field_names(obj, schema):
        value = getattr(obj, name, None)
        if value is None:
            continue
        spec = schema.fields.get(name)
        mask = spec.mask if spec is not None else None
        nested = is_complex(type(value))

        if mask is None:
            if nested:
                found.extend(discover(value, mask_flag, False))
            continue

        if nested:
            found.extend(discover(value, mask_flag, True))
            continue

        behest = parent_masked if mask.inherit else True
        if not behest:
            logger.debug("Skipping %s.%s: no masked ancestor", cls.__qualname__, name)
            continue
        found.append(MaskField(
            obj=obj,
            name=name,
            mask=mask,
            mask_flag=True if mask_flag is None else mask_flag,
            behest=behest,
            accessor=accessor_cache.get(cls, name),
        ))
    return found
