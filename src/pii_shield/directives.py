"""Directive resolution — which fields of a record carry a ``Mask``.

A field opts in through its type hint or its dataclass metadata:

    @dataclass
    class UserVo:
        phone: Annotated[str, MaskPhone]                       # preset
        card: Annotated[str, Mask("card")]                     # direct
        remark: str = field(default="", metadata={"mask": MaskText})
        cache: str = field(default="", metadata={"transient": True})

A preset is any marker whose ``__mask__`` attribute is a ``Mask``.  Only
one level of indirection is followed: a preset pointing at another preset
carries nothing.

Schemas are resolved once per class and memoized; the hot path is a dict
lookup.
"""

from __future__ import annotations
import builtins
import dataclasses
import functools
import inspect
import logging
import sys
import typing
from dataclasses import dataclass
from typing import Annotated, Any, ClassVar, Final, Iterable

from .algorithms import EmailAlgo, IdCardAlgo, NameAlgo, PhoneAlgo
from .types import Mask

logger = logging.getLogger(__name__)


def mask_preset(mask: Mask):
    """Class decorator: turn a marker class into a reusable preset."""
    def decorate(cls):
        cls.__mask__ = mask
        return cls
    return decorate


@mask_preset(Mask(PhoneAlgo))
class MaskPhone:
    """Mobile phone number, ``138****5678``."""


@mask_preset(Mask(EmailAlgo))
class MaskEmail:
    """Email address, local part starred."""


@mask_preset(Mask(IdCardAlgo))
class MaskId:
    """Resident ID card number."""


@mask_preset(Mask(NameAlgo))
class MaskName:
    """Personal name."""


@mask_preset(Mask("text"))
class MaskText:
    """Free text; embedded PII is starred in place."""


def resolve_markers(markers: Iterable[Any]) -> Mask | None:
    """Pick the directive out of a field's markers.

    A ``Mask`` attached directly wins over one carried by a preset.
    """
    markers = tuple(markers)
    for marker in markers:
        if isinstance(marker, Mask):
            return marker
    for marker in markers:
        carried = getattr(marker, "__mask__", None)
        if isinstance(carried, Mask):
            return carried
    return None


@dataclass(frozen=True, slots=True)
class FieldSpec:
    """A participating field of a record type."""
    name: str
    mask: Mask | None
    declared: Any = None      # type hint without Annotated extras; None = unknown


@dataclass(frozen=True, slots=True)
class RecordSchema:
    owner: type
    fields: dict[str, FieldSpec]
    # names that exist but never participate (ClassVar, Final, transient, frozen)
    skipped: frozenset[str]
    # True when ``fields`` is the full set: dataclasses, models, slotted classes
    closed: bool


class _Unresolved:
    """Placeholder for a name missing at runtime, e.g. a TYPE_CHECKING import."""

    def __init__(self, name: str) -> None:
        self.name = name

    def __getattr__(self, attr: str) -> "_Unresolved":
        if attr.startswith("__"):
            raise AttributeError(attr)
        return _Unresolved(f"{self.name}.{attr}")

    def __getitem__(self, item: Any) -> "_Unresolved":
        return self

    def __or__(self, other: Any) -> "_Unresolved":
        return self

    __ror__ = __or__

    def __call__(self, *args: Any, **kwargs: Any) -> "_Unresolved":
        return self

    def __repr__(self) -> str:
        return f"<unresolved {self.name}>"


class _LenientNamespace(dict):
    """Local namespace that turns unknown names into ``_Unresolved``."""

    def __init__(self, localns: dict[str, Any], globalns: dict[str, Any]) -> None:
        super().__init__(localns)
        self._globalns = globalns

    def __missing__(self, key: str) -> Any:
        if key in self._globalns:
            return self._globalns[key]
        if hasattr(builtins, key):
            return getattr(builtins, key)
        return _Unresolved(key)


def _own_annotations(klass: type) -> dict[str, Any]:
    try:
        return inspect.get_annotations(klass)
    except NameError:
        # deferred annotations naming a type that is not importable at runtime
        import annotationlib
        return annotationlib.get_annotations(klass, format=annotationlib.Format.STRING)


def _resolve(hint: Any, globalns: dict[str, Any], localns: dict[str, Any]) -> Any:
    if hint is None:
        return type(None)
    if not isinstance(hint, str):
        return hint
    try:
        return eval(hint, globalns, dict(localns))
    except Exception:
        return eval(hint, globalns, _LenientNamespace(localns, globalns))


def _hints(cls: type) -> dict[str, Any]:
    try:
        return typing.get_type_hints(cls, include_extras=True)
    except Exception as e:
        logger.warning("Resolving type hints of %s field by field: %s", cls.__qualname__, e)

    hints: dict[str, Any] = {}
    for klass in reversed(cls.__mro__):
        module = sys.modules.get(klass.__module__)
        globalns = vars(module) if module is not None else {}
        localns = dict(vars(klass))
        for name, hint in _own_annotations(klass).items():
            try:
                hints[name] = _resolve(hint, globalns, localns)
            except Exception:
                # markers on this field are lost; the other fields keep theirs
                logger.warning(
                    "Cannot resolve annotation %r of %s.%s", hint, cls.__qualname__, name,
                )
                hints[name] = hint
    return hints


def _unwrap(hint: Any) -> tuple[Any, tuple[Any, ...], bool]:
    """Split a hint into (declared type, markers, skip)."""
    if isinstance(hint, str):
        head = hint.replace("typing.", "").split("[", 1)[0].strip()
        return None, (), head in ("ClassVar", "Final", "InitVar")
    if isinstance(hint, dataclasses.InitVar):
        return None, (), True

    markers: tuple[Any, ...] = ()
    while True:
        origin = typing.get_origin(hint)
        if hint is ClassVar or origin is ClassVar or hint is Final or origin is Final:
            return None, (), True
        if origin is Annotated:
            markers += hint.__metadata__
            hint = hint.__origin__
            continue
        return hint, markers, False


def _metadata_markers(value: Any) -> tuple[Any, ...]:
    if value is None:
        return ()
    if isinstance(value, (list, tuple)):
        return tuple(value)
    return (value,)


def _slot_names(cls: type) -> list[str]:
    names: list[str] = []
    for klass in cls.__mro__:
        slots = klass.__dict__.get("__slots__", ())
        if isinstance(slots, str):
            slots = (slots,)
        names.extend(s for s in slots if s not in ("__dict__", "__weakref__"))
    return names


@functools.lru_cache(maxsize=None)
def record_fields(cls: type) -> RecordSchema:
    """Resolve (and memoize) the participating fields of ``cls``."""
    hints = _hints(cls)
    fields: dict[str, FieldSpec] = {}
    skipped: set[str] = set()

    def add(name: str, hint: Any, extra: tuple[Any, ...] = ()) -> None:
        declared, markers, skip = _unwrap(hint)
        if skip:
            skipped.add(name)
            return
        fields[name] = FieldSpec(name, resolve_markers(markers + extra), declared)

    if dataclasses.is_dataclass(cls):
        frozen = cls.__dataclass_params__.frozen
        for f in dataclasses.fields(cls):
            if frozen or f.metadata.get("transient"):
                skipped.add(f.name)
                continue
            add(f.name, hints.get(f.name, f.type), _metadata_markers(f.metadata.get("mask")))
        # ClassVar / InitVar pseudo-fields are not in fields()
        skipped.update(n for n in hints if n not in fields)
        closed = True

    elif isinstance(getattr(cls, "model_fields", None), dict):
        # pydantic-style model, duck-typed
        frozen = bool(getattr(cls, "model_config", {}).get("frozen"))
        for name, info in cls.model_fields.items():
            if frozen or getattr(info, "exclude", None) is True:
                skipped.add(name)
                continue
            extra = tuple(getattr(info, "metadata", None) or ())
            add(name, hints.get(name, getattr(info, "annotation", None)), extra)
        skipped.update(n for n in hints if n not in fields)
        closed = True

    else:
        for name, hint in hints.items():
            add(name, hint)
        for name in _slot_names(cls):
            if name not in fields and name not in skipped:
                fields[name] = FieldSpec(name, None)
        # Instances with a __dict__ may grow undeclared attributes
        closed = not any("__dict__" in k.__dict__ for k in cls.__mro__ if k is not object)

    return RecordSchema(cls, fields, frozenset(skipped), closed)


def find_mask(owner: type, name: str) -> Mask | None:
    """The directive for ``owner.name``, or None."""
    spec = record_fields(owner).fields.get(name)
    return spec.mask if spec is not None else None


def clear_cache() -> None:
    record_fields.cache_clear()
