"""Tests for field accessors and the accessor cache."""

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Annotated, Any, ClassVar, Optional, Union

import pytest

from pii_shield import MaskPhone, BindingError, TypeMismatchError, ShieldError
from pii_shield.accessor import AccessorCache, FieldAccessor, is_assignable


@dataclass
class Numbers:
    int_value: int = 0
    float_value: float = 0.0
    complex_value: complex = 0j
    bool_value: bool = False
    opt_int: Optional[int] = None
    either: Union[int, str] = 0
    anything: Any = None
    name: str = ""
    phone: Annotated[str, MaskPhone] = ""
    tags: list[str] = None
    kind: ClassVar[str] = "numbers"


@dataclass(frozen=True)
class Frozen:
    phone: str = ""


class Loose:
    def __init__(self):
        self.note = "hello"


# ── Assignability ────────────────────────────────────────────────────

def test_exact_types_assignable():
    assert is_assignable(3, int)
    assert is_assignable("x", str)
    assert not is_assignable("x", int)


def test_numeric_widening_both_directions():
    acc = FieldAccessor(Numbers, "float_value")
    obj = Numbers()
    acc.set(obj, 42)                    # int into a float slot
    assert obj.float_value == 42
    acc.set(obj, 2.5)
    assert obj.float_value == 2.5

    acc = FieldAccessor(Numbers, "complex_value")
    acc.set(obj, 1.5)
    assert obj.complex_value == 1.5


def test_bool_into_int_slot():
    acc = FieldAccessor(Numbers, "int_value")
    obj = Numbers()
    acc.set(obj, True)
    assert obj.int_value is True


def test_float_into_int_slot_rejected():
    acc = FieldAccessor(Numbers, "int_value")
    with pytest.raises(TypeMismatchError):
        acc.set(Numbers(), 2.5)


def test_none_needs_optional():
    obj = Numbers()
    FieldAccessor(Numbers, "opt_int").set(obj, None)
    assert obj.opt_int is None
    with pytest.raises(TypeMismatchError):
        FieldAccessor(Numbers, "name").set(obj, None)


def test_union_and_any():
    obj = Numbers()
    FieldAccessor(Numbers, "either").set(obj, "s")
    FieldAccessor(Numbers, "either").set(obj, 5)
    FieldAccessor(Numbers, "anything").set(obj, object())
    with pytest.raises(TypeMismatchError):
        FieldAccessor(Numbers, "either").set(obj, 1.5)


def test_generic_declared_checks_origin():
    obj = Numbers()
    FieldAccessor(Numbers, "tags").set(obj, ["a"])
    with pytest.raises(TypeMismatchError):
        FieldAccessor(Numbers, "tags").set(obj, "a")


def test_annotated_field_uses_base_type():
    obj = Numbers()
    acc = FieldAccessor(Numbers, "phone")
    acc.set(obj, "138****5678")
    assert acc.get(obj) == "138****5678"
    with pytest.raises(TypeMismatchError):
        acc.set(obj, 13812345678)


# ── get / get_typed ──────────────────────────────────────────────────

def test_get_none_target():
    assert FieldAccessor(Numbers, "name").get(None) is None


def test_get_typed():
    obj = Numbers(name="alice")
    acc = FieldAccessor(Numbers, "name")
    assert acc.get_typed(obj, str) == "alice"
    with pytest.raises(TypeMismatchError):
        acc.get_typed(obj, int)


def test_open_class_binds_undeclared_attribute():
    acc = FieldAccessor(Loose, "note")
    obj = Loose()
    assert acc.get(obj) == "hello"
    acc.set(obj, "bye")
    assert obj.note == "bye"


# ── Binding failures ─────────────────────────────────────────────────

def test_unknown_field_on_closed_type():
    with pytest.raises(BindingError):
        FieldAccessor(Numbers, "missing")


def test_classvar_not_bindable():
    with pytest.raises(BindingError):
        FieldAccessor(Numbers, "kind")


def test_frozen_fields_not_bindable():
    with pytest.raises(BindingError):
        FieldAccessor(Frozen, "phone")


def test_non_type_owner():
    with pytest.raises(BindingError):
        FieldAccessor(Numbers(), "name")


def test_setattr_failure_is_wrapped():
    class ReadOnly:
        @property
        def value(self):
            return "x"

    acc = FieldAccessor(ReadOnly, "value")
    with pytest.raises(ShieldError):
        acc.set(ReadOnly(), "y")


# ── Cache ────────────────────────────────────────────────────────────

def test_cache_returns_same_instance():
    cache = AccessorCache()
    a = cache.get(Numbers, "name")
    b = cache.get(Numbers, "name")
    assert a is b
    assert cache.size == 1
    assert cache.misses == 1
    assert cache.hits == 1
    assert cache.hit_rate == 50.0


def test_cache_keys_on_declaring_type():
    @dataclass
    class Other:
        phone: Annotated[str, MaskPhone] = ""

    cache = AccessorCache()
    a = cache.get(Numbers, "phone")
    b = cache.get(Other, "phone")
    assert a is not b
    assert a.owner is Numbers
    assert b.owner is Other
    assert cache.size == 2


def test_concurrent_misses_build_once():
    calls = []
    gate = threading.Barrier(20)

    def factory(owner, name):
        calls.append((owner, name))
        return FieldAccessor(owner, name)

    cache = AccessorCache(factory=factory)

    def grab(_):
        if _ < 20:
            gate.wait()
        return cache.get(Numbers, "phone")

    with ThreadPoolExecutor(max_workers=20) as pool:
        results = list(pool.map(grab, range(100)))

    assert len(results) == 100
    assert all(r is results[0] for r in results)
    assert calls == [(Numbers, "phone")]


def test_failed_build_is_not_cached():
    attempts = []

    def flaky(owner, name):
        attempts.append(name)
        if len(attempts) == 1:
            raise RuntimeError("boom")
        return FieldAccessor(owner, name)

    cache = AccessorCache(factory=flaky)
    with pytest.raises(BindingError):
        cache.get(Numbers, "name")
    assert (Numbers, "name") not in cache
    assert cache.get(Numbers, "name").name == "name"
    assert len(attempts) == 2


def test_binding_error_propagates_unchanged():
    cache = AccessorCache()
    with pytest.raises(BindingError):
        cache.get(Numbers, "missing")
    assert cache.size == 0


def test_invalidate():
    cache = AccessorCache()
    first = cache.get(Numbers, "name")
    assert cache.invalidate(Numbers, "name")
    assert not cache.invalidate(Numbers, "name")
    assert cache.get(Numbers, "name") is not first


def test_invalidate_type():
    cache = AccessorCache()
    cache.get(Numbers, "name")
    cache.get(Numbers, "phone")
    cache.get(Loose, "note")
    assert cache.invalidate_type(Numbers) == 2
    assert cache.size == 1


def test_clear_resets_stats():
    cache = AccessorCache()
    cache.get(Numbers, "name")
    cache.clear()
    assert cache.size == 0
    assert cache.misses == 0
    assert "size=0" in cache.stats()


def test_hit_count_is_exact_under_concurrency():
    cache = AccessorCache()
    cache.get(Numbers, "name")

    def grab(_):
        for _ in range(250):
            cache.get(Numbers, "name")

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(grab, range(8)))

    assert cache.hits == 2000
    assert cache.misses == 1
