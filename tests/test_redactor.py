"""Tests for the redactor — object graphs, pages, lists and failure handling."""

from dataclasses import dataclass, field
from typing import Annotated, Optional

import pytest

from pii_shield import (
    AccessorCache, Algorithm, AlgorithmRegistry, BindingError, Mask, MaskEmail, MaskId,
    MaskName, MaskPhone, MaskRow, MaskText, Page, RedactionError, Redactor, TypeMismatchError,
    masking,
)
from pii_shield import walker


@dataclass
class UserVo(MaskRow):
    name: Annotated[str, MaskName] = "张三丰"
    phone: Annotated[Optional[str], MaskPhone] = "13812345678"
    email: Annotated[Optional[str], MaskEmail] = "ab@test.com"
    id_card: Annotated[str, MaskId] = "110101199001011234"
    remark: str = field(default="call 13812345678", metadata={"mask": MaskText})
    age: int = 30


@dataclass
class Address:
    city: str = "Shanghai"
    contact: Annotated[str, Mask(inherit=True)] = "Li Lei"


@dataclass
class Order:
    buyer: UserVo = field(default_factory=UserVo)
    address: Annotated[Address, MaskPhone] = field(default_factory=Address)
    lines: list = field(default_factory=list)


class Prefix(Algorithm):
    def mask(self, value):
        return "x" + value


# ── Scenarios ────────────────────────────────────────────────────────

def test_phone_field_masked():
    user = Redactor().redact(UserVo())
    assert user.phone == "138****5678"


def test_short_email_masked():
    user = Redactor().redact(UserVo(email="ab@test.com"))
    assert user.email == "a*@test.com"


def test_row_override_per_element():
    rows = [UserVo(mask_flag=True), UserVo(mask_flag=False)]
    Redactor().redact(rows)
    assert rows[0].phone == "138****5678"
    assert rows[1].phone == "13812345678"


def test_null_directive_field_left_alone():
    user = Redactor().redact(UserVo(phone=None, email=None))
    assert user.phone is None
    assert user.email is None
    assert user.name == "张*丰"


def test_nested_record_fields_masked():
    order = Redactor().redact(Order())
    assert order.buyer.phone == "138****5678"
    assert order.address.city == "Shanghai"
    assert order.address.contact == "*****"


# ── Payload shapes ───────────────────────────────────────────────────

def test_every_builtin_directive():
    user = Redactor().redact(UserVo())
    assert user.name == "张*丰"
    assert user.id_card == "110101********1234"
    assert user.remark == "call " + "*" * 11
    assert user.age == 30


def test_returns_same_object():
    user = UserVo()
    assert Redactor().redact(user) is user


def test_none_and_scalars_pass_through():
    r = Redactor()
    assert r.redact(None) is None
    assert r.redact("13812345678") == "13812345678"
    assert r.redact(42) == 42


def test_page_records_redacted():
    page = Page(records=[UserVo(), UserVo()], total=2)
    Redactor().redact(page)
    assert [u.phone for u in page.records] == ["138****5678"] * 2
    assert page.total == 2


def test_empty_page():
    page = Page()
    assert Redactor().redact(page) is page


def test_nested_lists_and_none_items():
    a, b = UserVo(), UserVo()
    Redactor().redact([[a, None], (b,), None])
    assert a.phone == b.phone == "138****5678"


def test_mapping_payload():
    payload = {"user": UserVo(), "count": 1}
    Redactor().redact(payload)
    assert payload["user"].phone == "138****5678"


def test_non_str_directive_value_is_skipped():
    @dataclass
    class Numeric:
        code: Annotated[object, MaskPhone] = 13812345678

    assert Redactor().redact(Numeric()).code == 13812345678


def test_unmatched_shape_unchanged():
    user = Redactor().redact(UserVo(phone="n/a"))
    assert user.phone == "n/a"


def test_custom_registry_and_named_algorithm():
    reg = AlgorithmRegistry(factories={"prefix": Prefix})

    @dataclass
    class Tagged:
        tag: Annotated[str, Mask("prefix")] = "abc"

    assert Redactor(reg).redact(Tagged()).tag == "xabc"


def test_unknown_algorithm_falls_back_to_default():
    @dataclass
    class Tagged:
        tag: Annotated[str, Mask("no_such_algo")] = "abc"

    assert Redactor().redact(Tagged()).tag == "*****"


def test_second_call_masks_again():
    reg = AlgorithmRegistry(factories={"prefix": Prefix})

    @dataclass
    class Tagged:
        tag: Annotated[str, Mask("prefix")] = "abc"

    r = Redactor(reg)
    item = r.redact(Tagged())
    r.redact(item)
    assert item.tag == "xxabc"


# ── Failures ─────────────────────────────────────────────────────────

def test_type_mismatch_aborts():
    class Lengthy(Algorithm):
        def mask(self, value):
            return len(value)

    reg = AlgorithmRegistry(factories={"len": Lengthy})

    @dataclass
    class Tagged:
        tag: Annotated[str, Mask("len")] = "abc"

    with pytest.raises(RedactionError) as exc:
        Redactor(reg).redact(Tagged())
    assert isinstance(exc.value.__cause__, TypeMismatchError)


def test_algorithm_failure_aborts():
    class Boom(Algorithm):
        def mask(self, value):
            raise RuntimeError("boom")

    reg = AlgorithmRegistry(factories={"boom": Boom})

    @dataclass
    class Tagged:
        tag: Annotated[str, Mask("boom")] = "abc"

    with pytest.raises(RedactionError):
        Redactor(reg).redact([Tagged()])


# ── pydantic-style models ────────────────────────────────────────────

def test_pydantic_model():
    pydantic = pytest.importorskip("pydantic")

    class Member(pydantic.BaseModel):
        phone: Annotated[str, MaskPhone]
        nickname: str = ""

    member = Redactor().redact(Member(phone="13812345678"))
    assert member.phone == "138****5678"


# ── Wrappers and records defined elsewhere ───────────────────────────

def test_object_with_records_attribute_is_a_record():
    @dataclass
    class Report:
        owner_phone: Annotated[str, MaskPhone] = "13812345678"
        records: list = field(default_factory=list)

    report = Redactor().redact(Report(records=[UserVo()]))
    assert report.owner_phone == "138****5678"
    assert report.records[0].phone == "138****5678"


def test_page_subclass_redacts_records():
    class UserPage(Page):
        pass

    page = Redactor().redact(UserPage(records=[UserVo()]))
    assert page.records[0].phone == "138****5678"


def test_record_in_package_named_like_stdlib_module(load_module):
    profile = load_module("profile", """
        from dataclasses import dataclass
        from typing import Annotated

        from pii_shield import MaskPhone


        @dataclass
        class UserVo:
            phone: Annotated[str, MaskPhone]
    """, package=True)

    with masking():
        user = Redactor().redact(profile.UserVo("13812345678"))
    assert user.phone == "138****5678"


def test_record_with_type_checking_only_import(load_module):
    models = load_module("deferred_account", """
        from __future__ import annotations

        from dataclasses import dataclass
        from typing import TYPE_CHECKING, Annotated

        from pii_shield import MaskPhone

        if TYPE_CHECKING:
            from decimal import Decimal


        @dataclass
        class Account:
            phone: Annotated[str, MaskPhone]
            balance: Decimal | None = None
    """)

    account = Redactor().redact(models.Account("13812345678"))
    assert account.phone == "138****5678"


def test_binding_failure_aborts(monkeypatch):
    def refuse(owner, name):
        raise BindingError(f"{owner.__name__}.{name}")

    monkeypatch.setattr(walker, "accessor_cache", AccessorCache(factory=refuse))
    with pytest.raises(RedactionError) as exc:
        Redactor().redact(UserVo())
    assert isinstance(exc.value.__cause__, BindingError)
