from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.domain.flags import FlagKind, FlagSpec, FlagTable
from core.domain.values import ArgumentMap, Value


def _table() -> FlagTable:
    return FlagTable(
        [
            FlagSpec(
                name="groupKey",
                available_for=frozenset({"insert", "patch"}),
                required_for=frozenset({"insert", "patch"}),
            ),
            FlagSpec(
                name="memberKey",
                available_for=frozenset({"patch"}),
                required_for=frozenset({"patch"}),
                exclude_from_all=True,
            ),
            FlagSpec(
                name="role",
                available_for=frozenset({"insert", "patch"}),
                defaults={"insert": "MEMBER"},
                recursive_for=frozenset({"insert"}),
            ),
            FlagSpec(name="count", kind=FlagKind.INTEGER, available_for=frozenset({"patch"})),
        ]
    )


def test_required_must_be_available() -> None:
    with pytest.raises(ValidationError):
        FlagSpec(name="x", available_for=frozenset({"get"}), required_for=frozenset({"delete"}))


def test_default_must_match_kind() -> None:
    with pytest.raises(ValidationError):
        FlagSpec(name="n", kind=FlagKind.INTEGER, available_for=frozenset({"get"}), defaults={"get": "5"})


def test_flag_spec_is_immutable() -> None:
    spec = FlagSpec(name="x", available_for=frozenset({"get"}))
    with pytest.raises(ValidationError):
        spec.name = "y"


def test_table_rejects_duplicates() -> None:
    spec = FlagSpec(name="x", available_for=frozenset({"get"}))
    with pytest.raises(ValueError):
        FlagTable([spec, spec])


def test_table_queries() -> None:
    table = _table()
    assert [s.name for s in table.available("insert")] == ["groupKey", "role"]
    assert [s.name for s in table.required("patch")] == ["groupKey", "memberKey"]
    assert [s.name for s in table.overridable("patch")] == ["groupKey", "role", "count"]
    assert [s.name for s in table.recursive("insert")] == ["role"]
    assert table["role"].default_for("insert") == "MEMBER"
    assert table["role"].default_for("patch") is None


def test_value_getters_return_zero_when_unset() -> None:
    assert Value(FlagKind.STRING).string() == ""
    assert Value(FlagKind.INTEGER).integer() == 0
    assert Value(FlagKind.BOOLEAN).boolean() is False
    assert Value(FlagKind.FLOATING).floating() == 0.0
    assert Value(FlagKind.SEQUENCE).sequence() == []


def test_value_getter_type_mismatch() -> None:
    with pytest.raises(TypeError):
        Value(FlagKind.INTEGER, raw="3").integer()


def test_request_body_omits_unset_and_keeps_explicit_zero_values() -> None:
    args = ArgumentMap(
        "patch",
        {
            "role": Value(FlagKind.STRING, raw="", is_set=True),
            "delivery_settings": Value(FlagKind.STRING, raw="DIGEST", is_set=True),
            "email": Value(FlagKind.STRING, raw=None, is_set=False),
        },
    )
    body = args.request_body({"role": "role", "delivery_settings": "delivery_settings", "email": "email"})

    assert body.to_json() == {"role": "", "delivery_settings": "DIGEST"}
    assert body.fields["role"] == ""


def test_with_value_marks_option_explicit() -> None:
    args = ArgumentMap("signOut", {"userKey": Value(FlagKind.STRING)})
    updated = args.with_value("userKey", "a@example.com", correlation_key="a@example.com")

    assert updated.is_set("userKey")
    assert updated.string("userKey") == "a@example.com"
    assert updated.correlation_key == "a@example.com"
    assert not args.is_set("userKey")
