import datetime

import pytest

from varspace import MISSING, NativeKind, infer_kind
from varspace._default import default_value, now_millis
from varspace._kinds import DATE_KINDS, KindEnum


class Mode(KindEnum):
    NOMINAL = "nominal", "Normal operating mode"
    STANDBY = "standby"


def test_kind_enum_value_and_doc() -> None:
    assert Mode.NOMINAL == "nominal"
    assert Mode.NOMINAL.__doc__ == "Normal operating mode"
    assert Mode.STANDBY.__doc__ == ""


def test_native_kinds() -> None:
    assert [str(kind) for kind in NativeKind] == [
        "Object",
        "String",
        "Number",
        "Boolean",
        "Date",
        "DateTime",
        "Time",
        "Unknown",
    ]
    assert "Number" in NativeKind
    assert NativeKind("DateTime") is NativeKind.DATETIME
    assert {NativeKind.DATE, NativeKind.DATETIME, NativeKind.TIME} == DATE_KINDS


def test_missing_is_singleton_and_falsy() -> None:
    assert type(MISSING)() is MISSING
    assert not MISSING
    assert repr(MISSING) == "MISSING"


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (MISSING, NativeKind.UNKNOWN),
        (None, NativeKind.UNKNOWN),
        ("", NativeKind.STRING),
        ("abc", NativeKind.STRING),
        (True, NativeKind.BOOLEAN),
        (False, NativeKind.BOOLEAN),
        (0, NativeKind.NUMBER),
        (4.5, NativeKind.NUMBER),
        (datetime.date(2023, 10, 26), NativeKind.DATE),
        (datetime.datetime(2023, 10, 26, 12, 0, tzinfo=datetime.UTC), NativeKind.DATE),
        ({}, NativeKind.OBJECT),
        ({"a": 1}, NativeKind.OBJECT),
        ([1, 2], NativeKind.UNKNOWN),
        (object(), NativeKind.UNKNOWN),
    ],
)
def test_infer_kind(value: object, expected: NativeKind) -> None:
    assert infer_kind(value) is expected


@pytest.mark.parametrize(
    ("kind", "expected"),
    [
        (NativeKind.OBJECT, {}),
        (NativeKind.STRING, ""),
        (NativeKind.NUMBER, 0),
        (NativeKind.BOOLEAN, False),
        (NativeKind.UNKNOWN, None),
    ],
)
def test_default_values(kind: NativeKind, expected: object) -> None:
    assert default_value(kind) == expected


def test_default_object_is_fresh() -> None:
    first = default_value("Object")
    first["x"] = 1
    assert default_value("Object") == {}


@pytest.mark.parametrize("kind", sorted(DATE_KINDS))
def test_default_date_kinds_are_current_millis(kind: NativeKind) -> None:
    before = now_millis()
    value = default_value(kind)
    after = now_millis()
    assert isinstance(value, int)
    assert before <= value <= after


def test_default_value_unknown_kind() -> None:
    with pytest.raises(ValueError, match="No default value defined"):
        default_value("Color")
