"""Native value kinds and kind inference."""

from __future__ import annotations

import datetime
from collections.abc import Mapping
from enum import StrEnum
from typing import Any, Final, Self


class KindEnum(StrEnum):
    """String enum whose members carry a docstring.

    Members are declared as ``NAME = "value", "doc"``.
    """

    def __new__(cls, value: str, doc: str = "") -> Self:
        """Create a member and attach its docstring."""
        obj = str.__new__(cls, value)
        obj._value_ = value
        obj.__doc__ = doc
        return obj


class NativeKind(KindEnum):
    OBJECT = "Object", "Mapping of names to values; the only kind a composite node accepts."
    STRING = "String", "Text."
    NUMBER = "Number", "Integer or floating point number (never bool)."
    BOOLEAN = "Boolean", "True or False."
    DATE = "Date", "Calendar date, stored as epoch milliseconds."
    DATETIME = "DateTime", "Point in time, stored as epoch milliseconds."
    TIME = "Time", "Time of day, stored as epoch milliseconds."
    UNKNOWN = "Unknown", "Kind of an absent value. Has no conversions."


DATE_KINDS: Final[frozenset[NativeKind]] = frozenset({NativeKind.DATE, NativeKind.DATETIME, NativeKind.TIME})


class _Missing:
    """Marker for an absent value, distinct from ``None``."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Final = _Missing()


def is_plain_object(value: Any) -> bool:
    return isinstance(value, Mapping)


def infer_kind(value: Any) -> NativeKind:
    """Infer the native kind of a Python value.

    ``bool`` is checked before numbers because it is a subclass of ``int``.
    ``datetime`` values infer as Date; epoch numbers infer as Number.

    Examples:
        >>> infer_kind("x")
        <NativeKind.STRING: 'String'>
        >>> infer_kind(True)
        <NativeKind.BOOLEAN: 'Boolean'>
        >>> infer_kind(MISSING)
        <NativeKind.UNKNOWN: 'Unknown'>

    """
    if value is MISSING or value is None:
        return NativeKind.UNKNOWN
    if isinstance(value, str):
        return NativeKind.STRING
    if isinstance(value, bool):
        return NativeKind.BOOLEAN
    if isinstance(value, int | float):
        return NativeKind.NUMBER
    if isinstance(value, datetime.date):
        return NativeKind.DATE
    if is_plain_object(value):
        return NativeKind.OBJECT
    return NativeKind.UNKNOWN
