"""Conversion rules and the validate-and-convert step.

A conversion rule is a function ``(value) -> ConversionResult`` registered for
a directional ``(target kind, source kind)`` pair. The native rule table below
is installed into every new ``TypeRegistry``; pairs that are not listed have no
rule and are rejected in strict mode.
"""

from __future__ import annotations

import datetime
import logging
import math
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final

from ._errors import (
    ConversionFailedError,
    MissingValueError,
    NotWritableError,
    TypeMismatchError,
    UnsupportedConversionError,
    VarSpaceError,
)
from ._kinds import DATE_KINDS, MISSING, NativeKind, infer_kind

if TYPE_CHECKING:
    from collections.abc import Callable

    from ._registry import Descriptor, TypeRegistry

logger = logging.getLogger(__name__)

_EPOCH: Final = datetime.datetime(1970, 1, 1, tzinfo=datetime.UTC)
_NUMBER_TEXT: Final = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII)


@dataclass(frozen=True, slots=True)
class ConversionResult:
    """Outcome of a single conversion rule."""

    success: bool
    converted_value: Any = None
    error: str | None = None

    @classmethod
    def ok(cls, value: Any) -> ConversionResult:
        return cls(success=True, converted_value=value)

    @classmethod
    def fail(cls, error: str) -> ConversionResult:
        return cls(success=False, error=error)


type ConversionFn = Callable[[Any], ConversionResult]


# --- helpers ---------------------------------------------------------------


def _as_utc_datetime(value: datetime.date) -> datetime.datetime:
    if not isinstance(value, datetime.datetime):
        value = datetime.datetime(value.year, value.month, value.day)
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.UTC)
    return value.astimezone(datetime.UTC)


def to_epoch_millis(value: datetime.date) -> int:
    """Convert a date or datetime to epoch milliseconds. Naive values are UTC."""
    delta = _as_utc_datetime(value) - _EPOCH
    return (delta.days * 86_400 + delta.seconds) * 1000 + delta.microseconds // 1000


def from_epoch_millis(millis: float) -> datetime.datetime:
    return _EPOCH + datetime.timedelta(milliseconds=millis)


def to_iso_text(value: datetime.date) -> str:
    """Format as ISO-8601 UTC with millisecond precision, e.g. ``2024-01-01T12:30:00.000Z``."""
    return _as_utc_datetime(value).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _number_text(value: float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _parse_number(text: str) -> int | float | None:
    """Parse an ASCII decimal literal. Digit separators, other scripts and inf/nan are rejected."""
    if _NUMBER_TEXT.fullmatch(text) is None:
        return None
    try:
        return int(text)
    except ValueError:
        pass
    number = float(text)
    if not math.isfinite(number):
        return None
    return number


# --- native rules ----------------------------------------------------------


def _string_from_number(value: Any) -> ConversionResult:
    return ConversionResult.ok(_number_text(value))


def _string_from_boolean(value: Any) -> ConversionResult:
    return ConversionResult.ok("true" if value else "false")


def _string_from_date(value: Any) -> ConversionResult:
    try:
        return ConversionResult.ok(to_iso_text(value))
    except OverflowError:
        return ConversionResult.fail(f"Date {value} is out of range")


def _number_from_string(value: Any) -> ConversionResult:
    text = str(value).strip()
    if text == "":
        return ConversionResult.fail("Cannot convert empty string to Number")
    number = _parse_number(text)
    if number is None:
        return ConversionResult.fail(f'Cannot convert string "{value}" to a valid Number')
    return ConversionResult.ok(number)


def _number_from_boolean(value: Any) -> ConversionResult:
    return ConversionResult.ok(1 if value else 0)


def _number_from_date(value: Any) -> ConversionResult:
    try:
        return ConversionResult.ok(to_epoch_millis(value))
    except OverflowError:
        return ConversionResult.fail(f"Date {value} is out of range")


def _boolean_from_number(value: Any) -> ConversionResult:
    return ConversionResult.ok(value != 0)


def _boolean_from_string(value: Any) -> ConversionResult:
    lowered = str(value).strip().casefold()
    if lowered == "true":
        return ConversionResult.ok(True)
    if lowered == "false":
        return ConversionResult.ok(False)
    return ConversionResult.fail(f"Cannot convert string \"{value}\" to Boolean (expects 'true' or 'false')")


def _date_rules(kind: NativeKind) -> dict[NativeKind, ConversionFn]:
    def from_number(value: Any) -> ConversionResult:
        try:
            if not math.isfinite(value):
                return ConversionResult.fail(f"Cannot convert number {value} to a valid {kind}")
            from_epoch_millis(value)
        except OverflowError:
            return ConversionResult.fail(f"Cannot convert number {value} to a valid {kind}")
        return ConversionResult.ok(value)

    def from_string(value: Any) -> ConversionResult:
        text = str(value).strip()
        if text == "":
            return ConversionResult.fail(f"Cannot convert empty string to {kind}")
        try:
            return ConversionResult.ok(to_epoch_millis(datetime.datetime.fromisoformat(text)))
        except (ValueError, OverflowError):
            return ConversionResult.fail(f'Cannot convert string "{value}" to a valid {kind}')

    def from_date(value: Any) -> ConversionResult:
        try:
            return ConversionResult.ok(to_epoch_millis(value))
        except OverflowError:
            return ConversionResult.fail(f"Cannot convert {value} to a valid {kind}")

    return {NativeKind.NUMBER: from_number, NativeKind.STRING: from_string, NativeKind.DATE: from_date}


NATIVE_RULES: Final[dict[NativeKind, dict[NativeKind, ConversionFn]]] = {
    NativeKind.STRING: {
        NativeKind.NUMBER: _string_from_number,
        NativeKind.BOOLEAN: _string_from_boolean,
        NativeKind.DATE: _string_from_date,
    },
    NativeKind.NUMBER: {
        NativeKind.BOOLEAN: _number_from_boolean,
        NativeKind.DATE: _number_from_date,
        NativeKind.STRING: _number_from_string,
    },
    NativeKind.BOOLEAN: {
        NativeKind.NUMBER: _boolean_from_number,
        NativeKind.STRING: _boolean_from_string,
    },
    NativeKind.OBJECT: {
        NativeKind.OBJECT: ConversionResult.ok,
    },
    **{kind: _date_rules(kind) for kind in DATE_KINDS},
}


# --- validate and convert --------------------------------------------------


@dataclass(frozen=True, slots=True)
class ConversionOutcome:
    success: bool
    final_value: Any = None
    error: VarSpaceError | None = None


def _rejected(error: VarSpaceError) -> ConversionOutcome:
    return ConversionOutcome(success=False, error=error)


def validate_and_convert(  # noqa: PLR0911, PLR0913
    descriptor: Descriptor,
    incoming: Any,
    target_kind: str,
    registry: TypeRegistry,
    *,
    strict: bool = True,
    is_leaf: bool = True,
    name: str = "",
) -> ConversionOutcome:
    """Check an incoming value against a target node and convert it if a rule allows.

    Values whose kind equals the target kind or the descriptor's native kind
    are kept as they are, except ``datetime`` values, which always go through
    their rule so that date kinds hold epoch milliseconds. Rules are looked up
    for ``target_kind`` first and then for the native kind.

    Args:
        descriptor: Descriptor of the target node.
        incoming: The value being assigned.
        target_kind: Kind name of the target node (native or custom).
        registry: Registry holding the conversion rules.
        strict: Reject pairs without a rule instead of passing them through.
        is_leaf: Whether the target is a leaf (False for composites).
        name: Name of the target, used in error messages.

    Returns:
        A ConversionOutcome holding either the final value or the error.

    """
    label = name or "value"
    if descriptor.writable is False:
        return _rejected(NotWritableError(f"Property {label} is not writable"))

    incoming_kind = infer_kind(incoming)
    if not is_leaf:
        if incoming_kind is not NativeKind.OBJECT:
            return _rejected(
                TypeMismatchError(f"Cannot assign non-object kind {incoming_kind} to object property {label}"),
            )
        return ConversionOutcome(success=True, final_value=incoming)

    if incoming is MISSING or incoming is None:
        if strict:
            return _rejected(MissingValueError(f"Property {label} ({target_kind}) does not accept an absent value"))
        return ConversionOutcome(success=True, final_value=incoming)

    native_kind = descriptor.native_kind
    own_kind = incoming_kind in (target_kind, native_kind)
    if own_kind and incoming_kind is not NativeKind.DATE:
        return ConversionOutcome(success=True, final_value=incoming)

    rule = registry.get_conversion_rule(target_kind, incoming_kind)
    if rule is None and native_kind != target_kind:
        rule = registry.get_conversion_rule(native_kind, incoming_kind)
    if rule is None:
        if own_kind:
            return ConversionOutcome(success=True, final_value=incoming)
        incoming_name = incoming_kind if incoming_kind is not NativeKind.UNKNOWN else type(incoming).__name__
        if strict:
            return _rejected(
                UnsupportedConversionError(
                    f"Property {label} ({target_kind}) does not accept value of kind {incoming_name}",
                ),
            )
        logger.warning(
            "Property %s kind mismatch (non-strict), target: %s, incoming: %s",
            label,
            target_kind,
            incoming_name,
        )
        return ConversionOutcome(success=True, final_value=incoming)

    result = rule(incoming)
    if not result.success:
        return _rejected(
            ConversionFailedError(result.error or f"Type conversion failed: {label} ({target_kind}) <- {incoming_kind}"),
        )
    return ConversionOutcome(success=True, final_value=result.converted_value)
