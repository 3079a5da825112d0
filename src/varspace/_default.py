"""Implement `default_value` to get the default value of a native kind.

The default value of a kind is determined as follows:
1. Object, String, Number and Boolean use fixed empty values.
2. Date, DateTime and Time use the current time in epoch milliseconds,
   evaluated on every call.
3. Unknown has no meaningful default and yields ``None``.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Final

from ._kinds import NativeKind

if TYPE_CHECKING:
    from collections.abc import Callable


def now_millis() -> int:
    return time.time_ns() // 1_000_000


DEFAULT_IMPL: Final[dict[NativeKind, Callable[[], Any]]] = {
    NativeKind.OBJECT: dict,
    NativeKind.STRING: lambda: "",
    NativeKind.NUMBER: lambda: 0,
    NativeKind.BOOLEAN: lambda: False,
    NativeKind.DATE: now_millis,
    NativeKind.DATETIME: now_millis,
    NativeKind.TIME: now_millis,
    NativeKind.UNKNOWN: lambda: None,
}


def default_value(kind: NativeKind | str) -> Any:
    try:
        impl = DEFAULT_IMPL[NativeKind(kind)]
    except ValueError:
        msg = f"No default value defined for kind {kind!r}"
        raise ValueError(msg) from None
    return impl()
