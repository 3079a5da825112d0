"""Change notification with transactional batching.

A ``Notifier`` keeps a list of listeners. Changes emitted inside a
``transaction()`` are buffered and delivered as one batch when the outermost
transaction of that notifier exits, so listeners never observe a partially
applied update. Changes are not rolled back when the block raises.

The innermost open transaction of any notifier is ``Transaction.current()``.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from scoped_context import ScopedContext

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """One value change at a dotted path."""

    path: str
    old_value: Any
    new_value: Any


type Listener = Callable[[list[ChangeEvent]], None]


@dataclass(slots=True)
class Transaction(ScopedContext):
    """Events buffered for one notifier while its outermost transaction is open."""

    notifier: Notifier
    events: list[ChangeEvent] = field(default_factory=list)


class Notifier:
    def __init__(self) -> None:
        self._listeners: list[Listener] = []
        self._batch: Transaction | None = None

    @property
    def has_listeners(self) -> bool:
        return bool(self._listeners)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Add ``listener`` and return a function that removes it again."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: ChangeEvent) -> None:
        if self._batch is not None:
            self._batch.events.append(event)
        else:
            self._dispatch([event])

    @contextmanager
    def transaction(self) -> Iterator[Transaction]:
        """Batch every event emitted in the block into a single delivery.

        Nested transactions on the same notifier join the outer one, also
        when transactions of other notifiers are opened in between.
        """
        if self._batch is not None:
            yield self._batch
            return

        batch = self._batch = Transaction(notifier=self)
        try:
            with batch:
                yield batch
        finally:
            self._batch = None
            if batch.events:
                self._dispatch(batch.events)

    def _dispatch(self, events: list[ChangeEvent]) -> None:
        logger.debug("Dispatching %d change(s) to %d listener(s)", len(events), len(self._listeners))
        for listener in list(self._listeners):
            listener(list(events))
