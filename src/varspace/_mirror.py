"""Observable mirror of a space's values.

The mirror (``data_host``) is a tree of ``MirrorDict`` objects shaped like
the schema. It is what expression evaluators and UI bindings read. The tree
itself does not depend on it: the mirror is brought up to date by
``sync_from_structure`` and by path writes, and notifies its own subscribers.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ._kinds import MISSING
from ._nodes import CompositeNode, same_value
from ._reactive import ChangeEvent, Notifier

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Mapping

    from ._nodes import Node
    from ._reactive import Listener, Transaction

logger = logging.getLogger(__name__)


class MirrorDict(dict[str, Any]):
    """A dict that reports item changes to the subscribers of its notifier.

    Observation is either deep (every key, inherited by nested mirrors created
    below) or limited to keys registered with ``observe_key``.
    """

    def __init__(self, notifier: Notifier, path: str, *, deep: bool = False) -> None:
        super().__init__()
        self._notifier = notifier
        self._path = path
        self._deep = deep
        self._observed: set[str] = set()

    @property
    def path(self) -> str:
        return self._path

    @property
    def deep(self) -> bool:
        return self._deep

    def make_deep(self) -> None:
        self._deep = True
        for value in self.values():
            if isinstance(value, MirrorDict):
                value.make_deep()

    def observe_key(self, key: str) -> None:
        self._observed.add(key)

    def is_observed(self, key: str) -> bool:
        return self._deep or key in self._observed

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self._notifier.subscribe(listener)

    def transaction(self) -> Iterator[Transaction]:
        return self._notifier.transaction()

    def child_path(self, key: str) -> str:
        return f"{self._path}.{key}" if self._path else key

    def nested(self, key: str) -> MirrorDict:
        """Return the nested mirror at ``key``, creating it when missing or not a mirror."""
        current = self.get(key)
        if isinstance(current, MirrorDict):
            return current
        nested = MirrorDict(self._notifier, self.child_path(key), deep=self._deep)
        self[key] = nested
        return nested

    def to_plain(self) -> dict[str, Any]:
        return {key: value.to_plain() if isinstance(value, MirrorDict) else value for key, value in self.items()}

    def __setitem__(self, key: str, value: Any) -> None:
        old_value = self.get(key, MISSING)
        super().__setitem__(key, value)
        if self.is_observed(key) and not same_value(old_value, value):
            self._notifier.emit(ChangeEvent(path=self.child_path(key), old_value=old_value, new_value=value))

    def __delitem__(self, key: str) -> None:
        old_value = self[key]
        super().__delitem__(key)
        if self.is_observed(key):
            self._notifier.emit(ChangeEvent(path=self.child_path(key), old_value=old_value, new_value=MISSING))

    def update(self, other: Mapping[str, Any] = (), /, **kwargs: Any) -> None:  # type: ignore[override]
        for key, value in dict(other, **kwargs).items():
            self[key] = value

    def setdefault(self, key: str, default: Any = None, /) -> Any:
        if key not in self:
            self[key] = default
        return self[key]

    def pop(self, key: str, *args: Any) -> Any:
        if key not in self:
            if args:
                return args[0]
            raise KeyError(key)
        value = self[key]
        del self[key]
        return value


class MirrorSynchronizer:
    """Build the mirror and keep it isomorphic to a tree of nodes."""

    def __init__(self, notifier: Notifier | None = None) -> None:
        self._notifier = notifier or Notifier()
        self._host: MirrorDict | None = None

    @property
    def host(self) -> MirrorDict:
        if self._host is None:
            msg = "Mirror host has not been built"
            raise RuntimeError(msg)
        return self._host

    def build_host(self, root_path: str, *, observable: bool = False) -> MirrorDict:
        """Create the empty root mirror. Can only happen once."""
        if self._host is not None:
            msg = "Mirror host is already built and cannot be replaced"
            raise RuntimeError(msg)
        self._host = MirrorDict(self._notifier, root_path, deep=observable)
        return self._host

    def sync_from_structure(self, root: CompositeNode) -> None:
        """Reconcile the whole mirror with ``root`` in one transaction."""
        with self._notifier.transaction():
            self._sync_level(root, self.host)
        logger.debug("Synchronized mirror %s", self.host.path)

    def write(self, parts: tuple[str, ...], node: Node) -> None:
        """Project ``node`` into the mirror at ``parts``, creating intermediate mirrors as needed."""
        with self._notifier.transaction():
            mirror = self.host
            for part in parts[:-1]:
                mirror = mirror.nested(part)
            name = parts[-1]
            if isinstance(node, CompositeNode):
                nested = mirror.nested(name)
                if node.descriptor.observable and not nested.deep:
                    nested.make_deep()
                self._sync_level(node, nested)
            else:
                if node.descriptor.observable:
                    mirror.observe_key(name)
                mirror[name] = node.value

    def _sync_level(self, node: CompositeNode, mirror: MirrorDict) -> None:
        for name, child in node.iter_children():
            if isinstance(child, CompositeNode):
                nested = mirror.nested(name)
                if child.descriptor.observable and not nested.deep:
                    nested.make_deep()
                self._sync_level(child, nested)
            else:
                if child.descriptor.observable:
                    mirror.observe_key(name)
                if name not in mirror or not same_value(mirror[name], child.value):
                    mirror[name] = child.value

        for name in [key for key in mirror if not node.has_node(key)]:
            value = mirror[name]
            node.background_data[name] = value.to_plain() if isinstance(value, MirrorDict) else value
            del mirror[name]
            logger.debug("Demoted mirror key %s to background data", mirror.child_path(name))
