"""Non-owning side table from node identity to its location in a space.

Nodes never point at their parent. Whenever a node's path or parent is
needed, it is looked up here instead. Entries are keyed weakly and hold only
weak references, so the index never keeps a node, its parent or its space
alive.
"""

from __future__ import annotations

import logging
import weakref
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ._path import VarPath

if TYPE_CHECKING:
    from collections.abc import Iterator

    from ._nodes import CompositeNode, Node
    from ._space import Space

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PathEntry:
    """Location of one node.

    Attributes:
        path: Anchored path of the node, rooted at the space key.
        space_ref: Weak reference to the owning space.
        parent_ref: Weak reference to the parent composite, None for the space itself.

    """

    path: VarPath
    space_ref: weakref.ref[Space]
    parent_ref: weakref.ref[CompositeNode] | None = None

    @property
    def space(self) -> Space | None:
        return self.space_ref()

    @property
    def parent(self) -> CompositeNode | None:
        if self.parent_ref is None:
            return None
        return self.parent_ref()


class PathIndex:
    """Weak mapping of node → PathEntry for one or more spaces."""

    def __init__(self) -> None:
        self._entries: weakref.WeakKeyDictionary[Node, PathEntry] = weakref.WeakKeyDictionary()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, node: object) -> bool:
        try:
            return node in self._entries
        except TypeError:
            return False

    def register_root(self, space: Space) -> PathEntry:
        entry = PathEntry(path=VarPath(root=space.key), space_ref=weakref.ref(space))
        self._entries[space] = entry
        return entry

    def register(self, node: Node, parent: CompositeNode, name: str) -> PathEntry:
        """Record ``node`` as the child ``name`` of ``parent``.

        The child path is the parent's recorded path extended by ``name``.
        """
        parent_entry = self._entries.get(parent)
        if parent_entry is None:
            msg = f"Parent of {name!r} is not registered in the path index"
            raise KeyError(msg)
        entry = PathEntry(
            path=parent_entry.path.child(name),
            space_ref=parent_entry.space_ref,
            parent_ref=weakref.ref(parent),
        )
        self._entries[node] = entry
        logger.debug("Indexed %s", entry.path)
        return entry

    def unregister(self, node: Node) -> int:
        """Remove ``node`` and its whole subtree. Returns the number of entries removed."""
        from ._nodes import CompositeNode  # noqa: PLC0415

        removed = 0
        stack: list[Node] = [node]
        while stack:
            current = stack.pop()
            if self._entries.pop(current, None) is not None:
                removed += 1
            if isinstance(current, CompositeNode):
                stack.extend(child for _, child in current.iter_children())
        return removed

    def get(self, node: Node) -> PathEntry | None:
        return self._entries.get(node)

    def path_of(self, node: Node) -> VarPath | None:
        entry = self._entries.get(node)
        return entry.path if entry is not None else None

    def parent_of(self, node: Node) -> CompositeNode | None:
        entry = self._entries.get(node)
        return entry.parent if entry is not None else None

    def space_of(self, node: Node) -> Space | None:
        entry = self._entries.get(node)
        return entry.space if entry is not None else None

    def resolve(self, path: VarPath | str) -> Node | None:
        """Find the live node recorded under ``path``, or None."""
        if isinstance(path, str):
            path = VarPath.parse(path)
        for node, entry in self.items():
            if entry.path == path:
                return node
        return None

    def items(self) -> Iterator[tuple[Node, PathEntry]]:
        yield from list(self._entries.items())
