"""Dotted paths addressing nodes inside a space, e.g. ``$app.user.name``."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Self

from ._errors import PathError


@dataclass(slots=True, frozen=True)
class VarPath:
    """A path made of a root segment followed by child names.

    The root is the space key (or alias) for anchored paths, or the first
    child name for paths relative to a space.
    """

    root: str
    parts: tuple[str, ...] = ()

    SEPARATOR: ClassVar[str] = "."

    def __str__(self) -> str:
        return self.SEPARATOR.join((self.root, *self.parts))

    @classmethod
    def parse(cls, path_str: str) -> Self:
        s = path_str.strip()
        if not s:
            msg = "Path must not be empty"
            raise PathError(msg)
        root, *parts = s.split(cls.SEPARATOR)
        for i, part in enumerate((root, *parts)):
            if not part:
                msg = f"Empty segment at position {i} in path: {path_str!r}"
                raise PathError(msg)
        return cls(root=root, parts=tuple(parts))

    @property
    def segments(self) -> tuple[str, ...]:
        return (self.root, *self.parts)

    @property
    def name(self) -> str:
        """The last segment."""
        return self.parts[-1] if self.parts else self.root

    @property
    def parent(self) -> VarPath | None:
        if not self.parts:
            return None
        return VarPath(root=self.root, parts=self.parts[:-1])

    def child(self, name: str) -> VarPath:
        return VarPath(root=self.root, parts=(*self.parts, name))

    def is_relative_to(self, other: VarPath) -> bool:
        """Check whether ``other`` is this path or one of its ancestors."""
        return self.root == other.root and self.parts[: len(other.parts)] == other.parts
