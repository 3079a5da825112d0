"""The space: composite root of one schema and data tree, and its reactive mirror."""

from __future__ import annotations

import asyncio
import logging
from enum import StrEnum
from typing import TYPE_CHECKING, Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, ValidationInfo, field_validator

from ._access import AccessController, AssignResult
from ._config import VarSpaceConfig, get_config
from ._errors import PathError
from ._kinds import NativeKind, is_plain_object
from ._mirror import MirrorSynchronizer
from ._nodes import CompositeNode, NodeStructure, SpaceRuntime
from ._path import VarPath
from ._path_index import PathIndex
from ._reactive import Notifier
from ._registry import Descriptor, TypeRegistry, default_registry

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from ._mirror import MirrorDict
    from ._nodes import Node
    from ._reactive import Listener

logger = logging.getLogger(__name__)

type Scheduler = Callable[[Callable[[], None]], Any]


def default_scheduler(callback: Callable[[], None]) -> asyncio.Handle | None:
    """Run ``callback`` soon on the running event loop.

    Without a running loop nothing is scheduled and the callback is left to
    whoever flushes the space.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return None
    return loop.call_soon(callback)


class SpaceLevel(StrEnum):
    APP = "app"
    PAGE = "page"
    LOCAL = "local"


class SpaceOptions(BaseModel):
    """Constructor options of a space.

    ``key`` and ``alias`` are checked against the sigil passed in the
    validation context (``"$"`` when none is given).
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    key: str
    alias: str | None = None
    label: str | None = None
    level: SpaceLevel = SpaceLevel.LOCAL
    observable: bool = False
    enumerable: bool | None = None
    writable: bool | None = None
    strict: bool | None = None

    @field_validator("key", "alias")
    @classmethod
    def _check_sigil(cls, value: str | None, info: ValidationInfo) -> str | None:
        if value is None:
            return value
        sigil = (info.context or {}).get("sigil", "$")
        if not value.startswith(sigil) or value == sigil:
            msg = f'{info.field_name.capitalize()} must start with "{sigil}": {value}'
            raise ValueError(msg)
        if VarPath.SEPARATOR in value:
            msg = f"{info.field_name.capitalize()} must not contain {VarPath.SEPARATOR!r}: {value}"
            raise ValueError(msg)
        return value


class NodeInfo(BaseModel):
    """Detached description of one node. Changing it does not affect the space."""

    type: Literal["Object", "Leaf"]
    descriptor: Descriptor
    value: Any = None
    children: list[NodeStructure] | None = None


class Space(CompositeNode):
    """Root composite addressed by a sigil-prefixed key, owning the ``data_host`` mirror.

    Examples:
        >>> space = Space("$form")
        >>> _ = space.append_leaf("count", native_kind="Number")
        >>> space.set_value_by_path("count", "42").value
        42
        >>> space.data_host
        {'count': 42}

    """

    SYSTEM_METHODS: ClassVar[frozenset[str]] = CompositeNode.SYSTEM_METHODS | {
        "data_host",
        "flush",
        "sync_pending",
        "sync_from_structure",
        "get_node_by_path",
        "set_value_by_path",
        "get_node_info",
        "get_space_structure",
        "get_reactive_view",
        "subscribe",
        "strict",
        "registry",
        "path_index",
        "key",
        "alias",
    }
    BOOKKEEPING_FIELDS: ClassVar[frozenset[str]] = CompositeNode.BOOKKEEPING_FIELDS | {"label", "level"}

    def __init__(  # noqa: PLR0913
        self,
        key: str,
        *,
        alias: str | None = None,
        label: str | None = None,
        level: SpaceLevel | str = SpaceLevel.LOCAL,
        observable: bool = False,
        enumerable: bool | None = None,
        writable: bool | None = None,
        strict: bool | None = None,
        registry: TypeRegistry | None = None,
        config: VarSpaceConfig | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        if config is None:
            config = get_config()
        options = SpaceOptions.model_validate(
            {
                "key": key,
                "alias": alias,
                "label": label,
                "level": level,
                "observable": observable,
                "enumerable": enumerable,
                "writable": writable,
                "strict": strict,
            },
            context={"sigil": config.sigil},
        )
        registry = registry or default_registry()
        runtime = SpaceRuntime(
            registry=registry,
            index=PathIndex(),
            notifier=Notifier(),
            controller=AccessController(),
            strict=config.strict if options.strict is None else options.strict,
        )
        descriptor = registry.create_descriptor(NativeKind.OBJECT).merged(
            {"observable": options.observable, "enumerable": options.enumerable, "writable": options.writable},
        )
        super().__init__(runtime, descriptor)

        self._key = options.key
        self._alias = options.alias
        self.label = options.label or options.key
        self.level = options.level
        runtime.index.register_root(self)

        self._mirror = MirrorSynchronizer(Notifier())
        self._mirror.build_host(self.key, observable=descriptor.observable)
        self._sync_pending = True
        (scheduler or default_scheduler)(self.flush)

    def __repr__(self) -> str:
        return f"Space(key={self.key!r}, alias={self.alias!r}, children={list(self)})"

    @property
    def key(self) -> str:
        """Root segment of every path in this space. Fixed for the lifetime of the space."""
        return self._key

    @property
    def alias(self) -> str | None:
        return self._alias

    @property
    def strict(self) -> bool:
        return self.runtime.strict

    @property
    def registry(self) -> TypeRegistry:
        return self.runtime.registry

    @property
    def path_index(self) -> PathIndex:
        return self.runtime.index

    # --- mirror ---

    @property
    def data_host(self) -> MirrorDict:
        """The mirror of this space's values. Runs the initial sync if it is still pending."""
        self.flush()
        return self._mirror.host

    @property
    def sync_pending(self) -> bool:
        return self._sync_pending

    def flush(self) -> None:
        """Run the deferred initial mirror sync now, if it has not run yet."""
        if self._sync_pending:
            self.sync_from_structure()

    def sync_from_structure(self) -> None:
        self._sync_pending = False
        self._mirror.sync_from_structure(self)

    def get_reactive_view(self) -> dict[str, MirrorDict]:
        """Mirror keyed by the space key and, if set, its alias. For expression evaluators."""
        host = self.data_host
        view = {self.key: host}
        if self.alias:
            view[self.alias] = host
        return view

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Listen to value changes of the tree. Mirror changes are delivered by ``data_host.subscribe``."""
        return self.runtime.notifier.subscribe(listener)

    def bulk_set(self, data: Mapping[str, Any]) -> None:
        """Set many values at once; once the mirror is built it is re-synchronized afterwards."""
        super().bulk_set(data)
        if not self._sync_pending and is_plain_object(data):
            self._mirror.sync_from_structure(self)

    # --- paths ---

    def _relative_parts(self, path: VarPath | str, *, anchored: bool) -> tuple[str, ...] | None:
        var_path = path if isinstance(path, VarPath) else VarPath.parse(path)
        if var_path.root in (self.key, self.alias):
            return var_path.parts
        if anchored:
            logger.warning("%s cannot be found in this space (%s)", var_path.root, self.key)
            return None
        return var_path.segments

    def _walk(self, parts: tuple[str, ...]) -> Node | None:
        current: Node = self
        for i, part in enumerate(parts):
            if not isinstance(current, CompositeNode):
                logger.warning("Path %s is not an object node", VarPath.SEPARATOR.join(parts[:i]))
                return None
            child = current.get_child(part)
            if child is None:
                logger.warning("Path %s not found in %s", VarPath.SEPARATOR.join(parts[: i + 1]), self.key)
                return None
            current = child
        return current

    def get_node_by_path(self, path: VarPath | str, *, anchored: bool = False) -> Node | None:
        """Find a node by dotted path.

        Args:
            path: Dotted path. A first segment equal to the key or alias is skipped.
            anchored: Require the first segment to be the key or alias.

        Returns:
            The node, or None when the path does not lead to one.

        Raises:
            PathError: If the path is malformed.

        """
        parts = self._relative_parts(path, anchored=anchored)
        if parts is None:
            return None
        return self._walk(parts)

    def set_value_by_path(self, path: VarPath | str, value: Any, *, anchored: bool = False) -> AssignResult:
        """Assign through the access controller on the parent, then mirror the accepted value.

        The mirror is only touched when the assignment succeeds, and all mirror
        changes of one call are delivered as a single batch.
        """
        parts = self._relative_parts(path, anchored=anchored)
        parent = self._walk(parts[:-1]) if parts else None
        if not parts or not isinstance(parent, CompositeNode) or not parent.has_node(parts[-1]):
            error = PathError(f"Path {path} does not address a node of {self.key}")
            logger.warning("Rejected assignment to %s: %s", path, error)
            return AssignResult(success=False, error=error)

        name = parts[-1]
        result = self.runtime.controller.set_property(parent, name, value)
        if result.success:
            node = parent.get_child(name)
            assert node is not None
            with self._mirror.host.transaction():
                self.flush()
                self._mirror.write(parts, node)
        return result

    # --- introspection ---

    def get_node_info(self, path: VarPath | str, *, anchored: bool = False) -> NodeInfo | None:
        node = self.get_node_by_path(path, anchored=anchored)
        if node is None:
            return None
        if isinstance(node, CompositeNode):
            return NodeInfo(type="Object", descriptor=node.descriptor.model_copy(), children=node.get_structure())
        return NodeInfo(type="Leaf", descriptor=node.descriptor.model_copy(), value=node.value)

    def get_space_structure(self) -> NodeStructure:
        """Structure of the whole space, with the space itself as root."""
        return NodeStructure(
            key=self.key,
            label=self.label or self.key,
            native_kind=NativeKind.OBJECT,
            writable=self.descriptor.writable is not False,
            enumerable=self.descriptor.enumerable is not False,
            is_leaf=False,
            children=self.get_structure(),
        )
