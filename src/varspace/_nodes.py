"""Leaf and composite nodes of a variable tree."""

from __future__ import annotations

import copy
import datetime
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar, NamedTuple

from pydantic import BaseModel, ConfigDict

from ._conversion import to_epoch_millis
from ._errors import SchemaConflictError
from ._kinds import DATE_KINDS, MISSING, NativeKind, infer_kind, is_plain_object
from ._reactive import ChangeEvent

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Mapping

    from ._access import AccessController, AssignResult
    from ._path_index import PathIndex
    from ._reactive import Notifier
    from ._registry import Descriptor, TypeRegistry

logger = logging.getLogger(__name__)


@dataclass(eq=False, slots=True, weakref_slot=True)
class LeafNode:
    """Terminal node holding a value and its descriptor."""

    value: Any
    descriptor: Descriptor

    is_leaf: ClassVar[bool] = True

    @property
    def native_kind(self) -> str:
        return self.descriptor.native_kind

    @property
    def kind_name(self) -> str:
        return self.descriptor.kind_name


type Node = LeafNode | CompositeNode


@dataclass(frozen=True, slots=True)
class ChildInfo:
    label: str
    is_leaf: bool


class NodeHandle(NamedTuple):
    """What an append returns: the node, an updater and a disposer."""

    node: Any
    update: Callable[[Any], AssignResult]
    dispose: Callable[[], Any]


class NodeStructure(BaseModel):
    """Introspection record of one node, for designers and variable pickers."""

    key: str
    label: str
    native_kind: str
    writable: bool
    enumerable: bool
    is_leaf: bool
    type_name: str | None = None
    children: list[NodeStructure] | None = None


class _DescriptorOptions(BaseModel):
    model_config = ConfigDict(extra="forbid")

    label: str | None = None
    writable: bool | None = None
    enumerable: bool | None = None
    configurable: bool | None = None
    observable: bool | None = None
    info: str | None = None

    def descriptor_overrides(self) -> dict[str, Any]:
        return self.model_dump(include={"writable", "enumerable", "configurable", "observable", "info"})


class CompositeOptions(_DescriptorOptions):
    """Options accepted by ``append_composite``."""


class LeafOptions(_DescriptorOptions):
    """Options accepted by ``append_leaf``. Either ``native_kind`` or ``value`` is required."""

    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    native_kind: str | None = None
    value: Any = MISSING


def same_value(a: Any, b: Any) -> bool:
    return a is b or (type(a) is type(b) and a == b)


@dataclass(slots=True)
class SpaceRuntime:
    """Collaborators shared by every node of one space."""

    registry: TypeRegistry
    index: PathIndex
    notifier: Notifier
    controller: AccessController
    strict: bool = True

    def notify(self, node: Node, old_value: Any, new_value: Any) -> None:
        path = self.index.path_of(node)
        self.notifier.emit(ChangeEvent(path=str(path) if path is not None else "", old_value=old_value, new_value=new_value))


class CompositeNode:
    """Node owning named children.

    Values for names that have no child are kept in ``background_data``. They
    show up in snapshots but never in the structure, and are never promoted to
    schema nodes.

    Reads and writes by name go through the space's ``AccessController``;
    ``node["name"]`` and ``node["name"] = value`` are shorthands for it.
    """

    is_leaf: ClassVar[bool] = False

    SYSTEM_METHODS: ClassVar[frozenset[str]] = frozenset(
        {
            "append_leaf",
            "append_composite",
            "delete_node",
            "has_node",
            "get_child",
            "get_child_info",
            "iter_children",
            "bulk_set",
            "get_snapshot",
            "get_structure",
            "runtime",
            "native_kind",
        },
    )
    BOOKKEEPING_FIELDS: ClassVar[frozenset[str]] = frozenset({"descriptor", "background_data"})

    def __init__(self, runtime: SpaceRuntime, descriptor: Descriptor | None = None) -> None:
        self._runtime = runtime
        self._children: dict[str, tuple[Node, ChildInfo]] = {}
        self.background_data: dict[str, Any] = {}
        self.descriptor = descriptor or runtime.registry.create_descriptor(NativeKind.OBJECT)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(children={list(self._children)})"

    @property
    def runtime(self) -> SpaceRuntime:
        return self._runtime

    @property
    def native_kind(self) -> str:
        return self.descriptor.native_kind

    # --- controlled access ---

    def __getitem__(self, name: str) -> Any:
        return self._runtime.controller.get_property(self, name)

    def __setitem__(self, name: str, value: Any) -> None:
        self._runtime.controller.set_property(self, name, value)

    def __contains__(self, name: object) -> bool:
        return name in self._children

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._children))

    def __len__(self) -> int:
        return len(self._children)

    # --- children ---

    def get_child(self, name: str) -> Node | None:
        entry = self._children.get(name)
        return entry[0] if entry is not None else None

    def get_child_info(self, name: str) -> ChildInfo | None:
        entry = self._children.get(name)
        return entry[1] if entry is not None else None

    def iter_children(self) -> Iterator[tuple[str, Node]]:
        for name, (node, _) in list(self._children.items()):
            yield name, node

    def has_node(self, name: str) -> bool:
        return name in self._children

    def _updater(self, name: str) -> Callable[[Any], AssignResult]:
        def update(value: Any) -> AssignResult:
            return self._runtime.controller.set_property(self, name, value)

        return update

    def _check_name(self, name: str) -> None:
        if not name or "." in name:
            msg = f"Invalid variable name: {name!r}"
            raise ValueError(msg)
        if name in type(self).SYSTEM_METHODS or name in type(self).BOOKKEEPING_FIELDS:
            msg = f"Variable name {name} is reserved"
            raise SchemaConflictError(msg)

    def append_leaf(self, name: str, **options: Any) -> NodeHandle:
        """Append a leaf node that cannot hold children.

        Args:
            name: Child name.
            **options: Fields of ``LeafOptions``; ``native_kind`` or ``value`` must be given.

        Returns:
            The leaf, an updater going through the access controller, and a disposer.

        Raises:
            SchemaConflictError: If ``name`` is already a composite or is reserved.
            UnknownTypeError: If the kind is not registered.
            ValueError: If neither kind nor value is given.

        """
        opts = LeafOptions(**options)
        existing = self.get_child(name)
        if existing is not None:
            if isinstance(existing, CompositeNode):
                msg = f"Variable {name} already exists as an object node and cannot be overwritten by a leaf node."
                raise SchemaConflictError(msg)
            logger.warning("Variable %s is already registered", name)
            return NodeHandle(existing, self._updater(name), lambda: None)

        self._check_name(name)
        if opts.native_kind is None and opts.value is MISSING:
            msg = f"Variable {name} registration failed, at least native_kind or value must be provided."
            raise ValueError(msg)

        kind = opts.native_kind or infer_kind(opts.value)
        definition = self._runtime.registry.require_type(kind)
        overrides = opts.descriptor_overrides()
        if overrides["observable"] is None and self.descriptor.observable:
            overrides["observable"] = True
        descriptor = self._runtime.registry.create_descriptor(kind).merged(overrides)
        value = definition.default_value if opts.value is MISSING else opts.value
        if descriptor.native_kind in DATE_KINDS and isinstance(value, datetime.date):
            value = to_epoch_millis(value)

        leaf = LeafNode(value=value, descriptor=descriptor)
        self._children[name] = (leaf, ChildInfo(label=opts.label or name, is_leaf=True))
        self._runtime.index.register(leaf, self, name)
        return NodeHandle(leaf, self._updater(name), lambda: self.delete_node(name))

    def append_composite(self, name: str, **options: Any) -> NodeHandle:
        """Append a composite node that holds its own children.

        Raises:
            SchemaConflictError: If ``name`` is already a leaf or is reserved.

        """
        opts = CompositeOptions(**options)
        existing = self.get_child(name)
        if existing is not None:
            if not isinstance(existing, CompositeNode):
                msg = f"Variable {name} already exists as a leaf node and cannot be overwritten by an object node."
                raise SchemaConflictError(msg)
            logger.warning("Variable %s is already registered", name)
            return NodeHandle(existing, self._updater(name), lambda: self.delete_node(name))

        self._check_name(name)
        overrides = opts.descriptor_overrides()
        if overrides["observable"] is None and self.descriptor.observable:
            overrides["observable"] = True
        descriptor = self._runtime.registry.create_descriptor(NativeKind.OBJECT).merged(overrides)

        composite = CompositeNode(self._runtime, descriptor)
        self._children[name] = (composite, ChildInfo(label=opts.label or name, is_leaf=False))
        self._runtime.index.register(composite, self, name)
        return NodeHandle(composite, self._updater(name), lambda: self.delete_node(name))

    def delete_node(self, name: str) -> bool:
        """Remove a child with its whole subtree. Values in ``background_data`` are kept."""
        entry = self._children.pop(name, None)
        if entry is None:
            return False
        removed = self._runtime.index.unregister(entry[0])
        logger.debug("Deleted %s (%d indexed node(s))", name, removed)
        return True

    # --- data ---

    def bulk_set(self, data: Mapping[str, Any]) -> None:
        """Set many values at once, bypassing writability and conversion.

        Keys without a child node go to ``background_data``.
        """
        if not is_plain_object(data):
            logger.warning("bulk_set only accepts mappings, got %s", type(data).__name__)
            return

        with self._runtime.notifier.transaction():
            for name, value in data.items():
                node = self.get_child(name)
                if node is None:
                    self.background_data[name] = value
                elif isinstance(node, CompositeNode):
                    if is_plain_object(value):
                        node.bulk_set(value)
                    else:
                        logger.warning("Property %s is of type object, but the provided value is not a mapping", name)
                elif not same_value(node.value, value):
                    old_value = node.value
                    node.value = value
                    self._runtime.notify(node, old_value, value)

    def get_snapshot(self) -> dict[str, Any]:
        """Plain dict of current values, with background data merged in at every level.

        Schema values win over background entries of the same name.
        """
        data: dict[str, Any] = copy.deepcopy(self.background_data)
        for name, node in self.iter_children():
            if isinstance(node, CompositeNode):
                data[name] = node.get_snapshot()
            else:
                data[name] = copy.deepcopy(node.value)
        return data

    def get_structure(self) -> list[NodeStructure]:
        """Name-sorted structure of the children. Background data is not included."""
        result: list[NodeStructure] = []
        for name, (node, info) in self._children.items():
            result.append(
                NodeStructure(
                    key=name,
                    label=info.label or name,
                    native_kind=node.descriptor.native_kind,
                    type_name=node.descriptor.type_name,
                    writable=node.descriptor.writable is not False,
                    enumerable=node.descriptor.enumerable is not False,
                    is_leaf=info.is_leaf,
                    children=node.get_structure() if isinstance(node, CompositeNode) else None,
                ),
            )
        return sorted(result, key=lambda s: s.key)
