"""Type registry: native and custom kinds, descriptors and conversion rules."""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict

from ._conversion import NATIVE_RULES, ConversionFn
from ._default import default_value
from ._errors import DuplicateTypeError, UnknownTypeError
from ._kinds import MISSING, NativeKind

if TYPE_CHECKING:
    from collections.abc import Callable

    from ._nodes import LeafNode

logger = logging.getLogger(__name__)


class Descriptor(BaseModel):
    """Per-node metadata controlling writability, enumerability and reactivity.

    ``native_kind`` is always one of the built-in kinds. Nodes of a registered
    non-native type keep that type's name in ``type_name``; its conversion
    rules are looked up under that name.
    """

    model_config = ConfigDict(validate_assignment=True)

    native_kind: NativeKind
    type_name: str | None = None
    writable: bool = True
    enumerable: bool = True
    configurable: bool = True
    observable: bool = False
    info: str | None = None

    def merged(self, overrides: Mapping[str, Any] | Descriptor | None) -> Descriptor:
        """Return a copy with the given fields replaced. ``None`` values are ignored."""
        if overrides is None:
            return self.model_copy()
        if isinstance(overrides, Descriptor):
            overrides = overrides.model_dump(exclude_unset=True)
        updates = {key: value for key, value in overrides.items() if value is not None}
        return Descriptor.model_validate({**self.model_dump(), **updates})

    @property
    def kind_name(self) -> str:
        """Name the node's conversion rules are registered under."""
        return self.type_name or self.native_kind


@dataclass(slots=True)
class TypeDefinition:
    """A registered kind: how to make a default value and how to accept other kinds."""

    name: str
    default_factory: Callable[[], Any]
    default_descriptor: Descriptor
    default_label: str | None = None
    to_string: Callable[[Any], str] | None = None
    _rules: dict[str, ConversionFn] = field(default_factory=dict, repr=False)

    @property
    def default_value(self) -> Any:
        return self.default_factory()

    def config_rule(self, source_kind: str, fn: ConversionFn) -> None:
        """Register the rule used when a value of ``source_kind`` is assigned to this kind."""
        self._rules[str(source_kind)] = fn

    def get_conversion_rule(self, source_kind: str) -> ConversionFn | None:
        return self._rules.get(str(source_kind))

    def stringify(self, value: Any) -> str:
        if self.to_string is not None:
            return self.to_string(value)
        return str(value)

    def spawn(self, value: Any = MISSING) -> LeafNode:
        """Create a detached leaf node of this kind."""
        from ._nodes import LeafNode  # noqa: PLC0415

        return LeafNode(
            value=self.default_value if value is MISSING else value,
            descriptor=self.new_descriptor(),
        )

    def new_descriptor(self) -> Descriptor:
        """Return a fresh copy of the default descriptor, tagged with this type's name if it is not native."""
        if self.name in NativeKind:
            return self.default_descriptor.model_copy()
        return self.default_descriptor.merged({"type_name": self.name})


def _native_descriptor(kind: NativeKind) -> Descriptor:
    return Descriptor(native_kind=kind)


class TypeRegistry:
    """Append-only collection of kinds shared by the spaces built from it.

    Every registry starts with the eight native kinds and their conversion
    rules. Names can never be redefined.

    Examples:
        >>> registry = TypeRegistry()
        >>> registry.get_conversion_rule("Number", "String")("42").converted_value
        42

    """

    def __init__(self) -> None:
        self._types: dict[str, TypeDefinition] = {}
        self._custom: list[str] = []
        for kind in NativeKind:
            self._types[kind.value] = TypeDefinition(
                name=kind.value,
                default_factory=lambda kind=kind: default_value(kind),
                default_descriptor=_native_descriptor(kind),
                default_label=kind.value,
            )
        for target_kind, rules in NATIVE_RULES.items():
            for source_kind, fn in rules.items():
                self.config_rule(target_kind, source_kind, fn)

    def define_type(
        self,
        name: str,
        *,
        default_value: Any = None,
        default_descriptor: Mapping[str, Any] | Descriptor | None = None,
        to_string: Callable[[Any], str] | None = None,
        default_label: str | None = None,
    ) -> TypeDefinition:
        """Register a new kind.

        Raises:
            DuplicateTypeError: If ``name`` is already registered (native kinds included).

        """
        if name in self._types:
            msg = f"Variable type {name} is already defined and cannot be redefined."
            raise DuplicateTypeError(msg)

        base_kind = NativeKind(name) if name in NativeKind else NativeKind.OBJECT
        descriptor = _native_descriptor(base_kind).merged(default_descriptor)

        definition = TypeDefinition(
            name=name,
            default_factory=lambda: copy.deepcopy(default_value),
            default_descriptor=descriptor,
            default_label=default_label,
            to_string=to_string,
        )
        self._types[name] = definition
        logger.debug("Defined type %s (descriptor kind %s)", name, descriptor.native_kind)
        return definition

    def get_type(self, name: str) -> TypeDefinition | None:
        return self._types.get(str(name))

    def require_type(self, name: str) -> TypeDefinition:
        definition = self.get_type(name)
        if definition is None:
            msg = f"Invalid or unregistered type: {name}"
            raise UnknownTypeError(msg)
        return definition

    def list_types(self) -> list[str]:
        return list(self._types)

    def config_rule(self, target_kind: str, source_kind: str, fn: ConversionFn) -> None:
        """Register ``fn`` for assignments of ``source_kind`` values to ``target_kind`` nodes."""
        self.require_type(target_kind).config_rule(source_kind, fn)

    def get_conversion_rule(self, target_kind: str, source_kind: str) -> ConversionFn | None:
        definition = self.get_type(target_kind)
        if definition is None:
            return None
        return definition.get_conversion_rule(source_kind)

    def create_descriptor(self, kind: str) -> Descriptor:
        """Return a fresh copy of the default descriptor for ``kind``.

        Raises:
            UnknownTypeError: If ``kind`` is not registered.

        """
        return self.require_type(kind).new_descriptor()

    # --- custom types ---

    def define_custom_type(
        self,
        name: str,
        *,
        default_value: Any,
        descriptor: Mapping[str, Any] | Descriptor | None = None,
        conversion_rules: Mapping[str, ConversionFn] | None = None,
        to_string: Callable[[Any], str] | None = None,
    ) -> TypeDefinition:
        """Register a user kind together with its conversion rules.

        Raises:
            ValueError: If ``name`` is empty.
            DuplicateTypeError: If ``name`` is a native kind or already registered.

        """
        if not name or not isinstance(name, str):
            msg = "Type name must be a non-empty string"
            raise ValueError(msg)
        if name in NativeKind:
            msg = f"Cannot override native type: {name}"
            raise DuplicateTypeError(msg)

        definition = self.define_type(
            name,
            default_value=default_value,
            default_descriptor=descriptor,
            to_string=to_string,
        )
        for source_kind, fn in (conversion_rules or {}).items():
            definition.config_rule(source_kind, fn)
        self._custom.append(name)
        return definition

    def get_custom_type(self, name: str) -> TypeDefinition | None:
        if name not in self._custom:
            return None
        return self._types[name]

    def is_custom_type(self, name: str) -> bool:
        return name in self._custom

    def list_custom_types(self) -> list[str]:
        return list(self._custom)


_default_registry: TypeRegistry | None = None


def default_registry() -> TypeRegistry:
    """Return the process-wide registry, creating it on first use.

    Spaces only use it when constructed without an explicit registry.
    """
    global _default_registry  # noqa: PLW0603
    if _default_registry is None:
        _default_registry = TypeRegistry()
    return _default_registry
