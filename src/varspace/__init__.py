"""Typed, hierarchical reactive variable spaces."""

__all__ = [
    "MISSING",
    "AccessController",
    "AssignResult",
    "ChangeEvent",
    "CompositeNode",
    "CompositeOptions",
    "ConfigError",
    "ConversionFailedError",
    "ConversionOutcome",
    "ConversionResult",
    "Descriptor",
    "DuplicateTypeError",
    "ImmutableMethodError",
    "LeafNode",
    "LeafOptions",
    "MirrorDict",
    "MirrorSynchronizer",
    "MissingValueError",
    "NativeKind",
    "NodeHandle",
    "NodeInfo",
    "NodeStructure",
    "NotWritableError",
    "Notifier",
    "PathEntry",
    "PathError",
    "PathIndex",
    "SchemaConflictError",
    "Space",
    "SpaceLevel",
    "SpaceOptions",
    "Transaction",
    "TypeDefinition",
    "TypeMismatchError",
    "TypeRegistry",
    "UnknownPropertyError",
    "UnknownTypeError",
    "UnsupportedConversionError",
    "VarPath",
    "VarSpaceConfig",
    "VarSpaceError",
    "default_registry",
    "get_config",
    "infer_kind",
    "load_config",
    "validate_and_convert",
]

from ._access import AccessController, AssignResult
from ._config import VarSpaceConfig, get_config, load_config
from ._conversion import ConversionOutcome, ConversionResult, validate_and_convert
from ._errors import (
    ConfigError,
    ConversionFailedError,
    DuplicateTypeError,
    ImmutableMethodError,
    MissingValueError,
    NotWritableError,
    PathError,
    SchemaConflictError,
    TypeMismatchError,
    UnknownPropertyError,
    UnknownTypeError,
    UnsupportedConversionError,
    VarSpaceError,
)
from ._kinds import MISSING, NativeKind, infer_kind
from ._mirror import MirrorDict, MirrorSynchronizer
from ._nodes import CompositeNode, CompositeOptions, LeafNode, LeafOptions, NodeHandle, NodeStructure
from ._path import VarPath
from ._path_index import PathEntry, PathIndex
from ._reactive import ChangeEvent, Notifier, Transaction
from ._registry import Descriptor, TypeDefinition, TypeRegistry, default_registry
from ._space import NodeInfo, Space, SpaceLevel, SpaceOptions
