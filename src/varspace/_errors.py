"""Exception taxonomy.

Schema errors (duplicate types, leaf/composite conflicts, unknown types) are
raised. Data errors (the remaining classes) are reported through logging and
carried back in an ``AssignResult``; they are instantiated but not raised.
"""

from __future__ import annotations


class VarSpaceError(Exception):
    """Base class for all varspace errors."""


class DuplicateTypeError(VarSpaceError):
    """A type with the same name is already registered."""


class UnknownTypeError(VarSpaceError):
    """A node was declared with a kind that is not registered."""


class SchemaConflictError(VarSpaceError):
    """A name bound to a leaf was redeclared as a composite, or vice versa."""


class PathError(VarSpaceError, ValueError):
    """A dotted path is malformed or does not belong to the space."""


class ConfigError(VarSpaceError):
    """Error in varspace configuration."""


class UnknownPropertyError(VarSpaceError):
    """Assignment to a name that has no schema node."""


class NotWritableError(VarSpaceError):
    """Assignment to a node whose descriptor is not writable."""


class MissingValueError(VarSpaceError):
    """Strict assignment of an absent value to a leaf."""


class UnsupportedConversionError(VarSpaceError):
    """No conversion rule exists for the (target, source) kind pair."""


class ConversionFailedError(VarSpaceError):
    """A conversion rule exists but rejected the value."""


class TypeMismatchError(VarSpaceError):
    """A non-object value was assigned to a composite node."""


class ImmutableMethodError(VarSpaceError):
    """Assignment to a reserved system method name."""
