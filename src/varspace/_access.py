"""Access controller: the single path for reads and writes by name."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ._conversion import validate_and_convert
from ._errors import ImmutableMethodError, UnknownPropertyError, VarSpaceError
from ._kinds import MISSING
from ._nodes import CompositeNode, same_value

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ._nodes import LeafNode

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AssignResult:
    """Outcome of a write.

    Attributes:
        success: Whether the assignment itself was accepted.
        value: The value now held by the target (converted if a rule applied).
        error: Why the assignment was rejected.
        child_errors: For composite assignments, failures of individual keys
            keyed by their path relative to the target. Their siblings were
            still assigned.

    """

    success: bool
    value: Any = None
    error: VarSpaceError | None = None
    child_errors: dict[str, VarSpaceError] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.success


class AccessController:
    """Dispatch property reads and writes on composite nodes.

    Names are looked up against the node class's explicit tables first
    (``SYSTEM_METHODS`` and ``BOOKKEEPING_FIELDS``), then against the child map.
    Rejected writes are logged and returned; they never raise.
    """

    def get_property(self, node: CompositeNode, name: str) -> Any:
        """Read ``name`` on ``node``.

        Returns:
            The attribute for reserved names, the child node for composite
            children, the value for leaf children, or ``MISSING``.

        """
        cls = type(node)
        if name in cls.SYSTEM_METHODS or name in cls.BOOKKEEPING_FIELDS:
            return getattr(node, name)
        child = node.get_child(name)
        if child is None:
            return MISSING
        if isinstance(child, CompositeNode):
            return child
        return child.value

    def set_property(self, node: CompositeNode, name: str, incoming: Any) -> AssignResult:
        """Write ``incoming`` to ``name`` on ``node`` after validation and conversion."""
        cls = type(node)
        if name in cls.BOOKKEEPING_FIELDS:
            setattr(node, name, incoming)
            return AssignResult(success=True, value=incoming)
        if name in cls.SYSTEM_METHODS:
            return self._reject(node, name, ImmutableMethodError(f"System method {name} cannot be modified"))

        child = node.get_child(name)
        if child is None:
            return self._reject(node, name, UnknownPropertyError(f"Property {name} does not exist, cannot set value"))

        runtime = node.runtime
        outcome = validate_and_convert(
            child.descriptor,
            incoming,
            child.descriptor.kind_name,
            runtime.registry,
            strict=runtime.strict,
            is_leaf=not isinstance(child, CompositeNode),
            name=name,
        )
        if not outcome.success:
            assert outcome.error is not None
            return self._reject(node, name, outcome.error)

        if isinstance(child, CompositeNode):
            return self._assign_composite(child, outcome.final_value)
        return self._assign_leaf(node, child, outcome.final_value)

    def _assign_leaf(self, parent: CompositeNode, leaf: LeafNode, value: Any) -> AssignResult:
        if not same_value(leaf.value, value):
            old_value = leaf.value
            leaf.value = value
            parent.runtime.notify(leaf, old_value, value)
        return AssignResult(success=True, value=leaf.value)

    def _assign_composite(self, composite: CompositeNode, data: Mapping[str, Any]) -> AssignResult:
        child_errors: dict[str, VarSpaceError] = {}
        for key, value in data.items():
            if not composite.has_node(key):
                composite.background_data[key] = value
                continue
            result = self.set_property(composite, key, value)
            if result.error is not None:
                child_errors[key] = result.error
            for sub_key, error in result.child_errors.items():
                child_errors[f"{key}.{sub_key}"] = error
        return AssignResult(success=True, value=data, child_errors=child_errors)

    def _reject(self, node: CompositeNode, name: str, error: VarSpaceError) -> AssignResult:
        path = node.runtime.index.path_of(node)
        location = f"{path}.{name}" if path is not None else name
        logger.warning("Rejected assignment to %s: %s", location, error)
        return AssignResult(success=False, error=error)
