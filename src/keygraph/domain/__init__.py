"""
Domain-level contracts for keygraph.

This package holds backend-agnostic interfaces and error types:

- ``Op`` / ``Delegate``: the operation contract and the aliasing result marker
- ``ITensor``: structural interface of graph nodes
- error taxonomy for usage and shape failures
"""

from ._errors import (
    BroadcastError,
    NotPlaceholderError,
    PlaceholderNotFedError,
    PlaceholderShapeError,
    VariableNotFoundError,
)
from ._op import ComputeResult, Delegate, Op
from ._tensor import ITensor

__all__ = [
    Op.__name__,
    Delegate.__name__,
    "ComputeResult",
    ITensor.__name__,
    BroadcastError.__name__,
    NotPlaceholderError.__name__,
    PlaceholderNotFedError.__name__,
    PlaceholderShapeError.__name__,
    VariableNotFoundError.__name__,
]
