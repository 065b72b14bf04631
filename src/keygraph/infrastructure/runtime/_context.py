"""
Evaluation context: persisted and transient value storage.

A `Context` is what is necessary to run computation graphs. It is used to:

- declare variables (mutable, persisted arrays) and constants
- feed values to placeholders
- evaluate nodes

Storage
-------
- ``variables``: persisted values keyed by node id. Long-lived; only changed
  through explicit in-place ops applied to a variable node.
- ``outputs``: transient values keyed by node id (fed placeholders and
  computed outputs). Cleared after every top-level `evaluate`, so memory is
  bounded by the persisted variables. Placeholders must be fed again before
  the next evaluation.

Concurrency
-----------
`feed` and `evaluate` are serialized by an internal re-entrant lock: one
writer per evaluation pass. Independent contexts share nothing and may be
used from different threads concurrently.
"""

from __future__ import annotations

import threading
import warnings
from typing import Any, Sequence

import numpy as np

from ...domain._errors import NotPlaceholderError, PlaceholderShapeError
from ..tensor._tensor import DEFAULT_DTYPE, Tensor
from ._runtime import evaluate as _evaluate


class Context:
    """
    Evaluation context holding variables, constants and per-pass outputs.

    Graphs that contain variables or constants must be evaluated in the
    context that declared them.

    Examples
    --------
    >>> ctx = Context()
    >>> x = placeholder((2,))
    >>> v = ctx.declare_variable(np.array([2.0, 2.0]))
    >>> z = x + v + ones((2,))
    >>> ctx.feed(x, np.array([1.0, 1.0]))
    >>> ctx.evaluate([z])[0]
    array([4., 4.], dtype=float32)
    """

    def __init__(self) -> None:
        self.variables: dict[int, np.ndarray] = {}
        self.outputs: dict[int, np.ndarray] = {}
        self._var_nodes: dict[int, Tensor] = {}
        self._lock = threading.RLock()

    # ----------------------------
    # Persisted storage
    # ----------------------------
    def declare_variable(self, initial_value: Any) -> Tensor:
        """
        Create a variable node with persisted storage in this context.

        Parameters
        ----------
        initial_value : array-like
            Initial value. It is copied, so later changes to the caller's
            array do not affect the variable.

        Returns
        -------
        Tensor
            A new differentiable `Variable` node.
        """
        from ..ops._basic_source_ops import Variable

        arr = np.array(initial_value, dtype=DEFAULT_DTYPE, copy=True)
        node = Tensor.builder().set_shape(arr.shape).build(Variable())
        with self._lock:
            self.variables[node.id] = arr
            self._var_nodes[node.id] = node
        return node

    def declare_constant(self, value: Any) -> Tensor:
        """
        Create a constant node with persisted, read-only storage.

        Returns
        -------
        Tensor
            A new non-differentiable `Constant` node.
        """
        from ..ops._basic_source_ops import Constant

        arr = np.array(value, dtype=DEFAULT_DTYPE, copy=True)
        arr.setflags(write=False)
        node = (
            Tensor.builder()
            .set_shape(arr.shape)
            .set_differentiable(False)
            .build(Constant())
        )
        with self._lock:
            self.variables[node.id] = arr
            self._var_nodes[node.id] = node
        return node

    variable = declare_variable
    constant = declare_constant

    def list_vars(self) -> list[Tensor]:
        """
        Return the variable and constant nodes declared in this context.
        """
        return list(self._var_nodes.values())

    # ----------------------------
    # Feeding placeholders
    # ----------------------------
    @staticmethod
    def _ensure_placeholder(node: Any) -> None:
        from ..ops._basic_source_ops import Placeholder

        if not isinstance(node, Tensor):
            raise NotPlaceholderError(type(node).__name__)
        if not isinstance(node.op, Placeholder):
            raise NotPlaceholderError(node.op.name)

    def _store_feed(self, placeholder: Tensor, arr: np.ndarray) -> None:
        if placeholder.id in self.outputs:
            warnings.warn(
                f"Placeholder (id={placeholder.id}) was already fed in this pass; "
                "overwriting the previous value.",
                RuntimeWarning,
                stacklevel=3,
            )
        self.outputs[placeholder.id] = arr

    def feed(self, placeholder: Tensor, value: Any) -> None:
        """
        Bind a value to a placeholder for the next evaluation.

        Parameters
        ----------
        placeholder : Tensor
            A node built by `placeholder(...)`.
        value : array-like
            Value to bind. Converted to float32 (no copy when it already is).

        Raises
        ------
        NotPlaceholderError
            If `placeholder` is not a placeholder node.
        PlaceholderShapeError
            If the value's shape does not match the declared shape. A
            declared dimension of ``-1`` matches any size.
        """
        self._ensure_placeholder(placeholder)
        arr = np.asarray(value, dtype=DEFAULT_DTYPE)

        with self._lock:
            declared = placeholder.shape
            if declared is None:
                declared = placeholder.op.declared_shape
            if isinstance(declared, Tensor):
                fed = set(self.outputs)
                try:
                    shape_value = _evaluate([declared], self)[0]
                finally:
                    # Keep feeds, drop what the shape sub-graph computed.
                    for nid in set(self.outputs) - fed:
                        del self.outputs[nid]
                declared = tuple(int(d) for d in np.ravel(shape_value))
            if declared is not None and not _shape_matches(declared, arr.shape):
                raise PlaceholderShapeError(declared, arr.shape)
            self._store_feed(placeholder, arr)

    def feed_unchecked(self, placeholder: Tensor, value: Any) -> None:
        """
        Same as `feed` but skips the shape check.
        """
        self._ensure_placeholder(placeholder)
        arr = np.asarray(value, dtype=DEFAULT_DTYPE)
        with self._lock:
            self._store_feed(placeholder, arr)

    # ----------------------------
    # Evaluation
    # ----------------------------
    def evaluate(self, targets: Sequence[Tensor]) -> list[np.ndarray]:
        """
        Evaluate `targets` and clear the transient outputs afterwards.

        Parameters
        ----------
        targets : Sequence[Tensor]
            Nodes to evaluate. Shared sub-graphs are computed once.

        Returns
        -------
        list[np.ndarray]
            One value per target.
        """
        with self._lock:
            try:
                return _evaluate(targets, self)
            finally:
                self.outputs.clear()

    def clear_outputs(self) -> None:
        """
        Drop all transient values (fed placeholders and cached outputs).
        """
        with self._lock:
            self.outputs.clear()


def _shape_matches(declared: tuple, actual: tuple) -> bool:
    if len(declared) != len(actual):
        return False
    return all(d == -1 or d == a for d, a in zip(declared, actual))
