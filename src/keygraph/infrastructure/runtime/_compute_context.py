"""
Per-invocation record handed to `Op.compute`.

The runtime builds one `ComputeContext` per node it computes. Besides the
resolved input values, it carries the runtime's hook for in-place ops: an op
that asks for assignable inputs announces the write before it happens, so
values already produced in the same pass that alias the destination can be
preserved.
"""

from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

import numpy as np

from ..tensor._tensor import Tensor


@dataclass
class ComputeContext:
    """
    Per-invocation record passed to `Op.compute`.

    A `ComputeContext` holds the node currently being computed and the
    already materialized values of its inputs, in input order.

    Attributes
    ----------
    node : Tensor
        The node whose value is being computed.
    xs : Sequence[np.ndarray]
        Resolved input values. These may alias persisted variables or other
        nodes' outputs (delegation), so ops must treat them as read-only
        unless they are explicitly in-place ops.
    before_write : Callable[[np.ndarray], None], optional
        Called with the destination array when the op requests assignable
        inputs, before any write.
    """

    node: Tensor
    xs: Sequence[np.ndarray]
    before_write: Optional[Callable[[np.ndarray], None]] = field(default=None)

    def grab_inputs(self) -> Sequence[np.ndarray]:
        """
        Return the input values for read-only use.
        """
        return self.xs

    def grab_assignable_inputs(self) -> Sequence[np.ndarray]:
        """
        Return the input values, with input 0 as the in-place destination.

        The arrays are the stored values themselves: writing input 0 changes
        the value seen by every node evaluated later that reads the same
        storage (e.g. a variable). Values computed earlier in the pass that
        alias it keep their pre-write contents. Read-only storage (literals,
        constants) makes NumPy raise `ValueError` on write.
        """
        if self.before_write is not None and self.xs:
            self.before_write(self.xs[0])
        return self.xs

    def grab_input_node(self, i: int) -> Tensor:
        """
        Return the i-th input node (useful for error messages).
        """
        return self.node.inputs[i]
