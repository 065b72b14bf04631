"""
Op interface definitions.

This module defines the abstract base class every graph operation implements.
An `Op` is a capability, not a data entity: it knows how to compute its
output from input values (forward) and how to build the gradient sub-graph
for its inputs (backward).

Unlike eager autograd functions, `Op.grad` never produces values. It builds
*new graph nodes*, so gradients are lazy sub-graphs that can themselves be
evaluated or differentiated again.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Sequence, Union

from ._tensor import ITensor

if TYPE_CHECKING:
    import numpy as np

    from ..infrastructure.runtime._compute_context import ComputeContext


@dataclass(frozen=True)
class Delegate:
    """
    Compute result meaning "my output is exactly input `to`'s value".

    The runtime resolves a delegate to the referenced input's already
    materialized array, without copying. Ops use it for no-op broadcasts,
    stop-gradient passthroughs and in-place mutation.

    Attributes
    ----------
    to : int
        Index of the input whose value becomes this node's value.
    """

    to: int = 0


ComputeResult = Union["np.ndarray", Delegate]


class Op(ABC):
    """
    Abstract base class for graph operations.

    Subclasses implement:
    - `compute`: forward computation on concrete NumPy values
    - `grad`: construction of gradient nodes for each input

    Notes
    -----
    - Ops are registered purely by subclassing; the runtime and the gradient
      builder dispatch through this interface only.
    - Op instances may carry parameters (stride, axes, ...) and may be shared
      by several nodes, so `compute` must not keep per-call state on `self`.
    """

    @property
    def name(self) -> str:
        """
        Return a human-readable op name (defaults to the class name).
        """
        return type(self).__name__

    @abstractmethod
    def compute(self, ctx: "ComputeContext") -> ComputeResult:
        """
        Perform the forward computation.

        Parameters
        ----------
        ctx : ComputeContext
            Per-invocation record holding the node being computed and the
            resolved values of its inputs.

        Returns
        -------
        np.ndarray or Delegate
            The computed value, or a `Delegate` pointing at one of the inputs.
        """
        ...

    @abstractmethod
    def grad(
        self, gy: ITensor, inputs: Sequence[ITensor], output: ITensor
    ) -> List[Optional[ITensor]]:
        """
        Build gradient nodes with respect to each input.

        Parameters
        ----------
        gy : ITensor
            Accumulated gradient node for this op's output.
        inputs : Sequence[ITensor]
            The input nodes of `output`, in order.
        output : ITensor
            The node this op produced.

        Returns
        -------
        list[ITensor | None]
            Exactly one entry per input. `None` means no gradient flows to
            that input.
        """
        ...

    def __repr__(self) -> str:
        return self.name
