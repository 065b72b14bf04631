"""
Tensor node interface definitions.

This module defines the domain-level interface for graph nodes using
structural typing. Ops only rely on this surface when they build gradient
graphs, which keeps the op contract independent of the concrete `Tensor`
implementation in the infrastructure layer.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, Sequence, Union, runtime_checkable

ShapeLike = Union[tuple, "ITensor", None]


@runtime_checkable
class ITensor(Protocol):
    """
    Graph node interface.

    An `ITensor` is an immutable handle for one op applied to an ordered list
    of input nodes. It carries no value; values live in an evaluation
    context and are produced on demand.

    Notes
    -----
    - Identity is the arena index `id`, not structure.
    - `shape` is either a literal tuple, a node computing a shape vector, or
      None when unknown before evaluation.
    """

    @property
    def id(self) -> int:
        """
        Return the arena index identifying this node.

        Returns
        -------
        int
            Unique, stable node index.
        """
        ...

    @property
    def op(self) -> Any:
        """
        Return the op applied by this node.

        Returns
        -------
        Op
            The operation instance.
        """
        ...

    @property
    def inputs(self) -> Sequence["ITensor"]:
        """
        Return the ordered input nodes.

        Returns
        -------
        Sequence[ITensor]
            Input nodes, shared with other consumers.
        """
        ...

    @property
    def shape(self) -> ShapeLike:
        """
        Return the statically known shape, if any.

        Returns
        -------
        tuple[int, ...] | ITensor | None
            Literal shape, a shape-computing node, or None.
        """
        ...

    @property
    def differentiable(self) -> bool:
        """
        Indicate whether gradients propagate through this node.

        Returns
        -------
        bool
            False for constants, shape computations and stop-gradient nodes.
        """
        ...

    def eval(self, ctx: Any) -> Optional[Any]: ...
