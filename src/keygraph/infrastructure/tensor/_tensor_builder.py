"""
Tensor node builder and node arena.

Every graph node is created through `TensorBuilder`, which fixes the node's
op, inputs, optional static shape and differentiability flag once. Nodes are
addressed by an integer index handed out by a process-wide arena counter;
evaluation contexts key their value maps by that index rather than by object
address.

Typical usage
-------------
    y = (
        Tensor.builder()
        .set_inputs([a, b])
        .set_shape((2, 3))
        .build(AddOp())
    )
"""

from __future__ import annotations

import itertools
from typing import Sequence, Union

from ...domain._op import Op
from ._tensor import Tensor

_node_arena = itertools.count()


def next_node_id() -> int:
    """
    Return the next unused arena index.

    `itertools.count.__next__` is atomic under the GIL, so ids stay unique
    even if several threads happen to build nodes.
    """
    return next(_node_arena)


def normalize_shape(
    shape: Union[Sequence[int], Tensor, None],
) -> Union[tuple[int, ...], Tensor, None]:
    """
    Normalize a user-provided shape into a tuple of ints, a shape node or None.

    Raises
    ------
    TypeError
        If `shape` is neither a sequence of ints, a Tensor nor None.
    """
    if shape is None or isinstance(shape, Tensor):
        return shape
    try:
        return tuple(int(d) for d in shape)
    except TypeError as e:
        raise TypeError(
            f"shape must be a sequence of ints, a Tensor or None; got {type(shape)!r}"
        ) from e


class TensorBuilder:
    """
    Fluent builder for immutable graph nodes.

    Notes
    -----
    - Inputs must already exist when the node is built, which keeps the graph
      acyclic by construction.
    - Nodes are differentiable unless explicitly marked otherwise.
    """

    def __init__(self) -> None:
        self._inputs: tuple[Tensor, ...] = ()
        self._shape: Union[tuple[int, ...], Tensor, None] = None
        self._differentiable: bool = True

    def set_inputs(self, inputs: Sequence[Tensor]) -> "TensorBuilder":
        """
        Set the ordered input nodes.

        Raises
        ------
        TypeError
            If any input is not a Tensor.
        """
        inputs = tuple(inputs)
        for i, x in enumerate(inputs):
            if not isinstance(x, Tensor):
                raise TypeError(f"input {i} must be a Tensor, got {type(x)!r}")
        self._inputs = inputs
        return self

    def set_shape(
        self, shape: Union[Sequence[int], Tensor, None]
    ) -> "TensorBuilder":
        """
        Set the statically known shape (literal tuple or shape node).
        """
        self._shape = normalize_shape(shape)
        return self

    def set_differentiable(self, differentiable: bool) -> "TensorBuilder":
        self._differentiable = bool(differentiable)
        return self

    def build(self, op: Op) -> Tensor:
        """
        Create the node.

        Parameters
        ----------
        op : Op
            The operation this node applies to its inputs.

        Returns
        -------
        Tensor
            A new node with a fresh arena index.

        Raises
        ------
        TypeError
            If `op` does not implement the `Op` contract.
        """
        if not isinstance(op, Op):
            raise TypeError(f"op must be an Op instance, got {type(op)!r}")
        return Tensor(
            node_id=next_node_id(),
            op=op,
            inputs=self._inputs,
            shape=self._shape,
            differentiable=self._differentiable,
        )

