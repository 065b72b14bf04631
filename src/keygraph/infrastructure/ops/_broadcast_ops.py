"""
Broadcast-aware gradient reduction.

`sum_to_shape` is the inverse of broadcasting: when an operand of shape `s`
was broadcast to a larger shape in the forward pass, its gradient must be
summed over the broadcast axes to get back to `s`. `broadcast_to_shape` goes
the other way. The two are adjoint, so each one's gradient is built from the
other.

Both ops take the target shape as a second input (an int64 shape vector), so
the target may be known only at evaluation time. When no broadcasting
happened, both return a delegate to their first input and cost nothing.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Union

import numpy as np

from ...domain._errors import BroadcastError
from ...domain._op import Delegate, Op
from ..tensor._tensor import Tensor
from ._array_ops import ShapeArg, as_shape_node, as_shape_tuple, shape

if TYPE_CHECKING:
    from ..runtime._compute_context import ComputeContext


def _sum_to_shape_reduce_axes(
    src_shape: tuple[int, ...], target_shape: tuple[int, ...]
) -> tuple[tuple[int, ...], int]:
    """
    Compute the reduction axes that collapse `src_shape` to `target_shape`.

    The target is left-padded with ones to the source rank. An axis is
    reduced when the padded target has size 1 there and the source does not.

    Returns
    -------
    reduce_axes : tuple[int, ...]
        Axes to sum over with ``keepdims=True``.
    pad : int
        Number of leading axes added to the target.

    Raises
    ------
    BroadcastError
        If the target has a higher rank than the source, or if some target
        dimension is neither 1 nor equal to the source dimension.
    """
    if len(target_shape) > len(src_shape):
        raise BroadcastError(SumToShape.__name__, src_shape, target_shape)

    pad = len(src_shape) - len(target_shape)
    padded = (1,) * pad + tuple(target_shape)

    for sd, td in zip(src_shape, padded):
        if td not in (1, sd):
            raise BroadcastError(SumToShape.__name__, src_shape, target_shape)

    reduce_axes = tuple(
        i for i, (sd, td) in enumerate(zip(src_shape, padded)) if td == 1 and sd != 1
    )
    return reduce_axes, pad


class SumToShape(Op):
    """
    Sum-reduce input 0 to the shape given by input 1.
    """

    def compute(self, ctx: "ComputeContext") -> Union[np.ndarray, Delegate]:
        x, shape_value = ctx.grab_inputs()
        target = as_shape_tuple(shape_value)
        if x.shape == target:
            return Delegate(0)

        axes, pad = _sum_to_shape_reduce_axes(x.shape, target)
        out = np.sum(x, axis=axes, keepdims=True) if axes else x
        # Drop the leading padding axes (all of size 1 after the sum).
        return np.asarray(out).reshape(target)

    def grad(self, gy, inputs, output):
        return [broadcast_to_shape(gy, shape(inputs[0])), None]


class BroadcastToShape(Op):
    """
    Broadcast input 0 to the shape given by input 1.

    The result is an owned, writable array, unlike `np.broadcast_to` views.
    """

    def compute(self, ctx: "ComputeContext") -> Union[np.ndarray, Delegate]:
        x, shape_value = ctx.grab_inputs()
        target = as_shape_tuple(shape_value)
        if x.shape == target:
            return Delegate(0)

        try:
            view = np.broadcast_to(x, target)
        except ValueError as e:
            raise BroadcastError(self.name, x.shape, target) from e
        return np.array(view, copy=True)

    def grad(self, gy, inputs, output):
        return [sum_to_shape(gy, shape(inputs[0])), None]


def _static_target(target: ShapeArg):
    if isinstance(target, Tensor):
        return target
    return tuple(int(d) for d in target)


def sum_to_shape(x: Tensor, target_shape: ShapeArg) -> Tensor:
    """
    Sum `x` over its broadcast axes so the result has `target_shape`.

    Parameters
    ----------
    x : Tensor
        Value to reduce (typically a gradient of a broadcast result).
    target_shape : tuple[int, ...] | Tensor
        Desired shape, literal or as a shape node.

    Returns
    -------
    Tensor
        Reduced node. Evaluates to `x`'s value unchanged when the shapes
        already match.
    """
    return (
        Tensor.builder()
        .set_inputs([x, as_shape_node(target_shape)])
        .set_shape(_static_target(target_shape))
        .build(SumToShape())
    )


def broadcast_to_shape(x: Tensor, target_shape: ShapeArg) -> Tensor:
    """
    Broadcast `x` to `target_shape` (literal or shape node).
    """
    return (
        Tensor.builder()
        .set_inputs([x, as_shape_node(target_shape)])
        .set_shape(_static_target(target_shape))
        .build(BroadcastToShape())
    )
