"""
Shape and array-construction ops.

Shapes are values too: `shape(x)` yields an int64 vector, either as a literal
(when `x`'s shape is statically known) or as a node computed at evaluation
time. Shape-consuming ops (`ones`, `zeros`, the broadcast-reduction pair)
take such a vector as an ordinary input, which is what makes dynamic shapes
work in gradient graphs.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence, Union

import numpy as np

from ...domain._op import Delegate, Op
from ..tensor._tensor import DEFAULT_DTYPE, Tensor
from ._basic_source_ops import convert_to_tensor

if TYPE_CHECKING:
    from ..runtime._compute_context import ComputeContext

ShapeArg = Union[Sequence[int], Tensor]


def as_shape_tuple(shape_value: np.ndarray) -> tuple[int, ...]:
    """
    Convert an evaluated shape vector into a tuple of ints.
    """
    return tuple(int(d) for d in np.ravel(shape_value))


class Shape(Op):
    """
    Compute the shape of the input as an int64 vector.
    """

    def compute(self, ctx: "ComputeContext") -> np.ndarray:
        (x,) = ctx.grab_inputs()
        return np.asarray(x.shape, dtype=np.int64)

    def grad(self, gy, inputs, output):
        return [None]


class _Fill(Op):
    fill_value = 0.0

    def compute(self, ctx: "ComputeContext") -> np.ndarray:
        (shape_value,) = ctx.grab_inputs()
        return np.full(as_shape_tuple(shape_value), self.fill_value, dtype=DEFAULT_DTYPE)

    def grad(self, gy, inputs, output):
        return [None]


class Zeros(_Fill):
    """
    Zeros-valued array of the shape given by input 0.
    """

    fill_value = 0.0


class Ones(_Fill):
    """
    Ones-valued array of the shape given by input 0.
    """

    fill_value = 1.0


class StopGradient(Op):
    """
    Pass the input through unchanged while blocking gradient flow.
    """

    def compute(self, ctx: "ComputeContext") -> Delegate:
        return Delegate(0)

    def grad(self, gy, inputs, output):
        return [None]


class Identity(Op):
    """
    Pass the input through unchanged (zero-copy), gradients included.
    """

    def compute(self, ctx: "ComputeContext") -> Delegate:
        return Delegate(0)

    def grad(self, gy, inputs, output):
        return [gy]


def as_shape_node(shape: ShapeArg) -> Tensor:
    """
    Return a node holding `shape` as an int64 vector.

    A Tensor is assumed to already compute a shape vector and is returned
    unchanged.
    """
    if isinstance(shape, Tensor):
        return shape
    return convert_to_tensor(tuple(int(d) for d in shape), dtype=np.int64)


def shape(x: Tensor) -> Tensor:
    """
    Return a node evaluating to `x`'s shape (int64 vector).

    Uses a literal when the shape is statically known, the node's dynamic
    shape node when it has one, and a `Shape` op otherwise.
    """
    if isinstance(x.shape, tuple):
        return as_shape_node(x.shape)
    if isinstance(x.shape, Tensor):
        return x.shape
    return Tensor.builder().set_inputs([x]).set_differentiable(False).build(Shape())


def _filled(shape_arg: ShapeArg, op: Op) -> Tensor:
    static = None if isinstance(shape_arg, Tensor) else tuple(int(d) for d in shape_arg)
    return (
        Tensor.builder()
        .set_inputs([as_shape_node(shape_arg)])
        .set_shape(static if static is not None else shape_arg)
        .set_differentiable(False)
        .build(op)
    )


def zeros(shape: ShapeArg) -> Tensor:
    """
    Create a zeros-valued node of the given shape (tuple or shape node).
    """
    return _filled(shape, Zeros())


def ones(shape: ShapeArg) -> Tensor:
    """
    Create a ones-valued node of the given shape (tuple or shape node).
    """
    return _filled(shape, Ones())


def stop_gradient(x: Tensor) -> Tensor:
    """
    Return a node equal to `x` through which no gradient flows.
    """
    return (
        Tensor.builder()
        .set_inputs([x])
        .set_shape(x.shape)
        .set_differentiable(False)
        .build(StopGradient())
    )


def identity(x: Tensor) -> Tensor:
    """
    Return a node equal to `x` (zero-copy) that passes gradients through.
    """
    return Tensor.builder().set_inputs([x]).set_shape(x.shape).build(Identity())
