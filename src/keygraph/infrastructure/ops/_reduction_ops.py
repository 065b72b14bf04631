"""
Reduction and axis ops: `reduce_sum`, `expand_dims`, `add_n`.

`add_n` is what the gradient builder uses to merge the gradient
contributions a node receives from its several consumers.
"""

from __future__ import annotations

import functools
from typing import TYPE_CHECKING, Optional, Sequence, Union

import numpy as np

from ...domain._op import Op
from ..tensor._tensor import Tensor
from ._array_ops import shape
from ._broadcast_ops import broadcast_to_shape, sum_to_shape

if TYPE_CHECKING:
    from ..runtime._compute_context import ComputeContext

Axes = Union[int, Sequence[int], None]


def _normalize_axes(axes: Axes) -> Optional[tuple[int, ...]]:
    if axes is None:
        return None
    if isinstance(axes, int):
        return (axes,)
    return tuple(int(a) for a in axes)


class ReduceSum(Op):
    """
    Sum over `axes` (all axes when None).

    Parameters
    ----------
    axes : tuple[int, ...] | None
        Axes to reduce. Negative values count from the last axis.
    keep_dims : bool
        Keep reduced axes as size-1 dimensions.
    """

    def __init__(self, axes: Optional[tuple[int, ...]], keep_dims: bool) -> None:
        self.axes = axes
        self.keep_dims = keep_dims

    def compute(self, ctx: "ComputeContext") -> np.ndarray:
        (x,) = ctx.grab_inputs()
        return np.asarray(np.sum(x, axis=self.axes, keepdims=self.keep_dims))

    def grad(self, gy, inputs, output):
        (x,) = inputs
        if self.keep_dims or self.axes is None:
            # Either already rank-aligned, or a scalar that broadcasts as is.
            return [broadcast_to_shape(gy, shape(x))]
        return [broadcast_to_shape(expand_dims(gy, self.axes), shape(x))]


class ExpandDims(Op):
    """
    Insert size-1 axes at `axes` (positions in the output).

    The result is a copy, so in-place ops on it never reach the input.
    """

    def __init__(self, axes: tuple[int, ...]) -> None:
        self.axes = axes

    def compute(self, ctx: "ComputeContext") -> np.ndarray:
        (x,) = ctx.grab_inputs()
        return np.array(np.expand_dims(x, self.axes), copy=True)

    def grad(self, gy, inputs, output):
        return [reduce_sum(gy, self.axes)]


class AddN(Op):
    """
    Elementwise sum of all inputs.
    """

    def compute(self, ctx: "ComputeContext") -> np.ndarray:
        xs = ctx.grab_inputs()
        return functools.reduce(np.add, xs)

    def grad(self, gy, inputs, output):
        return [sum_to_shape(gy, shape(x)) for x in inputs]


def _reduced_shape(
    src: tuple[int, ...], axes: Optional[tuple[int, ...]], keep_dims: bool
) -> tuple[int, ...]:
    rank = len(src)
    reduced = set(range(rank)) if axes is None else {a % rank for a in axes}
    if keep_dims:
        return tuple(1 if i in reduced else d for i, d in enumerate(src))
    return tuple(d for i, d in enumerate(src) if i not in reduced)


def reduce_sum(x: Tensor, axes: Axes = None, keep_dims: bool = False) -> Tensor:
    """
    Sum `x` over `axes`.

    Parameters
    ----------
    x : Tensor
        Input node.
    axes : int | Sequence[int] | None
        Axes to reduce; None reduces every axis to a 0-d result.
    keep_dims : bool
        Keep reduced axes as size-1 dimensions.

    Returns
    -------
    Tensor
        The reduction node.
    """
    axes = _normalize_axes(axes)
    src = x.static_shape()
    static = None if src is None else _reduced_shape(src, axes, keep_dims)
    return (
        Tensor.builder()
        .set_inputs([x])
        .set_shape(static)
        .build(ReduceSum(axes, keep_dims))
    )


def expand_dims(x: Tensor, axes: Union[int, Sequence[int]]) -> Tensor:
    """
    Insert size-1 axes into `x` at `axes` (positions in the result).
    """
    axes = _normalize_axes(axes)
    src = x.static_shape()
    static = None
    if src is not None:
        rank = len(src) + len(axes)
        inserted = {a % rank for a in axes}
        dims = iter(src)
        static = tuple(1 if i in inserted else next(dims) for i in range(rank))
    return Tensor.builder().set_inputs([x]).set_shape(static).build(ExpandDims(axes))


def add_n(xs: Sequence[Tensor]) -> Tensor:
    """
    Sum a list of equally shaped nodes.

    A single input is returned as is.

    Raises
    ------
    ValueError
        If `xs` is empty.
    """
    xs = list(xs)
    if not xs:
        raise ValueError("add_n requires at least one input")
    if len(xs) == 1:
        return xs[0]
    static = next((x.static_shape() for x in xs if x.static_shape() is not None), None)
    return Tensor.builder().set_inputs(xs).set_shape(static).build(AddN())
