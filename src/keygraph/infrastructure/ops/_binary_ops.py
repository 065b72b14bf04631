"""
Binary elementwise ops and their in-place variants.

All binary ops follow NumPy broadcasting. When the operand shapes are
literal at build time the result shape is inferred then; incompatible
operand shapes are only reported at compute time, as `BroadcastError`.

Gradients reduce every operand gradient back to the operand's shape with
`sum_to_shape`, after the elementwise product for `mul`/`div`, so broadcast
operands receive correctly summed gradients.

In-place variants write into input 0 (`np.add(a, b, out=a)`) and delegate
their output to it. Applied to a variable, they are how variables are
updated. `inplace_mul`/`inplace_div` destroy the original operand, so no
gradient flows through them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Optional, Union

import numpy as np

from ...domain._errors import BroadcastError
from ...domain._op import Delegate, Op
from ..tensor._tensor import Tensor
from ._array_ops import shape
from ._basic_source_ops import convert_to_tensor
from ._broadcast_ops import sum_to_shape

if TYPE_CHECKING:
    from ..runtime._compute_context import ComputeContext

Operand = Union[Tensor, int, float, np.ndarray]


def _as_node(x: Operand) -> Tensor:
    if isinstance(x, Tensor):
        return x
    return convert_to_tensor(x)


def _infer_shape(a: Tensor, b: Tensor) -> Optional[tuple[int, ...]]:
    sa, sb = a.static_shape(), b.static_shape()
    if sa is None or sb is None:
        return None
    try:
        return tuple(np.broadcast_shapes(sa, sb))
    except ValueError:
        # Reported by compute, where the values are available.
        return None


def _broadcasts_to(src: tuple[int, ...], dst: tuple[int, ...]) -> bool:
    try:
        return np.broadcast_shapes(src, dst) == tuple(dst)
    except ValueError:
        return False


def _add_grad(gy, inputs):
    x0, x1 = inputs
    return [sum_to_shape(gy, shape(x0)), sum_to_shape(gy, shape(x1))]


def _sub_grad(gy, inputs):
    from ._math_ops import neg

    x0, x1 = inputs
    return [sum_to_shape(gy, shape(x0)), sum_to_shape(neg(gy), shape(x1))]


class _BinaryOp(Op):
    ufunc: Callable[..., np.ndarray]

    def compute(self, ctx: "ComputeContext") -> np.ndarray:
        a, b = ctx.grab_inputs()
        try:
            return self.ufunc(a, b)
        except ValueError as e:
            raise BroadcastError(self.name, a.shape, b.shape) from e


class AddOp(_BinaryOp):
    """
    Elementwise sum with broadcasting.
    """

    ufunc = np.add

    def grad(self, gy, inputs, output):
        return _add_grad(gy, inputs)


class SubOp(_BinaryOp):
    """
    Elementwise difference with broadcasting.
    """

    ufunc = np.subtract

    def grad(self, gy, inputs, output):
        return _sub_grad(gy, inputs)


class MulOp(_BinaryOp):
    """
    Elementwise product with broadcasting.
    """

    ufunc = np.multiply

    def grad(self, gy, inputs, output):
        x0, x1 = inputs
        return [
            sum_to_shape(mul(gy, x1), shape(x0)),
            sum_to_shape(mul(gy, x0), shape(x1)),
        ]


class DivOp(_BinaryOp):
    """
    Elementwise true division with broadcasting.
    """

    ufunc = np.true_divide

    def grad(self, gy, inputs, output):
        from ._math_ops import neg, pow

        x0, x1 = inputs
        return [
            sum_to_shape(div(gy, x1), shape(x0)),
            sum_to_shape(mul(mul(neg(x0), pow(x1, -2)), gy), shape(x1)),
        ]


class _InplaceOp(Op):
    """
    Base for ops that write their result into input 0.

    Input 1 must broadcast to input 0's shape: the destination's shape can
    never change.
    """

    ufunc: Callable[..., np.ndarray]

    def compute(self, ctx: "ComputeContext") -> Delegate:
        a, b = ctx.grab_assignable_inputs()
        if not _broadcasts_to(b.shape, a.shape):
            raise BroadcastError(self.name, a.shape, b.shape)
        self.ufunc(a, b, out=a)
        return Delegate(0)


class InplaceAdd(_InplaceOp):
    """
    Add input 1 into input 0.
    """

    ufunc = np.add

    def grad(self, gy, inputs, output):
        return _add_grad(gy, inputs)


class InplaceSub(_InplaceOp):
    """
    Subtract input 1 from input 0.
    """

    ufunc = np.subtract

    def grad(self, gy, inputs, output):
        return _sub_grad(gy, inputs)


class InplaceMul(_InplaceOp):
    """
    Multiply input 0 by input 1; blocks gradients.
    """

    ufunc = np.multiply

    def grad(self, gy, inputs, output):
        return [None, None]


class InplaceDiv(_InplaceOp):
    """
    Divide input 0 by input 1; blocks gradients.
    """

    ufunc = np.true_divide

    def grad(self, gy, inputs, output):
        return [None, None]


def _binary(op: Op, x0: Operand, x1: Operand) -> Tensor:
    a, b = _as_node(x0), _as_node(x1)
    return Tensor.builder().set_inputs([a, b]).set_shape(_infer_shape(a, b)).build(op)


def add(x0: Operand, x1: Operand) -> Tensor:
    """
    Elementwise ``x0 + x1`` with broadcasting.
    """
    return _binary(AddOp(), x0, x1)


def sub(x0: Operand, x1: Operand) -> Tensor:
    """
    Elementwise ``x0 - x1`` with broadcasting.
    """
    return _binary(SubOp(), x0, x1)


def mul(x0: Operand, x1: Operand) -> Tensor:
    """
    Elementwise ``x0 * x1`` with broadcasting.
    """
    return _binary(MulOp(), x0, x1)


def div(x0: Operand, x1: Operand) -> Tensor:
    """
    Elementwise ``x0 / x1`` with broadcasting.
    """
    return _binary(DivOp(), x0, x1)


def _inplace(op: Op, x0: Tensor, x1: Operand) -> Tensor:
    if not isinstance(x0, Tensor):
        raise TypeError(f"In-place destination must be a Tensor, got {type(x0)!r}")
    return (
        Tensor.builder()
        .set_inputs([x0, _as_node(x1)])
        .set_shape(x0.shape)
        .build(op)
    )


def inplace_add(x0: Tensor, x1: Operand) -> Tensor:
    """
    Add `x1` into `x0`'s storage and return a node aliasing it.

    Parameters
    ----------
    x0 : Tensor
        Destination. Its value is overwritten when the returned node is
        evaluated; on a variable, the change persists in the context.
    x1 : Tensor or scalar or array-like
        Value to add; must broadcast to `x0`'s shape.

    Returns
    -------
    Tensor
        Node whose value is `x0`'s (updated) storage.

    Raises
    ------
    BroadcastError
        At evaluation, if `x1` does not broadcast to `x0`'s shape.
    ValueError
        At evaluation, if `x0`'s storage is read-only (literal or constant).

    Notes
    -----
    Within one evaluation, nodes computed before the update keep the value
    they saw, even when they alias `x0`'s storage; nodes computed after it
    see the updated value.
    """
    return _inplace(InplaceAdd(), x0, x1)


def inplace_sub(x0: Tensor, x1: Operand) -> Tensor:
    """
    Subtract `x1` from `x0`'s storage in place. See `inplace_add`.
    """
    return _inplace(InplaceSub(), x0, x1)


def inplace_mul(x0: Tensor, x1: Operand) -> Tensor:
    """
    Multiply `x0`'s storage by `x1` in place. No gradient flows through.
    """
    return _inplace(InplaceMul(), x0, x1)


def inplace_div(x0: Tensor, x1: Operand) -> Tensor:
    """
    Divide `x0`'s storage by `x1` in place. No gradient flows through.
    """
    return _inplace(InplaceDiv(), x0, x1)
