"""
Unary math ops.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from ...domain._op import Op
from ..tensor._tensor import Number, Tensor

if TYPE_CHECKING:
    from ..runtime._compute_context import ComputeContext


class NegOp(Op):
    """
    Elementwise negation.
    """

    def compute(self, ctx: "ComputeContext") -> np.ndarray:
        (x,) = ctx.grab_inputs()
        return np.negative(x)

    def grad(self, gy, inputs, output):
        return [neg(gy)]


class PowOp(Op):
    """
    Raise the input to a fixed scalar exponent.

    Parameters
    ----------
    exponent : int | float
        Exponent held by the op (not a graph input).
    """

    def __init__(self, exponent: Number) -> None:
        self.exponent = exponent

    def compute(self, ctx: "ComputeContext") -> np.ndarray:
        (x,) = ctx.grab_inputs()
        return np.power(x, self.exponent)

    def grad(self, gy, inputs, output):
        from ._binary_ops import mul

        (x,) = inputs
        e = self.exponent
        return [mul(gy, mul(e, pow(x, e - 1)))]

    def __repr__(self) -> str:
        return f"{self.name}(exponent={self.exponent!r})"


def neg(x: Tensor) -> Tensor:
    """
    Elementwise negation.
    """
    return Tensor.builder().set_inputs([x]).set_shape(x.shape).build(NegOp())


def pow(x: Tensor, exponent: Number) -> Tensor:
    """
    Elementwise ``x ** exponent`` for a scalar exponent.

    The gradient is ``gy * exponent * x ** (exponent - 1)``, itself built
    from `pow`, so derivatives of any order are available.
    """
    return Tensor.builder().set_inputs([x]).set_shape(x.shape).build(PowOp(exponent))
