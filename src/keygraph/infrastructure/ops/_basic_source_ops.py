"""
Source (leaf) ops: placeholders, variables, constants and literals.

Leaves have no inputs. Their values come from outside the graph:

- placeholders are fed per evaluation through `Context.feed`
- variables and constants live in a `Context`'s persisted storage
- literals (`convert_to_tensor`, `scalar`) are held by the op itself

None of these ops are ever asked to compute when their value is available,
so `compute` is where a missing value is reported.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional, Sequence, Union

import numpy as np

from ...domain._errors import PlaceholderNotFedError, VariableNotFoundError
from ...domain._op import Op
from ..tensor._tensor import DEFAULT_DTYPE, Number, Tensor

if TYPE_CHECKING:
    from ..runtime._compute_context import ComputeContext
    from ..runtime._context import Context


class _SourceOp(Op):
    def grad(self, gy, inputs, output):
        return []


class Placeholder(_SourceOp):
    """
    Leaf whose value must be fed for every evaluation.

    Parameters
    ----------
    declared_shape : tuple[int, ...] | None
        Shape checked by `Context.feed`; ``-1`` marks a dimension of any size.
    """

    def __init__(self, declared_shape: Optional[tuple[int, ...]] = None) -> None:
        self.declared_shape = declared_shape

    def compute(self, ctx: "ComputeContext"):
        raise PlaceholderNotFedError(ctx.node.id)


class Variable(_SourceOp):
    """
    Leaf backed by mutable persisted storage in a `Context`.
    """

    def compute(self, ctx: "ComputeContext"):
        raise VariableNotFoundError(ctx.node.id, self.name)


class Constant(_SourceOp):
    """
    Leaf backed by read-only persisted storage in a `Context`.
    """

    def compute(self, ctx: "ComputeContext"):
        raise VariableNotFoundError(ctx.node.id, self.name)


class ConvertToTensor(_SourceOp):
    """
    Leaf holding a literal array.

    The array is stored read-only: the same object is returned on every
    evaluation, so in-place ops must not be able to change it.
    """

    def __init__(self, value: np.ndarray) -> None:
        value.setflags(write=False)
        self.value = value

    def compute(self, ctx: "ComputeContext") -> np.ndarray:
        return self.value


def placeholder(shape: Union[Sequence[int], Tensor, None] = None) -> Tensor:
    """
    Create a placeholder node.

    Parameters
    ----------
    shape : Sequence[int] | Tensor | None
        Declared shape. Dimensions of ``-1`` are unknown until fed. A Tensor
        computing a shape vector makes the shape fully dynamic.

    Returns
    -------
    Tensor
        The placeholder node. Its static shape is set only when every
        dimension is known.
    """
    if isinstance(shape, Tensor):
        return Tensor.builder().set_shape(shape).build(Placeholder())

    declared = None if shape is None else tuple(int(d) for d in shape)
    static = declared if declared is not None and -1 not in declared else None
    return Tensor.builder().set_shape(static).build(Placeholder(declared))


def variable(arr: Any, ctx: "Context") -> Tensor:
    """
    Same as `Context.declare_variable`.
    """
    return ctx.declare_variable(arr)


def constant(arr: Any, ctx: "Context") -> Tensor:
    """
    Same as `Context.declare_constant`.
    """
    return ctx.declare_constant(arr)


def convert_to_tensor(value: Any, dtype: Any = DEFAULT_DTYPE) -> Tensor:
    """
    Wrap an array-like literal into a non-differentiable leaf node.

    The value is copied, so later changes to the caller's array do not
    affect the graph.
    """
    arr = np.array(value, dtype=dtype, copy=True)
    return (
        Tensor.builder()
        .set_shape(arr.shape)
        .set_differentiable(False)
        .build(ConvertToTensor(arr))
    )


def scalar(value: Number) -> Tensor:
    """
    Create a 0-d literal node.
    """
    return convert_to_tensor(value)
