"""
Concrete graph node implementation.

A `Tensor` here is a symbolic handle, not an array: it records one op applied
to an ordered list of input nodes and forms a DAG with them. Values are only
produced when an evaluation `Context` is asked for them.

Design notes
------------
- Nodes are immutable once built. Shared references across the graph need no
  synchronization.
- Identity is the integer arena index `id`; hashing uses it so that contexts
  can key their maps by node.
- Arithmetic operators build new nodes through the op catalog in
  `keygraph.infrastructure.ops`. The imports are local to each operator to
  avoid a circular import between the node type and the ops that build it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional, Sequence, Union

import numpy as np

from ...domain._op import Op
from ...domain._tensor import ITensor

if TYPE_CHECKING:
    from ..runtime._context import Context
    from ._tensor_builder import TensorBuilder

Number = Union[int, float]
"""Python scalar accepted wherever an operand or exponent is expected."""

DEFAULT_DTYPE = np.float32
"""Element dtype used for fed, persisted and literal values."""


class Tensor(ITensor):
    """
    Immutable node of a computation graph.

    Parameters
    ----------
    node_id : int
        Arena index assigned by the builder.
    op : Op
        Operation applied by this node.
    inputs : Sequence[Tensor]
        Ordered input nodes.
    shape : tuple[int, ...] | Tensor | None
        Statically known shape, a node computing the shape, or None.
    differentiable : bool
        Whether gradients propagate through this node.

    Notes
    -----
    Do not call the constructor directly; use `Tensor.builder()`.
    """

    # Make NumPy defer to our reflected operators (ndarray + Tensor).
    __array_ufunc__ = None

    def __init__(
        self,
        node_id: int,
        op: Op,
        inputs: Sequence["Tensor"],
        shape: Union[tuple[int, ...], "Tensor", None],
        differentiable: bool,
    ) -> None:
        object.__setattr__(self, "_id", int(node_id))
        object.__setattr__(self, "_op", op)
        object.__setattr__(self, "_inputs", tuple(inputs))
        object.__setattr__(self, "_shape", shape)
        object.__setattr__(self, "_differentiable", bool(differentiable))

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"Tensor nodes are immutable (tried to set {name!r})")

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"Tensor nodes are immutable (tried to delete {name!r})")

    @staticmethod
    def builder() -> "TensorBuilder":
        """
        Return a new `TensorBuilder`.
        """
        from ._tensor_builder import TensorBuilder

        return TensorBuilder()

    # ----------------------------
    # Node attributes
    # ----------------------------
    @property
    def id(self) -> int:
        return self._id

    @property
    def op(self) -> Op:
        return self._op

    @property
    def inputs(self) -> tuple["Tensor", ...]:
        return self._inputs

    @property
    def shape(self) -> Union[tuple[int, ...], "Tensor", None]:
        return self._shape

    @property
    def differentiable(self) -> bool:
        return self._differentiable

    @property
    def name(self) -> str:
        """
        Return the name of this node's op.
        """
        return self._op.name

    def is_source(self) -> bool:
        """
        Return True for leaves (nodes without inputs).
        """
        return not self._inputs

    def __hash__(self) -> int:
        return hash(self._id)

    def __repr__(self) -> str:
        shape = self._shape
        if isinstance(shape, Tensor):
            shape = f"<dynamic id={shape.id}>"
        return f"Tensor(id={self._id}, op={self._op.name}, shape={shape})"

    # ----------------------------
    # Evaluation
    # ----------------------------
    def eval(self, ctx: "Context") -> "np.ndarray":
        """
        Evaluate this node in `ctx`.

        Equivalent to ``ctx.evaluate([self])[0]``.
        """
        return ctx.evaluate([self])[0]

    # ----------------------------
    # Arithmetic operators
    # ----------------------------
    def __add__(self, other: Union["Tensor", Number]) -> "Tensor":
        from ..ops._binary_ops import add

        return add(self, other)

    def __radd__(self, other: Number) -> "Tensor":
        from ..ops._binary_ops import add

        return add(other, self)

    def __sub__(self, other: Union["Tensor", Number]) -> "Tensor":
        from ..ops._binary_ops import sub

        return sub(self, other)

    def __rsub__(self, other: Number) -> "Tensor":
        from ..ops._binary_ops import sub

        return sub(other, self)

    def __mul__(self, other: Union["Tensor", Number]) -> "Tensor":
        from ..ops._binary_ops import mul

        return mul(self, other)

    def __rmul__(self, other: Number) -> "Tensor":
        from ..ops._binary_ops import mul

        return mul(other, self)

    def __truediv__(self, other: Union["Tensor", Number]) -> "Tensor":
        from ..ops._binary_ops import div

        return div(self, other)

    def __rtruediv__(self, other: Number) -> "Tensor":
        from ..ops._binary_ops import div

        return div(other, self)

    def __neg__(self) -> "Tensor":
        from ..ops._math_ops import neg

        return neg(self)

    def __pow__(self, exponent: Number) -> "Tensor":
        from ..ops._math_ops import pow

        return pow(self, exponent)

    # A node has no value until evaluated.
    def __bool__(self) -> bool:
        raise TypeError(
            "The truth value of a symbolic Tensor is undefined; evaluate it first."
        )

    def static_shape(self) -> Optional[tuple[int, ...]]:
        """
        Return the literal shape, or None when unknown or dynamic.
        """
        return self._shape if isinstance(self._shape, tuple) else None
