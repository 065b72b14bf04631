"""
Operation catalog.

Each op is an `Op` subclass plus a builder function that wires it into a new
graph node. The builder functions are the public surface; op classes are
exported for `isinstance` checks and for subclassing.
"""

from ._array_ops import (
    Identity,
    Ones,
    Shape,
    StopGradient,
    Zeros,
    identity,
    ones,
    shape,
    stop_gradient,
    zeros,
)
from ._basic_source_ops import (
    Constant,
    ConvertToTensor,
    Placeholder,
    Variable,
    constant,
    convert_to_tensor,
    placeholder,
    scalar,
    variable,
)
from ._binary_ops import (
    AddOp,
    DivOp,
    InplaceAdd,
    InplaceDiv,
    InplaceMul,
    InplaceSub,
    MulOp,
    SubOp,
    add,
    div,
    inplace_add,
    inplace_div,
    inplace_mul,
    inplace_sub,
    mul,
    sub,
)
from ._broadcast_ops import (
    BroadcastToShape,
    SumToShape,
    broadcast_to_shape,
    sum_to_shape,
)
from ._math_ops import NegOp, PowOp, neg, pow
from ._reduction_ops import (
    AddN,
    ExpandDims,
    ReduceSum,
    add_n,
    expand_dims,
    reduce_sum,
)

__all__ = [
    # source
    Placeholder.__name__,
    Variable.__name__,
    Constant.__name__,
    ConvertToTensor.__name__,
    placeholder.__name__,
    variable.__name__,
    constant.__name__,
    convert_to_tensor.__name__,
    scalar.__name__,
    # array
    Shape.__name__,
    Zeros.__name__,
    Ones.__name__,
    StopGradient.__name__,
    Identity.__name__,
    shape.__name__,
    zeros.__name__,
    ones.__name__,
    stop_gradient.__name__,
    identity.__name__,
    # binary
    AddOp.__name__,
    SubOp.__name__,
    MulOp.__name__,
    DivOp.__name__,
    InplaceAdd.__name__,
    InplaceSub.__name__,
    InplaceMul.__name__,
    InplaceDiv.__name__,
    add.__name__,
    sub.__name__,
    mul.__name__,
    div.__name__,
    inplace_add.__name__,
    inplace_sub.__name__,
    inplace_mul.__name__,
    inplace_div.__name__,
    # broadcast reduction
    SumToShape.__name__,
    BroadcastToShape.__name__,
    sum_to_shape.__name__,
    broadcast_to_shape.__name__,
    # math / reduction
    NegOp.__name__,
    PowOp.__name__,
    neg.__name__,
    pow.__name__,
    ReduceSum.__name__,
    ExpandDims.__name__,
    AddN.__name__,
    reduce_sum.__name__,
    expand_dims.__name__,
    add_n.__name__,
]
