"""
keygraph: lazy computation graphs over NumPy with reverse-mode autodiff.

Typical usage
-------------
    import numpy as np
    import keygraph as kg

    ctx = kg.Context()
    x = kg.placeholder((2,))
    v = ctx.declare_variable(np.array([2.0, 2.0]))
    z = x * v + kg.ones((2,))

    (gv,) = kg.gradients(z, [v])
    ctx.feed(x, np.array([1.0, 3.0]))
    z_val, gv_val = ctx.evaluate([z, gv])
"""

from .domain import (
    BroadcastError,
    Delegate,
    NotPlaceholderError,
    Op,
    PlaceholderNotFedError,
    PlaceholderShapeError,
    VariableNotFoundError,
)
from .infrastructure.convolution import conv2d, conv2d_filter_grad, conv2d_transpose
from .infrastructure.ops import (
    add,
    add_n,
    broadcast_to_shape,
    constant,
    convert_to_tensor,
    div,
    expand_dims,
    identity,
    inplace_add,
    inplace_div,
    inplace_mul,
    inplace_sub,
    mul,
    neg,
    ones,
    placeholder,
    pow,
    reduce_sum,
    scalar,
    shape,
    stop_gradient,
    sub,
    sum_to_shape,
    variable,
    zeros,
)
from .infrastructure.runtime import ComputeContext, Context, gradients
from .infrastructure.tensor import Tensor

__version__ = "0.1.0"

__all__ = [
    Tensor.__name__,
    Op.__name__,
    Delegate.__name__,
    Context.__name__,
    ComputeContext.__name__,
    gradients.__name__,
    # errors
    BroadcastError.__name__,
    NotPlaceholderError.__name__,
    PlaceholderNotFedError.__name__,
    PlaceholderShapeError.__name__,
    VariableNotFoundError.__name__,
    # ops
    placeholder.__name__,
    variable.__name__,
    constant.__name__,
    convert_to_tensor.__name__,
    scalar.__name__,
    shape.__name__,
    zeros.__name__,
    ones.__name__,
    stop_gradient.__name__,
    identity.__name__,
    add.__name__,
    sub.__name__,
    mul.__name__,
    div.__name__,
    inplace_add.__name__,
    inplace_sub.__name__,
    inplace_mul.__name__,
    inplace_div.__name__,
    sum_to_shape.__name__,
    broadcast_to_shape.__name__,
    neg.__name__,
    pow.__name__,
    reduce_sum.__name__,
    expand_dims.__name__,
    add_n.__name__,
    conv2d.__name__,
    conv2d_transpose.__name__,
    conv2d_filter_grad.__name__,
]
