"""
2D transposed convolution.

`conv2d_transpose(gy, w)` is the adjoint of `conv2d(., w)`: it maps an
output-shaped array back to input shape. It is the input gradient of
`conv2d`, and a layer in its own right (upsampling).

Computation: one batched matrix product ``w_flat.T @ gy_flat`` produces the
columns, then col2im per batch item (fork-join) scatters and sums them into
the result.

Output size
-----------
Several input sizes map to the same conv output size when the stride does
not divide evenly. Without an explicit `output_shape` the smallest one is
used: ``xh = (yh-1)*stride - 2*pad + dilation*(kh-1) + 1``. `conv2d`'s
gradient passes the forward input's shape so the gradient always matches.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Sequence, Union

import numpy as np

from ...ops._array_ops import as_shape_node, as_shape_tuple, stop_gradient
from ...tensor._tensor import Tensor
from .._conv2d import ConvOpBase, _check_rank4, conv2d, conv2d_filter_grad
from .._im2col import col2im, conv_transpose_output_size
from .._parallel import parallel_for_batch

if TYPE_CHECKING:
    from ...runtime._compute_context import ComputeContext


class Conv2DTranspose(ConvOpBase):
    """
    x = conv2d_transpose(gy, w).

    Inputs are ``(gy, w)`` or ``(gy, w, output_shape)`` where `output_shape`
    is a 4-element int64 shape vector.
    """

    def compute(self, ctx: "ComputeContext") -> np.ndarray:
        xs = ctx.grab_inputs()
        gy, w = xs[0], xs[1]
        _check_rank4(self.name, "gy", gy)
        _check_rank4(self.name, "w", w)

        b, gch, yh, yw = gy.shape
        ych, xch, kh, kw = w.shape
        if gch != ych:
            raise ValueError(
                f"{self.name}: gy has {gch} channels but w produces {ych}"
            )

        if len(xs) == 3:
            out_shape = as_shape_tuple(xs[2])
            if len(out_shape) != 4 or out_shape[:2] != (b, xch):
                raise ValueError(
                    f"{self.name}: output_shape {out_shape} is incompatible with "
                    f"batch={b}, channels={xch}"
                )
            xh, xw = out_shape[2:]
        else:
            xh = conv_transpose_output_size(yh, kh, self.pad, self.stride, self.dilation)
            xw = conv_transpose_output_size(yw, kw, self.pad, self.stride, self.dilation)

        fits = xh > 0 and xw > 0
        if not fits or (self.output_size(xh, kh), self.output_size(xw, kw)) != (yh, yw):
            raise ValueError(
                f"{self.name}: output size ({xh}, {xw}) does not convolve back to "
                f"({yh}, {yw}) with kernel ({kh}, {kw}), pad={self.pad}, "
                f"stride={self.stride}, dilation={self.dilation}"
            )

        m = xch * kh * kw
        cols = np.matmul(w.reshape(ych, m).T, gy.reshape(b, ych, yh * yw))
        gx = np.zeros((b, xch, xh, xw), dtype=cols.dtype)

        def work(i: int) -> None:
            col2im(
                cols[i], xch, xh, xw, kh, kw,
                self.pad, self.stride, self.dilation, out=gx[i],
            )

        parallel_for_batch(work, b, self.num_workers)
        return gx

    def grad(self, gz, inputs, output):
        gy, w = inputs[:2]
        grads = [
            conv2d(gz, w, **self.params()),
            conv2d_filter_grad(gz, gy, stop_gradient(w), **self.params()),
        ]
        if len(inputs) == 3:
            grads.append(None)
        return grads


def conv2d_transpose(
    gy: Tensor,
    w: Tensor,
    pad: int = 0,
    stride: int = 1,
    dilation: int = 1,
    output_shape: Union[Sequence[int], Tensor, None] = None,
    num_workers: Optional[int] = None,
) -> Tensor:
    """
    Transposed 2D convolution of `gy` with filter `w`.

    Parameters
    ----------
    gy : Tensor
        Input of shape (batch, ych, yh, yw).
    w : Tensor
        Filter of shape (ych, xch, kh, kw), the same layout `conv2d` uses.
    pad, stride, dilation : int
        Parameters of the convolution being transposed.
    output_shape : Sequence[int] | Tensor, optional
        Full result shape (batch, xch, xh, xw), literal or as a shape node.
        Needed when the stride does not divide the forward input size.
    num_workers : int, optional
        Worker threads for the batch fork-join.

    Returns
    -------
    Tensor
        Result of shape (batch, xch, xh, xw).

    Examples
    --------
    >>> ctx = Context()
    >>> w = ctx.declare_variable(np.ones((2, 3, 2, 2)))
    >>> gy = convert_to_tensor(np.ones((2, 2, 2, 2)))
    >>> ctx.evaluate([conv2d_transpose(gy, w)])[0].shape
    (2, 3, 3, 3)
    """
    op = Conv2DTranspose(pad, stride, dilation, num_workers)
    inputs = [gy, w]
    static: Union[tuple[int, ...], Tensor, None] = None

    if output_shape is not None:
        shape_node = as_shape_node(output_shape)
        inputs.append(shape_node)
        static = (
            output_shape
            if isinstance(output_shape, Tensor)
            else tuple(int(d) for d in output_shape)
        )
    else:
        gs, ws = gy.static_shape(), w.static_shape()
        if gs is not None and ws is not None and len(gs) == 4 and len(ws) == 4:
            static = (
                gs[0],
                ws[1],
                conv_transpose_output_size(gs[2], ws[2], op.pad, op.stride, op.dilation),
                conv_transpose_output_size(gs[3], ws[3], op.pad, op.stride, op.dilation),
            )

    return Tensor.builder().set_inputs(inputs).set_shape(static).build(op)
