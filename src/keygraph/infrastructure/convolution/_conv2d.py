"""
2D convolution and the shared filter-gradient op.

Layouts
-------
- x: (batch, xch, xh, xw)
- w: (ych, xch, kh, kw)
- y: (batch, ych, yh, yw)

Padding, stride and dilation are scalars applied to both spatial axes.

Forward computation is im2col per batch item (fork-join over the batch)
followed by one batched matrix product ``w_flat @ cols``. The filter gradient
reuses the same unrolled columns, and is shared with `conv2d_transpose`:
for both ops it is the correlation of an "image" with a "gradient map".

Gradients are built from the three conv ops themselves, so they can be
differentiated again.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

import numpy as np

from ...domain._op import Op
from ..ops._array_ops import shape, stop_gradient
from ..tensor._tensor import Tensor
from ._im2col import conv_output_size, im2col
from ._parallel import parallel_for_batch

if TYPE_CHECKING:
    from ..runtime._compute_context import ComputeContext


class ConvOpBase(Op):
    """
    Common parameters and validation for the convolution ops.

    Parameters
    ----------
    pad : int
        Zero padding on each spatial side (>= 0).
    stride : int
        Step between receptive fields (>= 1).
    dilation : int
        Spacing between kernel taps (>= 1).
    num_workers : int, optional
        Worker threads for the batch fork-join; defaults to the
        ``KEYGRAPH_NUM_THREADS`` setting.

    Raises
    ------
    ValueError
        If a parameter is out of range.
    """

    def __init__(
        self,
        pad: int = 0,
        stride: int = 1,
        dilation: int = 1,
        num_workers: Optional[int] = None,
    ) -> None:
        pad, stride, dilation = int(pad), int(stride), int(dilation)
        if pad < 0:
            raise ValueError(f"pad must be >= 0, got {pad}")
        if stride < 1:
            raise ValueError(f"stride must be >= 1, got {stride}")
        if dilation < 1:
            raise ValueError(f"dilation must be >= 1, got {dilation}")
        self.pad = pad
        self.stride = stride
        self.dilation = dilation
        self.num_workers = num_workers

    def params(self) -> dict:
        return {
            "pad": self.pad,
            "stride": self.stride,
            "dilation": self.dilation,
            "num_workers": self.num_workers,
        }

    def output_size(self, size: int, k: int) -> int:
        return conv_output_size(size, k, self.pad, self.stride, self.dilation)

    def unroll(self, images: np.ndarray, kh: int, kw: int, oh: int, ow: int) -> np.ndarray:
        """
        im2col every batch item into a (batch, ch * kh * kw, oh * ow) array.
        """
        b, ch = images.shape[:2]
        cols = np.empty((b, ch * kh * kw, oh * ow), dtype=images.dtype)

        def work(i: int) -> None:
            im2col(
                images[i], kh, kw, self.pad, self.stride, self.dilation, out=cols[i]
            )

        parallel_for_batch(work, b, self.num_workers)
        return cols

    def __repr__(self) -> str:
        return (
            f"{self.name}(pad={self.pad}, stride={self.stride}, "
            f"dilation={self.dilation})"
        )


def _check_rank4(op_name: str, what: str, a: np.ndarray) -> None:
    if a.ndim != 4:
        raise ValueError(f"{op_name}: {what} must be 4-D, got shape {a.shape}")


class Conv2D(ConvOpBase):
    """
    y = conv2d(x, w).
    """

    def compute(self, ctx: "ComputeContext") -> np.ndarray:
        x, w = ctx.grab_inputs()
        _check_rank4(self.name, "x", x)
        _check_rank4(self.name, "w", w)

        b, xch, xh, xw = x.shape
        ych, wch, kh, kw = w.shape
        if xch != wch:
            raise ValueError(
                f"{self.name}: x has {xch} channels but w expects {wch}"
            )
        yh, yw = self.output_size(xh, kh), self.output_size(xw, kw)
        if yh <= 0 or yw <= 0:
            raise ValueError(
                f"{self.name}: kernel ({kh}, {kw}) does not fit input ({xh}, {xw}) "
                f"with pad={self.pad}, dilation={self.dilation}"
            )

        cols = self.unroll(x, kh, kw, yh, yw)
        y = np.matmul(w.reshape(ych, xch * kh * kw), cols)
        return y.reshape(b, ych, yh, yw)

    def grad(self, gy, inputs, output):
        from .transpose._conv2d_transpose import conv2d_transpose

        x, w = inputs
        return [
            conv2d_transpose(gy, w, output_shape=shape(x), **self.params()),
            conv2d_filter_grad(x, gy, stop_gradient(w), **self.params()),
        ]


class Conv2DFilterGrad(ConvOpBase):
    """
    Gradient of a convolution with respect to its filter.

    Inputs are ``(image, grad_map, w)``: `image` plays the role of the conv
    input, `grad_map` the role of the conv output gradient, and `w` only
    provides the filter shape.

    Computes ``gw = sum_b grad_map_b @ im2col(image_b).T``.
    """

    def compute(self, ctx: "ComputeContext") -> np.ndarray:
        image, grad_map, w = ctx.grab_inputs()
        _check_rank4(self.name, "image", image)
        _check_rank4(self.name, "grad_map", grad_map)
        _check_rank4(self.name, "w", w)

        b, xch, xh, xw = image.shape
        ych, wch, kh, kw = w.shape
        if xch != wch:
            raise ValueError(
                f"{self.name}: image has {xch} channels but w expects {wch}"
            )
        yh, yw = self.output_size(xh, kh), self.output_size(xw, kw)
        if grad_map.shape != (b, ych, yh, yw):
            raise ValueError(
                f"{self.name}: grad_map shape {grad_map.shape} does not match "
                f"the expected {(b, ych, yh, yw)}"
            )

        cols = self.unroll(image, kh, kw, yh, yw)
        gw = np.tensordot(
            grad_map.reshape(b, ych, yh * yw), cols, axes=([0, 2], [0, 2])
        )
        return gw.reshape(w.shape)

    def grad(self, gy, inputs, output):
        from .transpose._conv2d_transpose import conv2d_transpose

        image, grad_map, _ = inputs
        return [
            conv2d_transpose(grad_map, gy, output_shape=shape(image), **self.params()),
            conv2d(image, gy, **self.params()),
            None,
        ]


def conv2d(
    x: Tensor,
    w: Tensor,
    pad: int = 0,
    stride: int = 1,
    dilation: int = 1,
    num_workers: Optional[int] = None,
) -> Tensor:
    """
    2D convolution (cross-correlation) of `x` with filter `w`.

    Parameters
    ----------
    x : Tensor
        Input of shape (batch, xch, xh, xw).
    w : Tensor
        Filter of shape (ych, xch, kh, kw).
    pad, stride, dilation : int
        Convolution parameters, applied to both spatial axes.
    num_workers : int, optional
        Worker threads for the batch fork-join.

    Returns
    -------
    Tensor
        Output of shape (batch, ych, yh, yw) with
        ``yh = (xh + 2*pad - (dilation*(kh-1)+1)) // stride + 1``.

    Raises
    ------
    ValueError
        Immediately for invalid parameters; at evaluation for incompatible
        shapes.
    """
    op = Conv2D(pad, stride, dilation, num_workers)
    static = None
    xs, ws = x.static_shape(), w.static_shape()
    if xs is not None and ws is not None and len(xs) == 4 and len(ws) == 4:
        static = (
            xs[0],
            ws[0],
            op.output_size(xs[2], ws[2]),
            op.output_size(xs[3], ws[3]),
        )
    return Tensor.builder().set_inputs([x, w]).set_shape(static).build(op)


def conv2d_filter_grad(
    image: Tensor,
    grad_map: Tensor,
    w: Tensor,
    pad: int = 0,
    stride: int = 1,
    dilation: int = 1,
    num_workers: Optional[int] = None,
) -> Tensor:
    """
    Filter gradient of ``conv2d(image, w)`` given the output gradient
    `grad_map`. The result has `w`'s shape.
    """
    op = Conv2DFilterGrad(pad, stride, dilation, num_workers)
    return (
        Tensor.builder()
        .set_inputs([image, grad_map, w])
        .set_shape(w.shape)
        .build(op)
    )
