"""
im2col / col2im primitives for single images (CHW layout).

`im2col` unrolls every receptive field of a padded image into a column so a
convolution becomes one matrix product. `col2im` is its adjoint: it scatters
the columns back and sums overlapping positions.

Column layout
-------------
For an image of shape ``(ch, h, w)`` and a ``kh x kw`` kernel the column
matrix has shape ``(ch * kh * kw, oh * ow)``: rows are ordered
channel-major, then kernel row, then kernel column, matching a filter
flattened as ``w.reshape(ych, ch * kh * kw)``.

Both functions loop over the ``kh * kw`` kernel offsets only; each offset is
a single strided slice over all output positions.
"""

from __future__ import annotations

from typing import Optional

import numpy as np


def conv_output_size(size: int, k: int, pad: int, stride: int, dilation: int) -> int:
    """
    Spatial output size of a convolution along one axis.
    """
    return (size + 2 * pad - (dilation * (k - 1) + 1)) // stride + 1


def conv_transpose_output_size(
    size: int, k: int, pad: int, stride: int, dilation: int
) -> int:
    """
    Spatial output size of a transposed convolution along one axis.

    This is the smallest input size whose convolution has `size` outputs.
    """
    return (size - 1) * stride - 2 * pad + dilation * (k - 1) + 1


def im2col(
    img: np.ndarray,
    kh: int,
    kw: int,
    pad: int = 0,
    stride: int = 1,
    dilation: int = 1,
    out: Optional[np.ndarray] = None,
) -> np.ndarray:
    """
    Unroll the receptive fields of one image into columns.

    Parameters
    ----------
    img : np.ndarray
        Image of shape (ch, h, w).
    kh, kw : int
        Kernel height and width.
    pad, stride, dilation : int
        Convolution parameters (same on both spatial axes).
    out : np.ndarray, optional
        C-contiguous destination of shape (ch * kh * kw, oh * ow).

    Returns
    -------
    np.ndarray
        Column matrix of shape (ch * kh * kw, oh * ow).
    """
    ch, h, w = img.shape
    oh = conv_output_size(h, kh, pad, stride, dilation)
    ow = conv_output_size(w, kw, pad, stride, dilation)

    if pad:
        img = np.pad(img, ((0, 0), (pad, pad), (pad, pad)))

    if out is None:
        out = np.empty((ch * kh * kw, oh * ow), dtype=img.dtype)
    col = out.reshape(ch, kh, kw, oh, ow)

    for i in range(kh):
        y0 = i * dilation
        y1 = y0 + stride * (oh - 1) + 1
        for j in range(kw):
            x0 = j * dilation
            x1 = x0 + stride * (ow - 1) + 1
            col[:, i, j] = img[:, y0:y1:stride, x0:x1:stride]

    return out


def col2im(
    col: np.ndarray,
    ch: int,
    h: int,
    w: int,
    kh: int,
    kw: int,
    pad: int = 0,
    stride: int = 1,
    dilation: int = 1,
    out: Optional[np.ndarray] = None,
) -> np.ndarray:
    """
    Scatter columns back into an image, summing overlapping positions.

    Parameters
    ----------
    col : np.ndarray
        Column matrix of shape (ch * kh * kw, oh * ow), where `oh`/`ow` are
        the convolution output sizes for an image of size (h, w).
    ch, h, w : int
        Shape of the reconstructed image.
    kh, kw : int
        Kernel height and width.
    pad, stride, dilation : int
        Convolution parameters.
    out : np.ndarray, optional
        Destination of shape (ch, h, w); overwritten.

    Returns
    -------
    np.ndarray
        Image of shape (ch, h, w).
    """
    oh = conv_output_size(h, kh, pad, stride, dilation)
    ow = conv_output_size(w, kw, pad, stride, dilation)
    col = col.reshape(ch, kh, kw, oh, ow)

    padded = np.zeros((ch, h + 2 * pad, w + 2 * pad), dtype=col.dtype)
    for i in range(kh):
        y0 = i * dilation
        y1 = y0 + stride * (oh - 1) + 1
        for j in range(kw):
            x0 = j * dilation
            x1 = x0 + stride * (ow - 1) + 1
            padded[:, y0:y1:stride, x0:x1:stride] += col[:, i, j]

    img = padded[:, pad : pad + h, pad : pad + w]
    if out is None:
        return np.ascontiguousarray(img)
    out[...] = img
    return out
