"""
2D convolution family.

Public API
----------
- ``conv2d`` / ``Conv2D``: forward convolution
- ``conv2d_transpose`` / ``Conv2DTranspose``: its adjoint
- ``conv2d_filter_grad`` / ``Conv2DFilterGrad``: filter gradient shared by both
- ``im2col`` / ``col2im`` and the output-size helpers
"""

from ._conv2d import Conv2D, Conv2DFilterGrad, conv2d, conv2d_filter_grad
from ._im2col import col2im, conv_output_size, conv_transpose_output_size, im2col
from ._parallel import NUM_THREADS_ENV, parallel_for_batch, resolve_num_workers
from .transpose import Conv2DTranspose, conv2d_transpose

__all__ = [
    Conv2D.__name__,
    Conv2DFilterGrad.__name__,
    Conv2DTranspose.__name__,
    conv2d.__name__,
    conv2d_filter_grad.__name__,
    conv2d_transpose.__name__,
    im2col.__name__,
    col2im.__name__,
    conv_output_size.__name__,
    conv_transpose_output_size.__name__,
    parallel_for_batch.__name__,
    resolve_num_workers.__name__,
    "NUM_THREADS_ENV",
]
