"""
Transposed 2D convolution.
"""

from ._conv2d_transpose import Conv2DTranspose, conv2d_transpose

__all__ = [Conv2DTranspose.__name__, conv2d_transpose.__name__]
