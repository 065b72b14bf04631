"""
Graph node type and its builder.

Public API
----------
- ``Tensor``: immutable DAG node
- ``TensorBuilder``: the only way to construct nodes
"""

from ._tensor import Tensor
from ._tensor_builder import TensorBuilder, next_node_id, normalize_shape

__all__ = [
    Tensor.__name__,
    TensorBuilder.__name__,
    next_node_id.__name__,
    normalize_shape.__name__,
]
