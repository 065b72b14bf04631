"""
Evaluation and differentiation runtime.

Public API
----------
- ``Context``: persisted variables/constants and per-pass outputs
- ``ComputeContext``: per-invocation record handed to ``Op.compute``
- ``evaluate`` / ``topological_sort``: the lazy evaluation runtime
- ``gradients``: reverse-mode gradient graph construction
"""

from ._compute_context import ComputeContext
from ._context import Context
from ._gradient import gradients
from ._runtime import evaluate, topological_sort

__all__ = [
    Context.__name__,
    ComputeContext.__name__,
    evaluate.__name__,
    topological_sort.__name__,
    gradients.__name__,
]
