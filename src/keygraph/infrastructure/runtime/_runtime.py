"""
Lazy evaluation runtime.

Given requested output nodes and an evaluation context, the runtime builds a
topological schedule of everything the outputs depend on and computes each
node once, in order.

Algorithm
---------
1) Depth-first walk over input edges from the requested nodes, deduplicated
   by node id, producing a post-order (each node after all of its inputs).
   Shared sub-graphs therefore appear, and are computed, exactly once.
2) For each scheduled node:
   - reuse the value already held by the context (fed placeholder, persisted
     variable/constant, or previously computed output);
   - otherwise call `op.compute` with the materialized input values;
   - resolve a `Delegate` result to the referenced input's value (same array
     object, no copy) and cache it in the context's transient outputs.

Notes
-----
- The walk is iterative so deep graphs (e.g. long gradient chains) do not hit
  the interpreter's recursion limit.
- Source ops that need external values (placeholders, variables) raise their
  own usage errors from `compute`, so the runtime has no knowledge of the op
  catalog.
- The traversal is synchronous and single-threaded. Ops may parallelize
  internally.
- In-place ops announce their write through the compute context. Values
  computed earlier in the pass that alias the destination are copied first;
  fed placeholders and persisted variables are the storage itself and are
  written. Nodes scheduled after the in-place node see the updated value.
"""

from __future__ import annotations

from functools import partial
from numbers import Number
from typing import TYPE_CHECKING, Sequence

import numpy as np

from ...domain._op import Delegate
from ..tensor._tensor import Tensor
from ._compute_context import ComputeContext

if TYPE_CHECKING:
    from ._context import Context


def topological_sort(targets: Sequence[Tensor]) -> list[Tensor]:
    """
    Return every node reachable from `targets`, inputs before consumers.

    Parameters
    ----------
    targets : Sequence[Tensor]
        Nodes to start the walk from.

    Returns
    -------
    list[Tensor]
        Post-order schedule, deduplicated by node id.
    """
    order: list[Tensor] = []
    visited: set[int] = set()

    for root in targets:
        if root.id in visited:
            continue
        stack: list[tuple[Tensor, bool]] = [(root, False)]
        while stack:
            node, expanded = stack.pop()
            if expanded:
                order.append(node)
                continue
            if node.id in visited:
                continue
            visited.add(node.id)
            stack.append((node, True))
            # Reversed so the first input is expanded first.
            for x in reversed(node.inputs):
                if x.id not in visited:
                    stack.append((x, False))

    return order


def _lookup(ctx: "Context", node: Tensor) -> np.ndarray:
    nid = node.id
    if nid in ctx.outputs:
        return ctx.outputs[nid]
    return ctx.variables[nid]


def _detach_aliases(
    outputs: dict[int, np.ndarray], computed: Sequence[int], dest: np.ndarray
) -> None:
    """
    Replace values computed earlier in this pass that view `dest` by copies.

    Called right before an in-place op writes `dest`, so nodes already
    evaluated keep the value they had when they were computed.
    """
    for nid in computed:
        value = outputs[nid]
        if np.may_share_memory(value, dest):
            outputs[nid] = value.copy()


def _resolve_result(
    node: Tensor, result: object, xs: Sequence[np.ndarray]
) -> np.ndarray:
    """
    Turn an `Op.compute` result into the array stored for `node`.

    Raises
    ------
    TypeError
        If the result is neither an array-like value nor a valid `Delegate`.
    """
    if isinstance(result, Delegate):
        if not 0 <= result.to < len(xs):
            raise TypeError(
                f"{node.name} delegated to input {result.to}, "
                f"but it only has {len(xs)} inputs"
            )
        return xs[result.to]
    if isinstance(result, np.ndarray):
        return result
    if isinstance(result, (np.generic, Number)):
        return np.asarray(result)
    raise TypeError(
        f"{node.name}.compute must return an ndarray or a Delegate, "
        f"got {type(result)!r}"
    )


def evaluate(targets: Sequence[Tensor], ctx: "Context") -> list[np.ndarray]:
    """
    Compute the values of `targets` in `ctx`.

    Parameters
    ----------
    targets : Sequence[Tensor]
        Requested output nodes.
    ctx : Context
        Evaluation context providing fed values and persisted variables.
        Computed values are cached in `ctx.outputs`; this function does not
        clear them (see `Context.evaluate`).

    Returns
    -------
    list[np.ndarray]
        One value per target, in order. Values may alias persisted variables
        or fed arrays when ops delegate.

    Raises
    ------
    PlaceholderNotFedError
        If a required placeholder has no fed value.
    VariableNotFoundError
        If a variable/constant was declared in another context.
    BroadcastError, ValueError
        If an op's compute rejects its operand shapes.
    """
    targets = list(targets)
    for t in targets:
        if not isinstance(t, Tensor):
            raise TypeError(f"evaluate expects Tensors, got {type(t)!r}")

    outputs = ctx.outputs
    variables = ctx.variables
    computed: list[int] = []
    before_write = partial(_detach_aliases, outputs, computed)

    for node in topological_sort(targets):
        nid = node.id
        if nid in outputs or nid in variables:
            continue
        xs = [_lookup(ctx, x) for x in node.inputs]
        cctx = ComputeContext(node=node, xs=xs, before_write=before_write)
        result = node.op.compute(cctx)
        outputs[nid] = _resolve_result(node, result, xs)
        computed.append(nid)

    return [_lookup(ctx, t) for t in targets]
