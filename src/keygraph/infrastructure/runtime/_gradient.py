"""
Reverse-mode gradient construction.

`gradients` walks the forward graph from the source nodes back towards the
targets and asks each op to build the gradient nodes for its inputs. The
result is an ordinary graph: it can be evaluated in a `Context`, or passed
back into `gradients` to obtain higher-order derivatives.

Algorithm
---------
1) Topologically sort everything reachable from the sources.
2) Mark the nodes that lie on some path from a target to a source; only
   those need gradients.
3) Seed each source with its output gradient (``ones(shape(y))`` by default).
4) Visit the nodes in reverse topological order. A node is only visited
   after all of its consumers, so every contribution it will ever receive is
   already recorded; the contributions are summed with `add_n` into one
   accumulated gradient, then the node's `op.grad` builds one (optional)
   gradient node per input.

Leaves, non-differentiable nodes and stop-gradient nodes accept gradients
but never propagate them further.
"""

from __future__ import annotations

from typing import Optional, Sequence, Union

from ..tensor._tensor import Tensor
from ._runtime import topological_sort


def _as_list(ys: Union[Tensor, Sequence[Tensor]]) -> list[Tensor]:
    if isinstance(ys, Tensor):
        return [ys]
    return list(ys)


def _accumulate(contributions: list[Tensor]) -> Tensor:
    from ..ops._reduction_ops import add_n

    if len(contributions) == 1:
        return contributions[0]
    return add_n(contributions)


def gradients(
    ys: Union[Tensor, Sequence[Tensor]],
    xs: Sequence[Tensor],
    output_grads: Optional[Sequence[Optional[Tensor]]] = None,
) -> list[Optional[Tensor]]:
    """
    Build gradient nodes of `ys` with respect to each of `xs`.

    Parameters
    ----------
    ys : Tensor or Sequence[Tensor]
        Source node(s). With several sources, their gradients are summed
        (the gradient of ``sum(ys)``).
    xs : Sequence[Tensor]
        Targets to differentiate with respect to.
    output_grads : Sequence[Tensor | None], optional
        Seed gradient per source. `None` entries (and the default) use a
        ones-valued node shaped like the source.

    Returns
    -------
    list[Tensor | None]
        One gradient node per target, or None when the target does not
        influence any source.

    Raises
    ------
    ValueError
        If the number of output gradients does not match the sources.
    RuntimeError
        If an op's `grad` does not return exactly one entry per input.
    TypeError
        If an op's `grad` returns something other than a Tensor or None.
    """
    from ..ops._array_ops import ones, shape

    ys = _as_list(ys)
    xs = list(xs)
    if output_grads is None:
        output_grads = [None] * len(ys)
    else:
        output_grads = list(output_grads)
        if len(output_grads) != len(ys):
            raise ValueError(
                f"Got {len(output_grads)} output gradients for {len(ys)} sources."
            )

    order = topological_sort(ys)

    # Nodes on a path from some target to some source.
    target_ids = {x.id for x in xs}
    relevant: set[int] = set()
    for node in order:
        if node.id in target_ids or any(i.id in relevant for i in node.inputs):
            relevant.add(node.id)

    contributions: dict[int, list[Tensor]] = {}
    for y, gy in zip(ys, output_grads):
        if y.id not in relevant:
            continue
        seed = gy if gy is not None else ones(shape(y))
        contributions.setdefault(y.id, []).append(seed)

    accumulated: dict[int, Tensor] = {}

    for node in reversed(order):
        nid = node.id
        if nid not in contributions:
            continue
        gy = _accumulate(contributions.pop(nid))
        accumulated[nid] = gy

        if node.is_source() or not node.differentiable:
            continue

        input_grads = list(node.op.grad(gy, node.inputs, node))
        if len(input_grads) != len(node.inputs):
            raise RuntimeError(
                f"{node.name}.grad must return one gradient per input. "
                f"Got {len(input_grads)} for {len(node.inputs)} inputs."
            )

        for x, g in zip(node.inputs, input_grads):
            if g is None or x.id not in relevant:
                continue
            if not isinstance(g, Tensor):
                raise TypeError(
                    f"{node.name}.grad must return Tensor or None, got {type(g)!r}"
                )
            contributions.setdefault(x.id, []).append(g)

    return [accumulated.get(x.id) for x in xs]
