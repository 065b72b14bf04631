import unittest
from unittest import TestCase

import numpy as np

from keygraph.domain import Delegate, Op
from keygraph.infrastructure.ops import identity, inplace_add, placeholder
from keygraph.infrastructure.runtime import Context, evaluate, topological_sort
from keygraph.infrastructure.runtime._compute_context import ComputeContext
from keygraph.infrastructure.tensor import Tensor


class _CountingSource(Op):
    def __init__(self) -> None:
        self.calls = 0

    def compute(self, ctx):
        self.calls += 1
        return np.ones(2, dtype=np.float32)

    def grad(self, gy, inputs, output):
        return []


class _ReturnsJunk(Op):
    def __init__(self, result) -> None:
        self.result = result

    def compute(self, ctx):
        return self.result

    def grad(self, gy, inputs, output):
        return [None] * len(output.inputs)


class TestTopologicalSort(TestCase):

    def test_inputs_before_consumers(self):
        a = placeholder((2,))
        b = placeholder((2,))
        c = a + b
        d = c * a
        order = topological_sort([d])
        pos = {n.id: i for i, n in enumerate(order)}
        self.assertLess(pos[a.id], pos[c.id])
        self.assertLess(pos[b.id], pos[c.id])
        self.assertLess(pos[c.id], pos[d.id])

    def test_deduplicates_shared_nodes(self):
        a = placeholder((2,))
        b = a + a
        c = b * b
        order = topological_sort([c, b, a])
        ids = [n.id for n in order]
        self.assertEqual(len(ids), len(set(ids)))
        self.assertEqual(ids, [a.id, b.id, c.id])

    def test_deep_chain_does_not_recurse(self):
        ctx = Context()
        x = placeholder(())
        y = x
        for _ in range(3000):
            y = y + 1.0
        ctx.feed(x, 0.0)
        (out,) = ctx.evaluate([y])
        self.assertEqual(float(out), 3000.0)


class TestEvaluate(TestCase):

    def test_shared_subgraph_computed_once(self):
        ctx = Context()
        op = _CountingSource()
        n = Tensor.builder().set_shape((2,)).build(op)
        y = n + n
        z = y * n
        z_val, y_val = ctx.evaluate([z, y])
        self.assertEqual(op.calls, 1)
        np.testing.assert_allclose(z_val, [2.0, 2.0])
        np.testing.assert_allclose(y_val, [2.0, 2.0])

    def test_delegate_is_zero_copy(self):
        ctx = Context()
        v = ctx.declare_variable([1.0, 2.0])
        (out,) = ctx.evaluate([identity(v)])
        self.assertIs(out, ctx.variables[v.id])

    def test_numpy_scalar_result_is_wrapped(self):
        ctx = Context()
        x = placeholder((2,))
        n = Tensor.builder().set_inputs([x]).build(_ReturnsJunk(np.float32(3.0)))
        ctx.feed(x, [1.0, 2.0])
        (out,) = ctx.evaluate([n])
        self.assertIsInstance(out, np.ndarray)
        self.assertEqual(out.shape, ())

    def test_invalid_result_raises(self):
        ctx = Context()
        x = placeholder((2,))
        for junk in ("abc", [1.0, 2.0], Delegate(3)):
            n = Tensor.builder().set_inputs([x]).build(_ReturnsJunk(junk))
            ctx.feed(x, [1.0, 2.0])
            with self.assertRaises(TypeError):
                ctx.evaluate([n])

    def test_runtime_keeps_outputs_for_caller(self):
        ctx = Context()
        x = placeholder((1,))
        y = x + 1.0
        ctx.feed(x, [1.0])
        evaluate([y], ctx)
        self.assertIn(y.id, ctx.outputs)
        # Already cached: the placeholder is not consulted again.
        (again,) = evaluate([y], ctx)
        np.testing.assert_allclose(again, [2.0])

    def test_rejects_non_tensor_targets(self):
        with self.assertRaises(TypeError):
            evaluate([np.zeros(1)], Context())


class TestComputeContext(TestCase):

    def test_assignable_inputs_announce_destination(self):
        x = placeholder((2,))
        dest, other = np.zeros(2), np.ones(2)
        seen = []
        cctx = ComputeContext(node=x, xs=[dest, other], before_write=seen.append)
        self.assertEqual(seen, [])
        self.assertEqual(len(cctx.grab_inputs()), 2)
        self.assertEqual(seen, [])
        xs = cctx.grab_assignable_inputs()
        self.assertIs(xs[0], dest)
        self.assertEqual(len(seen), 1)
        self.assertIs(seen[0], dest)

    def test_without_hook(self):
        x = placeholder((2,))
        dest = np.zeros(2)
        cctx = ComputeContext(node=x, xs=[dest])
        self.assertIs(cctx.grab_assignable_inputs()[0], dest)

    def test_only_aliases_of_destination_are_copied(self):
        ctx = Context()
        v = ctx.declare_variable([1.0])
        w = ctx.declare_variable([5.0])
        alias_v, alias_w = identity(v), identity(w)
        update = inplace_add(v, 1.0)
        av, aw, _ = ctx.evaluate([alias_v, alias_w, update])
        self.assertIsNot(av, ctx.variables[v.id])
        self.assertIs(aw, ctx.variables[w.id])
        np.testing.assert_allclose(av, [1.0])


if __name__ == "__main__":
    unittest.main()
