import unittest
from unittest import TestCase

import numpy as np

from keygraph.domain import BroadcastError
from keygraph.infrastructure.ops import (
    BroadcastToShape,
    SumToShape,
    broadcast_to_shape,
    convert_to_tensor,
    placeholder,
    shape,
    sum_to_shape,
)
from keygraph.infrastructure.runtime import Context, gradients


def _eval(*nodes):
    return Context().evaluate(list(nodes))


class TestSumToShape(TestCase):

    def setUp(self):
        self.g_np = np.arange(24, dtype=np.float32).reshape(2, 3, 4)
        self.g = convert_to_tensor(self.g_np)

    def test_same_shape_is_zero_copy(self):
        ctx = Context()
        v = ctx.declare_variable(np.ones((2, 3)))
        (out,) = ctx.evaluate([sum_to_shape(v, (2, 3))])
        self.assertIs(out, ctx.variables[v.id])

    def test_reduce_leading_axes(self):
        (out,) = _eval(sum_to_shape(self.g, (4,)))
        np.testing.assert_allclose(out, self.g_np.sum(axis=(0, 1)))
        self.assertEqual(out.shape, (4,))

    def test_reduce_size_one_axes(self):
        (out,) = _eval(sum_to_shape(self.g, (3, 1)))
        np.testing.assert_allclose(out, self.g_np.sum(axis=(0, 2)).reshape(3, 1))

        (out,) = _eval(sum_to_shape(self.g, (1, 3, 4)))
        np.testing.assert_allclose(out, self.g_np.sum(axis=0, keepdims=True))

    def test_scalar_target(self):
        (out,) = _eval(sum_to_shape(self.g, ()))
        self.assertEqual(out.shape, ())
        self.assertAlmostEqual(float(out), float(self.g_np.sum()))

    def test_static_shape_is_target(self):
        node = sum_to_shape(self.g, (3, 1))
        self.assertIsInstance(node.op, SumToShape)
        self.assertEqual(node.shape, (3, 1))

    def test_incompatible_target_raises(self):
        with self.assertRaises(BroadcastError):
            _eval(sum_to_shape(self.g, (5,)))
        with self.assertRaises(BroadcastError):
            _eval(sum_to_shape(self.g, (2, 2, 3, 4)))

    def test_target_from_shape_node(self):
        ctx = Context()
        p = placeholder((-1,))
        node = sum_to_shape(self.g, shape(p))
        self.assertIs(node.shape, node.inputs[1])
        ctx.feed(p, np.zeros(4))
        (out,) = ctx.evaluate([node])
        np.testing.assert_allclose(out, self.g_np.sum(axis=(0, 1)))

    def test_gradient_broadcasts_back(self):
        ctx = Context()
        x = placeholder((2, 3))
        (gx,) = gradients(sum_to_shape(x, (3,)), [x])
        np.testing.assert_allclose(ctx.evaluate([gx])[0], np.ones((2, 3)))


class TestBroadcastToShape(TestCase):

    def test_same_shape_is_zero_copy(self):
        ctx = Context()
        v = ctx.declare_variable(np.ones((2, 3)))
        (out,) = ctx.evaluate([broadcast_to_shape(v, (2, 3))])
        self.assertIs(out, ctx.variables[v.id])

    def test_broadcast_materializes_writable_copy(self):
        ctx = Context()
        v = ctx.declare_variable([1.0, 2.0, 3.0])
        node = broadcast_to_shape(v, (2, 3))
        self.assertIsInstance(node.op, BroadcastToShape)
        (out,) = ctx.evaluate([node])
        np.testing.assert_allclose(out, [[1.0, 2.0, 3.0]] * 2)
        self.assertTrue(out.flags.writeable)
        self.assertFalse(np.shares_memory(out, ctx.variables[v.id]))

    def test_size_one_axes_expand(self):
        (out,) = _eval(broadcast_to_shape(convert_to_tensor([[1.0], [2.0]]), (2, 3)))
        np.testing.assert_allclose(out, [[1.0] * 3, [2.0] * 3])

    def test_incompatible_raises(self):
        with self.assertRaises(BroadcastError):
            _eval(broadcast_to_shape(convert_to_tensor([1.0, 2.0]), (3,)))

    def test_gradient_sums_back(self):
        ctx = Context()
        x = placeholder((3,))
        (gx,) = gradients(broadcast_to_shape(x, (4, 3)), [x])
        np.testing.assert_allclose(ctx.evaluate([gx])[0], [4.0, 4.0, 4.0])


class TestReductionAdjointPair(TestCase):
    """
    Reduction and expansion are adjoint linear maps; expansion followed by
    reduction scales by the number of broadcast copies.
    """

    CASES = [
        ((4, 2, 3), (2, 1)),
        ((4, 2, 3), (3,)),
        ((4, 2, 3), (1, 2, 3)),
        ((5, 1, 3), ()),
        ((2, 3), (2, 3)),
    ]

    def test_adjoint_identity(self):
        rng = np.random.default_rng(0)
        for big, small in self.CASES:
            with self.subTest(big=big, small=small):
                g_np = rng.standard_normal(big).astype(np.float32)
                a_np = rng.standard_normal(small).astype(np.float32)
                reduced, expanded = _eval(
                    sum_to_shape(convert_to_tensor(g_np), small),
                    broadcast_to_shape(convert_to_tensor(a_np), big),
                )
                lhs = float(np.sum(reduced.astype(np.float64) * a_np))
                rhs = float(np.sum(g_np.astype(np.float64) * expanded))
                self.assertAlmostEqual(lhs, rhs, places=4)

    def test_reduce_after_expand_scales_by_multiplicity(self):
        for big, small in self.CASES:
            with self.subTest(big=big, small=small):
                a_np = np.arange(1, 1 + int(np.prod(small)), dtype=np.float32).reshape(small)
                k = int(np.prod(big)) // max(1, int(np.prod(small)))
                (out,) = _eval(
                    sum_to_shape(broadcast_to_shape(convert_to_tensor(a_np), big), small)
                )
                np.testing.assert_allclose(out, k * a_np)


if __name__ == "__main__":
    unittest.main()
