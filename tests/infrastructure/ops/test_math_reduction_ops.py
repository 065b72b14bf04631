import unittest
from unittest import TestCase

import numpy as np

from keygraph.infrastructure.ops import (
    AddN,
    add_n,
    convert_to_tensor,
    expand_dims,
    neg,
    placeholder,
    pow,
    reduce_sum,
)
from keygraph.infrastructure.runtime import Context, gradients


X_NP = np.arange(6, dtype=np.float32).reshape(2, 3)


def _eval(*nodes):
    return Context().evaluate(list(nodes))


class TestNegPow(TestCase):

    def test_values(self):
        x = convert_to_tensor([1.0, 2.0, 4.0])
        n, p, r = _eval(neg(x), pow(x, 3), pow(x, -1))
        np.testing.assert_allclose(n, [-1.0, -2.0, -4.0])
        np.testing.assert_allclose(p, [1.0, 8.0, 64.0])
        np.testing.assert_allclose(r, [1.0, 0.5, 0.25])
        self.assertEqual(p.dtype, np.float32)

    def test_pow_gradient(self):
        ctx = Context()
        x = placeholder((2,))
        g3, ginv = gradients([pow(x, 3)], [x])[0], gradients(pow(x, -1), [x])[0]
        ctx.feed(x, [2.0, 4.0])
        g3_val, ginv_val = ctx.evaluate([g3, ginv])
        np.testing.assert_allclose(g3_val, [12.0, 48.0])
        np.testing.assert_allclose(ginv_val, [-0.25, -0.0625])

    def test_fractional_exponent(self):
        ctx = Context()
        x = placeholder((1,))
        (g,) = gradients(pow(x, 0.5), [x])
        ctx.feed(x, [4.0])
        np.testing.assert_allclose(ctx.evaluate([g])[0], [0.25], rtol=1e-6)

    def test_neg_gradient(self):
        x = placeholder((2,))
        (g,) = gradients(neg(x), [x])
        np.testing.assert_allclose(Context().evaluate([g])[0], [-1.0, -1.0])

    def test_static_shape_is_kept(self):
        x = placeholder((2, 3))
        self.assertEqual(neg(x).shape, (2, 3))
        self.assertEqual(pow(x, 2).shape, (2, 3))


class TestReduceSum(TestCase):

    def setUp(self):
        self.x = convert_to_tensor(X_NP)

    def test_values_and_static_shapes(self):
        cases = [
            (dict(), X_NP.sum(), ()),
            (dict(axes=1), X_NP.sum(axis=1), (2,)),
            (dict(axes=-1, keep_dims=True), X_NP.sum(axis=-1, keepdims=True), (2, 1)),
            (dict(axes=(0, 1), keep_dims=True), X_NP.sum(keepdims=True), (1, 1)),
            (dict(axes=[0]), X_NP.sum(axis=0), (3,)),
        ]
        for kwargs, expected, static in cases:
            with self.subTest(**{k: str(v) for k, v in kwargs.items()}):
                node = reduce_sum(self.x, **kwargs)
                self.assertEqual(node.shape, static)
                (out,) = _eval(node)
                self.assertEqual(out.shape, static)
                np.testing.assert_allclose(out, expected)

    def test_gradient_all_axes(self):
        ctx = Context()
        x = placeholder((2, 3))
        (g,) = gradients(reduce_sum(x), [x])
        np.testing.assert_allclose(ctx.evaluate([g])[0], np.ones((2, 3)))

    def test_gradient_dropped_axis(self):
        for axes in (1, -1):
            with self.subTest(axes=axes):
                ctx = Context()
                x = placeholder((2, 3))
                seed = convert_to_tensor([1.0, 2.0])
                (g,) = gradients(reduce_sum(x, axes=axes), [x], [seed])
                np.testing.assert_allclose(
                    ctx.evaluate([g])[0], [[1.0] * 3, [2.0] * 3]
                )

    def test_gradient_kept_axis(self):
        ctx = Context()
        x = placeholder((2, 3))
        seed = convert_to_tensor([[1.0, 2.0, 3.0]])
        (g,) = gradients(reduce_sum(x, axes=0, keep_dims=True), [x], [seed])
        np.testing.assert_allclose(ctx.evaluate([g])[0], [[1.0, 2.0, 3.0]] * 2)


class TestExpandDims(TestCase):

    def test_values_and_static_shape(self):
        ctx = Context()
        v = ctx.declare_variable(X_NP)
        for axes, static in ((0, (1, 2, 3)), (-1, (2, 3, 1)), ((0, 2), (1, 2, 1, 3))):
            with self.subTest(axes=axes):
                node = expand_dims(v, axes)
                self.assertEqual(node.shape, static)
                (out,) = ctx.evaluate([node])
                self.assertEqual(out.shape, static)
                self.assertFalse(np.shares_memory(out, ctx.variables[v.id]))

    def test_gradient(self):
        ctx = Context()
        x = placeholder((2, 3))
        (g,) = gradients(expand_dims(x, 1) * 2.0, [x])
        out = ctx.evaluate([g])[0]
        self.assertEqual(out.shape, (2, 3))
        np.testing.assert_allclose(out, np.full((2, 3), 2.0))


class TestAddN(TestCase):

    def test_values(self):
        xs = [convert_to_tensor(np.full((2,), float(k))) for k in range(1, 4)]
        node = add_n(xs)
        self.assertIsInstance(node.op, AddN)
        self.assertEqual(node.shape, (2,))
        np.testing.assert_allclose(_eval(node)[0], [6.0, 6.0])

    def test_single_input_is_returned(self):
        x = placeholder((2,))
        self.assertIs(add_n([x]), x)

    def test_empty_raises(self):
        with self.assertRaises(ValueError):
            add_n([])

    def test_gradient(self):
        ctx = Context()
        a = placeholder((2,))
        b = placeholder((2,))
        ga, gb = gradients(add_n([a, b, a]), [a, b])
        ga_val, gb_val = ctx.evaluate([ga, gb])
        np.testing.assert_allclose(ga_val, [2.0, 2.0])
        np.testing.assert_allclose(gb_val, [1.0, 1.0])


if __name__ == "__main__":
    unittest.main()
