import unittest
from unittest import TestCase

import numpy as np

from keygraph.infrastructure.ops import (
    ConvertToTensor,
    Identity,
    Placeholder,
    Shape,
    StopGradient,
    convert_to_tensor,
    identity,
    ones,
    placeholder,
    scalar,
    shape,
    stop_gradient,
    zeros,
)
from keygraph.infrastructure.runtime import Context, gradients


class TestSourceOps(TestCase):

    def test_placeholder_static_shape(self):
        p = placeholder((2, 3))
        self.assertIsInstance(p.op, Placeholder)
        self.assertEqual(p.shape, (2, 3))
        self.assertEqual(p.op.declared_shape, (2, 3))
        self.assertTrue(p.differentiable)

    def test_placeholder_unknown_dims_keep_declared_shape(self):
        p = placeholder((-1, 3))
        self.assertIsNone(p.shape)
        self.assertEqual(p.op.declared_shape, (-1, 3))

    def test_convert_to_tensor_copies_and_freezes(self):
        src = np.array([1.0, 2.0])
        t = convert_to_tensor(src)
        src[0] = 9.0
        self.assertIsInstance(t.op, ConvertToTensor)
        self.assertFalse(t.differentiable)
        self.assertEqual(t.shape, (2,))
        (out,) = Context().evaluate([t])
        np.testing.assert_allclose(out, [1.0, 2.0])
        self.assertEqual(out.dtype, np.float32)
        self.assertFalse(out.flags.writeable)

    def test_convert_to_tensor_dtype(self):
        t = convert_to_tensor([1, 2], dtype=np.int64)
        self.assertEqual(Context().evaluate([t])[0].dtype, np.int64)

    def test_scalar(self):
        s = scalar(2.5)
        self.assertEqual(s.shape, ())
        self.assertEqual(float(Context().evaluate([s])[0]), 2.5)


class TestShape(TestCase):

    def test_static_shape_is_literal(self):
        s = shape(placeholder((2, 3)))
        self.assertIsInstance(s.op, ConvertToTensor)
        self.assertFalse(s.differentiable)
        (out,) = Context().evaluate([s])
        self.assertEqual(out.dtype, np.int64)
        np.testing.assert_array_equal(out, [2, 3])

    def test_unknown_shape_is_computed(self):
        ctx = Context()
        p = placeholder((-1, 3))
        s = shape(p)
        self.assertIsInstance(s.op, Shape)
        ctx.feed(p, np.zeros((4, 3)))
        (out,) = ctx.evaluate([s])
        self.assertEqual(out.dtype, np.int64)
        np.testing.assert_array_equal(out, [4, 3])

    def test_shape_node_is_reused(self):
        ctx = Context()
        v = ctx.declare_variable(np.zeros(5))
        p = placeholder(shape(v))
        self.assertIs(shape(p), p.shape)

    def test_scalar_shape(self):
        (out,) = Context().evaluate([shape(scalar(1.0))])
        self.assertEqual(out.shape, (0,))


class TestFill(TestCase):

    def test_zeros_ones_from_tuple(self):
        z, o = zeros((2, 3)), ones((3,))
        self.assertEqual(z.shape, (2, 3))
        self.assertFalse(o.differentiable)
        z_val, o_val = Context().evaluate([z, o])
        np.testing.assert_array_equal(z_val, np.zeros((2, 3)))
        np.testing.assert_array_equal(o_val, np.ones(3))
        self.assertEqual(o_val.dtype, np.float32)

    def test_ones_from_shape_node(self):
        ctx = Context()
        p = placeholder((-1,))
        s = shape(p)
        o = ones(s)
        self.assertIs(o.shape, s)
        self.assertIs(o.inputs[0], s)
        ctx.feed(p, np.zeros(4))
        (out,) = ctx.evaluate([o])
        np.testing.assert_array_equal(out, np.ones(4))

    def test_fill_has_no_gradient(self):
        x = placeholder((2,))
        self.assertEqual(gradients(ones(shape(x)) * 2.0, [x]), [None])


class TestStopGradientIdentity(TestCase):

    def test_stop_gradient_passes_value(self):
        ctx = Context()
        v = ctx.declare_variable([1.0, 2.0])
        sg = stop_gradient(v)
        self.assertIsInstance(sg.op, StopGradient)
        self.assertFalse(sg.differentiable)
        self.assertEqual(sg.shape, (2,))
        (out,) = ctx.evaluate([sg])
        self.assertIs(out, ctx.variables[v.id])

    def test_identity_passes_gradient(self):
        ctx = Context()
        x = placeholder((2,))
        node = identity(x)
        self.assertIsInstance(node.op, Identity)
        (gx,) = gradients(node * 3.0, [x])
        np.testing.assert_allclose(ctx.evaluate([gx])[0], [3.0, 3.0])


if __name__ == "__main__":
    unittest.main()
