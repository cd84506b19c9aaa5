"""
Unit tests for the affine transform model.
"""

import unittest
import tempfile
import sys
from pathlib import Path

import numpy as np

# Add parent directory for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from affine_registration.core.image_data import ParameterVector
from affine_registration.core.transform import AffineTransform
from affine_registration.core.exceptions import SingularTransformError, ErrorCode


class TestAffineTransform(unittest.TestCase):
    """Tests for AffineTransform."""

    def setUp(self):
        self.transform = AffineTransform.from_parameters(
            [1.1, 0.2, -0.1, 0.9, 3.0, -2.0], origin=(15.5, 11.5)
        )

    def test_identity(self):
        """Identity maps every point onto itself."""
        identity = AffineTransform.identity(origin=(4.0, 7.0))
        self.assertTrue(identity.is_identity())
        self.assertEqual(identity.forward((3.0, 5.0)), (3.0, 5.0))
        self.assertTrue(identity.parameters.is_identity())

    def test_forward_about_origin(self):
        """The origin is displaced by the translation only."""
        x, y = self.transform.forward((15.5, 11.5))
        self.assertAlmostEqual(x, 18.5)
        self.assertAlmostEqual(y, 9.5)

    def test_parameters_round_trip(self):
        """Parameters survive from_parameters / parameters exactly."""
        values = [1.1, 0.2, -0.1, 0.9, 3.0, -2.0]
        self.assertEqual(self.transform.parameters.to_list(), values)
        rebuilt = AffineTransform.from_parameters(self.transform.parameters, origin=(15.5, 11.5))
        self.assertEqual(rebuilt, self.transform)

    def test_wrong_parameter_count(self):
        with self.assertRaises(ValueError):
            AffineTransform.from_parameters([1.0, 0.0, 0.0, 1.0])

    def test_inverse_round_trip(self):
        """inverse(forward(p)) == p."""
        inverse = self.transform.inverse()
        for point in [(0.0, 0.0), (31.0, 23.0), (7.25, -3.5)]:
            x, y = inverse.forward(self.transform.forward(point))
            self.assertAlmostEqual(x, point[0])
            self.assertAlmostEqual(y, point[1])
            x, y = self.transform.inverse_point(self.transform.forward(point))
            self.assertAlmostEqual(x, point[0])
            self.assertAlmostEqual(y, point[1])

    def test_singular_inverse(self):
        """A zero determinant cannot be inverted."""
        singular = AffineTransform.from_parameters([1.0, 2.0, 2.0, 4.0, 0.0, 0.0])
        self.assertFalse(singular.is_invertible())
        with self.assertRaises(SingularTransformError) as ctx:
            singular.inverse()
        self.assertEqual(ctx.exception.code, ErrorCode.SINGULAR_TRANSFORM)
        self.assertEqual(ctx.exception.determinant, 0.0)

    def test_non_finite_inverse(self):
        broken = AffineTransform.from_parameters([np.nan, 0.0, 0.0, 1.0, 0.0, 0.0])
        with self.assertRaises(SingularTransformError):
            broken.inverse()

    def test_composition_with_inverse(self):
        """Composing with the inverse gives the identity."""
        self.assertTrue((self.transform * self.transform.inverse()).is_identity())
        self.assertTrue((self.transform.inverse() * self.transform).is_identity())

    def test_composition_order(self):
        """(a * b) applies b first."""
        a = AffineTransform.from_parameters([0.0, -1.0, 1.0, 0.0, 0.0, 0.0], origin=(2.0, 2.0))
        b = AffineTransform.from_translation((1.0, 0.0))
        point = (3.0, 1.0)
        expected = a.forward(b.forward(point))
        np.testing.assert_allclose((a * b).forward(point), expected, atol=1e-12)
        np.testing.assert_allclose(
            (b * a).forward(point), b.forward(a.forward(point)), atol=1e-12
        )

    def test_recentered_keeps_mapping(self):
        moved = self.transform.recentered((0.0, 0.0))
        self.assertTrue(moved.allclose(self.transform))
        np.testing.assert_allclose(moved.origin, [0.0, 0.0])
        np.testing.assert_allclose(
            moved.forward((5.0, 9.0)), self.transform.forward((5.0, 9.0)), atol=1e-12
        )

    def test_matrix_matches_forward(self):
        m = self.transform.matrix()
        self.assertEqual(m.shape, (3, 3))
        np.testing.assert_allclose(m[2], [0.0, 0.0, 1.0])
        q = m @ np.array([4.0, 6.0, 1.0])
        np.testing.assert_allclose(q[:2], self.transform.forward((4.0, 6.0)), atol=1e-12)

    def test_transform_points(self):
        points = np.array([[0.0, 0.0], [10.0, 5.0], [-2.0, 3.5]])
        mapped = self.transform.transform_points(points)
        for point, result in zip(points, mapped):
            np.testing.assert_allclose(result, self.transform.forward(point), atol=1e-12)

        with self.assertRaises(ValueError):
            self.transform.transform_points(np.zeros((3, 3)))

    def test_sitk_round_trip(self):
        """SimpleITK conversion preserves the mapping."""
        sitk_transform = self.transform.to_sitk()
        for point in [(0.0, 0.0), (12.0, 4.0)]:
            np.testing.assert_allclose(
                sitk_transform.TransformPoint(point),
                self.transform.forward(point),
                atol=1e-9
            )
        back = AffineTransform.from_sitk(sitk_transform)
        self.assertTrue(back.allclose(self.transform))

    def test_json_round_trip(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = self.transform.to_file(Path(tmpdir) / "nested" / "transform.json")
            loaded = AffineTransform.from_file(path)
        self.assertEqual(loaded, self.transform)

    def test_equality(self):
        other = AffineTransform.from_parameters(self.transform.parameters, origin=(0.0, 0.0))
        self.assertNotEqual(other, self.transform)
        self.assertFalse(other.allclose(self.transform))
        self.assertEqual(self.transform.recentered((15.5, 11.5)), self.transform)


class TestParameterVector(unittest.TestCase):
    """Tests for ParameterVector."""

    def test_identity(self):
        self.assertEqual(ParameterVector.identity().to_list(), [1.0, 0.0, 0.0, 1.0, 0.0, 0.0])

    def test_requires_six_values(self):
        with self.assertRaises(ValueError):
            ParameterVector((1.0, 2.0))

    def test_views(self):
        vector = ParameterVector.from_sequence([2, 0, 0, 3, 4, 5])
        self.assertEqual(len(vector), 6)
        self.assertEqual(vector.translation, (4.0, 5.0))
        np.testing.assert_array_equal(vector.linear, [[2.0, 0.0], [0.0, 3.0]])
        self.assertEqual(vector[3], 3.0)
        self.assertFalse(vector.is_identity())


if __name__ == "__main__":
    unittest.main()
