"""
Unit tests for the buffer-level entry points.
"""

import unittest
import array
import sys
from pathlib import Path

import numpy as np

# Add parent directory for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from affine_registration import api
from affine_registration.core.image_data import (
    ElementType,
    InterpolationMode,
    TransformClass,
)
from affine_registration.core.exceptions import (
    BufferSizeError,
    ErrorCode,
    SingularTransformError,
    UnsupportedElementTypeError,
)

IDENTITY = [1.0, 0.0, 0.0, 1.0, 0.0, 0.0]
SINGULAR = [1.0, 2.0, 2.0, 4.0, 0.0, 0.0]


def create_checkerboard(size=8):
    y, x = np.mgrid[:size, :size]
    return ((x + y) % 2 * 255).astype(np.uint8)


def create_blob_pixels(size=48):
    y, x = np.mgrid[:size, :size].astype(np.float64)
    img = 200.0 * np.exp(-((x - 0.4 * size) ** 2 + (y - 0.45 * size) ** 2) / (2 * (0.1 * size) ** 2))
    img += 120.0 * np.exp(-((x - 0.65 * size) ** 2 + (y - 0.6 * size) ** 2) / (2 * (0.08 * size) ** 2))
    return img.astype(np.float32)


class TestInterpolate(unittest.TestCase):
    """Tests for api.interpolate."""

    def test_identity_in_place(self):
        pixels = np.arange(20, dtype=np.uint16).reshape(4, 5)
        buffer = pixels.copy()
        api.interpolate(5, 4, "u16", IDENTITY, [2.0, 1.5], buffer,
                        InterpolationMode.NEAREST_NEIGHBOR)
        np.testing.assert_array_equal(buffer, pixels)

    def test_translation_in_place(self):
        pixels = np.arange(1, 17, dtype=np.float64).reshape(4, 4)
        buffer = bytearray(pixels.tobytes())
        api.interpolate(4, 4, ElementType.F64, [1, 0, 0, 1, 1, 0], (0.0, 0.0), buffer,
                        InterpolationMode.NEAREST_NEIGHBOR)

        result = np.frombuffer(bytes(buffer), dtype=np.float64).reshape(4, 4)
        np.testing.assert_array_equal(result[:, 1:], pixels[:, :-1])
        np.testing.assert_array_equal(result[:, 0], 0.0)

    def test_packed_parameter_buffers(self):
        buffer = np.arange(9, dtype=np.int8).reshape(3, 3)
        api.interpolate(3, 3, "i8", array.array("d", IDENTITY), array.array("d", [1.0, 1.0]),
                        buffer, InterpolationMode.NEAREST_NEIGHBOR)
        np.testing.assert_array_equal(buffer, np.arange(9).reshape(3, 3))

    def test_singular_leaves_image_untouched(self):
        pixels = np.arange(16, dtype=np.uint8).reshape(4, 4)
        buffer = pixels.copy()
        with self.assertRaises(SingularTransformError):
            api.interpolate(4, 4, "u8", SINGULAR, (0.0, 0.0), buffer)
        np.testing.assert_array_equal(buffer, pixels)

    def test_unsupported_element_type(self):
        with self.assertRaises(UnsupportedElementTypeError):
            api.interpolate(2, 2, "f16", IDENTITY, (0.0, 0.0), bytearray(8))

    def test_short_transform(self):
        with self.assertRaises(BufferSizeError):
            api.interpolate(2, 2, "u8", [1.0, 0.0, 0.0, 1.0], (0.0, 0.0), bytearray(4))


class TestRegister(unittest.TestCase):
    """Tests for api.register."""

    def test_checkerboard_translation(self):
        board = create_checkerboard()
        transform_out = [0.0] * 6
        parameters = api.register(
            8, 8, "u8", board.tobytes(), board.tobytes(),
            TransformClass.TRANSLATION, transform_out
        )
        self.assertEqual(transform_out, parameters.to_list())
        self.assertEqual(transform_out[:4], [1.0, 0.0, 0.0, 1.0])
        self.assertAlmostEqual(transform_out[4], 0.0, delta=0.5)
        self.assertAlmostEqual(transform_out[5], 0.0, delta=0.5)

    def test_short_moving_buffer_leaves_output_untouched(self):
        board = create_checkerboard()
        transform_out = np.full(6, -7.0)
        with self.assertRaises(BufferSizeError):
            api.register(8, 8, "u8", board, board[:4], TransformClass.AFFINE, transform_out)
        np.testing.assert_array_equal(transform_out, -7.0)


class TestTypedEntryPoints(unittest.TestCase):
    """Tests for the status-returning interp_<tag> / register_<tag> functions."""

    def test_table_covers_all_element_types(self):
        self.assertEqual(len(api.TYPED_ENTRY_POINTS), 2 * len(ElementType))
        for element_type in ElementType:
            for prefix in ("interp", "register"):
                name = f"{prefix}_{element_type.value}"
                self.assertIs(getattr(api, name), api.get_entry_point(name))
                self.assertEqual(getattr(api, name).__name__, name)

    def test_unknown_entry_point(self):
        with self.assertRaises(KeyError):
            api.get_entry_point("interp_c64")

    def test_interp_ok(self):
        for element_type in ElementType:
            with self.subTest(element_type=element_type):
                pixels = np.arange(12).astype(element_type.dtype).reshape(3, 4)
                buffer = pixels.copy()
                interp = api.get_entry_point(f"interp_{element_type.value}")
                status = interp(4, 3, IDENTITY, [1.5, 1.0], buffer, True)
                self.assertEqual(status, ErrorCode.OK)
                np.testing.assert_array_equal(buffer, pixels)

    def test_interp_bspline_flag(self):
        """nearest_neighbor=False selects B-spline."""
        pixels = create_blob_pixels(16)
        buffer = pixels.copy()
        status = api.interp_f32(16, 16, [1, 0, 0, 1, 0.5, 0.25], (7.5, 7.5), buffer, False)
        self.assertEqual(status, ErrorCode.OK)
        self.assertFalse(np.array_equal(buffer, pixels))
        self.assertTrue(np.all(np.isfinite(buffer)))

    def test_interp_singular_status(self):
        pixels = np.arange(16, dtype=np.int32).reshape(4, 4)
        buffer = pixels.copy()
        with self.assertLogs("affine_registration.api", level="ERROR"):
            status = api.interp_i32(4, 4, SINGULAR, (0.0, 0.0), buffer, True)
        self.assertEqual(status, ErrorCode.SINGULAR_TRANSFORM)
        np.testing.assert_array_equal(buffer, pixels)

    def test_interp_short_buffer_status(self):
        status = api.interp_u16(4, 4, IDENTITY, (0.0, 0.0), bytearray(10), False)
        self.assertEqual(status, ErrorCode.BUFFER_SIZE)

    def test_register_ok(self):
        board = create_checkerboard()
        transform_out = array.array("d", [0.0] * 6)
        status = api.register_u8(8, 8, board, board.copy(), False, transform_out)
        self.assertEqual(status, ErrorCode.OK)
        self.assertEqual(list(transform_out)[:4], [1.0, 0.0, 0.0, 1.0])

    def test_register_affine_flag(self):
        pixels = create_blob_pixels()
        transform_out = [0.0] * 6
        status = api.register_f32(48, 48, pixels, pixels.copy(), True, transform_out)
        self.assertEqual(status, ErrorCode.OK)
        np.testing.assert_allclose(transform_out[:4], [1.0, 0.0, 0.0, 1.0], atol=0.05)

    def test_register_failure_leaves_output_untouched(self):
        constant = np.full((8, 8), 5, dtype=np.uint8)
        board = create_checkerboard()
        transform_out = [-1.0] * 6
        with self.assertLogs("affine_registration.api", level="ERROR"):
            status = api.register_u8(8, 8, board, constant, True, transform_out)
        self.assertEqual(status, ErrorCode.REGISTRATION_FAILED)
        self.assertEqual(transform_out, [-1.0] * 6)


if __name__ == "__main__":
    unittest.main()
