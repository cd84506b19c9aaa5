"""
Typed buffer adapter between caller memory and owned images.

Callers hand in flat row-major pixel buffers together with an element
type tag and the image dimensions. This module copies such buffers into
owned ``Image`` instances and copies results back out. Any object that
exposes the buffer protocol is accepted (bytes, bytearray, memoryview,
numpy arrays, ``array.array``, ctypes arrays); the bytes are interpreted
as native-endian elements of the declared type, as a raw pointer would be.
"""

import logging
from typing import Any, Sequence, Union

import numpy as np

from affine_registration.core.image_data import ElementType, Image, ParameterVector
from affine_registration.core.exceptions import BufferSizeError

logger = logging.getLogger(__name__)

# Element type argument accepted by the adapter
ElementTypeLike = Union[ElementType, str, np.dtype, type]


def _check_dimensions(width: int, height: int) -> None:
    if int(width) != width or int(height) != height:
        raise ValueError(f"Image dimensions must be integers, got {width}x{height}")
    if width <= 0 or height <= 0:
        raise ValueError(f"Image dimensions must be positive, got {width}x{height}")


def _readable_bytes(buffer: Any) -> np.ndarray:
    """Return a flat uint8 view of a caller buffer."""
    if isinstance(buffer, np.ndarray):
        return np.ascontiguousarray(buffer).reshape(-1).view(np.uint8)
    try:
        return np.frombuffer(buffer, dtype=np.uint8)
    except TypeError as e:
        raise TypeError(
            f"Object of type {type(buffer).__name__} does not expose a buffer: {e}"
        ) from e


def _writable_bytes(destination: Any, expected: int) -> np.ndarray:
    """Return a flat, writable uint8 view of a caller buffer."""
    if isinstance(destination, np.ndarray):
        if not destination.flags.c_contiguous:
            raise BufferSizeError(expected, destination.size, reason="destination is not contiguous")
        raw = destination.reshape(-1).view(np.uint8)
    else:
        try:
            raw = np.frombuffer(destination, dtype=np.uint8)
        except TypeError as e:
            raise TypeError(
                f"Object of type {type(destination).__name__} does not expose a buffer: {e}"
            ) from e
    if not raw.flags.writeable:
        raise BufferSizeError(expected, raw.size, reason="destination is read-only")
    return raw


def build_image(
    width: int,
    height: int,
    element_type: ElementTypeLike,
    buffer: Any
) -> Image:
    """
    Copy ``width * height`` elements from a caller buffer into a new Image.

    Args:
        width: Number of columns
        height: Number of rows
        element_type: Declared element type of the buffer
        buffer: Row-major pixel buffer

    Returns:
        Image owning a private copy of the pixels

    Raises:
        UnsupportedElementTypeError: If the element type is not supported
        BufferSizeError: If the buffer holds fewer than width*height elements
    """
    element_type = ElementType.resolve(element_type)
    _check_dimensions(width, height)

    count = width * height
    nbytes = count * element_type.itemsize
    raw = _readable_bytes(buffer)
    if raw.size < nbytes:
        raise BufferSizeError(count, raw.size // element_type.itemsize)

    pixels = raw[:nbytes].view(element_type.dtype).reshape(height, width).copy()
    logger.debug(f"Built {width}x{height} {element_type.value} image from caller buffer")
    return Image(width=width, height=height, element_type=element_type, pixels=pixels)


def extract_image(image: Image, destination: Any) -> None:
    """
    Copy an image's pixels into a caller buffer of the same declared size.

    Raises:
        BufferSizeError: If the destination is too small or read-only
    """
    nbytes = image.size * image.element_type.itemsize
    raw = _writable_bytes(destination, image.size)
    if raw.size < nbytes:
        raise BufferSizeError(image.size, raw.size // image.element_type.itemsize)
    raw[:nbytes] = image.pixels.reshape(-1).view(np.uint8)


def read_parameters(buffer: Any, count: int = 6) -> np.ndarray:
    """
    Read ``count`` doubles from a parameter buffer.

    Sequences and numpy arrays are read by value; other buffer objects are
    interpreted as packed float64 values.
    """
    if isinstance(buffer, (list, tuple, ParameterVector, np.ndarray)):
        values = np.asarray(list(buffer) if isinstance(buffer, ParameterVector) else buffer,
                            dtype=np.float64).reshape(-1)
    else:
        raw = _readable_bytes(buffer)
        values = raw[:(raw.size // 8) * 8].view(np.float64)
    if values.size < count:
        raise BufferSizeError(count, values.size)
    return values[:count].copy()


def write_parameters(
    parameters: Union[ParameterVector, Sequence[float]],
    destination: Any
) -> None:
    """
    Write a parameter vector into a caller buffer of at least as many doubles.

    Lists are filled element-wise; numpy arrays by value; other buffer
    objects as packed float64 values.
    """
    values = np.asarray(list(parameters), dtype=np.float64)
    count = values.size
    if isinstance(destination, list):
        if len(destination) < count:
            raise BufferSizeError(count, len(destination))
        destination[:count] = values.tolist()
        return
    if isinstance(destination, np.ndarray):
        if destination.size < count:
            raise BufferSizeError(count, destination.size)
        if not destination.flags.writeable:
            raise BufferSizeError(count, destination.size, reason="destination is read-only")
        destination.flat[:count] = values
        return
    raw = _writable_bytes(destination, count)
    if raw.size < count * 8:
        raise BufferSizeError(count, raw.size // 8)
    raw[:count * 8] = values.view(np.uint8)
