"""
Buffer-level entry points.

``interpolate`` and ``register`` take flat caller buffers together with
the image dimensions and an element type, and raise the library's
exceptions on failure. Output buffers are written only after the whole
operation has succeeded.

The typed entry points ``interp_<tag>`` and ``register_<tag>`` (one pair
per element type tag, e.g. ``interp_u8`` or ``register_f64``) keep the
historical boolean-flag calling convention and report failures as an
integer ``ErrorCode`` instead of raising:

    >>> status = interp_u16(w, h, transform, origin, pixels, False)
    >>> if status != ErrorCode.OK:
    ...     handle_failure(status)

For the typed entry points ``nearest_neighbor=False`` selects cubic
B-spline interpolation and ``True`` selects nearest neighbour;
``affine=False`` registers a translation and ``True`` a full affine
transform.
"""

import logging
from typing import Any, Callable, Dict, Optional

from affine_registration.core.image_data import (
    ElementType,
    InterpolationMode,
    ParameterVector,
    RegistrationBackend,
    RegistrationConfig,
    TransformClass,
)
from affine_registration.core.transform import AffineTransform
from affine_registration.core.exceptions import AffineRegistrationError, ErrorCode
from affine_registration.io.buffer_adapter import (
    ElementTypeLike,
    build_image,
    extract_image,
    read_parameters,
    write_parameters,
)
from affine_registration.registration.registration_engine import RegistrationEngine
from affine_registration.resampling.resampler import Resampler

logger = logging.getLogger(__name__)


def interpolate(
    width: int,
    height: int,
    element_type: ElementTypeLike,
    transform: Any,
    origin: Any,
    image: Any,
    mode: InterpolationMode = InterpolationMode.CUBIC_BSPLINE
) -> None:
    """
    Resample an image buffer in place.

    Args:
        width: Number of columns
        height: Number of rows
        element_type: Element type of ``image``
        transform: Six forward parameters ``[m00, m01, m10, m11, tx, ty]``
        origin: Two-element centre of the linear part
        image: Row-major pixel buffer, overwritten with the result
        mode: Interpolation mode

    Raises:
        UnsupportedElementTypeError: If the element type is not supported
        BufferSizeError: If a buffer is too small or not writable
        SingularTransformError: If the transform cannot be inverted
        ResamplingError: If the interpolation backend fails
    """
    source = build_image(width, height, element_type, image)
    forward = AffineTransform.from_parameters(
        read_parameters(transform, 6), origin=read_parameters(origin, 2)
    )
    result = Resampler().resample(source, forward, mode)
    extract_image(result, image)


def register(
    width: int,
    height: int,
    element_type: ElementTypeLike,
    fixed: Any,
    moving: Any,
    transform_class: TransformClass,
    transform_out: Any,
    backend: RegistrationBackend = RegistrationBackend.DIRECT,
    config: Optional[RegistrationConfig] = None
) -> ParameterVector:
    """
    Register two image buffers and write the moving -> fixed parameters.

    Both buffers are interpreted with the same dimensions and element
    type. The six parameters are pivoted about the image midpoint
    ``((width - 1) / 2, (height - 1) / 2)``.

    Args:
        width: Number of columns
        height: Number of rows
        element_type: Element type of both buffers
        fixed: Reference pixel buffer
        moving: Pixel buffer to align
        transform_class: Translation or affine search space
        transform_out: Buffer receiving six doubles on success
        backend: Registration backend
        config: Optimizer settings; defaults are used when omitted

    Returns:
        The ParameterVector that was written to ``transform_out``

    Raises:
        UnsupportedElementTypeError: If the element type is not supported
        BufferSizeError: If a buffer is too small
        DimensionMismatchError: If the images differ in size
        RegistrationFailedError: If registration fails
        ResourceProvisioningError: If a working directory cannot be created
    """
    fixed_image = build_image(width, height, element_type, fixed)
    moving_image = build_image(width, height, element_type, moving)

    engine = RegistrationEngine(config)
    parameters = engine.register(fixed_image, moving_image, transform_class, backend)
    write_parameters(parameters, transform_out)
    return parameters


def _status(operation: str, error: Exception) -> int:
    """Log a failure and return its status code."""
    if isinstance(error, AffineRegistrationError):
        logger.error(f"{operation} failed: {error.message}")
        return int(error.code)
    logger.error(f"{operation} failed: {error}")
    return int(ErrorCode.UNKNOWN)


def _make_interp(element_type: ElementType) -> Callable[..., int]:
    def interp(width, height, transform, origin, image, nearest_neighbor=False):
        try:
            interpolate(
                width, height, element_type, transform, origin, image,
                InterpolationMode.from_legacy_flag(nearest_neighbor)
            )
        except (AffineRegistrationError, ValueError, TypeError) as e:
            return _status(f"interp_{element_type.value}", e)
        return int(ErrorCode.OK)

    interp.__name__ = f"interp_{element_type.value}"
    interp.__qualname__ = interp.__name__
    interp.__doc__ = (
        f"Resample a {element_type.dtype.name} image buffer in place; "
        f"returns an ErrorCode."
    )
    return interp


def _make_register(element_type: ElementType) -> Callable[..., int]:
    def register_typed(width, height, fixed, moving, affine, transform_out):
        try:
            register(
                width, height, element_type, fixed, moving,
                TransformClass.from_legacy_flag(affine), transform_out
            )
        except (AffineRegistrationError, ValueError, TypeError) as e:
            return _status(f"register_{element_type.value}", e)
        return int(ErrorCode.OK)

    register_typed.__name__ = f"register_{element_type.value}"
    register_typed.__qualname__ = register_typed.__name__
    register_typed.__doc__ = (
        f"Register two {element_type.dtype.name} image buffers; returns an ErrorCode."
    )
    return register_typed


# One interp/register pair per element type
TYPED_ENTRY_POINTS: Dict[str, Callable[..., int]] = {}
for _element_type in ElementType:
    TYPED_ENTRY_POINTS[f"interp_{_element_type.value}"] = _make_interp(_element_type)
    TYPED_ENTRY_POINTS[f"register_{_element_type.value}"] = _make_register(_element_type)
del _element_type

globals().update(TYPED_ENTRY_POINTS)


def get_entry_point(name: str) -> Callable[..., int]:
    """
    Look up a typed entry point by name, e.g. ``"register_i16"``.

    Raises:
        KeyError: If no entry point has that name
    """
    try:
        return TYPED_ENTRY_POINTS[name]
    except KeyError:
        raise KeyError(
            f"Unknown entry point {name!r}; available: {sorted(TYPED_ENTRY_POINTS)}"
        ) from None


__all__ = [
    "interpolate",
    "register",
    "TYPED_ENTRY_POINTS",
    "get_entry_point",
] + sorted(TYPED_ENTRY_POINTS)
