"""
Affine Registration Library

A Python library for resampling and registering 2-D single-channel images
under affine transforms, built on SimpleITK.

Supports:
- Ten pixel element types, from 8-bit integers to 64-bit floats
- Nearest-neighbour and cubic B-spline resampling
- Translation and affine registration with an in-process optimizer
  or with elastix
- Buffer-level entry points that report integer status codes
"""

__version__ = "1.0.0"
__author__ = "Medical Imaging Engineering Team"

from affine_registration.core.image_data import (
    ElementType,
    Image,
    InterpolationMode,
    TransformClass,
    RegistrationBackend,
    RegistrationState,
    ParameterVector,
    RegistrationResult,
    RegistrationConfig,
)
from affine_registration.core.transform import AffineTransform
from affine_registration.core.exceptions import (
    ErrorCode,
    AffineRegistrationError,
    UnsupportedElementTypeError,
    BufferSizeError,
    DimensionMismatchError,
    SingularTransformError,
    ResamplingError,
    RegistrationFailedError,
    BackendUnavailableError,
    ResourceProvisioningError,
)
from affine_registration.resampling.resampler import Resampler, resample
from affine_registration.registration.registration_engine import RegistrationEngine
from affine_registration.registration.elastix_aligner import is_elastix_available
from affine_registration.api import interpolate, register, get_entry_point

__all__ = [
    # Core data structures
    "ElementType",
    "Image",
    "InterpolationMode",
    "TransformClass",
    "RegistrationBackend",
    "RegistrationState",
    "ParameterVector",
    "RegistrationResult",
    "RegistrationConfig",
    "AffineTransform",
    # Exceptions
    "ErrorCode",
    "AffineRegistrationError",
    "UnsupportedElementTypeError",
    "BufferSizeError",
    "DimensionMismatchError",
    "SingularTransformError",
    "ResamplingError",
    "RegistrationFailedError",
    "BackendUnavailableError",
    "ResourceProvisioningError",
    # Main components
    "Resampler",
    "resample",
    "RegistrationEngine",
    "is_elastix_available",
    # Buffer-level entry points
    "interpolate",
    "register",
    "get_entry_point",
]
