"""Core data structures, transform model and exceptions."""

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

__all__ = [
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
]
