"""
Custom exceptions for the affine registration library.

This module defines a hierarchy of exceptions for clear error handling
and reporting throughout resampling and registration. Every exception
carries an ``ErrorCode`` so that status-returning entry points can report
the failure kind without losing information.
"""

from enum import IntEnum
from typing import Optional, Sequence


class ErrorCode(IntEnum):
    """Status codes reported by the typed entry points."""
    OK = 0
    UNSUPPORTED_ELEMENT_TYPE = 1
    BUFFER_SIZE = 2
    DIMENSION_MISMATCH = 3
    SINGULAR_TRANSFORM = 4
    RESAMPLING_FAILED = 5
    REGISTRATION_FAILED = 6
    RESOURCE_PROVISIONING = 7
    UNKNOWN = 99


class AffineRegistrationError(Exception):
    """Base exception for all affine registration errors."""

    code = ErrorCode.UNKNOWN

    def __init__(self, message: str, details: Optional[str] = None):
        self.message = message
        self.details = details
        super().__init__(self.full_message)

    @property
    def full_message(self) -> str:
        if self.details:
            return f"{self.message}\nDetails: {self.details}"
        return self.message


class UnsupportedElementTypeError(AffineRegistrationError):
    """Raised when a pixel element type tag is not one of the ten supported types."""

    code = ErrorCode.UNSUPPORTED_ELEMENT_TYPE

    def __init__(self, element_type: object, details: Optional[str] = None):
        self.element_type = element_type
        message = f"Unsupported element type: {element_type!r}"
        super().__init__(message, details)


class BufferSizeError(AffineRegistrationError):
    """Raised when a caller buffer cannot hold the declared number of elements."""

    code = ErrorCode.BUFFER_SIZE

    def __init__(self, expected: int, actual: int, reason: str = "buffer too small",
                 details: Optional[str] = None):
        self.expected = expected
        self.actual = actual
        message = f"Invalid buffer ({reason}): expected {expected} elements, got {actual}"
        super().__init__(message, details)


class DimensionMismatchError(AffineRegistrationError):
    """Raised when fixed and moving images do not share the same dimensions."""

    code = ErrorCode.DIMENSION_MISMATCH

    def __init__(
        self,
        fixed_shape: Sequence[int],
        moving_shape: Sequence[int],
        details: Optional[str] = None
    ):
        self.fixed_shape = tuple(fixed_shape)
        self.moving_shape = tuple(moving_shape)
        message = (
            f"Image dimensions differ: fixed={self.fixed_shape}, "
            f"moving={self.moving_shape}"
        )
        super().__init__(message, details)


class SingularTransformError(AffineRegistrationError):
    """Raised when the linear part of a transform cannot be inverted."""

    code = ErrorCode.SINGULAR_TRANSFORM

    def __init__(self, determinant: float, details: Optional[str] = None):
        self.determinant = determinant
        message = f"Transform linear part is not invertible (det={determinant})"
        super().__init__(message, details)


class ResamplingError(AffineRegistrationError):
    """Raised when the interpolation backend fails."""

    code = ErrorCode.RESAMPLING_FAILED

    def __init__(self, reason: str, details: Optional[str] = None):
        message = f"Resampling failed: {reason}"
        super().__init__(message, details)


class RegistrationFailedError(AffineRegistrationError):
    """Raised when registration fails."""

    code = ErrorCode.REGISTRATION_FAILED

    def __init__(self, stage: str, reason: str, details: Optional[str] = None):
        self.stage = stage
        message = f"Registration failed at stage '{stage}': {reason}"
        super().__init__(message, details)


class BackendUnavailableError(RegistrationFailedError):
    """Raised when the requested registration backend is not installed."""

    def __init__(self, backend: str, hint: str, details: Optional[str] = None):
        self.backend = backend
        super().__init__(
            stage=backend,
            reason=f"backend not available. {hint}",
            details=details
        )


class ResourceProvisioningError(AffineRegistrationError):
    """Raised when a scoped working directory cannot be created."""

    code = ErrorCode.RESOURCE_PROVISIONING

    def __init__(self, location: str, reason: str, details: Optional[str] = None):
        self.location = location
        message = f"Could not provision working directory in '{location}': {reason}"
        super().__init__(message, details)
