"""Utility modules for affine registration."""

from affine_registration.utils.logging_config import (
    setup_logging,
    RegistrationLogger,
)
from affine_registration.utils.workdir import scoped_working_directory

__all__ = [
    "setup_logging",
    "RegistrationLogger",
    "scoped_working_directory",
]
