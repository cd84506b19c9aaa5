"""Buffer adapters between caller memory and owned images."""

from affine_registration.io.buffer_adapter import (
    build_image,
    extract_image,
    read_parameters,
    write_parameters,
)

__all__ = [
    "build_image",
    "extract_image",
    "read_parameters",
    "write_parameters",
]
