"""Registration backends and engine."""

from affine_registration.registration.base import BaseAligner
from affine_registration.registration.sitk_aligner import SimpleITKAligner
from affine_registration.registration.elastix_aligner import (
    ElastixAligner,
    is_elastix_available,
)
from affine_registration.registration.parameters import (
    marshal_parameters,
    forward_parameters,
)
from affine_registration.registration.registration_engine import RegistrationEngine

__all__ = [
    "BaseAligner",
    "SimpleITKAligner",
    "ElastixAligner",
    "is_elastix_available",
    "marshal_parameters",
    "forward_parameters",
    "RegistrationEngine",
]
