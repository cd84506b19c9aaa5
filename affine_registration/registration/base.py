"""
Base class for registration backends.

Defines the ``BaseAligner`` interface that the in-process SimpleITK
backend and the elastix backend share, together with the input checks
and quality metrics common to both.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple

import numpy as np
import SimpleITK as sitk

from affine_registration.core.image_data import (
    ElementType,
    Image,
    InterpolationMode,
    ParameterVector,
    RegistrationBackend,
    RegistrationConfig,
    RegistrationResult,
    TransformClass,
)
from affine_registration.core.transform import AffineTransform
from affine_registration.core.exceptions import (
    DimensionMismatchError,
    RegistrationFailedError,
)
from affine_registration.resampling.resampler import Resampler

logger = logging.getLogger(__name__)


def check_same_dimensions(fixed: Image, moving: Image) -> None:
    """
    Raises:
        DimensionMismatchError: If the images differ in width or height
    """
    if fixed.shape != moving.shape:
        raise DimensionMismatchError(
            fixed_shape=(fixed.width, fixed.height),
            moving_shape=(moving.width, moving.height),
        )


def check_not_degenerate(image: Image, role: str) -> None:
    """
    Reject images the similarity metric cannot work with.

    Raises:
        RegistrationFailedError: If the image is constant or has non-finite pixels
    """
    pixels = image.pixels
    if not image.element_type.is_integer and not np.all(np.isfinite(pixels)):
        raise RegistrationFailedError(
            stage="input_validation",
            reason=f"{role} image contains non-finite pixels"
        )
    if pixels.min() == pixels.max():
        raise RegistrationFailedError(
            stage="input_validation",
            reason=f"{role} image has constant intensity {pixels.flat[0]}"
        )


class BaseAligner(ABC):
    """
    Abstract interface of a registration backend.

    ``align`` estimates the transform that maps the moving image onto the
    fixed image, so that resampling the moving image with the returned
    parameters reproduces the fixed image.
    """

    backend: RegistrationBackend

    def __init__(self, config: Optional[RegistrationConfig] = None):
        self.config = config or RegistrationConfig()

    @abstractmethod
    def align(
        self,
        fixed: Image,
        moving: Image,
        transform_class: TransformClass
    ) -> RegistrationResult:
        """
        Register ``moving`` onto ``fixed``.

        Raises:
            DimensionMismatchError: If the image sizes differ
            RegistrationFailedError: If the backend fails
        """

    def _prepare_pair(self, fixed: Image, moving: Image) -> Tuple[sitk.Image, sitk.Image]:
        """Validate the pair and convert both images to float32 SimpleITK images."""
        check_same_dimensions(fixed, moving)
        check_not_degenerate(fixed, "fixed")
        check_not_degenerate(moving, "moving")
        return fixed.to_sitk(sitk.sitkFloat32), moving.to_sitk(sitk.sitkFloat32)

    def _compute_quality_metrics(
        self,
        fixed: Image,
        moving: Image,
        parameters: ParameterVector
    ) -> Dict[str, float]:
        """Compute NCC and MSE between the fixed image and the registered moving image."""
        moving_f64 = Image(
            width=moving.width,
            height=moving.height,
            element_type=ElementType.F64,
            pixels=moving.pixels.astype(np.float64),
        )
        transform = AffineTransform.from_parameters(parameters, origin=fixed.center)
        registered = Resampler().resample(
            moving_f64, transform, InterpolationMode.CUBIC_BSPLINE
        )

        fixed_arr = fixed.pixels.astype(np.float64)
        result_arr = registered.pixels

        # Normalize
        fixed_arr = (fixed_arr - fixed_arr.mean()) / (fixed_arr.std() + 1e-8)
        result_arr = (result_arr - result_arr.mean()) / (result_arr.std() + 1e-8)

        return {
            "ncc": float(np.mean(fixed_arr * result_arr)),
            "mse": float(np.mean((fixed_arr - result_arr) ** 2)),
        }
