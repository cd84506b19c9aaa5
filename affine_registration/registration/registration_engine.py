"""
Registration engine dispatching to the available backends.

The engine validates the image pair, instantiates the configured backend
for the call and returns the estimated moving -> fixed transform. A new
aligner is created for every call, so concurrent registrations share no
optimizer state.
"""

import logging
import time
from typing import Optional, Tuple

from affine_registration.core.image_data import (
    Image,
    InterpolationMode,
    ParameterVector,
    RegistrationBackend,
    RegistrationConfig,
    RegistrationResult,
    TransformClass,
)
from affine_registration.core.transform import AffineTransform
from affine_registration.registration.base import BaseAligner, check_same_dimensions
from affine_registration.registration.sitk_aligner import SimpleITKAligner
from affine_registration.registration.elastix_aligner import ElastixAligner
from affine_registration.resampling.resampler import Resampler

logger = logging.getLogger(__name__)


class RegistrationEngine:
    """
    Estimate affine or translation transforms between two images.

    Attributes:
        config: Registration configuration shared by all calls

    Example:
        >>> engine = RegistrationEngine()
        >>> result = engine.align(fixed, moving, TransformClass.TRANSLATION)
        >>> print(result.translation)
        >>>
        >>> # Resample the moving image into the fixed frame
        >>> result, registered = engine.register_and_apply(fixed, moving)
    """

    def __init__(self, config: Optional[RegistrationConfig] = None):
        self.config = config or RegistrationConfig()

    def create_aligner(self, backend: Optional[RegistrationBackend] = None) -> BaseAligner:
        """
        Create a fresh aligner for one registration.

        Raises:
            BackendUnavailableError: If the elastix backend is requested but
                not installed
        """
        backend = backend or self.config.backend
        if backend == RegistrationBackend.ELASTIX:
            return ElastixAligner(self.config)
        if backend == RegistrationBackend.DIRECT:
            return SimpleITKAligner(self.config)
        raise ValueError(f"Unknown registration backend: {backend}")

    def align(
        self,
        fixed: Image,
        moving: Image,
        transform_class: TransformClass = TransformClass.AFFINE,
        backend: Optional[RegistrationBackend] = None
    ) -> RegistrationResult:
        """
        Register ``moving`` onto ``fixed``.

        Args:
            fixed: Reference image
            moving: Image to align, same dimensions as ``fixed``
            transform_class: Translation or affine search space
            backend: Overrides the configured backend for this call

        Returns:
            RegistrationResult whose parameters map the moving image onto
            the fixed image about the image midpoint

        Raises:
            DimensionMismatchError: If the image sizes differ
            RegistrationFailedError: If the backend fails or is unavailable
            ResourceProvisioningError: If elastix cannot get a working directory
        """
        check_same_dimensions(fixed, moving)

        aligner = self.create_aligner(backend)
        logger.info(
            f"Registering {fixed.width}x{fixed.height} {fixed.element_type.value} images "
            f"({transform_class.value}, backend={aligner.backend.value})"
        )

        start_time = time.time()
        result = aligner.align(fixed, moving, transform_class)
        total_time = (time.time() - start_time) * 1000

        logger.info(
            f"Registration complete in {total_time:.1f}ms: "
            f"state={result.state.value}, parameters={result.parameters.to_list()}"
        )
        return result

    def register(
        self,
        fixed: Image,
        moving: Image,
        transform_class: TransformClass = TransformClass.AFFINE,
        backend: Optional[RegistrationBackend] = None
    ) -> ParameterVector:
        """Register and return only the six-element parameter vector."""
        return self.align(fixed, moving, transform_class, backend).parameters

    def apply_transform(
        self,
        image: Image,
        result: RegistrationResult,
        mode: InterpolationMode = InterpolationMode.CUBIC_BSPLINE
    ) -> Image:
        """Resample ``image`` with the transform of a registration result."""
        transform = AffineTransform.from_parameters(result.parameters, origin=result.origin)
        return Resampler().resample(image, transform, mode)

    def register_and_apply(
        self,
        fixed: Image,
        moving: Image,
        transform_class: TransformClass = TransformClass.AFFINE,
        mode: InterpolationMode = InterpolationMode.CUBIC_BSPLINE
    ) -> Tuple[RegistrationResult, Image]:
        """
        Register images and return both the result and the registered image.

        Returns:
            Tuple of (RegistrationResult, moving image resampled into the fixed frame)
        """
        result = self.align(fixed, moving, transform_class)
        registered = self.apply_transform(moving, result, mode)
        return result, registered
