"""
Elastix-based registration through SimpleITK.

This module delegates registration to elastix, driven by one of its
default parameter maps ("translation" or "affine"). Elastix runs to
convergence on its own schedule and reports a transform parameter map,
which is read back and converted into the caller's parameter layout.

Elastix writes intermediate files, so every call runs inside its own
uniquely named working directory that is removed afterwards. Elastix
support ships in the SimpleITK-SimpleElastix distribution.
"""

import logging
import time
from typing import Dict, Optional, Sequence, Tuple

import SimpleITK as sitk

from affine_registration.core.image_data import (
    Image,
    RegistrationBackend,
    RegistrationConfig,
    RegistrationResult,
    RegistrationState,
    TransformClass,
)
from affine_registration.core.exceptions import (
    BackendUnavailableError,
    RegistrationFailedError,
)
from affine_registration.registration.base import BaseAligner
from affine_registration.registration.parameters import forward_parameters
from affine_registration.utils.logging_config import RegistrationLogger, new_session_id
from affine_registration.utils.workdir import scoped_working_directory

logger = logging.getLogger(__name__)


def is_elastix_available() -> bool:
    """Check if Elastix is available in SimpleITK."""
    return hasattr(sitk, "ElastixImageFilter") and hasattr(sitk, "GetDefaultParameterMap")


class ElastixAligner(BaseAligner):
    """
    Parameter-map driven registration with elastix.

    Results are not expected to match ``SimpleITKAligner`` numerically;
    the two backends use different optimisation strategies.

    Example:
        >>> aligner = ElastixAligner()
        >>> result = aligner.align(fixed, moving, TransformClass.TRANSLATION)
    """

    backend = RegistrationBackend.ELASTIX

    def __init__(self, config: Optional[RegistrationConfig] = None):
        """
        Initialize the Elastix aligner.

        Args:
            config: Registration configuration; only the working directory
                root and quality metric settings apply to this backend

        Raises:
            BackendUnavailableError: If SimpleITK was built without elastix
        """
        if not is_elastix_available():
            raise BackendUnavailableError(
                backend=self.backend.value,
                hint="Replace the SimpleITK wheel: pip uninstall SimpleITK && pip install SimpleITK-SimpleElastix"
            )
        super().__init__(config)

    def align(
        self,
        fixed: Image,
        moving: Image,
        transform_class: TransformClass
    ) -> RegistrationResult:
        """
        Perform Elastix registration.

        Args:
            fixed: Reference image
            moving: Image to align
            transform_class: Selects the "translation" or "affine" preset

        Returns:
            RegistrationResult with the moving -> fixed parameters

        Raises:
            DimensionMismatchError: If the image sizes differ
            ResourceProvisioningError: If the working directory cannot be created
            RegistrationFailedError: If elastix fails
        """
        start_time = time.time()

        fixed_image, moving_image = self._prepare_pair(fixed, moving)
        center = fixed.center

        session = RegistrationLogger(new_session_id(self.backend.value), logger)
        session.start_registration(
            transform_class=transform_class.value,
            size=f"{fixed.width}x{fixed.height}"
        )

        with scoped_working_directory(
            self.config.working_directory_root, prefix="elastix_"
        ) as workdir:
            elastix = sitk.ElastixImageFilter()
            elastix.LogToConsoleOff()
            elastix.LogToFileOff()
            elastix.SetOutputDirectory(str(workdir))
            elastix.SetFixedImage(fixed_image)
            elastix.SetMovingImage(moving_image)
            elastix.SetParameterMap(self._create_parameter_map(transform_class))

            try:
                elastix.Execute()
                transform_map = read_transform_map(elastix.GetTransformParameterMap()[0])
            except RuntimeError as e:
                session.log_error("Elastix registration failed", e)
                session.end_registration(success=False)
                raise RegistrationFailedError(
                    stage="elastix_registration",
                    reason=str(e)
                ) from e

        try:
            native, native_center = native_parameters(transform_map, center)
            parameters = forward_parameters(native, transform_class, native_center, center)
        except RegistrationFailedError as e:
            session.end_registration(success=False, error=e.message)
            raise

        quality_metrics = {}
        if self.config.compute_quality_metrics:
            quality_metrics = self._compute_quality_metrics(fixed, moving, parameters)

        elapsed_time = (time.time() - start_time) * 1000
        session.end_registration(state=RegistrationState.CONVERGED.value)

        return RegistrationResult(
            parameters=parameters,
            transform_class=transform_class,
            backend=self.backend,
            state=RegistrationState.CONVERGED,
            stop_condition="elastix schedule completed",
            origin=center,
            registration_time_ms=elapsed_time,
            quality_metrics=quality_metrics,
        )

    def _create_parameter_map(self, transform_class: TransformClass):
        """Create the single-resolution default parameter map for the transform class."""
        param_map = sitk.GetDefaultParameterMap(transform_class.value, 1)
        param_map["WriteResultImage"] = ["false"]
        return param_map


def read_transform_map(parameter_map) -> Dict[str, Tuple[str, ...]]:
    """Copy an elastix transform parameter map into a plain dictionary of string tuples."""
    return {key: tuple(parameter_map[key]) for key in parameter_map.keys()}


def native_parameters(
    transform_map: Dict[str, Tuple[str, ...]],
    default_center: Tuple[float, float]
) -> Tuple[Sequence[float], Sequence[float]]:
    """
    Return the native parameters and centre of rotation from a transform map.

    ``default_center`` is used when the map carries no
    ``CenterOfRotationPoint`` entry.

    Raises:
        RegistrationFailedError: If the map has no TransformParameters
    """
    if "TransformParameters" not in transform_map:
        raise RegistrationFailedError(
            stage="elastix_registration",
            reason="transform parameter map has no TransformParameters"
        )
    params = [float(p) for p in transform_map["TransformParameters"]]
    center = transform_map.get("CenterOfRotationPoint")
    if center is None:
        return params, default_center
    return params, [float(c) for c in center[:2]]
