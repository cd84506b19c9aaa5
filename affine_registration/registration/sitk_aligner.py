"""
SimpleITK-based registration running entirely in process.

This module drives SimpleITK's registration framework directly: Mattes
mutual information as the similarity metric, regular step gradient
descent as the optimizer and cubic B-spline interpolation while
evaluating the metric. The optimizer shrinks its step length by the
relaxation factor whenever the search direction reverses and stops once
the step falls below the minimum step or the iteration cap is reached.

Affine searches estimate their step length once from a bound on the
physical shift of the image points, and sample the metric only inside
an interior mask so that small transforms never push samples out of the
moving image.
"""

import logging
import time
from typing import Optional, Sequence, Tuple

import numpy as np
import SimpleITK as sitk

from affine_registration.core.image_data import (
    Image,
    RegistrationBackend,
    RegistrationConfig,
    RegistrationResult,
    RegistrationState,
    TransformClass,
)
from affine_registration.core.exceptions import RegistrationFailedError
from affine_registration.registration.base import BaseAligner
from affine_registration.registration.parameters import forward_parameters
from affine_registration.utils.logging_config import RegistrationLogger, new_session_id

logger = logging.getLogger(__name__)


class SimpleITKAligner(BaseAligner):
    """
    In-process intensity-based registration.

    The optimizer starts from the identity transform centred on the image
    midpoint and moves through the states INITIALIZED -> ITERATING ->
    CONVERGED | MAX_ITERATIONS_REACHED | FAILED.

    Example:
        >>> aligner = SimpleITKAligner(RegistrationConfig(learning_rate=2.0))
        >>> result = aligner.align(fixed, moving, TransformClass.AFFINE)
    """

    backend = RegistrationBackend.DIRECT

    def __init__(self, config: Optional[RegistrationConfig] = None):
        """
        Initialize SimpleITK aligner.

        Args:
            config: Registration configuration (optimizer and metric settings)
        """
        super().__init__(config)

        # Registration state
        self._state = RegistrationState.INITIALIZED
        self._iteration_count = 0
        self._metric_values = []

    @property
    def state(self) -> RegistrationState:
        return self._state

    @property
    def metric_values(self) -> Sequence[float]:
        """Metric value after each iteration of the last run."""
        return tuple(self._metric_values)

    def align(
        self,
        fixed: Image,
        moving: Image,
        transform_class: TransformClass
    ) -> RegistrationResult:
        """
        Align the moving image to the fixed image.

        Args:
            fixed: Reference image
            moving: Image to align
            transform_class: Translation (2 parameters) or affine (6 parameters)

        Returns:
            RegistrationResult with the moving -> fixed parameters

        Raises:
            DimensionMismatchError: If the image sizes differ
            RegistrationFailedError: If the metric or optimizer fails
        """
        start_time = time.time()
        warnings = []

        fixed_image, moving_image = self._prepare_pair(fixed, moving)
        center = fixed.center

        session = RegistrationLogger(new_session_id(self.backend.value), logger)
        session.start_registration(
            transform_class=transform_class.value,
            size=f"{fixed.width}x{fixed.height}"
        )

        registration = self._build_registration_method(transform_class, fixed_image, center)

        self._state = RegistrationState.INITIALIZED
        self._iteration_count = 0
        self._metric_values = []
        registration.AddCommand(
            sitk.sitkIterationEvent,
            lambda: self._iteration_callback(registration, session)
        )

        try:
            final_transform = registration.Execute(fixed_image, moving_image)
        except RuntimeError as e:
            self._state = RegistrationState.FAILED
            session.log_error("SimpleITK registration failed", e)
            session.end_registration(success=False)
            raise RegistrationFailedError(
                stage="sitk_registration",
                reason=str(e)
            ) from e

        stop_condition = registration.GetOptimizerStopConditionDescription()
        final_metric = registration.GetMetricValue()
        iterations = registration.GetOptimizerIteration()

        try:
            native, native_center = self._native_parameters(final_transform, transform_class)
            parameters = forward_parameters(native, transform_class, native_center, center)
        except RegistrationFailedError as e:
            self._state = RegistrationState.FAILED
            session.end_registration(success=False, error=e.message)
            raise

        self._state = self._terminal_state(stop_condition, iterations)
        if self._state == RegistrationState.MAX_ITERATIONS_REACHED:
            message = (
                f"Optimizer stopped at the iteration cap ({self.config.num_iterations}) "
                f"before the step length fell below {self.config.min_step}"
            )
            warnings.append(message)
            session.log_warning(message)

        quality_metrics = {}
        if self.config.compute_quality_metrics:
            quality_metrics = self._compute_quality_metrics(fixed, moving, parameters)

        elapsed_time = (time.time() - start_time) * 1000
        session.end_registration(
            state=self._state.value,
            iterations=iterations,
            metric=f"{final_metric:.6f}"
        )

        return RegistrationResult(
            parameters=parameters,
            transform_class=transform_class,
            backend=self.backend,
            state=self._state,
            iterations=iterations,
            metric_value=final_metric,
            stop_condition=stop_condition,
            origin=center,
            registration_time_ms=elapsed_time,
            quality_metrics=quality_metrics,
            warnings=warnings,
        )

    def _build_registration_method(
        self,
        transform_class: TransformClass,
        fixed_image: sitk.Image,
        center: Tuple[float, float]
    ) -> sitk.ImageRegistrationMethod:
        registration = sitk.ImageRegistrationMethod()

        registration.SetMetricAsMattesMutualInformation(
            numberOfHistogramBins=self.config.histogram_bins
        )
        registration.SetMetricSamplingStrategy(registration.NONE)

        # Regular Step Gradient Descent
        if transform_class == TransformClass.AFFINE:
            mask = self._create_metric_mask(fixed_image)
            if mask is not None:
                registration.SetMetricFixedMask(mask)
            # One step moves no image point by more than affine_max_step
            registration.SetOptimizerAsRegularStepGradientDescent(
                learningRate=self.config.learning_rate,
                minStep=self.config.min_step,
                numberOfIterations=self.config.num_iterations,
                relaxationFactor=self.config.relaxation_factor,
                gradientMagnitudeTolerance=self.config.gradient_magnitude_tolerance,
                estimateLearningRate=registration.Once,
                maximumStepSizeInPhysicalUnits=self.config.affine_max_step
            )
        else:
            registration.SetOptimizerAsRegularStepGradientDescent(
                learningRate=self.config.learning_rate,
                minStep=self.config.min_step,
                numberOfIterations=self.config.num_iterations,
                relaxationFactor=self.config.relaxation_factor,
                gradientMagnitudeTolerance=self.config.gradient_magnitude_tolerance
            )
        registration.SetOptimizerScalesFromPhysicalShift()

        registration.SetInterpolator(sitk.sitkBSpline)

        registration.SetInitialTransform(
            self._create_initial_transform(transform_class, center),
            inPlace=False
        )
        return registration

    def _create_metric_mask(self, fixed_image: sitk.Image) -> Optional[sitk.Image]:
        """
        Interior mask of the fixed image for metric sampling.

        Returns None when the image is too small to leave an interior of
        at least 4x4 pixels after removing the border margin.
        """
        width, height = fixed_image.GetSize()
        margin = int(round(self.config.affine_mask_margin * min(width, height)))
        if margin < 1 or min(width, height) - 2 * margin < 4:
            return None

        mask_array = np.zeros((height, width), dtype=np.uint8)
        mask_array[margin:height - margin, margin:width - margin] = 1
        mask = sitk.GetImageFromArray(mask_array)
        mask.CopyInformation(fixed_image)
        return mask

    def _create_initial_transform(
        self,
        transform_class: TransformClass,
        center: Tuple[float, float]
    ) -> sitk.Transform:
        """Identity transform centred on the image midpoint."""
        if transform_class == TransformClass.TRANSLATION:
            return sitk.TranslationTransform(2)
        transform = sitk.AffineTransform(2)
        transform.SetCenter(center)
        return transform

    def _iteration_callback(
        self,
        registration: sitk.ImageRegistrationMethod,
        session: RegistrationLogger
    ) -> None:
        """Callback for each iteration."""
        self._state = RegistrationState.ITERATING
        self._iteration_count += 1
        metric = registration.GetMetricValue()
        self._metric_values.append(metric)
        session.log_iteration(
            iteration=self._iteration_count,
            metric=metric,
            step=registration.GetOptimizerLearningRate()
        )

    def _native_parameters(
        self,
        transform: sitk.Transform,
        transform_class: TransformClass
    ) -> Tuple[Sequence[float], Sequence[float]]:
        """Return the native parameters and centre of the optimized transform."""
        # Handle composite transforms
        if transform.GetName() == "CompositeTransform":
            composite = sitk.CompositeTransform(transform)
            n_transforms = composite.GetNumberOfTransforms()
            if n_transforms > 0:
                transform = composite.GetNthTransform(n_transforms - 1)

        params = transform.GetParameters()
        if transform_class == TransformClass.TRANSLATION:
            return params, (0.0, 0.0)
        return params, transform.GetFixedParameters()[:2]

    def _terminal_state(self, stop_condition: str, iterations: int) -> RegistrationState:
        if (
            "Maximum number of iterations" in stop_condition
            or iterations >= self.config.num_iterations
        ):
            return RegistrationState.MAX_ITERATIONS_REACHED
        return RegistrationState.CONVERGED
