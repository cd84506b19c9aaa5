"""
Marshaling of backend-native transform parameters.

Both backends report ITK transforms, which map points of the fixed image
to points of the moving image. Callers receive the opposite direction,
the forward moving -> fixed transform, in the fixed six-element layout
``[m00, m01, m10, m11, tx, ty]`` pivoted about the image midpoint, so
that resampling the moving image with the returned parameters
reproduces the fixed image.
"""

import math
from typing import Sequence

from affine_registration.core.image_data import ParameterVector, TransformClass
from affine_registration.core.transform import AffineTransform
from affine_registration.core.exceptions import (
    RegistrationFailedError,
    SingularTransformError,
)


def marshal_parameters(
    native: Sequence[float],
    transform_class: TransformClass
) -> ParameterVector:
    """
    Place native parameters into the six-element layout.

    A translation result (2 values) gets an identity linear part; an
    affine result (6 values) is copied as is.

    Raises:
        RegistrationFailedError: If the number of values does not match the class
    """
    values = [float(v) for v in native]
    expected = transform_class.num_parameters
    if len(values) != expected:
        raise RegistrationFailedError(
            stage="parameter_marshaling",
            reason=f"expected {expected} {transform_class.value} parameters, got {len(values)}"
        )
    if not all(math.isfinite(v) for v in values):
        raise RegistrationFailedError(
            stage="parameter_marshaling",
            reason=f"non-finite parameters {values}"
        )
    if transform_class == TransformClass.TRANSLATION:
        return ParameterVector((1.0, 0.0, 0.0, 1.0, values[0], values[1]))
    return ParameterVector(tuple(values))


def forward_parameters(
    native: Sequence[float],
    transform_class: TransformClass,
    native_center: Sequence[float],
    image_center: Sequence[float]
) -> ParameterVector:
    """
    Convert a native fixed -> moving result into caller parameters.

    Args:
        native: Backend parameters (2 for translation, 6 for affine)
        transform_class: Search space of the registration
        native_center: Centre of rotation of the native transform
        image_center: Midpoint of the images, the pivot of the result

    Raises:
        RegistrationFailedError: If the parameters are malformed or the
            estimated linear part is singular
    """
    native_vector = marshal_parameters(native, transform_class)

    if transform_class == TransformClass.TRANSLATION:
        tx, ty = native_vector.translation
        return marshal_parameters([0.0 - tx, 0.0 - ty], transform_class)

    native_transform = AffineTransform.from_parameters(native_vector, origin=native_center)
    try:
        forward = native_transform.inverse()
    except SingularTransformError as e:
        raise RegistrationFailedError(
            stage="parameter_marshaling",
            reason="estimated transform is not invertible",
            details=e.message
        ) from e
    forward = forward.recentered(image_center)
    return marshal_parameters(forward.parameters.values, transform_class)
