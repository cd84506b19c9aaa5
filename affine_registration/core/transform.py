"""
Two-dimensional affine transform model.

A transform is a 2x2 linear part pivoted about an origin plus a
translation. A point ``p`` is mapped forward as::

    q = linear @ (p - origin) + origin + translation

Points are ``(x, y)`` with x along columns and y along rows.
"""

import json
import logging
from pathlib import Path
from typing import Sequence, Tuple, Union

import numpy as np
import SimpleITK as sitk

from affine_registration.core.exceptions import SingularTransformError
from affine_registration.core.image_data import ParameterVector

logger = logging.getLogger(__name__)


class AffineTransform:
    """
    Affine transform with a centre of rotation.

    Example:
        >>> t = AffineTransform.from_parameters([1.2, 0, 0, 1, 10, 0], origin=(63.5, 47.5))
        >>> t.forward((63.5, 47.5))
        (73.5, 47.5)
        >>> t.inverse().forward(t.forward((3.0, 4.0)))
        (3.0, 4.0)
    """

    def __init__(
        self,
        linear: Union[Sequence[Sequence[float]], np.ndarray] = ((1.0, 0.0), (0.0, 1.0)),
        translation: Sequence[float] = (0.0, 0.0),
        origin: Sequence[float] = (0.0, 0.0)
    ):
        self.linear = np.array(linear, dtype=np.float64).reshape(2, 2)
        self.translation = np.array(translation, dtype=np.float64).reshape(2)
        self.origin = np.array(origin, dtype=np.float64).reshape(2)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def identity(cls, origin: Sequence[float] = (0.0, 0.0)) -> "AffineTransform":
        return cls(np.eye(2), (0.0, 0.0), origin)

    @classmethod
    def from_translation(
        cls,
        translation: Sequence[float],
        origin: Sequence[float] = (0.0, 0.0)
    ) -> "AffineTransform":
        return cls(np.eye(2), translation, origin)

    @classmethod
    def from_parameters(
        cls,
        parameters: Union[ParameterVector, Sequence[float]],
        origin: Sequence[float] = (0.0, 0.0)
    ) -> "AffineTransform":
        """Build from the flat ``[m00, m01, m10, m11, tx, ty]`` layout."""
        values = list(parameters)
        if len(values) != 6:
            raise ValueError(f"Expected 6 transform parameters, got {len(values)}")
        return cls(
            linear=[[values[0], values[1]], [values[2], values[3]]],
            translation=values[4:6],
            origin=origin,
        )

    @classmethod
    def from_sitk(cls, transform: sitk.Transform) -> "AffineTransform":
        """Convert a 2D SimpleITK translation or affine transform."""
        if transform.GetName() == "CompositeTransform":
            composite = sitk.CompositeTransform(transform)
            n_transforms = composite.GetNumberOfTransforms()
            if n_transforms == 0:
                return cls.identity()
            transform = composite.GetNthTransform(n_transforms - 1)

        params = transform.GetParameters()
        name = transform.GetName()
        if "Translation" in name:
            return cls.from_translation(params[:2])
        if "Affine" in name:
            center = transform.GetFixedParameters()[:2]
            return cls.from_parameters(params[:6], origin=center)
        raise ValueError(f"Cannot convert SimpleITK transform '{name}'")

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def parameters(self) -> ParameterVector:
        """Return the flat ``[m00, m01, m10, m11, tx, ty]`` parameters."""
        return ParameterVector((
            self.linear[0, 0], self.linear[0, 1],
            self.linear[1, 0], self.linear[1, 1],
            self.translation[0], self.translation[1],
        ))

    @property
    def determinant(self) -> float:
        m = self.linear
        return float(m[0, 0] * m[1, 1] - m[0, 1] * m[1, 0])

    def matrix(self) -> np.ndarray:
        """Return the homogeneous 3x3 matrix including the origin shift."""
        offset = self.origin + self.translation - self.linear @ self.origin
        m = np.eye(3)
        m[:2, :2] = self.linear
        m[:2, 2] = offset
        return m

    def is_invertible(self) -> bool:
        det = self.determinant
        return bool(np.isfinite(det) and det != 0.0)

    def is_identity(self, atol: float = 1e-6) -> bool:
        """True if the transform does nothing (origin is irrelevant)."""
        return bool(
            np.allclose(self.linear, np.eye(2), atol=atol)
            and np.allclose(self.translation, 0.0, atol=atol)
        )

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------

    def forward(self, point: Sequence[float]) -> Tuple[float, float]:
        p = np.asarray(point, dtype=np.float64)
        q = self.linear @ (p - self.origin) + self.origin + self.translation
        return (float(q[0]), float(q[1]))

    def inverse(self) -> "AffineTransform":
        """
        Return the inverse transform about the same origin.

        Raises:
            SingularTransformError: If the linear part is not invertible
        """
        det = self.determinant
        if not np.isfinite(det) or det == 0.0:
            raise SingularTransformError(det)
        inv_linear = np.array([
            [self.linear[1, 1], -self.linear[0, 1]],
            [-self.linear[1, 0], self.linear[0, 0]],
        ]) / det
        return AffineTransform(inv_linear, -inv_linear @ self.translation, self.origin)

    def inverse_point(self, point: Sequence[float]) -> Tuple[float, float]:
        return self.inverse().forward(point)

    def transform_points(self, points: np.ndarray) -> np.ndarray:
        """
        Map an (N, 2) array of (x, y) points forward.

        Raises:
            ValueError: If points do not have two columns
        """
        points = np.asarray(points, dtype=np.float64)
        if points.ndim != 2 or points.shape[1] != 2:
            raise ValueError("points must have shape (N, 2)")
        return (points - self.origin) @ self.linear.T + self.origin + self.translation

    def recentered(self, origin: Sequence[float]) -> "AffineTransform":
        """Return the same mapping expressed about a different origin."""
        new_origin = np.asarray(origin, dtype=np.float64)
        shift = new_origin - self.origin
        translation = self.translation + (self.linear - np.eye(2)) @ shift
        return AffineTransform(self.linear, translation, new_origin)

    def __mul__(self, other: "AffineTransform") -> "AffineTransform":
        """Compose: ``(a * b).forward(p) == a.forward(b.forward(p))``."""
        if not isinstance(other, AffineTransform):
            return NotImplemented
        other = other.recentered(self.origin)
        linear = self.linear @ other.linear
        translation = self.linear @ other.translation + self.translation
        return AffineTransform(linear, translation, self.origin)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AffineTransform):
            return NotImplemented
        return (
            np.array_equal(self.linear, other.linear)
            and np.array_equal(self.translation, other.translation)
            and np.array_equal(self.origin, other.origin)
        )

    def __repr__(self) -> str:
        return (
            f"AffineTransform(parameters={list(self.parameters)}, "
            f"origin={self.origin.tolist()})"
        )

    def allclose(self, other: "AffineTransform", atol: float = 1e-9) -> bool:
        """Compare mappings, independent of the chosen origin."""
        return bool(np.allclose(self.matrix(), other.matrix(), atol=atol))

    # ------------------------------------------------------------------
    # Conversion and persistence
    # ------------------------------------------------------------------

    def to_sitk(self) -> sitk.AffineTransform:
        transform = sitk.AffineTransform(2)
        transform.SetMatrix(self.linear.ravel().tolist())
        transform.SetTranslation(self.translation.tolist())
        transform.SetCenter(self.origin.tolist())
        return transform

    def to_dict(self) -> dict:
        return {
            "parameters": self.parameters.to_list(),
            "origin": self.origin.tolist(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AffineTransform":
        return cls.from_parameters(data["parameters"], origin=data.get("origin", (0.0, 0.0)))

    def to_file(self, path: Union[str, Path]) -> Path:
        """Write the transform as JSON."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.debug(f"Transform written to {path}")
        return path

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "AffineTransform":
        """Read a transform written by ``to_file``."""
        with open(Path(path)) as f:
            return cls.from_dict(json.load(f))
