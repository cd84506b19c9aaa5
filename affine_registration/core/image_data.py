"""
Core data structures for affine registration and resampling.

This module defines the fundamental data classes used throughout the
library, including the typed image container, the enumerations that
select interpolation and registration behaviour, the fixed six-element
parameter vector, registration results and configuration.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict, Any, Tuple, List, Sequence, Union
import numpy as np
import SimpleITK as sitk

from affine_registration.core.exceptions import UnsupportedElementTypeError


class ElementType(Enum):
    """The closed set of supported pixel element types."""
    U8 = "u8"
    I8 = "i8"
    U16 = "u16"
    I16 = "i16"
    U32 = "u32"
    I32 = "i32"
    U64 = "u64"
    I64 = "i64"
    F32 = "f32"
    F64 = "f64"

    @property
    def dtype(self) -> np.dtype:
        """Return the numpy dtype holding this element type."""
        return np.dtype(_DTYPES[self])

    @property
    def sitk_pixel_id(self) -> int:
        """Return the corresponding SimpleITK pixel type identifier."""
        mapping = {
            ElementType.U8: sitk.sitkUInt8,
            ElementType.I8: sitk.sitkInt8,
            ElementType.U16: sitk.sitkUInt16,
            ElementType.I16: sitk.sitkInt16,
            ElementType.U32: sitk.sitkUInt32,
            ElementType.I32: sitk.sitkInt32,
            ElementType.U64: sitk.sitkUInt64,
            ElementType.I64: sitk.sitkInt64,
            ElementType.F32: sitk.sitkFloat32,
            ElementType.F64: sitk.sitkFloat64,
        }
        return mapping[self]

    @property
    def itemsize(self) -> int:
        return self.dtype.itemsize

    @property
    def is_integer(self) -> bool:
        return self.dtype.kind in ("u", "i")

    @classmethod
    def resolve(cls, value: Union["ElementType", str, np.dtype, type]) -> "ElementType":
        """
        Resolve a tag, numpy dtype or enum member to an ElementType.

        Tags are the short names ("u8", "f64", ...); numpy dtype names
        ("uint8", "float64", ...) are accepted as well.

        Raises:
            UnsupportedElementTypeError: If the value names no supported type
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.lower()
            for member in cls:
                if key in (member.value, member.dtype.name):
                    return member
            raise UnsupportedElementTypeError(value)
        try:
            dtype = np.dtype(value)
        except (TypeError, ValueError):
            raise UnsupportedElementTypeError(value)
        for member in cls:
            if member.dtype == dtype:
                return member
        raise UnsupportedElementTypeError(value)


_DTYPES = {
    ElementType.U8: np.uint8,
    ElementType.I8: np.int8,
    ElementType.U16: np.uint16,
    ElementType.I16: np.int16,
    ElementType.U32: np.uint32,
    ElementType.I32: np.int32,
    ElementType.U64: np.uint64,
    ElementType.I64: np.int64,
    ElementType.F32: np.float32,
    ElementType.F64: np.float64,
}


class InterpolationMode(Enum):
    """Interpolation used when resampling an image."""
    NEAREST_NEIGHBOR = "nearest_neighbor"
    CUBIC_BSPLINE = "cubic_bspline"

    @property
    def sitk_interpolator(self) -> int:
        """Return the corresponding SimpleITK interpolator."""
        if self == InterpolationMode.NEAREST_NEIGHBOR:
            return sitk.sitkNearestNeighbor
        return sitk.sitkBSpline

    @classmethod
    def from_legacy_flag(cls, nearest_neighbor: bool) -> "InterpolationMode":
        """
        Map the legacy boolean interpolation flag.

        The legacy flag is inverted with respect to its historical name
        ``bspline_or_nn``: ``False`` selects B-spline and ``True`` selects
        nearest neighbour.
        """
        return cls.NEAREST_NEIGHBOR if nearest_neighbor else cls.CUBIC_BSPLINE


class TransformClass(Enum):
    """Search space of a registration."""
    TRANSLATION = "translation"      # 2 DOF: tx, ty
    AFFINE = "affine"                # 6 DOF: full affine

    @property
    def num_parameters(self) -> int:
        return 2 if self == TransformClass.TRANSLATION else 6

    @classmethod
    def from_legacy_flag(cls, affine: bool) -> "TransformClass":
        """Map the legacy boolean: ``False`` is translation, ``True`` is affine."""
        return cls.AFFINE if affine else cls.TRANSLATION


class RegistrationBackend(Enum):
    """Interchangeable optimisation backends."""
    DIRECT = "direct"        # in-process SimpleITK optimiser loop
    ELASTIX = "elastix"      # parameter-map driven elastix run


class RegistrationState(Enum):
    """States of the optimiser loop."""
    INITIALIZED = "initialized"
    ITERATING = "iterating"
    CONVERGED = "converged"
    MAX_ITERATIONS_REACHED = "max_iterations_reached"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (
            RegistrationState.CONVERGED,
            RegistrationState.MAX_ITERATIONS_REACHED,
            RegistrationState.FAILED,
        )


@dataclass
class Image:
    """
    Owned two-dimensional pixel buffer of a single element type.

    Attributes:
        width: Number of columns
        height: Number of rows
        element_type: Pixel element type, fixed at construction
        pixels: Row-major numpy array of shape (height, width)
    """
    width: int
    height: int
    element_type: ElementType
    pixels: np.ndarray

    def __post_init__(self):
        """Validate image data after initialization."""
        self.element_type = ElementType.resolve(self.element_type)
        if self.width <= 0 or self.height <= 0:
            raise ValueError(
                f"Image dimensions must be positive, got {self.width}x{self.height}"
            )
        if self.pixels.shape != (self.height, self.width):
            raise ValueError(
                f"pixels must have shape {(self.height, self.width)}, "
                f"got {self.pixels.shape}"
            )
        if self.pixels.dtype != self.element_type.dtype:
            raise ValueError(
                f"pixels dtype {self.pixels.dtype} does not match "
                f"element type {self.element_type.value}"
            )

    @classmethod
    def from_array(cls, array: np.ndarray) -> "Image":
        """Create an owned image from a 2D numpy array (copied)."""
        array = np.asarray(array)
        if array.ndim != 2:
            raise ValueError(f"array must be 2D, got {array.ndim}D")
        element_type = ElementType.resolve(array.dtype)
        pixels = np.ascontiguousarray(array, dtype=element_type.dtype).copy()
        return cls(
            width=array.shape[1],
            height=array.shape[0],
            element_type=element_type,
            pixels=pixels,
        )

    @classmethod
    def from_sitk(cls, image: sitk.Image, element_type: ElementType) -> "Image":
        """Convert a SimpleITK image back to an Image of the given type."""
        array = sitk.GetArrayFromImage(image)
        if array.dtype != element_type.dtype:
            array = array.astype(element_type.dtype)
        width, height = image.GetSize()
        return cls(
            width=width,
            height=height,
            element_type=element_type,
            pixels=np.ascontiguousarray(array),
        )

    def to_sitk(self, pixel_id: Optional[int] = None) -> sitk.Image:
        """
        Convert to a SimpleITK image with unit spacing and zero origin.

        Physical coordinates therefore equal pixel indices (x = column,
        y = row).
        """
        image = sitk.GetImageFromArray(self.pixels)
        if pixel_id is not None and pixel_id != image.GetPixelID():
            image = sitk.Cast(image, pixel_id)
        return image

    @property
    def shape(self) -> Tuple[int, int]:
        """Return (height, width)."""
        return (self.height, self.width)

    @property
    def size(self) -> int:
        return self.width * self.height

    @property
    def center(self) -> Tuple[float, float]:
        """Return the image midpoint ((width-1)/2, (height-1)/2)."""
        return ((self.width - 1) / 2.0, (self.height - 1) / 2.0)

    def copy(self) -> "Image":
        """Create a deep copy of the image."""
        return Image(
            width=self.width,
            height=self.height,
            element_type=self.element_type,
            pixels=self.pixels.copy(),
        )


@dataclass(frozen=True)
class ParameterVector:
    """
    The fixed six-element transform layout ``[m00, m01, m10, m11, tx, ty]``.

    Always fully populated; translation-only results carry an identity
    linear part.
    """
    values: Tuple[float, ...]

    def __post_init__(self):
        values = tuple(float(v) for v in self.values)
        if len(values) != 6:
            raise ValueError(f"ParameterVector needs 6 values, got {len(values)}")
        object.__setattr__(self, "values", values)

    @classmethod
    def identity(cls) -> "ParameterVector":
        return cls((1.0, 0.0, 0.0, 1.0, 0.0, 0.0))

    @classmethod
    def from_sequence(cls, values: Sequence[float]) -> "ParameterVector":
        return cls(tuple(values))

    def __len__(self) -> int:
        return 6

    def __iter__(self):
        return iter(self.values)

    def __getitem__(self, index):
        return self.values[index]

    @property
    def linear(self) -> np.ndarray:
        """Return the 2x2 linear part."""
        return np.array(self.values[:4], dtype=np.float64).reshape(2, 2)

    @property
    def translation(self) -> Tuple[float, float]:
        """Extract translation component (tx, ty)."""
        return (self.values[4], self.values[5])

    def as_array(self) -> np.ndarray:
        return np.array(self.values, dtype=np.float64)

    def to_list(self) -> List[float]:
        return list(self.values)

    def is_identity(self, atol: float = 1e-6) -> bool:
        """Check if the parameters are approximately identity."""
        return bool(np.allclose(self.as_array(), ParameterVector.identity().as_array(), atol=atol))


@dataclass
class RegistrationResult:
    """
    Complete result from a registration run.

    Attributes:
        parameters: Estimated transform (moving -> fixed) in the six-element layout
        transform_class: Search space used
        backend: Backend that produced the result
        state: Terminal optimiser state
        iterations: Number of optimiser iterations performed
        metric_value: Final similarity metric value (lower is better)
        stop_condition: Optimiser stop condition description
        origin: Centre of the linear part (the image midpoint)
        registration_time_ms: Total registration time in milliseconds
        quality_metrics: Dictionary of post-registration quality metrics
        warnings: List of warning messages
    """
    parameters: ParameterVector
    transform_class: TransformClass
    backend: RegistrationBackend
    state: RegistrationState = RegistrationState.CONVERGED
    iterations: int = 0
    metric_value: Optional[float] = None
    stop_condition: str = ""
    origin: Tuple[float, float] = (0.0, 0.0)
    registration_time_ms: float = 0.0
    quality_metrics: Dict[str, float] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    @property
    def converged(self) -> bool:
        return self.state == RegistrationState.CONVERGED

    @property
    def translation(self) -> Tuple[float, float]:
        return self.parameters.translation

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "parameters": self.parameters.to_list(),
            "transform_class": self.transform_class.value,
            "backend": self.backend.value,
            "state": self.state.value,
            "iterations": self.iterations,
            "metric_value": self.metric_value,
            "stop_condition": self.stop_condition,
            "origin": list(self.origin),
            "registration_time_ms": self.registration_time_ms,
            "quality_metrics": self.quality_metrics,
            "warnings": self.warnings,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RegistrationResult":
        """Create from dictionary."""
        return cls(
            parameters=ParameterVector.from_sequence(data["parameters"]),
            transform_class=TransformClass(data["transform_class"]),
            backend=RegistrationBackend(data["backend"]),
            state=RegistrationState(data.get("state", "converged")),
            iterations=data.get("iterations", 0),
            metric_value=data.get("metric_value"),
            stop_condition=data.get("stop_condition", ""),
            origin=tuple(data.get("origin", (0.0, 0.0))),
            registration_time_ms=data.get("registration_time_ms", 0.0),
            quality_metrics=data.get("quality_metrics", {}),
            warnings=data.get("warnings", []),
        )


@dataclass
class RegistrationConfig:
    """
    Configuration for the registration engine.

    Attributes:
        backend: Optimisation backend
        learning_rate: Initial (maximum) step length of the optimiser
        min_step: Step length below which the optimiser stops
        relaxation_factor: Step length reduction on direction reversal
        num_iterations: Iteration cap
        gradient_magnitude_tolerance: Gradient norm below which the optimiser stops
        histogram_bins: Number of histogram bins of the mutual information metric
        affine_max_step: Largest physical shift, in pixels, of any image point
            during one affine optimiser step; the affine learning rate is
            estimated from it before the first iteration
        affine_mask_margin: Fraction of the smaller image side excluded at
            each border when sampling the metric for affine registration
        compute_quality_metrics: Compute NCC/MSE of the registered pair
        working_directory_root: Parent directory for elastix working directories
            (system temporary directory when None)
    """
    backend: RegistrationBackend = RegistrationBackend.DIRECT
    learning_rate: float = 4.0
    min_step: float = 0.01
    relaxation_factor: float = 0.5
    num_iterations: int = 200
    gradient_magnitude_tolerance: float = 1e-4
    histogram_bins: int = 50
    affine_max_step: float = 1.0
    affine_mask_margin: float = 0.1
    compute_quality_metrics: bool = True
    working_directory_root: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "backend": self.backend.value,
            "learning_rate": self.learning_rate,
            "min_step": self.min_step,
            "relaxation_factor": self.relaxation_factor,
            "num_iterations": self.num_iterations,
            "gradient_magnitude_tolerance": self.gradient_magnitude_tolerance,
            "histogram_bins": self.histogram_bins,
            "affine_max_step": self.affine_max_step,
            "affine_mask_margin": self.affine_mask_margin,
            "compute_quality_metrics": self.compute_quality_metrics,
            "working_directory_root": self.working_directory_root,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RegistrationConfig":
        """Create from dictionary."""
        data = dict(data)
        if "backend" in data:
            data["backend"] = RegistrationBackend(data["backend"])
        return cls(**data)
