"""Affine resampling with nearest-neighbour and cubic B-spline interpolation."""

from affine_registration.resampling.resampler import (
    Resampler,
    resample,
    saturate_cast,
)

__all__ = [
    "Resampler",
    "resample",
    "saturate_cast",
]
