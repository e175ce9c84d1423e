"""FFT, cropping, I/O and logging utilities."""

from .fourier import (
    optimal_dimension,
    is_fast_size,
    signed_indices,
    half_spectrum_shape,
    TransformPlan,
    acquire_plans,
)
from .padding import crop_to_shape

__all__ = [
    # Fourier utilities
    "optimal_dimension",
    "is_fast_size",
    "signed_indices",
    "half_spectrum_shape",
    "TransformPlan",
    "acquire_plans",
    # Cropping
    "crop_to_shape",
]
