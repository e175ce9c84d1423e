"""Configuration, acquisition geometry and geometric resampling."""

from .config import DeconConfig
from .geometry import AcquisitionGeometry, compute_geometry
from .affine import deskew_volume, rotate_volume

__all__ = [
    "DeconConfig",
    "AcquisitionGeometry",
    "compute_geometry",
    "deskew_volume",
    "rotate_volume",
]
