"""Rotationally averaged OTF loading and interpolation."""

from .table import (
    OTFTable,
    otf_from_image,
    load_otf,
    interpolate_otf,
    make_otf_array,
)

__all__ = [
    "OTFTable",
    "otf_from_image",
    "load_otf",
    "interpolate_otf",
    "make_otf_array",
]
