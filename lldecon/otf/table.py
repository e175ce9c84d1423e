"""Rotationally averaged OTF table and its interpolation.

The OTF of a widefield/light-sheet detection path is rotationally
symmetric about the optical axis, so it is stored as a 2-D complex table
indexed by (radial frequency, axial frequency). The axial axis is
periodic; the radial axis is not and carries no signal past its last
sample.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Sequence, Tuple, Union

import numpy as np

from ..utils.fourier import half_spectrum_shape, signed_indices
from ..utils.io import read_otf_image

__all__ = [
    "OTFTable",
    "otf_from_image",
    "load_otf",
    "interpolate_otf",
    "make_otf_array",
]


@dataclass(frozen=True)
class OTFTable:
    """Read-only rotationally averaged OTF.

    Attributes:
        table: Complex64 array of shape (nr, nz); fast axis is axial.
        dkr: Radial frequency step of the table (cycles/μm).
        dkz: Axial frequency step of the table (cycles/μm).
    """

    table: np.ndarray
    dkr: float
    dkz: float

    def __post_init__(self) -> None:
        table = np.array(self.table, dtype=np.complex64)
        if table.ndim != 2:
            raise ValueError(f"OTF table must be 2-D, got shape {table.shape}")
        table.setflags(write=False)
        object.__setattr__(self, "table", table)

    @property
    def nr(self) -> int:
        """Number of radial samples."""
        return self.table.shape[0]

    @property
    def nz(self) -> int:
        """Number of axial samples."""
        return self.table.shape[1]


def otf_from_image(image: np.ndarray, dr_psf: float, dz_psf: float) -> OTFTable:
    """Unpack an interleaved (nr, 2 * nz) real image into an OTFTable.

    The frequency steps follow from the PSF sampling: the radial axis
    spans half of a (nr - 1) * 2 wide lateral grid, the axial axis a full
    nz long z grid.
    """
    image = np.asarray(image, dtype=np.float32)
    table = image[:, 0::2] + 1j * image[:, 1::2]
    nr, nz = table.shape
    dkr = 1.0 / ((nr - 1) * 2 * dr_psf)
    dkz = 1.0 / (nz * dz_psf)
    return OTFTable(table=table, dkr=dkr, dkz=dkz)


def load_otf(path: Union[str, Path], dr_psf: float, dz_psf: float) -> OTFTable:
    """Load a rotationally averaged OTF TIFF.

    Args:
        path: OTF file; height = radial samples, width = 2 * axial samples.
        dr_psf: PSF lateral pixel size (μm).
        dz_psf: PSF z step (μm).
    """
    return otf_from_image(read_otf_image(path), dr_psf, dz_psf)


def interpolate_otf(table: np.ndarray, kx, ky, kz):
    """Bilinearly interpolate the OTF at sub-pixel frequency coordinates.

    Coordinates are in table index units. Radius is sqrt(kx² + ky²);
    negative kz is folded by adding nz. Frequencies at or beyond the last
    radial sample, or outside the folded axial range, return 0. The upper
    axial neighbour of the last axial sample wraps to index 0.

    Args:
        table: Complex (nr, nz) OTF table (or an OTFTable).
        kx, ky, kz: Scalars or broadcastable arrays.

    Returns:
        Complex64 array of interpolated values, or a Python complex for
        scalar input.
    """
    if isinstance(table, OTFTable):
        table = table.table
    nr, nz = table.shape

    scalar = np.ndim(kx) == 0 and np.ndim(ky) == 0 and np.ndim(kz) == 0
    kx, ky, kz = np.broadcast_arrays(
        np.asarray(kx, dtype=np.float32),
        np.asarray(ky, dtype=np.float32),
        np.asarray(kz, dtype=np.float32),
    )

    kr = np.sqrt(kx * kx + ky * ky)
    kzf = np.where(kz < 0, kz + nz, kz)
    valid = (kr < nr - 1) & (kzf < nz) & (kzf >= 0)
    if nr < 2 or not valid.any():
        value = np.zeros(kr.shape, dtype=np.complex64)
        return complex(value) if scalar else value

    kr = np.where(valid, kr, 0.0)
    kzf = np.where(valid, kzf, 0.0)
    ir = np.floor(kr).astype(np.intp)
    iz = np.floor(kzf).astype(np.intp)
    ar = (kr - ir).astype(np.float32)
    az = (kzf - iz).astype(np.float32)
    iz1 = np.where(iz == nz - 1, 0, iz + 1)

    value = (1 - ar) * (table[ir, iz] * (1 - az) + table[ir, iz1] * az) + ar * (
        table[ir + 1, iz] * (1 - az) + table[ir + 1, iz1] * az
    )
    value = np.where(valid, value, 0).astype(np.complex64)

    if scalar:
        return complex(value)
    return value


def make_otf_array(
    otf: OTFTable,
    shape: Sequence[int],
    freq_steps: Tuple[float, float, float],
) -> np.ndarray:
    """Resample the OTF onto the half-spectrum grid of a (Z, Y, X) volume.

    Args:
        otf: Rotationally averaged OTF.
        shape: Working volume extents (Z, Y, X).
        freq_steps: Volume frequency steps (dkx, dky, dkz) in cycles/μm.

    Returns:
        Complex64 array of shape (Z, Y, X // 2 + 1).
    """
    nz, ny, _ = shape
    nxh = half_spectrum_shape(shape)[-1]
    dkx, dky, dkz = freq_steps

    kz = signed_indices(nz).reshape(nz, 1, 1) * (dkz / otf.dkz)
    ky = signed_indices(ny).reshape(1, ny, 1) * (dky / otf.dkr)
    kx = np.arange(nxh).reshape(1, 1, nxh) * (dkx / otf.dkr)

    return interpolate_otf(otf.table, kx, ky, kz)
