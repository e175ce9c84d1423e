"""One-step Wiener deconvolution in the Fourier domain.

Given the half spectrum G of the observed volume and the OTF H, the
restored spectrum is

    F = conj(H) * G / (|H|² + w²) * (1 - kr / kr_max)

inside the lateral band limit kr <= kr_max and 0 outside it. The last
factor is a linear apodization that tapers the passband to zero at the
cutoff instead of truncating it.

Every frequency voxel is independent, so the filter is applied to z
slabs of the spectrum concurrently.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Tuple

import numpy as np

from ..otf import OTFTable, interpolate_otf
from ..utils.fourier import signed_indices

__all__ = ["wiener_filter"]


def _filter_slab(
    g: np.ndarray,
    z0: int,
    nz: int,
    ny: int,
    freq_steps: Tuple[float, float, float],
    otf: OTFTable,
    rcutoff: float,
    w: float,
) -> None:
    dkx, dky, dkz = freq_steps
    nzs, _, nxh = g.shape

    k = np.arange(z0, z0 + nzs)
    kz = np.where(k > nz // 2, k - nz, k).reshape(nzs, 1, 1).astype(np.float32)
    ky = signed_indices(ny).reshape(1, ny, 1).astype(np.float32)
    kx = np.arange(nxh, dtype=np.float32).reshape(1, 1, nxh)

    kr = np.sqrt(kx * kx * dkx * dkx + ky * ky * dky * dky)
    kr = np.broadcast_to(kr, g.shape)
    inside = kr <= rcutoff

    otf_val = interpolate_otf(
        otf.table,
        kx * (dkx / otf.dkr),
        ky * (dky / otf.dkr),
        kz * (dkz / otf.dkz),
    )
    amp2 = otf_val.real * otf_val.real + otf_val.imag * otf_val.imag
    a_star_g = np.conj(otf_val) * g

    rho = kr / rcutoff
    result = a_star_g / (amp2 + w) * (1 - rho)
    g[...] = np.where(inside, result, 0).astype(g.dtype, copy=False)


def wiener_filter(
    g: np.ndarray,
    freq_steps: Tuple[float, float, float],
    otf: OTFTable,
    rcutoff: float,
    wiener: float,
    workers: int = 1,
) -> np.ndarray:
    """Apply the regularized inverse filter to a half spectrum in place.

    Args:
        g: Complex half spectrum of shape (Z, Y, X // 2 + 1). Overwritten
            with the filtered spectrum.
        freq_steps: Frequency steps (dkx, dky, dkz) of the volume grid in
            cycles/μm.
        otf: Rotationally averaged OTF (read-only, shared by all workers).
        rcutoff: Lateral band limit in cycles/μm.
        wiener: Wiener constant; w² is added to |H|².
        workers: Number of threads. Each works on its own z slab.

    Returns:
        The same array ``g``.

    Example:
        ```python
        spectrum = plan.forward(volume - background)
        wiener_filter(spectrum, (dkx, dky, dkz), otf, 2 * na / wavelength, 1e-2)
        restored = plan.inverse(spectrum) / volume.size
        ```
    """
    nz, ny, _ = g.shape
    w = wiener * wiener

    workers = max(1, min(workers, nz))
    bounds = np.linspace(0, nz, workers + 1).astype(int)
    slabs = [(a, b) for a, b in zip(bounds[:-1], bounds[1:]) if b > a]

    def run(bounds_pair):
        a, b = bounds_pair
        _filter_slab(g[a:b], a, nz, ny, freq_steps, otf, rcutoff, w)

    if len(slabs) == 1:
        run(slabs[0])
    else:
        with ThreadPoolExecutor(max_workers=len(slabs)) as executor:
            # list() re-raises any worker exception here
            list(executor.map(run, slabs))

    return g
