"""Volume restoration: apodization, Wiener filtering and Richardson-Lucy.

The deconvolution problem is formulated as:
    b = C(x) + background + noise

where:
    - b: observed blurred volume
    - x: unknown original volume
    - C: forward operator (multiplication by the OTF in Fourier space)

The one-step path applies a regularized inverse of C directly to the
spectrum of b (wiener_filter). The iterative path runs Richardson-Lucy
with PyTorch on the CPU or a CUDA device (CpuIterative, GpuIterative).

Example:
    >>> from lldecon.deconvolution import wiener_filter
    >>> spectrum = plan.forward(volume - background)
    >>> wiener_filter(spectrum, freq_steps, otf, rcutoff, wiener=1e-2)
    >>> restored = plan.inverse(spectrum) / volume.size
"""

from .base import DeconvolutionResult
from .apodize import apodize
from .wiener import wiener_filter
from .operators import make_otf_convolver
from .rl import solve_rl
from .backends import (
    RestorationParams,
    RestorationOutput,
    RestorationBackend,
    CpuIterative,
    GpuIterative,
)

__all__ = [
    # Base types
    "DeconvolutionResult",
    # One-step filtering
    "apodize",
    "wiener_filter",
    # Richardson-Lucy
    "make_otf_convolver",
    "solve_rl",
    # Backends
    "RestorationParams",
    "RestorationOutput",
    "RestorationBackend",
    "CpuIterative",
    "GpuIterative",
]
