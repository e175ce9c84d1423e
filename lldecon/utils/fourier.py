"""Fourier transform utilities."""

from typing import Sequence, Tuple

import numpy as np
import scipy.fft

from ..errors import PlanError, ShapeMismatchError

__all__ = [
    "optimal_dimension",
    "is_fast_size",
    "signed_indices",
    "half_spectrum_shape",
    "TransformPlan",
    "acquire_plans",
]

_FAST_PRIMES = (2, 3, 5, 7)


def is_fast_size(n: int) -> bool:
    """Whether n is a multiple of 4 with no prime factor above 7."""
    if n < 4 or n % 4:
        return False
    n //= 4
    for p in _FAST_PRIMES:
        while n % p == 0:
            n //= p
    return n == 1


def optimal_dimension(n: int) -> int:
    """Return the smallest FFT-friendly extent >= n.

    Friendly extents are radix-4 multiples whose remaining factors are
    2, 3, 5 or 7.

    Args:
        n: Requested extent (positive).

    Returns:
        Optimized extent.

    Example:
        ```python
        optimal_dimension(256)  # 256
        optimal_dimension(250)  # 252 = 4 * 3 * 3 * 7
        ```
    """
    n = int(n)
    if n < 1:
        raise ValueError(f"Extent must be positive, got {n}")
    m = n
    while not is_fast_size(m):
        m += 1
    return m


def signed_indices(n: int) -> np.ndarray:
    """Frequency indices folded about the Nyquist midpoint.

    Index i maps to i - n when i > n // 2, so for even n the Nyquist
    sample stays positive: [0, 1, 2, 3, 4, -3, -2, -1] for n = 8.
    """
    i = np.arange(n)
    return np.where(i > n // 2, i - n, i)


def half_spectrum_shape(shape: Sequence[int]) -> Tuple[int, ...]:
    """Shape of the non-redundant half spectrum of a real (Z, Y, X) volume."""
    return tuple(shape[:-1]) + (shape[-1] // 2 + 1,)


class TransformPlan:
    """Real 3-D transform pair bound to fixed (Z, Y, X) extents.

    The forward transform produces the complex64 half spectrum; the
    inverse is unnormalized, so ``plan.inverse(plan.forward(v)) / v.size``
    reproduces ``v``.

    Args:
        shape: Volume extents (Z, Y, X).
        workers: Number of threads used by each transform.
    """

    def __init__(self, shape: Sequence[int], workers: int = 1):
        self.shape = tuple(int(s) for s in shape)
        self.spectrum_shape = half_spectrum_shape(self.shape)
        self.workers = workers

    def __repr__(self) -> str:
        return f"TransformPlan(shape={self.shape}, workers={self.workers})"

    @property
    def size(self) -> int:
        return int(np.prod(self.shape))

    def forward(self, volume: np.ndarray) -> np.ndarray:
        """Real-to-complex transform of a volume."""
        if volume.shape != self.shape:
            raise ShapeMismatchError(
                f"Plan bound to {self.shape}, got volume of shape {volume.shape}"
            )
        spectrum = scipy.fft.rfftn(volume, workers=self.workers)
        return spectrum.astype(np.complex64, copy=False)

    def inverse(self, spectrum: np.ndarray) -> np.ndarray:
        """Unnormalized complex-to-real transform of a half spectrum."""
        if spectrum.shape != self.spectrum_shape:
            raise ShapeMismatchError(
                f"Plan bound to spectrum {self.spectrum_shape}, got {spectrum.shape}"
            )
        volume = scipy.fft.irfftn(
            spectrum, s=self.shape, norm="forward", workers=self.workers
        )
        return volume.astype(np.float32, copy=False)


def acquire_plans(shape: Sequence[int], workers: int = 1) -> TransformPlan:
    """Create the transform plan used for every volume of a batch.

    Raises:
        PlanError: If the extents or worker count are invalid.
    """
    shape = tuple(int(s) for s in shape)
    if len(shape) != 3 or any(s < 1 for s in shape):
        raise PlanError(f"Cannot plan a 3-D transform for extents {shape}")
    if workers < 1:
        raise PlanError(f"Cannot plan a transform with {workers} workers")
    return TransformPlan(shape, workers=workers)
