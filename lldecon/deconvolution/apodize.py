"""Edge apodization of volumes before Fourier transformation.

The DFT treats a volume as periodic, so any mismatch between opposite
X/Y borders appears as a sharp edge that leaks into high frequencies.
Each border row (column) is nudged halfway towards its opposite row
(column) with a half-cosine ramp that fades out over ``napodize`` pixels.
"""

import numpy as np

__all__ = ["apodize"]


def apodize(napodize: int, image: np.ndarray) -> np.ndarray:
    """Smooth the X/Y border discontinuities of every z plane in place.

    Args:
        napodize: Taper width in pixels.
        image: Real volume of shape (Z, Y, X), modified in place. When
            X == Y + 2 the last two columns are treated as padding and
            left untouched.

    Returns:
        The same array, for convenience.

    Example:
        >>> vol = np.random.rand(8, 64, 64).astype(np.float32)
        >>> apodize(10, vol)
    """
    if napodize <= 0:
        return image

    ny = image.shape[-2]
    nx = image.shape[-1]
    if nx - ny == 2:
        nx -= 2

    n = min(napodize, ny // 2, nx // 2)
    l = np.arange(n)
    fact = (1.0 - np.sin(((l + 0.5) / napodize) * np.pi * 0.5)).astype(image.dtype)

    # rows: fact runs along y
    diff = (image[:, ny - 1, :nx] - image[:, 0, :nx]) * 0.5
    ramp = diff[:, np.newaxis, :] * fact[np.newaxis, :, np.newaxis]
    image[:, :n, :nx] += ramp
    image[:, ny - 1 - l, :nx] -= ramp

    # columns, using the row-corrected values
    diff = (image[:, :, nx - 1] - image[:, :, 0]) * 0.5
    ramp = diff[:, :, np.newaxis] * fact[np.newaxis, np.newaxis, :]
    image[:, :, :n] += ramp
    image[:, :, nx - 1 - l] -= ramp

    return image
