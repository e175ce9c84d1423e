"""Array cropping utilities for FFT-friendly extents."""

import numpy as np

__all__ = ["crop_to_shape"]


def crop_to_shape(
    img: np.ndarray,
    output_shape: tuple[int, ...],
    mode: str = "edge",
) -> np.ndarray:
    """Crop or pad an array to a new shape, anchored at index 0.

    Dimensions larger than the target are cut at the high-index end;
    dimensions smaller than the target are padded at the high-index end.

    Args:
        img: N-dimensional input array.
        output_shape: Desired output shape.
        mode: numpy.pad mode used for growing dimensions. "edge" repeats
            the last sample; "constant" pads with zeros.

    Returns:
        Array of the requested shape.

    Raises:
        ValueError: If the number of dimensions differs.

    Example:
        >>> img = np.random.rand(61, 250, 250)
        >>> fitted = crop_to_shape(img, (64, 252, 252))
    """
    input_shape = img.shape
    ndim = len(input_shape)

    if len(output_shape) != ndim:
        raise ValueError(
            f"Output shape dimensions ({len(output_shape)}) must match "
            f"input dimensions ({ndim})"
        )

    slices = tuple(slice(0, min(i, o)) for i, o in zip(input_shape, output_shape))
    result = img[slices]

    pad_width = [(0, max(o - i, 0)) for i, o in zip(input_shape, output_shape)]
    if any(after for _, after in pad_width):
        result = np.pad(result, pad_width, mode=mode)

    return np.ascontiguousarray(result)
