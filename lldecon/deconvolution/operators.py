"""Forward and adjoint convolution operators built from a resampled OTF.

The OTF is already in Fourier space on the half-spectrum grid of the
working volume, so convolution is a single rfftn / multiply / irfftn.
"""

from typing import Callable, Sequence, Tuple

import numpy as np
import torch

__all__ = ["make_otf_convolver"]


def make_otf_convolver(
    otf: np.ndarray,
    shape: Sequence[int],
    device: str = "cpu",
    dtype: torch.dtype = torch.float32,
    normalize: bool = True,
) -> Tuple[Callable[[torch.Tensor], torch.Tensor], Callable[[torch.Tensor], torch.Tensor]]:
    """Create 3D FFT-based forward and adjoint convolution operators.

    Args:
        otf: Complex half-spectrum OTF of shape (Z, Y, X // 2 + 1), as
            produced by make_otf_array.
        shape: Real-space volume shape (Z, Y, X).
        device: PyTorch device ("cpu", "cuda", "cuda:0", etc.).
        dtype: Real PyTorch dtype for computations. Default float32.
        normalize: Scale the OTF so that its DC value is 1, making the
            forward operator flux preserving. Default True.

    Returns:
        Tuple (C, C_adj) where:
            - C(x): Forward operator, blurs x with the OTF
            - C_adj(y): Adjoint operator, multiplies by conj(OTF)

    Example:
        >>> otf_array = make_otf_array(otf, (64, 256, 256), freq_steps)
        >>> C, C_adj = make_otf_convolver(otf_array, (64, 256, 256), device="cuda")
    """
    shape = tuple(int(s) for s in shape)
    expected = shape[:-1] + (shape[-1] // 2 + 1,)
    if tuple(otf.shape) != expected:
        raise ValueError(
            f"OTF shape {tuple(otf.shape)} does not match half spectrum {expected}"
        )

    complex_dtype = torch.complex64 if dtype == torch.float32 else torch.complex128
    otf_tensor = torch.from_numpy(np.ascontiguousarray(otf)).to(
        device=device, dtype=complex_dtype
    )
    if normalize:
        dc = torch.abs(otf_tensor[0, 0, 0])
        if dc > 0:
            otf_tensor = otf_tensor / dc
    otf_conj = torch.conj(otf_tensor)

    def forward(x: torch.Tensor) -> torch.Tensor:
        """Apply 3D forward convolution."""
        x_ft = torch.fft.rfftn(x)
        return torch.fft.irfftn(x_ft * otf_tensor, s=shape)

    def adjoint(y: torch.Tensor) -> torch.Tensor:
        """Apply 3D adjoint (correlation)."""
        y_ft = torch.fft.rfftn(y)
        return torch.fft.irfftn(y_ft * otf_conj, s=shape)

    return forward, adjoint
