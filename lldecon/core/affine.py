"""Geometric resampling of volumes: stage-scan deskew and y-axis rotation.

Both transforms act in the (X, Z) plane and leave Y untouched, so Y is
used as the batch axis of a 2-D ``grid_sample``. Volumes are (Z, Y, X)
tensors on any device.
"""

from typing import Optional

import numpy as np
import torch
import torch.nn.functional as F

__all__ = ["deskew_volume", "rotate_volume"]


def _to_normalized(coords: torch.Tensor, n: int) -> torch.Tensor:
    """Pixel coordinates -> [-1, 1] for align_corners=True."""
    return coords * (2.0 / max(n - 1, 1)) - 1.0


def _resample_xz(
    volume: torch.Tensor, x_in: torch.Tensor, z_in: torch.Tensor
) -> torch.Tensor:
    """Sample every Y plane at (x_in, z_in), each of shape (nz_out, nx_out)."""
    nz, ny, nx = volume.shape
    grid = torch.stack((_to_normalized(x_in, nx), _to_normalized(z_in, nz)), dim=-1)
    grid = grid.unsqueeze(0).expand(ny, -1, -1, -1).contiguous()

    planes = volume.permute(1, 0, 2).unsqueeze(1)  # (Y, 1, Z, X)
    out = F.grid_sample(
        planes, grid, mode="bilinear", padding_mode="zeros", align_corners=True
    )
    return out[:, 0].permute(1, 0, 2).contiguous()


def deskew_volume(
    volume: torch.Tensor,
    deskew_factor: float,
    nx_out: int,
    extra_shift: int = 0,
    fill: float = 0.0,
) -> torch.Tensor:
    """Undo the shear of a stage-scanned stack.

    Plane z is shifted along X by ``deskew_factor * (z - nz / 2)``, and the
    result is centered in an ``nx_out`` wide buffer:

        x_in = (x - nx_out/2 + extra_shift) - deskew_factor * (z - nz/2) + nx_in/2

    Args:
        volume: (Z, Y, X) tensor.
        deskew_factor: X shift in pixels per z plane.
        nx_out: Output X extent.
        extra_shift: Extra output shift in X (positive -> left).
        fill: Value for output samples with no input coverage.

    Returns:
        Deskewed (Z, Y, nx_out) tensor.
    """
    nz, _, nx = volume.shape
    device, dtype = volume.device, volume.dtype

    z = torch.arange(nz, device=device, dtype=dtype).reshape(nz, 1)
    x = torch.arange(nx_out, device=device, dtype=dtype).reshape(1, nx_out)

    x_in = (x - nx_out / 2.0 + extra_shift) - deskew_factor * (z - nz / 2.0) + nx / 2.0
    z_in = z.expand(nz, nx_out)
    x_in = x_in.expand(nz, nx_out)

    if fill:
        return _resample_xz(volume - fill, x_in, z_in) + fill
    return _resample_xz(volume, x_in, z_in)


def rotate_volume(
    volume: torch.Tensor, matrix: Optional[np.ndarray]
) -> torch.Tensor:
    """Rotate every Y plane around the volume center in (X, Z).

    The 2x2 ``matrix`` maps centered output coordinates (x, z) to input
    coordinates; see compute_geometry for how rotation and voxel
    anisotropy are folded into it. Samples from outside the input are 0.
    """
    if matrix is None:
        return volume

    nz, _, nx = volume.shape
    device, dtype = volume.device, volume.dtype
    m = torch.as_tensor(np.asarray(matrix, dtype=np.float32), device=device, dtype=dtype)

    cz = (nz - 1) / 2.0
    cx = (nx - 1) / 2.0
    zc = torch.arange(nz, device=device, dtype=dtype).reshape(nz, 1) - cz
    xc = torch.arange(nx, device=device, dtype=dtype).reshape(1, nx) - cx

    x_in = m[0, 0] * xc + m[0, 1] * zc + cx
    z_in = m[1, 0] * xc + m[1, 1] * zc + cz
    return _resample_xz(volume, x_in, z_in)
