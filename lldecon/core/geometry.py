"""Acquisition geometry: deskew and rotation parameters."""

import math
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from ..utils.fourier import optimal_dimension

__all__ = ["AcquisitionGeometry", "compute_geometry"]


@dataclass(frozen=True)
class AcquisitionGeometry:
    """Deskew/rotation parameters derived once per batch.

    Attributes:
        deskew_factor: X shift in pixels per z plane. 0 when deskew is off.
        nx_out: Working X extent after deskewing (equals the input X extent
            when deskew is off).
        dz: Z step in μm, rescaled by sin(angle) when deskewing.
        deskew_angle: Deskew angle in degrees, normalized to be non-negative.
        rotation_matrix: 2x2 float32 matrix folding the y-axis rotation and
            the anisotropic voxel stretch, or None when rotation is off.
    """

    deskew_factor: float
    nx_out: int
    dz: float
    deskew_angle: float = 0.0
    rotation_matrix: Optional[np.ndarray] = None

    @property
    def deskew_enabled(self) -> bool:
        return self.deskew_factor != 0.0


def compute_geometry(
    nx: int,
    nz: int,
    dr: float,
    dz: float,
    deskew_angle: float = 0.0,
    rotation_angle: float = 0.0,
    output_width: int = 0,
    optimize: Callable[[int], int] = optimal_dimension,
) -> AcquisitionGeometry:
    """Derive deskew factor, output width, z step and rotation matrix.

    Args:
        nx: X extent of the (cropped) input volume.
        nz: Z extent of the (cropped) input volume.
        dr: Lateral pixel size (μm).
        dz: Stage step (μm).
        deskew_angle: Deskew angle in degrees; 0 disables deskewing.
            Negative angles are normalized by adding 180.
        rotation_angle: Rotation angle in degrees; 0 disables rotation.
        output_width: Desired deskewed width in pixels; 0 derives it.
        optimize: Dimension optimizer applied to the derived width.

    Returns:
        AcquisitionGeometry for the batch.

    Example:
        ```python
        geom = compute_geometry(256, 100, dr=0.104, dz=0.25, deskew_angle=30)
        geom.deskew_factor  # cos(30°) * 0.25 / 0.104 -> ~2.082
        geom.dz             # 0.25 * sin(30°) -> 0.125
        ```
    """
    deskew_factor = 0.0
    nx_out = nx
    new_dz = dz

    if abs(deskew_angle) > 0.0:
        if deskew_angle < 0:
            deskew_angle += 180.0
        theta = math.radians(deskew_angle)
        deskew_factor = math.cos(theta) * dz / dr
        if output_width == 0:
            # NOTE: the /4 scaling of the sheared extent is unvalidated
            nx_out = optimize(nx + math.floor(nz * dz * abs(math.cos(theta)) / dr) // 4)
        else:
            nx_out = int(output_width)
        new_dz = dz * math.sin(theta)
    else:
        deskew_angle = 0.0

    rotation_matrix = None
    if abs(rotation_angle) > 0.0:
        phi = math.radians(rotation_angle)
        stretch = dr / new_dz
        rotation_matrix = np.array(
            [
                [math.cos(phi) * stretch, math.sin(phi) * stretch],
                [-math.sin(phi), math.cos(phi)],
            ],
            dtype=np.float32,
        )

    return AcquisitionGeometry(
        deskew_factor=deskew_factor,
        nx_out=nx_out,
        dz=new_dz,
        deskew_angle=deskew_angle,
        rotation_matrix=rotation_matrix,
    )
