"""Iterative restoration backends.

Two Richardson-Lucy variants share one interface:

- ``CpuIterative`` expects a volume that is already background
  subtracted, clamped and (if needed) deskewed on the working grid.
- ``GpuIterative`` receives the cropped raw volume and fuses background
  subtraction, deskewing, RL iterations and rotation on the device.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Tuple

import numpy as np
import torch

from ..core.affine import deskew_volume, rotate_volume
from ..errors import PlanError, ShapeMismatchError
from .operators import make_otf_convolver
from .rl import solve_rl

__all__ = [
    "RestorationParams",
    "RestorationOutput",
    "RestorationBackend",
    "CpuIterative",
    "GpuIterative",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RestorationParams:
    """Batch-constant inputs of an iterative backend.

    Attributes:
        otf_array: Resampled half-spectrum OTF on the working grid.
        shape: Working volume extents (Z, Y, X) after deskewing.
        iterations: Number of RL iterations.
        background: Constant background of the raw data.
        deskew_factor: X shift per z plane; 0 when deskew is off.
        extra_shift: Extra X shift of the deskewed output.
        rotation_matrix: 2x2 rotation/stretch matrix, or None.
        save_deskewed: Return the deskewed raw volume as well.
    """

    otf_array: np.ndarray
    shape: Tuple[int, int, int]
    iterations: int
    background: float = 0.0
    deskew_factor: float = 0.0
    extra_shift: int = 0
    rotation_matrix: Optional[np.ndarray] = None
    save_deskewed: bool = False

    @property
    def nx_out(self) -> int:
        return self.shape[-1]


@dataclass
class RestorationOutput:
    """Restored volume and, optionally, the deskewed raw volume."""

    restored: np.ndarray
    deskewed: Optional[np.ndarray] = None


class RestorationBackend(Protocol):
    """Capability interface of the iterative restoration path."""

    name: str
    fused_geometry: bool

    def restore(self, volume: np.ndarray, params: RestorationParams) -> RestorationOutput:
        ...


class _TorchIterative:
    name = "torch"
    fused_geometry = False

    def __init__(self, device: str = "cpu"):
        self.device = device
        self._ops = None
        self._ops_params = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(device={self.device!r})"

    def _operators(self, params: RestorationParams):
        # the OTF is constant for a batch; build the operators once
        if self._ops is None or self._ops_params is not params:
            self._ops = make_otf_convolver(params.otf_array, params.shape, device=self.device)
            self._ops_params = params
        return self._ops

    def _run_rl(self, observed: torch.Tensor, params: RestorationParams) -> torch.Tensor:
        C, C_adj = self._operators(params)
        result = solve_rl(observed, C, C_adj, num_iter=params.iterations)
        logger.debug(
            "%s: %d RL iterations, final relative change %s",
            self.name,
            result.iterations,
            f"{result.loss_history[-1]:.3e}" if result.loss_history else "-",
        )
        return result.restored


class CpuIterative(_TorchIterative):
    """Richardson-Lucy on the CPU for pre-processed volumes."""

    name = "cpu"

    def __init__(self):
        super().__init__(device="cpu")

    def restore(self, volume: np.ndarray, params: RestorationParams) -> RestorationOutput:
        if tuple(volume.shape) != tuple(params.shape):
            raise ShapeMismatchError(
                f"Backend bound to {tuple(params.shape)}, got volume of shape {volume.shape}"
            )
        observed = torch.from_numpy(np.ascontiguousarray(volume, dtype=np.float32))
        restored = self._run_rl(observed, params)
        return RestorationOutput(restored=restored.numpy())


class GpuIterative(_TorchIterative):
    """Richardson-Lucy with deskew and rotation fused on a CUDA device.

    Args:
        device: Torch device. Defaults to "cuda".

    Raises:
        PlanError: If a CUDA device is requested but not available.
    """

    name = "gpu"
    fused_geometry = True

    def __init__(self, device: str = "cuda"):
        if str(device).startswith("cuda") and not torch.cuda.is_available():
            raise PlanError("GPU backend requested but no CUDA device is available")
        super().__init__(device=device)

    def restore(self, volume: np.ndarray, params: RestorationParams) -> RestorationOutput:
        nz, ny, _ = params.shape
        if tuple(volume.shape[:2]) != (nz, ny):
            raise ShapeMismatchError(
                f"Backend bound to nz={nz}, ny={ny}, got volume of shape {volume.shape}"
            )

        raw = torch.from_numpy(np.ascontiguousarray(volume, dtype=np.float32)).to(self.device)

        deskewed = None
        if params.deskew_factor != 0.0:
            raw = deskew_volume(
                raw,
                params.deskew_factor,
                params.nx_out,
                extra_shift=params.extra_shift,
                fill=params.background,
            )
            if params.save_deskewed:
                deskewed = raw.cpu().numpy()

        if tuple(raw.shape) != tuple(params.shape):
            raise ShapeMismatchError(
                f"Backend bound to {tuple(params.shape)}, got working volume of shape "
                f"{tuple(raw.shape)}"
            )

        observed = torch.clamp(raw - params.background, min=0.0)
        restored = self._run_rl(observed, params)
        restored = rotate_volume(restored, params.rotation_matrix)

        return RestorationOutput(restored=restored.cpu().numpy(), deskewed=deskewed)
