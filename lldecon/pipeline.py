"""Batch deconvolution pipeline.

A batch is a set of volumes with identical extents. Everything that only
depends on those extents and the acquisition metadata (cropped shape,
deskew/rotation geometry, transform plans, resampled OTF, restoration
backend) is computed once into a ProcessingContext from the first volume
and reused for every file.

Per volume, either path runs:

- one-step: background subtraction, optional apodization, forward
  transform, Wiener filter, inverse transform, division by voxel count
- iterative: background subtraction, clamping at 0, Richardson-Lucy on
  the CPU or GPU backend

Deskewing precedes restoration and rotation follows it in both paths; the
GPU backend performs both itself.
"""

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
import torch

from .core.affine import deskew_volume, rotate_volume
from .core.config import DeconConfig
from .core.geometry import AcquisitionGeometry, compute_geometry
from .deconvolution.apodize import apodize
from .deconvolution.backends import (
    CpuIterative,
    GpuIterative,
    RestorationBackend,
    RestorationParams,
)
from .deconvolution.wiener import wiener_filter
from .errors import ConfigurationError, ShapeMismatchError
from .otf import OTFTable, load_otf, make_otf_array
from .utils.fourier import TransformPlan, acquire_plans, optimal_dimension
from .utils.io import gather_matching_files, make_output_path, read_volume, write_volume
from .utils.logging import format_duration
from .utils.padding import crop_to_shape

__all__ = [
    "ProcessingContext",
    "ProcessedVolume",
    "select_backend",
    "process_volume",
    "run_batch",
]

logger = logging.getLogger(__name__)

Shape = Tuple[int, int, int]


def select_backend(config: DeconConfig, device: Optional[str] = None) -> Optional[RestorationBackend]:
    """Pick the iterative backend, or None for one-step Wiener filtering.

    Raises:
        PlanError: If the GPU backend is selected without a CUDA device.
    """
    if config.iterations == 0:
        return None
    if config.use_cpu:
        return CpuIterative()
    return GpuIterative(device=device or "cuda")


@dataclass
class ProcessingContext:
    """Batch-scoped state, built once from the first volume.

    Attributes:
        config: Processing options.
        otf: Rotationally averaged OTF (read-only).
        input_shape: Raw (Z, Y, X) extents every volume must have.
        work_shape: Extents after cropping, before deskewing.
        crop: Whether volumes are cropped/padded to work_shape.
        geometry: Deskew/rotation parameters.
        plan: Transform plan bound to the working (deskewed) extents.
        freq_steps: (dkx, dky, dkz) of the working grid in cycles/μm.
        rcutoff: Lateral band limit in cycles/μm.
        backend: Iterative backend, or None in one-step mode.
        restoration: Batch parameters handed to the backend.
    """

    config: DeconConfig
    otf: OTFTable
    input_shape: Shape
    work_shape: Shape
    crop: bool
    geometry: AcquisitionGeometry
    plan: TransformPlan
    freq_steps: Tuple[float, float, float]
    rcutoff: float
    backend: Optional[RestorationBackend] = None
    restoration: Optional[RestorationParams] = field(default=None, repr=False)

    @property
    def fft_shape(self) -> Shape:
        """Working extents after deskewing."""
        nz, ny, _ = self.work_shape
        return (nz, ny, self.geometry.nx_out)

    @property
    def deskewed_shape(self) -> Optional[Shape]:
        """Extents of the saved deskewed raw volume, if one is produced."""
        if self.config.save_deskewed and self.geometry.deskew_enabled:
            return self.fft_shape
        return None

    @classmethod
    def create(
        cls,
        first_shape: Sequence[int],
        config: DeconConfig,
        otf: OTFTable,
        backend: Optional[RestorationBackend] = None,
    ) -> "ProcessingContext":
        """Initialize the batch from the extents of its first volume.

        Args:
            first_shape: (Z, Y, X) extents of the first volume.
            config: Processing options.
            otf: Loaded OTF.
            backend: Iterative backend override. By default chosen by
                select_backend in iterative mode.

        Raises:
            PlanError: If transform plans or the compute device cannot be
                acquired.
        """
        nz, ny, nx = (int(s) for s in first_shape)
        logger.info("Original image size: nz=%d, ny=%d, nx=%d", nz, ny, nx)

        crop = False
        new_ny = optimal_dimension(ny)
        if new_ny != ny:
            logger.info("new ny=%d", new_ny)
            crop = True
        new_nz = optimal_dimension(nz)
        if new_nz != nz:
            logger.info("new nz=%d", new_nz)
            crop = True

        # deskewing decides the output width instead
        new_nx = nx
        if not config.deskew_enabled:
            new_nx = optimal_dimension(nx)
            if new_nx != nx:
                logger.info("new nx=%d", new_nx)
                crop = True

        geometry = compute_geometry(
            new_nx,
            new_nz,
            config.dr,
            config.dz,
            deskew_angle=config.deskew_angle,
            rotation_angle=config.rotation_angle,
            output_width=config.output_width,
        )
        if geometry.deskew_enabled:
            logger.info(
                "deskewFactor=%f, new nx=%d, dz=%.4f",
                geometry.deskew_factor,
                geometry.nx_out,
                geometry.dz,
            )

        fft_shape = (new_nz, new_ny, geometry.nx_out)
        plan = acquire_plans(fft_shape, workers=config.threads)

        freq_steps = (
            1.0 / (config.dr * geometry.nx_out),
            1.0 / (config.dr * new_ny),
            1.0 / (geometry.dz * new_nz),
        )

        restoration = None
        if config.iterations > 0:
            if backend is None:
                backend = select_backend(config)
            logger.info("Using %s backend for %d RL iterations", backend.name, config.iterations)
            restoration = RestorationParams(
                otf_array=make_otf_array(otf, fft_shape, freq_steps),
                shape=fft_shape,
                iterations=config.iterations,
                background=config.background,
                deskew_factor=geometry.deskew_factor,
                extra_shift=config.extra_shift,
                rotation_matrix=geometry.rotation_matrix,
                save_deskewed=config.save_deskewed,
            )
        else:
            backend = None

        if config.save_deskewed and not geometry.deskew_enabled:
            logger.warning("Deskewed raw output requested but deskewing is off")

        return cls(
            config=config,
            otf=otf,
            input_shape=(nz, ny, nx),
            work_shape=(new_nz, new_ny, new_nx),
            crop=crop,
            geometry=geometry,
            plan=plan,
            freq_steps=freq_steps,
            rcutoff=config.radial_cutoff,
            backend=backend,
            restoration=restoration,
        )

    def close(self) -> None:
        """Release the plan, resampled OTF and backend."""
        self.backend = None
        self.restoration = None
        self.plan = None


@dataclass
class ProcessedVolume:
    """Restored volume and, when requested, the deskewed raw volume."""

    restored: np.ndarray
    deskewed: Optional[np.ndarray] = None


def process_volume(volume: np.ndarray, ctx: ProcessingContext) -> ProcessedVolume:
    """Restore one volume with the batch context.

    The input array is not modified.

    Raises:
        ShapeMismatchError: If the volume extents differ from the first
            volume of the batch.
    """
    if tuple(volume.shape) != ctx.input_shape:
        raise ShapeMismatchError(
            f"Volume of shape {tuple(volume.shape)} does not match the batch "
            f"extents {ctx.input_shape}"
        )
    config = ctx.config
    geometry = ctx.geometry

    volume = np.array(volume, dtype=np.float32)
    if ctx.crop:
        # deskew, if any, still sees the uncropped-in-X volume
        volume = crop_to_shape(volume, ctx.work_shape)

    if getattr(ctx.backend, "fused_geometry", False):
        out = ctx.backend.restore(volume, ctx.restoration)
        return ProcessedVolume(restored=out.restored, deskewed=out.deskewed)

    deskewed = None
    if geometry.deskew_enabled:
        volume = deskew_volume(
            torch.from_numpy(volume),
            geometry.deskew_factor,
            geometry.nx_out,
            extra_shift=config.extra_shift,
            fill=config.background,
        ).numpy()
        if config.save_deskewed:
            deskewed = volume.copy()

    volume -= config.background

    if ctx.backend is not None:
        # negative intensities would break the multiplicative RL update
        np.maximum(volume, 0.0, out=volume)
        restored = ctx.backend.restore(volume, ctx.restoration).restored
    else:
        if config.napodize > 0:
            apodize(config.napodize, volume)
        spectrum = ctx.plan.forward(volume)
        wiener_filter(
            spectrum,
            ctx.freq_steps,
            ctx.otf,
            ctx.rcutoff,
            config.wiener,
            workers=config.threads,
        )
        restored = ctx.plan.inverse(spectrum)
        restored /= ctx.plan.size

    if geometry.rotation_matrix is not None:
        restored = rotate_volume(torch.from_numpy(restored), geometry.rotation_matrix).numpy()

    return ProcessedVolume(restored=restored, deskewed=deskewed)


def run_batch(
    config: DeconConfig,
    input_dir: Union[str, Path],
    pattern: str,
    otf_path: Union[str, Path],
    backend: Optional[RestorationBackend] = None,
) -> List[Path]:
    """Deconvolve every TIFF in ``input_dir`` whose name matches ``pattern``.

    Restored volumes go to ``<input_dir>/GPUdecon/<name>_decon.tif``;
    deskewed raw volumes, if requested, to
    ``<input_dir>/Deskewed/<name>_deskewed.tif``.

    Returns:
        Paths of the restored volumes, in processing order.

    Raises:
        ConfigurationError: If the input folder or pattern is invalid.
        PlanError: If the batch cannot be initialized.
        ShapeMismatchError: If a later volume differs in extents.
    """
    files = gather_matching_files(input_dir, pattern)
    if not files:
        logger.warning("No files matching %r in %s", pattern, input_dir)
        return []

    if not Path(otf_path).is_file():
        raise ConfigurationError(f"OTF file {otf_path} does not exist")
    otf = load_otf(otf_path, config.dr_psf, config.dz_psf)
    logger.info("OTF: nr=%d, nz=%d", otf.nr, otf.nz)

    outputs = []
    ctx = None
    try:
        for path in files:
            logger.info("%s", path)
            t0 = time.perf_counter()
            raw = read_volume(path)
            if ctx is None:
                ctx = ProcessingContext.create(raw.shape, config, otf, backend=backend)

            result = process_volume(raw, ctx)

            out_path = write_volume(make_output_path(path), result.restored)
            outputs.append(out_path)
            if result.deskewed is not None:
                write_volume(make_output_path(path, "Deskewed", "_deskewed"), result.deskewed)
            logger.info("Wrote %s in %s", out_path, format_duration(time.perf_counter() - t0))
    finally:
        if ctx is not None:
            ctx.close()

    return outputs
