"""Acquisition and processing configuration."""

from dataclasses import dataclass

from ..errors import ConfigurationError

__all__ = ["DeconConfig"]


@dataclass(frozen=True)
class DeconConfig:
    """Immutable acquisition metadata and processing options.

    All physical dimensions are in microns, angles in degrees.

    Attributes:
        dr: Image x-y pixel size (μm).
        dz: Image z step (μm), before any deskew correction.
        dr_psf: PSF x-y pixel size (μm).
        dz_psf: PSF z step (μm).
        wavelength: Emission wavelength (μm).
        na: Numerical aperture of the objective.
        wiener: Wiener constant. Its square is the regularization floor.
        background: Constant subtracted from every voxel.
        iterations: Richardson-Lucy iterations. 0 selects one-step Wiener
            filtering.
        use_cpu: Run Richardson-Lucy on the CPU instead of the GPU.
        deskew_angle: Stage-scan angle. 0 disables deskewing.
        output_width: Deskewed output width in pixels. 0 derives it.
        extra_shift: Extra X shift of the deskewed output (positive -> left).
        rotation_angle: Rotation around the y axis after restoration.
            0 disables rotation.
        save_deskewed: Also save the deskewed raw volume.
        napodize: Edge apodization width in pixels. 0 disables it.
        threads: Worker threads for transforms and the Wiener filter.

    Example:
        ```python
        config = DeconConfig(iterations=0, deskew_angle=31.5)
        print(config.radial_cutoff)  # 2 * NA / wavelength -> ~4.57
        ```
    """

    dr: float = 0.104
    dz: float = 0.25
    dr_psf: float = 0.104
    dz_psf: float = 0.1
    wavelength: float = 0.525
    na: float = 1.2
    wiener: float = 1e-2
    background: float = 90.0
    iterations: int = 15
    use_cpu: bool = False
    deskew_angle: float = 0.0
    output_width: int = 0
    extra_shift: int = 0
    rotation_angle: float = 0.0
    save_deskewed: bool = False
    napodize: int = 0
    threads: int = 8

    def __post_init__(self) -> None:
        """Validate option values."""
        for name in ("dr", "dz", "dr_psf", "dz_psf", "wavelength"):
            value = getattr(self, name)
            if value <= 0:
                raise ConfigurationError(f"{name} must be positive, got {value}")
        if self.na <= 0:
            raise ConfigurationError(f"NA must be positive, got {self.na}")
        if self.iterations < 0:
            raise ConfigurationError(
                f"Iteration count cannot be negative, got {self.iterations}"
            )
        if self.napodize < 0:
            raise ConfigurationError(
                f"Apodization width cannot be negative, got {self.napodize}"
            )
        if self.output_width < 0:
            raise ConfigurationError(
                f"Output width cannot be negative, got {self.output_width}"
            )
        if self.threads < 1:
            raise ConfigurationError(f"Need at least one thread, got {self.threads}")

    @property
    def radial_cutoff(self) -> float:
        """Lateral resolution limit 2 * NA / wavelength in cycles/μm."""
        return 2.0 * self.na / self.wavelength

    @property
    def deskew_enabled(self) -> bool:
        return abs(self.deskew_angle) > 0.0

    @property
    def rotation_enabled(self) -> bool:
        return abs(self.rotation_angle) > 0.0
