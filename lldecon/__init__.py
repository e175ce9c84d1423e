"""lldecon - Deconvolution of light-sheet and widefield microscopy stacks.

Restores 3D fluorescence volumes blurred by the microscope's point spread
function, using a rotationally averaged OTF. Optionally corrects the shear
of stage-scanned (skewed) acquisitions and rotates the result.

The library is organized into these modules:

- **core**: configuration, acquisition geometry, deskew/rotation resampling
- **otf**: OTF table loading, interpolation and resampling
- **deconvolution**: apodization, Wiener filter, Richardson-Lucy backends
- **pipeline**: batch-scoped context and per-volume processing
- **utils**: FFT plans and sizes, cropping, TIFF I/O, logging

Example:
    >>> from lldecon import DeconConfig, run_batch
    >>>
    >>> config = DeconConfig(
    ...     dr=0.104,            # 104nm pixels
    ...     dz=0.25,             # 250nm stage steps
    ...     wavelength=0.525,    # 525nm emission
    ...     na=1.2,
    ...     iterations=0,        # one-step Wiener filter
    ...     deskew_angle=31.5,
    ... )
    >>> run_batch(config, "/data/cells", "ch0", "/data/otf_ch0.tif")
"""

__version__ = "0.1.0"

from .core import (
    DeconConfig,
    AcquisitionGeometry,
    compute_geometry,
    deskew_volume,
    rotate_volume,
)
from .otf import (
    OTFTable,
    load_otf,
    interpolate_otf,
    make_otf_array,
)
from .deconvolution import (
    apodize,
    wiener_filter,
    solve_rl,
    CpuIterative,
    GpuIterative,
    RestorationParams,
)
from .pipeline import (
    ProcessingContext,
    ProcessedVolume,
    select_backend,
    process_volume,
    run_batch,
)
from .utils import (
    optimal_dimension,
    TransformPlan,
    acquire_plans,
    crop_to_shape,
)
from .errors import (
    DeconError,
    ConfigurationError,
    PlanError,
    ShapeMismatchError,
)

__all__ = [
    "__version__",
    # Configuration and geometry
    "DeconConfig",
    "AcquisitionGeometry",
    "compute_geometry",
    "deskew_volume",
    "rotate_volume",
    # OTF
    "OTFTable",
    "load_otf",
    "interpolate_otf",
    "make_otf_array",
    # Deconvolution
    "apodize",
    "wiener_filter",
    "solve_rl",
    "CpuIterative",
    "GpuIterative",
    "RestorationParams",
    # Pipeline
    "ProcessingContext",
    "ProcessedVolume",
    "select_backend",
    "process_volume",
    "run_batch",
    # Utilities
    "optimal_dimension",
    "TransformPlan",
    "acquire_plans",
    "crop_to_shape",
    # Errors
    "DeconError",
    "ConfigurationError",
    "PlanError",
    "ShapeMismatchError",
]
