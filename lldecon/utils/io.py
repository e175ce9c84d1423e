"""TIFF reading/writing and batch file discovery."""

import logging
import re
from pathlib import Path
from typing import List, Union

import numpy as np
import tifffile

from ..errors import ConfigurationError

__all__ = [
    "gather_matching_files",
    "read_volume",
    "write_volume",
    "read_otf_image",
    "make_output_path",
]

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

_TIFF_SUFFIXES = (".tif", ".tiff")


def gather_matching_files(folder: PathLike, pattern: str) -> List[Path]:
    """List TIFF files in ``folder`` whose name matches ``pattern``.

    ``pattern`` is a regular expression searched anywhere in the file name,
    so a plain substring such as ``"ch0"`` works as expected.

    Returns:
        Sorted list of matching paths.

    Raises:
        ConfigurationError: If the folder does not exist or the pattern is
            not a valid regular expression.
    """
    folder = Path(folder)
    if not folder.is_dir():
        raise ConfigurationError(f"Input folder {folder} does not exist")
    try:
        regex = re.compile(pattern)
    except re.error as exc:
        raise ConfigurationError(f"Invalid filename pattern {pattern!r}: {exc}") from exc

    matches = sorted(
        p
        for p in folder.iterdir()
        if p.is_file()
        and p.suffix.lower() in _TIFF_SUFFIXES
        and regex.search(p.name)
    )
    logger.info("Found %d file(s) matching %r in %s", len(matches), pattern, folder)
    return matches


def read_volume(path: PathLike) -> np.ndarray:
    """Read a TIFF stack as a float32 (Z, Y, X) volume."""
    data = tifffile.imread(str(path))
    data = np.asarray(data, dtype=np.float32)
    if data.ndim == 2:
        data = data[np.newaxis]
    if data.ndim != 3:
        raise ValueError(f"{path}: expected a 3-D stack, got shape {data.shape}")
    return data


def write_volume(path: PathLike, volume: np.ndarray) -> Path:
    """Write a float32 volume, creating parent folders as needed."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tifffile.imwrite(str(path), np.asarray(volume, dtype=np.float32))
    return path


def read_otf_image(path: PathLike) -> np.ndarray:
    """Read an OTF TIFF as a 2-D float32 array (radial, 2 * axial)."""
    data = np.squeeze(np.asarray(tifffile.imread(str(path)), dtype=np.float32))
    if data.ndim != 2 or data.shape[1] % 2:
        raise ValueError(
            f"{path}: expected a 2-D OTF with interleaved real/imaginary "
            f"columns, got shape {data.shape}"
        )
    return data


def make_output_path(
    input_path: PathLike,
    subdir: str = "GPUdecon",
    suffix: str = "_decon",
) -> Path:
    """Derive an output path beside the input.

    Example:
        ```python
        make_output_path("/data/cell_ch0.tif")
        # /data/GPUdecon/cell_ch0_decon.tif
        make_output_path("/data/cell_ch0.tif", "Deskewed", "_deskewed")
        # /data/Deskewed/cell_ch0_deskewed.tif
        ```
    """
    input_path = Path(input_path)
    return input_path.parent / subdir / f"{input_path.stem}{suffix}.tif"
