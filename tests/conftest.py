"""Shared fixtures: synthetic OTFs and volumes."""

import numpy as np
import pytest
import tifffile

from lldecon.otf import OTFTable, otf_from_image


def gaussian_otf_image(nr: int = 64, nz: int = 16) -> np.ndarray:
    """Interleaved (nr, 2 * nz) image of a smooth, real, positive OTF."""
    r = np.arange(nr).reshape(nr, 1)
    z = np.arange(nz).reshape(1, nz)
    z = np.where(z > nz // 2, z - nz, z)
    table = np.exp(-((r / 20.0) ** 2)) * np.exp(-((z / 4.0) ** 2))
    image = np.zeros((nr, 2 * nz), dtype=np.float32)
    image[:, 0::2] = table
    return image


@pytest.fixture
def gaussian_otf() -> OTFTable:
    return otf_from_image(gaussian_otf_image(), dr_psf=0.104, dz_psf=0.1)


@pytest.fixture
def otf_file(tmp_path):
    path = tmp_path / "otf.tif"
    tifffile.imwrite(str(path), gaussian_otf_image())
    return path


@pytest.fixture
def rng():
    return np.random.default_rng(1234)

