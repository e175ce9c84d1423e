"""Tests for the batch context, per-volume processing and batch driver."""

import numpy as np
import pytest
import scipy.fft
import tifffile
import torch

from lldecon import (
    DeconConfig,
    ProcessingContext,
    process_volume,
    run_batch,
    select_backend,
    wiener_filter,
)
from lldecon.deconvolution import CpuIterative, GpuIterative
from lldecon.errors import ConfigurationError, ShapeMismatchError


def make_volume(rng, shape, background=90.0):
    """Background plus a few bright blobs and some noise."""
    vol = np.full(shape, background, dtype=np.float32)
    vol += rng.random(shape, dtype=np.float32) * 5
    nz, ny, nx = shape
    for _ in range(5):
        z, y, x = rng.integers(1, nz - 1), rng.integers(2, ny - 2), rng.integers(2, nx - 2)
        vol[z - 1 : z + 2, y - 2 : y + 2, x - 2 : x + 2] += 200
    return vol


def one_step(**kwargs):
    return DeconConfig(iterations=0, threads=2, **kwargs)


class TestSelectBackend:
    def test_one_step_has_no_backend(self):
        assert select_backend(one_step()) is None

    def test_cpu(self):
        assert isinstance(select_backend(DeconConfig(use_cpu=True)), CpuIterative)

    def test_gpu_device_override(self):
        backend = select_backend(DeconConfig(), device="cpu")
        assert isinstance(backend, GpuIterative)
        assert backend.fused_geometry


class TestProcessingContext:
    """Tests for ProcessingContext.create."""

    def test_crop_to_optimal_extents(self, gaussian_otf):
        ctx = ProcessingContext.create((16, 250, 64), one_step(), gaussian_otf)
        assert ctx.crop
        assert ctx.input_shape == (16, 250, 64)
        assert ctx.work_shape == (16, 252, 64)
        assert ctx.fft_shape == (16, 252, 64)
        assert ctx.plan.shape == (16, 252, 64)

    def test_no_crop_for_optimal_extents(self, gaussian_otf):
        ctx = ProcessingContext.create((16, 64, 64), one_step(), gaussian_otf)
        assert not ctx.crop
        assert ctx.backend is None
        assert ctx.restoration is None
        assert ctx.rcutoff == pytest.approx(2 * 1.2 / 0.525)

    def test_deskew_widens_x(self, gaussian_otf):
        config = one_step(deskew_angle=30.0, save_deskewed=True)
        ctx = ProcessingContext.create((16, 32, 50), config, gaussian_otf)
        # X is not optimized before deskewing; the derived width is
        assert ctx.work_shape == (16, 32, 50)
        assert not ctx.crop
        assert ctx.fft_shape == (16, 32, 60)
        assert ctx.deskewed_shape == (16, 32, 60)
        assert ctx.geometry.dz == pytest.approx(0.125)
        assert ctx.freq_steps == pytest.approx((1 / (0.104 * 60), 1 / (0.104 * 32), 1 / (0.125 * 16)))

    def test_iterative_builds_restoration(self, gaussian_otf):
        config = DeconConfig(iterations=4, use_cpu=True)
        ctx = ProcessingContext.create((8, 32, 32), config, gaussian_otf)
        assert isinstance(ctx.backend, CpuIterative)
        assert ctx.restoration.otf_array.shape == (8, 32, 17)
        assert ctx.restoration.iterations == 4
        assert ctx.restoration.background == 90.0

    def test_close(self, gaussian_otf):
        ctx = ProcessingContext.create((8, 32, 32), DeconConfig(use_cpu=True), gaussian_otf)
        ctx.close()
        assert ctx.backend is None
        assert ctx.restoration is None
        assert ctx.plan is None


class TestProcessVolume:
    """Tests for process_volume."""

    def test_one_step_matches_manual_filter(self, gaussian_otf, rng):
        shape = (16, 64, 64)
        config = one_step(background=90.0)
        vol = make_volume(rng, shape)
        ctx = ProcessingContext.create(shape, config, gaussian_otf)

        out = process_volume(vol, ctx)

        g = scipy.fft.rfftn(vol - 90.0).astype(np.complex64)
        wiener_filter(g, ctx.freq_steps, gaussian_otf, config.radial_cutoff, config.wiener)
        expected = scipy.fft.irfftn(g, s=shape)
        assert out.restored.dtype == np.float32
        assert out.restored.shape == shape
        assert out.deskewed is None
        np.testing.assert_allclose(out.restored, expected, rtol=1e-3, atol=1e-2)

    def test_input_not_modified(self, gaussian_otf, rng):
        shape = (16, 64, 64)
        vol = make_volume(rng, shape)
        ref = vol.copy()
        ctx = ProcessingContext.create(shape, one_step(napodize=5), gaussian_otf)
        process_volume(vol, ctx)
        np.testing.assert_array_equal(vol, ref)

    def test_cropped_output_shape(self, gaussian_otf, rng):
        vol = make_volume(rng, (16, 250, 64))
        ctx = ProcessingContext.create(vol.shape, one_step(), gaussian_otf)
        out = process_volume(vol, ctx)
        assert out.restored.shape == (16, 252, 64)

    def test_shape_mismatch(self, gaussian_otf, rng):
        ctx = ProcessingContext.create((16, 64, 64), one_step(), gaussian_otf)
        with pytest.raises(ShapeMismatchError):
            process_volume(make_volume(rng, (16, 64, 60)), ctx)

    def test_one_step_deskew_and_rotate(self, gaussian_otf, rng):
        config = one_step(deskew_angle=30.0, rotation_angle=30.0, save_deskewed=True)
        vol = make_volume(rng, (16, 32, 50))
        ctx = ProcessingContext.create(vol.shape, config, gaussian_otf)
        out = process_volume(vol, ctx)
        assert out.restored.shape == (16, 32, 60)
        assert out.deskewed.shape == (16, 32, 60)
        assert np.isfinite(out.restored).all()

    def test_cpu_iterative(self, gaussian_otf, rng):
        shape = (8, 32, 32)
        vol = make_volume(rng, shape)
        ctx = ProcessingContext.create(shape, DeconConfig(iterations=3, use_cpu=True), gaussian_otf)
        out = process_volume(vol, ctx)
        assert out.restored.shape == shape
        assert np.all(out.restored >= 0)
        assert np.isfinite(out.restored).all()

    def test_fused_backend_matches_cpu(self, gaussian_otf, rng):
        """Deskewing inside the backend gives the same result as before it."""
        vol = make_volume(rng, (16, 32, 50))
        kwargs = dict(iterations=3, deskew_angle=30.0, save_deskewed=True)

        cpu_ctx = ProcessingContext.create(
            vol.shape, DeconConfig(use_cpu=True, **kwargs), gaussian_otf
        )
        fused_ctx = ProcessingContext.create(
            vol.shape, DeconConfig(**kwargs), gaussian_otf, backend=GpuIterative(device="cpu")
        )

        cpu = process_volume(vol, cpu_ctx)
        fused = process_volume(vol, fused_ctx)

        assert fused.restored.shape == (16, 32, 60)
        np.testing.assert_allclose(fused.deskewed, cpu.deskewed, rtol=1e-5)
        np.testing.assert_allclose(fused.restored, cpu.restored, rtol=1e-3, atol=1e-2)

    @pytest.mark.skipif(torch.cuda.is_available(), reason="CUDA device present")
    def test_gpu_without_cuda(self, gaussian_otf):
        from lldecon.errors import PlanError

        with pytest.raises(PlanError):
            ProcessingContext.create((8, 32, 32), DeconConfig(iterations=2), gaussian_otf)


class TestRunBatch:
    """Tests for run_batch."""

    def write_stacks(self, folder, rng, names, shape=(16, 64, 64)):
        for name in names:
            tifffile.imwrite(str(folder / name), make_volume(rng, shape).astype(np.uint16))

    def test_writes_restored_volumes(self, tmp_path, otf_file, rng):
        data = tmp_path / "data"
        data.mkdir()
        self.write_stacks(data, rng, ["cell_ch0_a.tif", "cell_ch0_b.tif", "cell_ch1_a.tif"])

        outputs = run_batch(one_step(), data, "ch0", otf_file)

        assert outputs == [
            data / "GPUdecon" / "cell_ch0_a_decon.tif",
            data / "GPUdecon" / "cell_ch0_b_decon.tif",
        ]
        for path in outputs:
            restored = tifffile.imread(str(path))
            assert restored.shape == (16, 64, 64)
            assert restored.dtype == np.float32
        assert not (data / "Deskewed").exists()

    def test_saves_deskewed(self, tmp_path, otf_file, rng):
        data = tmp_path / "data"
        data.mkdir()
        self.write_stacks(data, rng, ["stack.tif"], shape=(16, 32, 50))

        config = one_step(deskew_angle=30.0, save_deskewed=True)
        run_batch(config, data, "stack", otf_file)

        deskewed = tifffile.imread(str(data / "Deskewed" / "stack_deskewed.tif"))
        assert deskewed.shape == (16, 32, 60)

    def test_no_matching_files(self, tmp_path, otf_file):
        assert run_batch(one_step(), tmp_path, "nothing", otf_file) == []

    def test_missing_otf(self, tmp_path, rng):
        self.write_stacks(tmp_path, rng, ["a.tif"])
        with pytest.raises(ConfigurationError, match="OTF"):
            run_batch(one_step(), tmp_path, "a", tmp_path / "missing.tif")

    def test_missing_folder(self, tmp_path, otf_file):
        with pytest.raises(ConfigurationError):
            run_batch(one_step(), tmp_path / "nope", ".*", otf_file)

    def test_later_volume_with_other_extents(self, tmp_path, otf_file, rng):
        data = tmp_path / "data"
        data.mkdir()
        self.write_stacks(data, rng, ["a.tif"])
        self.write_stacks(data, rng, ["b.tif"], shape=(16, 64, 32))
        with pytest.raises(ShapeMismatchError):
            run_batch(one_step(), data, r"^[ab]\.tif$", otf_file)
        assert (data / "GPUdecon" / "a_decon.tif").exists()
