"""Tests for the command-line interface."""

import numpy as np
import pytest
import tifffile

from lldecon.cli import build_parser, config_from_args, main
from lldecon.core import DeconConfig


class TestParser:
    def test_defaults_match_config(self):
        args = build_parser().parse_args(["data", "ch0", "otf.tif"])
        assert args.input_dir == "data"
        assert args.filename_pattern == "ch0"
        assert args.otf_file == "otf.tif"
        assert config_from_args(args) == DeconConfig()

    def test_short_options(self):
        args = build_parser().parse_args(
            ["d", "p", "o", "-z", "0.3", "-i", "0", "-D", "31.5", "-R", "-31.5", "-w", "300", "-x", "4"]
        )
        config = config_from_args(args)
        assert config.dz == 0.3
        assert config.iterations == 0
        assert config.deskew_angle == 31.5
        assert config.rotation_angle == -31.5
        assert config.output_width == 300
        assert config.extra_shift == 4

    @pytest.mark.parametrize(
        "argv, expected",
        [
            ([], False),
            (["--CPU"], True),
            (["-C"], True),
        ],
    )
    def test_cpu_flag(self, argv, expected):
        args = build_parser().parse_args(["d", "p", "o"] + argv)
        assert args.use_cpu is expected

    def test_switches_before_positionals(self, tmp_path):
        """Switches never consume the next token as a value."""
        args = build_parser().parse_args(["--CPU", "-S", str(tmp_path), "ch0", "otf.tif"])
        assert args.use_cpu
        assert args.save_deskewed
        assert args.input_dir == str(tmp_path)
        assert args.filename_pattern == "ch0"
        assert args.otf_file == "otf.tif"

    def test_save_deskewed_flag(self):
        args = build_parser().parse_args(["d", "p", "o", "-S"])
        assert config_from_args(args).save_deskewed

    def test_missing_positional(self):
        with pytest.raises(SystemExit) as exc:
            build_parser().parse_args(["data", "ch0"])
        assert exc.value.code == 2


class TestMain:
    def test_one_step_run(self, tmp_path, otf_file):
        data = tmp_path / "data"
        data.mkdir()
        tifffile.imwrite(str(data / "cell.tif"), np.full((16, 64, 64), 100, dtype=np.uint16))

        code = main([str(data), "cell", str(otf_file), "-i", "0", "--threads", "2"])

        assert code == 0
        assert (data / "GPUdecon" / "cell_decon.tif").exists()

    def test_missing_folder_fails(self, tmp_path, otf_file):
        assert main([str(tmp_path / "nope"), "cell", str(otf_file), "-i", "0"]) == 1

    def test_invalid_option_fails(self, tmp_path, otf_file):
        assert main([str(tmp_path), "cell", str(otf_file), "--NA", "0"]) == 1

    def test_cpu_switch_before_positionals(self, tmp_path, otf_file):
        data = tmp_path / "data"
        data.mkdir()
        tifffile.imwrite(str(data / "cell.tif"), np.full((8, 32, 32), 100, dtype=np.uint16))

        code = main(["--CPU", str(data), "cell", str(otf_file), "-i", "2", "--threads", "2"])

        assert code == 0
        assert (data / "GPUdecon" / "cell_decon.tif").exists()
