import argparse
import logging
import sys
from typing import List, Optional

from .core.config import DeconConfig
from .errors import DeconError
from .pipeline import run_batch
from .utils.logging import setup_logging


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="lldecon",
        description="Wiener / Richardson-Lucy deconvolution of 3D microscopy stacks",
    )
    p.add_argument("input_dir", help="input folder name")
    p.add_argument("filename_pattern", help="pattern (regular expression) in file names")
    p.add_argument("otf_file", help="rotationally averaged OTF file")
    p.add_argument("--drdata", type=float, default=0.104, help="image x-y pixel size (um)")
    p.add_argument("--dzdata", "-z", type=float, default=0.25, help="image z step (um)")
    p.add_argument("--drpsf", type=float, default=0.104, help="PSF x-y pixel size (um)")
    p.add_argument("--dzpsf", "-Z", type=float, default=0.1, help="PSF z step (um)")
    p.add_argument("--wavelength", "-l", type=float, default=0.525, help="emission wavelength (um)")
    p.add_argument("--wiener", "-W", type=float, default=1e-2, help="Wiener constant (regularization factor)")
    p.add_argument("--background", "-b", type=float, default=90.0, help="user-supplied background")
    p.add_argument("--NA", "-n", dest="na", type=float, default=1.2, help="numerical aperture")
    p.add_argument("--RL", "-i", dest="iterations", type=int, default=15,
                   help="Richardson-Lucy iterations; 0 runs one-step Wiener filtering")
    p.add_argument("--CPU", "-C", dest="use_cpu", action="store_true",
                   help="run Richardson-Lucy on the CPU")
    p.add_argument("--deskew", "-D", type=float, default=0.0,
                   help="deskew angle; if not 0.0 then perform deskewing before deconv")
    p.add_argument("--width", "-w", type=int, default=0, help="if deskewed, the output image's width")
    p.add_argument("--shift", "-x", type=int, default=0,
                   help="if deskewed, the output image's extra shift in X (positive->left)")
    p.add_argument("--rotate", "-R", type=float, default=0.0,
                   help="rotation angle; if not 0.0 then perform rotation around y axis after deconv")
    p.add_argument("--saveDeskewedRaw", "-S", dest="save_deskewed", action="store_true",
                   help="also save the deskewed raw data")
    p.add_argument("--napodize", type=int, default=0,
                   help="edge apodization width in pixels before one-step filtering (0: off)")
    p.add_argument("--threads", type=int, default=8, help="threads for FFTs and the Wiener filter")
    p.add_argument("--log-level", default="INFO", help="logging level (DEBUG, INFO, WARNING)")
    return p


def config_from_args(args: argparse.Namespace) -> DeconConfig:
    return DeconConfig(
        dr=args.drdata,
        dz=args.dzdata,
        dr_psf=args.drpsf,
        dz_psf=args.dzpsf,
        wavelength=args.wavelength,
        na=args.na,
        wiener=args.wiener,
        background=args.background,
        iterations=args.iterations,
        use_cpu=args.use_cpu,
        deskew_angle=args.deskew,
        output_width=args.width,
        extra_shift=args.shift,
        rotation_angle=args.rotate,
        save_deskewed=args.save_deskewed,
        napodize=args.napodize,
        threads=args.threads,
    )


def main(argv: Optional[List[str]] = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)
    setup_logging(args.log_level)

    try:
        config = config_from_args(args)
        outputs = run_batch(config, args.input_dir, args.filename_pattern, args.otf_file)
    except DeconError as exc:
        logging.error("%s", exc)
        return 1

    logging.info("Done: %d volume(s) restored", len(outputs))
    return 0


if __name__ == "__main__":
    sys.exit(main())
