"""Entry point for pyramid object detection.

Runs a single-scale Caffe detector on an image pyramid for every image in a
list and writes the detected 2D bounding boxes to a BBTXT file.
"""
from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Optional, Sequence

from pydantic import ValidationError

from .config.settings import AppSettings, load_settings
from .errors import ConfigurationError, PyramidDetectionError
from .services.network import load_network
from .services.output_writer import BBTXTWriter
from .services.pyramid import PyramidScanner
from .utils.images import iter_image_paths, load_image

LOGGER = logging.getLogger(__name__)

USAGE = "pyramid-detect path/f.prototxt path/f.caffemodel path/image_list.txt path/out.bbtxt"


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        usage=USAGE,
        description="Detect objects with a single-scale detector on an image pyramid and write BBTXT.",
    )
    parser.add_argument("prototxt", type=Path, help="Model file of the network (*.prototxt)")
    parser.add_argument("caffemodel", type=Path, help="Weight file of the network (*.caffemodel)")
    parser.add_argument("image_list", type=Path, help="Path to a TXT file with paths to the images to be tested")
    parser.add_argument("path_out", type=Path, help="Path to the output BBTXT file")
    parser.add_argument("--device", choices=["cpu", "cuda"], default=None, help="Inference target")
    parser.add_argument("--log-format", choices=["text", "json"], default=None, help="Logging format")
    parser.add_argument("--log-level", type=str, default=None, help="Logging level (default: INFO)")
    return parser


def setup_logging(settings: AppSettings) -> None:
    if settings.log_format == "json":
        formatter = logging.Formatter('{"time": "%(asctime)s", "level": "%(levelname)s", "message": "%(message)s"}')
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    # stdout is left for the user; all diagnostics go to stderr
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    logging.basicConfig(level=settings.log_level, handlers=[handler], force=True)


def resolve_settings(args: argparse.Namespace) -> AppSettings:
    overrides = {}
    if args.device:
        overrides["device"] = args.device
    if args.log_format:
        overrides["log_format"] = args.log_format
    if args.log_level:
        overrides["log_level"] = args.log_level
    try:
        return load_settings(**overrides)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid settings: {exc}") from exc


def validate_arguments(args: argparse.Namespace) -> None:
    """Fail before any work is done if inputs are missing or the output exists."""

    for path in (args.prototxt, args.caffemodel, args.image_list):
        if not path.exists():
            raise ConfigurationError(f"File '{path}' does not exist!")
    if args.path_out.exists():
        raise ConfigurationError(f"File '{args.path_out}' already exists!")


def process_images(image_list: Path, scanner: PyramidScanner, writer: BBTXTWriter) -> int:
    """Run the scanner on each listed image in order; return the number processed."""

    processed = 0
    for image_path in iter_image_paths(image_list):
        LOGGER.info(image_path)
        loop_start = time.perf_counter()
        image = load_image(image_path)
        boxes = scanner.scan(image_path, image)
        written = writer.write(boxes)
        processed += 1
        LOGGER.info(
            "Image %d | boxes=%d | latency_ms=%.2f",
            processed,
            written,
            (time.perf_counter() - loop_start) * 1000,
        )
    return processed


def run_detection(args: argparse.Namespace) -> int:
    settings = resolve_settings(args)
    setup_logging(settings)

    validate_arguments(args)
    LOGGER.info("Starting pyramid detection")

    network = load_network(args.prototxt, args.caffemodel, device=settings.device)
    scanner = PyramidScanner(network)

    with BBTXTWriter(args.path_out) as writer:
        processed = process_images(args.image_list, scanner, writer)

    LOGGER.info("Pyramid detection completed | images=%d | boxes=%d", processed, writer.lines_written)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    try:
        code = run_detection(args)
    except (PyramidDetectionError, FileNotFoundError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        code = 1
    sys.exit(code)


if __name__ == "__main__":  # pragma: no cover
    main()
