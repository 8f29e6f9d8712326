#!/usr/bin/env python3
"""Download a detector's network definition and trained weights."""
from __future__ import annotations

import argparse
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import requests


def target_name(url: str, fallback: str) -> str:
    name = Path(urlparse(url).path).name
    return name or fallback


def download_file(url: str, target: Path, session: Optional[requests.Session] = None) -> Path:
    target.parent.mkdir(parents=True, exist_ok=True)
    getter = session or requests
    response = getter.get(url, timeout=60)
    response.raise_for_status()
    target.write_bytes(response.content)
    print(f"Downloaded {url} to {target}")
    return target


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Download detector model files (*.prototxt, *.caffemodel)")
    parser.add_argument("--prototxt-url", type=str, required=True, help="URL of the network definition")
    parser.add_argument("--caffemodel-url", type=str, required=True, help="URL of the trained weights")
    parser.add_argument("--output-dir", type=Path, default=Path("pyramid_detection/models"), help="Destination directory")
    return parser.parse_args(argv)


def main(argv: Optional[list] = None) -> None:
    args = parse_args(argv)
    with requests.Session() as session:
        download_file(args.prototxt_url, args.output_dir / target_name(args.prototxt_url, "net.prototxt"), session)
        download_file(args.caffemodel_url, args.output_dir / target_name(args.caffemodel_url, "net.caffemodel"), session)


if __name__ == "__main__":
    main()
