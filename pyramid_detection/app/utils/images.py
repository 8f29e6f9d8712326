"""Image list and image loading utilities."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

import cv2
import numpy as np

from ..errors import ConfigurationError, ImageDecodeError

LOGGER = logging.getLogger(__name__)


def iter_image_paths(image_list: Path) -> Iterator[str]:
    """Yield image paths from a text file with one path per line, in file order."""

    try:
        handle = Path(image_list).open("r", encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Unable to open image list TXT file '{image_list}'!") from exc
    with handle:
        for line in handle:
            path = line.strip()
            if not path:
                continue
            yield path


def load_image(path: str) -> np.ndarray:
    """Decode an image as 3-channel BGR, failing loudly when it is missing or unreadable."""

    if not Path(path).exists():
        raise FileNotFoundError(f"Image '{path}' not found!")
    image = cv2.imread(path, cv2.IMREAD_COLOR)
    if image is None:
        raise ImageDecodeError(f"Image '{path}' could not be decoded!")
    LOGGER.debug("Loaded image %s with shape %s", path, image.shape)
    return image
