"""Image normalization applied before the pyramid is built."""
from __future__ import annotations

import numpy as np

PIXEL_MEAN = 128.0
PIXEL_SCALE = 1.0 / 128.0


def normalize_image(image: np.ndarray) -> np.ndarray:
    """Convert a 3-channel 8-bit image to zero mean and unit variance float32."""

    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(f"Expected an HxWx3 image, got shape {image.shape}")
    imagef = image.astype(np.float32)
    imagef -= np.float32(PIXEL_MEAN)
    imagef *= np.float32(PIXEL_SCALE)
    return imagef
