"""Decode the detector output grid into image-space bounding boxes."""
from __future__ import annotations

import logging
from typing import List

import numpy as np

from ..errors import ShapeError
from ..models import DecoderGeometry, DetectionBox

LOGGER = logging.getLogger(__name__)

OUTPUT_CHANNELS = 5
PROB, XMIN, YMIN, XMAX, YMAX = range(OUTPUT_CHANNELS)


def _denormalize(raw: np.ndarray, index: np.ndarray, scale: float, geometry: DecoderGeometry) -> np.ndarray:
    pixel = geometry.stride * index + geometry.anchor_size * (raw - 0.5)
    # Truncate toward zero like an integer cast, not round.
    return np.trunc(pixel / scale).astype(np.int64)


def decode_boxes(
    output: np.ndarray,
    image_path: str,
    scale: float,
    geometry: DecoderGeometry = DecoderGeometry(),
) -> List[DetectionBox]:
    """Extract boxes from a ``(1, 5, H, W)`` or ``(5, H, W)`` output blob.

    Channels are probability followed by xmin, ymin, xmax, ymax offsets. Every
    cell whose probability reaches the confidence threshold yields one box,
    mapped back to original image coordinates by dividing by ``scale``. Boxes
    are neither clamped to the image nor merged.
    """

    if scale <= 0:
        raise ValueError(f"Scale must be positive, got {scale}")
    grid = np.asarray(output)
    if grid.ndim == 4:
        if grid.shape[0] != 1:
            raise ShapeError(f"Expected a batch of one, got output shape {grid.shape}")
        grid = grid[0]
    if grid.ndim != 3 or grid.shape[0] != OUTPUT_CHANNELS:
        raise ShapeError(f"Expected {OUTPUT_CHANNELS} output channels, got output shape {np.shape(output)}")

    grid = grid.astype(np.float64)
    rows, cols = np.nonzero(grid[PROB] >= geometry.confidence_threshold)
    if rows.size == 0:
        return []

    confidences = grid[PROB, rows, cols]
    xmin = _denormalize(grid[XMIN, rows, cols], cols, scale, geometry)
    ymin = _denormalize(grid[YMIN, rows, cols], rows, scale, geometry)
    xmax = _denormalize(grid[XMAX, rows, cols], cols, scale, geometry)
    ymax = _denormalize(grid[YMAX, rows, cols], rows, scale, geometry)

    boxes = [
        DetectionBox(
            image_path=image_path,
            label=geometry.label,
            confidence=float(confidences[k]),
            xmin=int(xmin[k]),
            ymin=int(ymin[k]),
            xmax=int(xmax[k]),
            ymax=int(ymax[k]),
        )
        for k in range(rows.size)
    ]
    LOGGER.debug("Decoded %d boxes at scale %.2f", len(boxes), scale)
    return boxes
