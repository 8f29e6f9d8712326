"""Run a single-scale detector over an image pyramid."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import cv2
import numpy as np

from ..errors import ShapeError
from ..models import PYRAMID_SCALES, DecoderGeometry, DetectionBox, PyramidSchedule, TensorShape
from .decoder import OUTPUT_CHANNELS, decode_boxes
from .network import Network
from .preprocess import normalize_image

LOGGER = logging.getLogger(__name__)

INPUT_CHANNELS = 3


@dataclass(frozen=True)
class PyramidLevel:
    """One level of the pyramid: its scale and the NCHW blob fed to the network."""

    scale: float
    blob: np.ndarray

    @property
    def shape(self) -> TensorShape:
        batch, channels, height, width = self.blob.shape
        return batch, channels, height, width


def build_level(normalized: np.ndarray, scale: float) -> PyramidLevel:
    """Resize a normalized HxWxC image by ``scale`` and lay it out channel-planar."""

    height, width = normalized.shape[:2]
    # Same rounding OpenCV applies to the target size.
    if round(height * scale) < 1 or round(width * scale) < 1:
        raise ShapeError(f"Image of size {width}x{height} vanishes at pyramid scale {scale}")
    scaled = cv2.resize(normalized, None, fx=scale, fy=scale, interpolation=cv2.INTER_LINEAR)
    if scaled.ndim == 2:
        scaled = scaled[:, :, np.newaxis]
    # HxWxC -> 1xCxHxW, one contiguous plane per channel
    blob = np.ascontiguousarray(scaled.transpose(2, 0, 1)[np.newaxis], dtype=np.float32)
    return PyramidLevel(scale=scale, blob=blob)


def run_level(network: Network, level: PyramidLevel) -> np.ndarray:
    """Reshape the network to the level's working shape and run a forward pass."""

    network.reshape(level.shape)
    network.set_input(level.blob)
    return network.forward()


def validate_network(network: Network) -> None:
    """Check the topology once; only spatial dimensions change across levels."""

    if len(network.input_names) != 1:
        raise ShapeError(f"Network should have exactly one input, found {len(network.input_names)}")
    if len(network.output_names) != 1:
        raise ShapeError(f"Network should have exactly one output, found {len(network.output_names)}")
    input_channels = network.input_shape()[1]
    if input_channels != INPUT_CHANNELS:
        raise ShapeError(f"Input layer must have {INPUT_CHANNELS} channels, found {input_channels}")
    output_channels = network.output_shape()[1]
    if output_channels != OUTPUT_CHANNELS:
        raise ShapeError(f"Unsupported network, output must have {OUTPUT_CHANNELS} channels, found {output_channels}")


class PyramidScanner:
    """Detects objects at multiple sizes by scanning rescaled copies of an image."""

    def __init__(
        self,
        network: Network,
        scales: Sequence[float] = PYRAMID_SCALES,
        geometry: Optional[DecoderGeometry] = None,
    ) -> None:
        validate_network(network)
        self.network = network
        self.schedule = PyramidSchedule(scales)
        self.geometry = geometry or DecoderGeometry()

    def scan(self, image_path: str, image: np.ndarray) -> List[DetectionBox]:
        """Return every box found in ``image`` across all pyramid levels, in scale order."""

        normalized = normalize_image(image)
        boxes: List[DetectionBox] = []
        for scale in self.schedule:
            level = build_level(normalized, scale)
            output = run_level(self.network, level)
            level_boxes = decode_boxes(output, image_path, scale, self.geometry)
            LOGGER.debug(
                "Level scale=%.2f shape=%s -> %d boxes",
                scale,
                level.shape,
                len(level_boxes),
            )
            boxes.extend(level_boxes)
        return boxes
