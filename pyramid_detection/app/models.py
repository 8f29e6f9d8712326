"""Shared data models for pyramid detection."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Sequence, Tuple

TensorShape = Tuple[int, int, int, int]

# Scaling factor between levels is 1.5. Detectors are trained on objects of
# ~80px, so scale 1.0 finds objects around that size.
PYRAMID_SCALES: Tuple[float, ...] = (2.25, 1.5, 1.0, 0.66, 0.44, 0.29, 0.19)


@dataclass(frozen=True)
class DetectionBox:
    """A single detected 2D bounding box in original image coordinates."""

    image_path: str
    label: int
    confidence: float
    xmin: int
    ymin: int
    xmax: int
    ymax: int

    def to_bbtxt_line(self) -> str:
        # filename label confidence xmin ymin xmax ymax
        return (
            f"{self.image_path} {self.label} {self.confidence:g} "
            f"{self.xmin} {self.ymin} {self.xmax} {self.ymax}"
        )

    @classmethod
    def from_bbtxt_line(cls, line: str) -> "DetectionBox":
        # Split from the right so image paths containing spaces survive.
        parts = line.rstrip("\n").rsplit(" ", 6)
        if len(parts) != 7:
            raise ValueError(f"Malformed BBTXT line: {line!r}")
        path, label, confidence, xmin, ymin, xmax, ymax = parts
        return cls(
            image_path=path,
            label=int(label),
            confidence=float(confidence),
            xmin=int(xmin),
            ymin=int(ymin),
            xmax=int(xmax),
            ymax=int(ymax),
        )


@dataclass(frozen=True)
class DecoderGeometry:
    """Constants tying the detector output grid to image pixels."""

    stride: int = 4
    anchor_size: float = 80.0
    confidence_threshold: float = 0.1
    label: int = 1


@dataclass(frozen=True)
class PyramidSchedule:
    """Ordered scale factors, applied largest first."""

    scales: Sequence[float] = PYRAMID_SCALES

    def __post_init__(self) -> None:
        if not self.scales:
            raise ValueError("Pyramid schedule needs at least one scale")
        for scale in self.scales:
            if scale <= 0:
                raise ValueError(f"Pyramid scales must be positive, got {scale}")
        object.__setattr__(self, "scales", tuple(float(s) for s in self.scales))

    def __iter__(self) -> Iterator[float]:
        return iter(self.scales)

    def __len__(self) -> int:
        return len(self.scales)
