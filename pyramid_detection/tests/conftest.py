from __future__ import annotations

from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pytest

Shape = Tuple[int, int, int, int]
GridFactory = Callable[[Shape], np.ndarray]


class FakeNetwork:
    """In-memory stand-in for a stride-4 detector with a 5-channel output."""

    def __init__(
        self,
        grid_factory: Optional[GridFactory] = None,
        *,
        inputs: Sequence[str] = ("data",),
        outputs: Sequence[str] = ("acc",),
        input_channels: int = 3,
        output_channels: int = 5,
        stride: int = 4,
    ) -> None:
        self._grid_factory = grid_factory
        self._inputs = list(inputs)
        self._outputs = list(outputs)
        self.input_channels = input_channels
        self.output_channels = output_channels
        self.stride = stride
        self.reshapes: List[Shape] = []
        self.blobs: List[np.ndarray] = []
        self.forward_calls = 0
        self.shape_queries: Dict[str, int] = {"input": 0, "output": 0}
        self._shape: Optional[Shape] = None

    @property
    def input_names(self) -> List[str]:
        return self._inputs

    @property
    def output_names(self) -> List[str]:
        return self._outputs

    def input_shape(self) -> Shape:
        self.shape_queries["input"] += 1
        return (1, self.input_channels, 64, 64)

    def output_shape(self) -> Shape:
        self.shape_queries["output"] += 1
        return (1, self.output_channels, 16, 16)

    def reshape(self, shape: Shape) -> None:
        self._shape = tuple(shape)  # type: ignore[assignment]
        self.reshapes.append(self._shape)

    def set_input(self, blob: np.ndarray) -> None:
        assert self._shape is not None
        assert blob.shape == self._shape
        self.blobs.append(blob.copy())

    def forward(self) -> np.ndarray:
        assert self._shape is not None
        self.forward_calls += 1
        if self._grid_factory is not None:
            return self._grid_factory(self._shape)
        _, _, height, width = self._shape
        return np.zeros(
            (1, self.output_channels, max(height // self.stride, 1), max(width // self.stride, 1)),
            dtype=np.float32,
        )


@pytest.fixture()
def fake_network_cls():
    return FakeNetwork


@pytest.fixture()
def centered_detection_network() -> FakeNetwork:
    """Fires a single centered cell at (10, 10) when fed a 100x100 level."""

    def factory(shape: Shape) -> np.ndarray:
        _, _, height, width = shape
        grid = np.zeros((1, 5, max(height // 4, 1), max(width // 4, 1)), dtype=np.float32)
        if (height, width) == (100, 100):
            grid[0, 0, 10, 10] = 0.95
            grid[0, 1:, 10, 10] = 0.5
        return grid

    return FakeNetwork(factory)
