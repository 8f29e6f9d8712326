"""Inference backend wrapping a Caffe network loaded through OpenCV DNN.

Everything below the forward pass (weight loading, layer execution, CPU/GPU
dispatch) is left to OpenCV. The pyramid code only talks to the ``Network``
protocol, so another backend can be dropped in without touching it.
"""
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterator, List, Optional, Protocol, Sequence, Tuple

import cv2
import numpy as np

from ..errors import InferenceError, NetworkLoadError, ShapeError
from ..models import TensorShape

LOGGER = logging.getLogger(__name__)

TRIAL_SPATIAL_SIZE = 64

_COMMENT_RE = re.compile(r"#[^\n]*")
_TOP_LEVEL_INPUT_RE = re.compile(r'\binput\s*:\s*"([^"]+)"')
_INPUT_DIM_RE = re.compile(r"\binput_dim\s*:\s*(\d+)")
_DIM_RE = re.compile(r"dim\s*:\s*(\d+)")
_TYPE_RE = re.compile(r'type\s*:\s*"([^"]+)"')
_TOP_RE = re.compile(r'top\s*:\s*"([^"]+)"')


class Network(Protocol):
    """Minimal contract the pyramid scanner needs from an inference backend."""

    @property
    def input_names(self) -> Sequence[str]:
        ...

    @property
    def output_names(self) -> Sequence[str]:
        ...

    def input_shape(self) -> TensorShape:
        ...

    def output_shape(self) -> TensorShape:
        ...

    def reshape(self, shape: TensorShape) -> None:
        ...

    def set_input(self, blob: np.ndarray) -> None:
        ...

    def forward(self) -> np.ndarray:
        ...


def _block_spans(text: str, keyword: str) -> Iterator[Tuple[int, int, int]]:
    """Yield (start, body start, end) of ``keyword { ... }`` blocks."""

    for match in re.finditer(rf"\b{keyword}\s*:?\s*\{{", text):
        depth = 1
        index = match.end()
        while index < len(text) and depth:
            if text[index] == "{":
                depth += 1
            elif text[index] == "}":
                depth -= 1
            index += 1
        yield match.start(), match.end(), index


def _iter_blocks(text: str, keyword: str) -> Iterator[str]:
    """Yield the brace-delimited bodies of ``keyword { ... }`` blocks."""

    for _, body_start, end in _block_spans(text, keyword):
        yield text[body_start : end - 1]


def _strip_blocks(text: str, keyword: str) -> str:
    """Return ``text`` with every ``keyword { ... }`` block removed."""

    pieces: List[str] = []
    last = 0
    for start, _, end in _block_spans(text, keyword):
        if start < last:
            continue
        pieces.append(text[last:start])
        last = end
    pieces.append(text[last:])
    return " ".join(pieces)


def _as_shape(dims: Sequence[int]) -> Optional[TensorShape]:
    if len(dims) != 4:
        return None
    batch, channels, height, width = (int(d) for d in dims)
    return batch, channels, height, width


def parse_prototxt_inputs(text: str) -> List[Tuple[str, Optional[TensorShape]]]:
    """Return the declared network inputs and their shapes, in declaration order.

    Understands the three ways a Caffe definition declares inputs: top-level
    ``input`` with ``input_shape`` blocks, the legacy ``input_dim`` list, and
    ``Input`` layers with an ``input_param { shape { ... } }``.
    """

    text = _COMMENT_RE.sub("", text)
    inputs: List[Tuple[str, Optional[TensorShape]]] = []

    # Layer bodies may mention inputs too; only the net-level fields count here.
    top_level = _strip_blocks(text, "layers?")
    names = _TOP_LEVEL_INPUT_RE.findall(top_level)
    if names:
        shapes = [
            _as_shape([int(d) for d in _DIM_RE.findall(block)]) for block in _iter_blocks(top_level, "input_shape")
        ]
        if not shapes:
            dims = [int(d) for d in _INPUT_DIM_RE.findall(top_level)]
            shapes = [_as_shape(dims[i : i + 4]) for i in range(0, len(dims), 4)]
        for idx, name in enumerate(names):
            inputs.append((name, shapes[idx] if idx < len(shapes) else None))

    for layer in _iter_blocks(text, "layers?"):
        layer_type = _TYPE_RE.search(layer)
        if layer_type is None or layer_type.group(1) != "Input":
            continue
        tops = _TOP_RE.findall(layer)
        shapes = [_as_shape([int(d) for d in _DIM_RE.findall(block)]) for block in _iter_blocks(layer, "shape")]
        # A single shape applies to every top of the layer.
        if len(shapes) == 1:
            shapes = shapes * len(tops)
        for idx, name in enumerate(tops):
            inputs.append((name, shapes[idx] if idx < len(shapes) else None))

    return inputs


class CaffeNetwork:
    """OpenCV DNN handle for a Caffe detector with a reshapeable input."""

    def __init__(self, net: "cv2.dnn.Net", inputs: Sequence[Tuple[str, Optional[TensorShape]]]) -> None:
        self._net = net
        self._inputs = list(inputs)
        self._outputs: List[str] = list(net.getUnconnectedOutLayersNames())
        self._working_shape: Optional[TensorShape] = None
        self._output_shape: Optional[TensorShape] = None

    @property
    def input_names(self) -> Sequence[str]:
        return [name for name, _ in self._inputs]

    @property
    def output_names(self) -> Sequence[str]:
        return list(self._outputs)

    def input_shape(self) -> TensorShape:
        if not self._inputs:
            raise ShapeError("Network does not declare any input")
        name, shape = self._inputs[0]
        if shape is None:
            raise ShapeError(f"Input '{name}' has no declared 4-D shape")
        return shape

    def output_shape(self) -> TensorShape:
        """Shape of the output blob for the declared input, found by one trial pass."""

        if self._output_shape is None:
            _, channels, height, width = self.input_shape()
            trial_shape = (
                1,
                channels,
                height if height > 0 else TRIAL_SPATIAL_SIZE,
                width if width > 0 else TRIAL_SPATIAL_SIZE,
            )
            LOGGER.debug("Measuring network output shape with input %s", trial_shape)
            self.reshape(trial_shape)
            self.set_input(np.zeros(trial_shape, dtype=np.float32))
            output = self.forward()
            if output.ndim != 4:
                raise ShapeError(f"Expected a 4-D output blob, got shape {output.shape}")
            self._output_shape = _as_shape(output.shape)
        return self._output_shape

    def reshape(self, shape: TensorShape) -> None:
        if len(shape) != 4 or any(int(d) <= 0 for d in shape):
            raise ShapeError(f"Invalid input shape {shape}")
        self._working_shape = tuple(int(d) for d in shape)  # type: ignore[assignment]

    def set_input(self, blob: np.ndarray) -> None:
        if self._working_shape is None:
            raise ShapeError("reshape() must be called before set_input()")
        if tuple(blob.shape) != self._working_shape:
            raise ShapeError(f"Input blob shape {blob.shape} does not match working shape {self._working_shape}")
        try:
            self._net.setInput(np.ascontiguousarray(blob, dtype=np.float32), self._inputs[0][0])
        except cv2.error as exc:
            raise InferenceError(f"Unable to set network input of shape {blob.shape}: {exc}") from exc

    def forward(self) -> np.ndarray:
        """Run the network and return the blob of its single declared output."""

        try:
            return self._net.forward(self._outputs[0])
        except cv2.error as exc:
            raise InferenceError(f"Forward pass failed for input {self._working_shape}: {exc}") from exc


def load_network(prototxt: Path, caffemodel: Path, device: str = "cpu") -> CaffeNetwork:
    """Create the network from its definition and copy the trained weights into it."""

    LOGGER.info("Loading network definition %s with weights %s", prototxt, caffemodel)
    try:
        definition = Path(prototxt).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise NetworkLoadError(f"Unable to read network definition '{prototxt}': {exc}") from exc
    try:
        net = cv2.dnn.readNetFromCaffe(str(prototxt), str(caffemodel))
    except AttributeError as exc:
        raise NetworkLoadError(f"OpenCV {cv2.__version__} cannot read Caffe models (requires opencv-python<5)") from exc
    except cv2.error as exc:
        raise NetworkLoadError(f"Unable to load network '{prototxt}' / '{caffemodel}': {exc}") from exc
    if net.empty():
        raise NetworkLoadError(f"Network '{prototxt}' loaded without any layers")

    if device == "cuda":
        net.setPreferableBackend(cv2.dnn.DNN_BACKEND_CUDA)
        net.setPreferableTarget(cv2.dnn.DNN_TARGET_CUDA)
    else:
        net.setPreferableBackend(cv2.dnn.DNN_BACKEND_OPENCV)
        net.setPreferableTarget(cv2.dnn.DNN_TARGET_CPU)

    network = CaffeNetwork(net, parse_prototxt_inputs(definition))
    LOGGER.info(
        "Network ready on %s | inputs=%s | outputs=%s",
        device,
        network.input_names,
        network.output_names,
    )
    return network
