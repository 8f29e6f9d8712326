"""Exception types raised by the pyramid detection pipeline."""
from __future__ import annotations


class PyramidDetectionError(Exception):
    """Base class for fatal pipeline errors reported by the CLI."""


class ConfigurationError(PyramidDetectionError):
    """Invalid command line input: missing files or an existing output path."""


class ShapeError(PyramidDetectionError):
    """Network topology or output tensor layout is not what the detector expects."""


class NetworkLoadError(PyramidDetectionError):
    """The inference backend could not load the model definition or weights."""


class ImageDecodeError(PyramidDetectionError):
    """An image listed for detection exists but could not be decoded."""


class InferenceError(PyramidDetectionError):
    """The inference backend failed while feeding the network or running it."""
