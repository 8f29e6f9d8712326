"""BBTXT persistence for detected boxes."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import IO, Iterable, List, Optional

from ..errors import ConfigurationError
from ..models import DetectionBox

LOGGER = logging.getLogger(__name__)


class BBTXTWriter:
    """Append detections to a BBTXT file that is opened once per run.

    The file is created exclusively: an existing path is never overwritten.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.lines_written = 0
        self._handle: Optional[IO[str]] = None

    def open(self) -> "BBTXTWriter":
        try:
            self._handle = self.path.open("x", encoding="utf-8")
        except FileExistsError as exc:
            raise ConfigurationError(f"File '{self.path}' already exists!") from exc
        except OSError as exc:
            raise ConfigurationError(f"Output file '{self.path}' could not be created: {exc}") from exc
        LOGGER.debug("Opened output file %s", self.path)
        return self

    def write(self, boxes: Iterable[DetectionBox]) -> int:
        """Write one line per box and return how many were written."""

        if self._handle is None:
            raise RuntimeError("BBTXTWriter.open() must be called before write()")
        count = 0
        for box in boxes:
            self._handle.write(box.to_bbtxt_line() + "\n")
            count += 1
        self._handle.flush()
        self.lines_written += count
        return count

    def close(self) -> None:
        if self._handle is None:
            return
        self._handle.close()
        self._handle = None
        LOGGER.info("Wrote %d boxes to %s", self.lines_written, self.path)

    def __enter__(self) -> "BBTXTWriter":
        return self.open()

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def read_bbtxt(path: Path) -> List[DetectionBox]:
    """Parse every non-empty line of a BBTXT file."""

    with Path(path).open("r", encoding="utf-8") as handle:
        return [DetectionBox.from_bbtxt_line(line) for line in handle if line.strip()]
