from __future__ import annotations

from pathlib import Path

import pytest

from pyramid_detection.app.errors import ConfigurationError
from pyramid_detection.app.models import DetectionBox
from pyramid_detection.app.services.output_writer import BBTXTWriter, read_bbtxt


def build_boxes() -> list:
    return [
        DetectionBox("data/img_001.png", 1, 0.95, 40, 40, 40, 40),
        DetectionBox("data/img_001.png", 1, 0.125, -12, 3, 210, 97),
        DetectionBox("data/my images/img 002.jpg", 1, 0.1, 0, 0, 5, 7),
    ]


def test_writer_produces_bbtxt_lines(tmp_path: Path) -> None:
    target = tmp_path / "out.bbtxt"

    with BBTXTWriter(target) as writer:
        written = writer.write(build_boxes()[:2])

    assert written == 2
    assert target.read_text(encoding="utf-8") == (
        "data/img_001.png 1 0.95 40 40 40 40\n"
        "data/img_001.png 1 0.125 -12 3 210 97\n"
    )


def test_writer_appends_across_calls(tmp_path: Path) -> None:
    target = tmp_path / "out.bbtxt"

    with BBTXTWriter(target) as writer:
        writer.write(build_boxes()[:1])
        writer.write([])
        writer.write(build_boxes()[1:])

    assert writer.lines_written == 3
    assert len(target.read_text(encoding="utf-8").splitlines()) == 3


def test_write_then_read_round_trip(tmp_path: Path) -> None:
    target = tmp_path / "out.bbtxt"
    boxes = build_boxes()

    with BBTXTWriter(target) as writer:
        writer.write(boxes)

    parsed = read_bbtxt(target)
    assert parsed == boxes
    assert all(box.label == 1 for box in parsed)


def test_confidence_uses_six_significant_digits() -> None:
    box = DetectionBox("img.png", 1, 0.123456789, 1, 2, 3, 4)

    assert box.to_bbtxt_line() == "img.png 1 0.123457 1 2 3 4"


def test_writer_refuses_existing_file(tmp_path: Path) -> None:
    target = tmp_path / "out.bbtxt"
    target.write_text("keep me\n", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="already exists"):
        BBTXTWriter(target).open()

    assert target.read_text(encoding="utf-8") == "keep me\n"


def test_writer_requires_open(tmp_path: Path) -> None:
    writer = BBTXTWriter(tmp_path / "out.bbtxt")

    with pytest.raises(RuntimeError):
        writer.write(build_boxes())
    assert not (tmp_path / "out.bbtxt").exists()


def test_writer_closes_on_error(tmp_path: Path) -> None:
    target = tmp_path / "out.bbtxt"

    with pytest.raises(ValueError):
        with BBTXTWriter(target) as writer:
            writer.write(build_boxes()[:1])
            raise ValueError("boom")

    assert target.read_text(encoding="utf-8").startswith("data/img_001.png 1 0.95")


def test_parse_rejects_malformed_line() -> None:
    with pytest.raises(ValueError):
        DetectionBox.from_bbtxt_line("img.png 1 0.5 1 2 3")
