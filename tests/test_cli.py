"""
Tests for the carpetscan command line interface.
"""

import json
import sys
import tempfile
from pathlib import Path

import cv2
import numpy as np
import pytest

from carpetscan.cli import main


def create_carpet_image(path: Path) -> None:
    """Write a burgundy/gold checkerboard image.

    Args:
        path: Path to save image.
    """
    idx = np.arange(300) // 24
    mask = (idx[:, None] + idx[None, :]) % 2 == 1
    img = np.empty((300, 300, 3), dtype=np.uint8)
    img[~mask] = (32, 0, 128)  # BGR
    img[mask] = (32, 165, 218)
    cv2.imwrite(str(path), img)


class TestCLI:
    """Test argument handling and report output."""

    def test_json_report(self, monkeypatch, capsys):
        """Test that a JSON report lists ranked matches per image."""
        with tempfile.TemporaryDirectory() as tmpdir:
            image = Path(tmpdir) / "carpet.png"
            create_carpet_image(image)
            monkeypatch.setattr(sys, "argv", ["carpetscan", str(image), "--json", "--top-k", "3"])

            main()

        report = json.loads(capsys.readouterr().out)
        matches = report[str(image)]["matches"]
        assert len(matches) == 3
        assert matches[0]["confidence"] >= matches[-1]["confidence"]

    def test_rejected_image_reports_reason(self, monkeypatch, capsys):
        """Test that a rejected frame prints the gate reason."""
        with tempfile.TemporaryDirectory() as tmpdir:
            image = Path(tmpdir) / "hand.png"
            img = np.zeros((300, 300, 3), dtype=np.uint8)
            img[:] = (140, 172, 224)  # BGR skin tone
            cv2.imwrite(str(image), img)
            monkeypatch.setattr(sys, "argv", ["carpetscan", str(image)])

            main()

        out = capsys.readouterr().out
        assert "No match: Skin tones detected" in out

    def test_missing_reference_file(self, monkeypatch):
        """Test that a missing reference file exits with an error."""
        monkeypatch.setattr(
            sys, "argv", ["carpetscan", "x.png", "--references", "/nonexistent/refs.json"]
        )

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 1

    def test_invalid_location_exits(self, monkeypatch, capsys):
        """Test that a negative distance is reported as an error, not a traceback."""
        monkeypatch.setattr(sys, "argv", ["carpetscan", "x.png", "--distance-km", "-1"])

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 1
        assert capsys.readouterr().out.startswith("Error: ")
