"""Pytest configuration.

Photos are synthesized with Pillow into ``tmp_path``.  The Qt tests use
the offscreen platform and share one ``QApplication`` for the session,
created before collection so widget modules can be imported safely.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import pytest
from PIL import Image

_APP: Any | None = None


def pytest_configure(config) -> None:  # noqa: ARG001
    """Ensure a QApplication exists before collecting/running tests."""
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

    try:
        from PyQt6.QtWidgets import QApplication
    except ImportError:
        return

    global _APP

    app = QApplication.instance()
    # Keep a strong ref so it isn't GC'd mid-session.
    _APP = app if app is not None else QApplication([])


def pytest_sessionfinish(session, exitstatus) -> None:  # noqa: ARG001
    try:
        from PyQt6.QtWidgets import QApplication
    except ImportError:
        return

    app = QApplication.instance()
    if app is None:
        return
    app.quit()
    app.processEvents()


def _gradient(width: int, height: int) -> Image.Image:
    vertical = Image.linear_gradient("L").resize((width, height))
    horizontal = Image.linear_gradient("L").transpose(Image.Transpose.ROTATE_90).resize((width, height))
    return Image.merge("RGB", (horizontal, vertical, Image.new("L", (width, height), 128)))


@pytest.fixture
def make_jpeg(tmp_path):
    """Factory: write a gradient JPEG of the given size and return its path."""

    def _make(name: str = "photo.jpg", size: tuple[int, int] = (1000, 800)) -> Path:
        path = tmp_path / name
        _gradient(*size).save(path, "JPEG", quality=80)
        return path

    return _make
