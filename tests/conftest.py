"""Shared pytest fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from lsp_capture.runner import CaptureLayout


@pytest.fixture()
def layout(tmp_path: Path) -> CaptureLayout:
    return CaptureLayout.from_base_dir(tmp_path)
