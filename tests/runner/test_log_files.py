from __future__ import annotations

import logging
import re
from pathlib import Path

import pytest

from lsp_capture.runner import CaptureLayout, CaptureLogs, LogFileError, resolve_base_dir
from lsp_capture.runner import log_files
from lsp_capture.runner.errors import BaseDirectoryError
from lsp_capture.runner.log_files import CAPTURE_LOGGER_NAME


def test_layout_uses_fixed_file_names(tmp_path: Path) -> None:
    layout = CaptureLayout.from_base_dir(tmp_path)
    assert layout.capture_log == tmp_path / "lsp_capture.log"
    assert layout.client_input == tmp_path / "client_input.log"
    assert layout.server_output == tmp_path / "server_output.log"
    assert layout.server_error == tmp_path / "server_err.log"


def test_base_dir_is_entry_point_directory(tmp_path: Path) -> None:
    entry_point = tmp_path / "bin" / "lsp-capture"
    entry_point.parent.mkdir()
    entry_point.write_text("#!/bin/sh\n")
    assert resolve_base_dir(str(entry_point)) == entry_point.parent.resolve()


@pytest.mark.parametrize("entry_point", ["", "-c", "/no/such/lsp-capture"])
def test_base_dir_falls_back_to_working_directory(
    entry_point: str, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.chdir(tmp_path)
    assert resolve_base_dir(entry_point) == Path.cwd()


def test_base_dir_fails_without_working_directory(monkeypatch: pytest.MonkeyPatch) -> None:
    def _missing_cwd() -> str:
        raise FileNotFoundError("cwd removed")

    monkeypatch.setattr(log_files.os, "getcwd", _missing_cwd)
    with pytest.raises(BaseDirectoryError, match="Getwd fail"):
        resolve_base_dir("")


def test_open_truncates_logs_and_timestamps_capture_lines(layout: CaptureLayout) -> None:
    layout.server_output.write_bytes(b"stale output")
    with CaptureLogs.open(layout) as logs:
        logs.logger.info("hello")
        logs.server_output.write(b"fresh")
    assert layout.server_output.read_bytes() == b"fresh"
    assert layout.client_input.read_bytes() == b""
    assert layout.server_error.read_bytes() == b""
    lines = layout.capture_log.read_text().splitlines()
    assert re.fullmatch(r"\d{4}/\d{2}/\d{2} \d{2}:\d{2}:\d{2} hello", lines[-1])


def test_capture_handler_is_detached_on_exit(layout: CaptureLayout) -> None:
    with CaptureLogs.open(layout) as logs:
        handler_count = len(logs.logger.handlers)
    logger = logging.getLogger(CAPTURE_LOGGER_NAME)
    assert len(logger.handlers) == handler_count - 1
    assert logs.client_input.closed


def test_unwritable_capture_log_is_fatal(tmp_path: Path) -> None:
    layout = CaptureLayout.from_base_dir(tmp_path / "missing")
    with pytest.raises(LogFileError, match="lsp_capture.log"):
        with CaptureLogs.open(layout):
            pass


def test_unwritable_stream_log_is_recorded(layout: CaptureLayout) -> None:
    layout.client_input.mkdir()
    with pytest.raises(LogFileError, match="client_input.log"):
        with CaptureLogs.open(layout):
            pass
    assert "can not open client_input.log" in layout.capture_log.read_text()
    assert not layout.server_output.exists()


def test_records_after_close_do_not_reach_stderr(
    layout: CaptureLayout, capsys: pytest.CaptureFixture[str]
) -> None:
    with CaptureLogs.open(layout) as logs:
        logs.logger.info("session")
    logs.logger.warning("Error copying stdin: write to closed file")
    assert capsys.readouterr().err == ""
    assert "Error copying stdin" not in layout.capture_log.read_text()
