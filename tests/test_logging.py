"""Tests for the package logging location."""

from __future__ import annotations

import sys
from pathlib import Path

import calculate_sales


def test_resolve_log_dir_honours_environment(monkeypatch, tmp_path):
    """An explicit log directory in the environment should win."""

    monkeypatch.setenv(calculate_sales.LOG_DIR_ENV, str(tmp_path / "logs"))
    assert calculate_sales._resolve_log_dir() == tmp_path / "logs"


def test_resolve_log_dir_defaults_to_working_directory(monkeypatch):
    """Without the variable, logs go under ./.logs rather than the install tree."""

    monkeypatch.delenv(calculate_sales.LOG_DIR_ENV, raising=False)
    assert calculate_sales._resolve_log_dir() == Path.cwd() / ".logs"


def test_console_handler_never_writes_to_stdout():
    """Every stream handler on the package logger must target stderr."""

    streams = [
        handler.stream
        for handler in calculate_sales.log.handlers
        if type(handler).__name__ == "StreamHandler"
    ]
    assert streams and all(stream is not sys.stdout for stream in streams)
