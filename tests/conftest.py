"""Shared pytest fixtures and utilities for the sales aggregation tests."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable, Iterator, Mapping, Sequence

import pytest

# Ensure source packages are importable without installation.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from calculate_sales import core_logic, data_manager, setup_sample  # noqa: E402
from calculate_sales.constants import TableLabel  # noqa: E402

DEFAULT_BRANCHES = {"001": "Tokyo", "002": "Osaka"}
DEFAULT_COMMODITIES = {"A1xxxxxx": "Widget", "B2yyyyyY": "Gadget"}


@pytest.fixture(scope="session", autouse=True)
def _restore_sys_path() -> Iterator[None]:
    """Ensure sys.path modifications are undone after the test session."""

    original = sys.path.copy()
    try:
        yield
    finally:
        sys.path[:] = original


@pytest.fixture(autouse=True)
def _isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Run every test from an empty directory so no stray config is found."""

    workdir = tmp_path / "cwd"
    workdir.mkdir()
    monkeypatch.chdir(workdir)


@pytest.fixture
def write_definition(tmp_path: Path) -> Callable[..., Path]:
    """Write a definition file from raw text or a ``code -> name`` mapping."""

    def _write(name: str, content: str | Mapping[str, str], *, directory: Path | None = None) -> Path:
        target_dir = directory or tmp_path / "sales"
        target_dir.mkdir(parents=True, exist_ok=True)
        if not isinstance(content, str):
            content = "".join(f"{code},{label}\n" for code, label in content.items())
        path = target_dir / name
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def sales_dir_factory(tmp_path: Path) -> Callable[..., Path]:
    """Factory creating a sales directory with definitions and records.

    ``records`` maps a transaction file serial to its raw lines so tests can
    create gaps or malformed files explicitly.
    """

    counter = {"value": 0}

    def _create(
        *,
        branches: Mapping[str, str] = DEFAULT_BRANCHES,
        commodities: Mapping[str, str] = DEFAULT_COMMODITIES,
        records: Mapping[int, Sequence[str]] | None = None,
    ) -> Path:
        counter["value"] += 1
        directory = tmp_path / f"sales_{counter['value']}"
        directory.mkdir(parents=True)
        (directory / "branch.lst").write_text(
            "".join(f"{code},{name}\n" for code, name in branches.items()),
            encoding="utf-8",
        )
        (directory / "commodity.lst").write_text(
            "".join(f"{code},{name}\n" for code, name in commodities.items()),
            encoding="utf-8",
        )
        for serial, lines in (records or {}).items():
            (directory / f"{serial:08d}.rcd").write_text(
                "".join(f"{line}\n" for line in lines),
                encoding="utf-8",
            )
        return directory

    return _create


@pytest.fixture
def sample_dir(tmp_path: Path) -> Path:
    """Return a populated sample directory built by the setup utility."""

    return setup_sample.create_sample_directory(tmp_path / "sample", write_config=False)


@pytest.fixture
def branches() -> core_logic.ReferenceTable:
    """Provide an in-memory branch table."""

    table = core_logic.ReferenceTable(label=TableLabel.BRANCH.value)
    for code, name in DEFAULT_BRANCHES.items():
        table.add(code, name)
    return table


@pytest.fixture
def commodities() -> core_logic.ReferenceTable:
    """Provide an in-memory commodity table."""

    table = core_logic.ReferenceTable(label=TableLabel.COMMODITY.value)
    for code, name in DEFAULT_COMMODITIES.items():
        table.add(code, name)
    return table


@pytest.fixture
def settings() -> data_manager.Settings:
    """Provide default settings for orchestrator tests."""

    return data_manager.Settings()
