"""Tests for the sample sales directory bootstrap utility."""

from __future__ import annotations

import pytest

from calculate_sales import data_manager, setup_sample
from calculate_sales.constants import EmptyAmountPolicy, OverflowPolicy


def test_create_sample_directory_writes_sequential_files(tmp_path):
    """Definitions and a contiguous run of transaction files should exist."""

    target = setup_sample.create_sample_directory(tmp_path / "sample", file_count=3)

    names = [path.name for path in data_manager.list_transaction_candidates(target)]
    assert names == ["00000001.rcd", "00000002.rcd", "00000003.rcd"]
    assert (target / "00000002.rcd").read_text(encoding="utf-8") == "002\nSft00002\n2000\n"
    assert (target / "branch.lst").read_text(encoding="utf-8").startswith("001,Sapporo\n")


def test_create_sample_directory_writes_default_config(tmp_path):
    """The generated config should parse back to the default settings."""

    target = setup_sample.create_sample_directory(tmp_path / "sample")
    settings = data_manager.load_settings(search_dir=target)

    assert settings.overflow_policy is OverflowPolicy.LEGACY_BOTH
    assert settings.empty_amount is EmptyAmountPolicy.REJECT
    assert settings.workbook_name is None


def test_create_sample_directory_refuses_overwrite(tmp_path):
    """Existing definition files are protected unless overwrite is set."""

    target = setup_sample.create_sample_directory(tmp_path / "sample")
    with pytest.raises(FileExistsError):
        setup_sample.create_sample_directory(target)
    setup_sample.create_sample_directory(target, overwrite=True)


def test_main_reports_existing_directory(tmp_path, capsys):
    """The script entry point should explain how to force an overwrite."""

    target = tmp_path / "sample"
    assert setup_sample.main([str(target), "--no-config"]) == 0
    assert not (target / "calculate_sales.ini").exists()
    assert setup_sample.main([str(target)]) == 1
    assert "--force" in capsys.readouterr().out
