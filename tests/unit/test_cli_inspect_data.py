from __future__ import annotations

from pathlib import Path

from budget_recon.cli.__main__ import main as cli_main
from budget_recon.logging.init import reset_logging


def test_cli_inspect_data_prints_resolved_columns(temp_workdir: Path, write_config: Path, source_workbooks, capsys):
    """--inspect-data reports headers and resolved column indices without reconciling."""
    reset_logging()

    code = cli_main(["--inspect-data"])

    out = capsys.readouterr().out
    assert code == 0
    assert "FILE: projects" in out
    assert "SHEET: Sheet1 header_row=1" in out
    assert "'project_id': 0" in out
    assert "SUMMARY" not in out
    assert not (temp_workdir / "cache" / "recon.db").exists()


def test_cli_inspect_data_reports_missing_and_unreadable(temp_workdir: Path, write_config: Path, source_workbooks, capsys):
    reset_logging()
    source_workbooks["estimates"].unlink()
    source_workbooks["transactions"].write_bytes(b"not a workbook")

    code = cli_main(["--inspect-data"])

    out = capsys.readouterr().out
    assert code == 0
    assert "  missing" in out
    assert "  read_error: cannot open workbook" in out
