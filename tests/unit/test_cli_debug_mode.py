from __future__ import annotations

from pathlib import Path

from budget_recon.cli.__main__ import main as cli_main
from budget_recon.logging.init import reset_logging


def test_cli_debug_mode(temp_workdir: Path, write_config: Path, source_workbooks, capsys):
    """--debug turns on DEBUG lines from the app and module loggers."""
    reset_logging()

    code = cli_main(["--debug"])

    out = capsys.readouterr().out
    assert code == 0
    assert "DEBUG debug mode enabled" in out
    # ingest logs its per-sheet counts at debug level
    assert "DEBUG sheet=Sheet1 records=" in out
    assert "SUMMARY projects=2" in out


def test_cli_without_debug_hides_debug_lines(temp_workdir: Path, write_config: Path, source_workbooks, capsys):
    reset_logging()

    code = cli_main([])

    out = capsys.readouterr().out
    assert code == 0
    assert "DEBUG" not in out
