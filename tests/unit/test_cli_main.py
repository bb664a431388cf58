from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

from budget_recon.cli.__main__ import main as cli_main
from budget_recon.logging.init import reset_logging


def test_cli_missing_config(temp_workdir: Path, capsys):
    reset_logging()
    code = cli_main([])
    out = capsys.readouterr().out
    assert code == 1
    assert "ERROR config: config file not found" in out


def test_cli_explicit_config_path(temp_workdir: Path, write_config: Path, source_workbooks, capsys):
    reset_logging()
    moved = temp_workdir / "config" / "other.yml"
    write_config.rename(moved)
    code = cli_main(["--config", str(moved)])
    out = capsys.readouterr().out
    assert code == 0
    assert "SUMMARY projects=2 activities=3 transactions=4" in out


def test_cli_env_file_overrides_environment(temp_workdir: Path, write_config: Path, monkeypatch):
    reset_logging()
    monkeypatch.setenv("PGHOST", "from-process")
    (temp_workdir / ".env").write_text("PGHOST=from-dotenv\n", encoding="utf-8")
    with patch("budget_recon.cli.__main__.ReconciliationPipeline") as pipeline_cls:
        pipeline_cls.return_value.invalidate.return_value = 0
        code = cli_main(["--invalidate"])

    assert code == 0
    assert os.environ["PGHOST"] == "from-dotenv"
    pipeline_cls.return_value.invalidate.assert_called_once_with(None)


def test_cli_cache_unavailable_runs_without_cache(
    temp_workdir: Path, write_config: Path, source_workbooks, capsys
):
    reset_logging()
    with patch("budget_recon.cli.__main__.open_cache_store", side_effect=RuntimeError("no server")):
        code = cli_main([])
    out = capsys.readouterr().out
    assert code == 0
    assert "WARN cache unavailable (sqlite) -> running without cache: no server" in out
    assert "cache=disabled" in out


def test_cli_cache_disabled_in_config(temp_workdir: Path, write_config: Path, source_workbooks, capsys):
    reset_logging()
    text = write_config.read_text(encoding="utf-8").replace("  enabled: true", "  enabled: false")
    write_config.write_text(text, encoding="utf-8")
    assert cli_main(["--cache-info"]) == 0
    assert "cache: disabled" in capsys.readouterr().out
