from __future__ import annotations

import re
from pathlib import Path

from budget_recon.cache.store import CacheStore
from budget_recon.cli.__main__ import main as cli_main
from budget_recon.logging.init import reset_logging
from budget_recon.services.serialization import result_from_payload

"""End-to-end CLI run on real workbooks: reconcile, cache, alerts."""


def _summary(out: str) -> str:
    lines = [ln for ln in out.splitlines() if ln.startswith("SUMMARY ")]
    assert len(lines) == 1, out
    return lines[0]


def _counts(line: str) -> str:
    return re.sub(r" (cache|elapsed_sec|dropped_rows|unknown_project_tx)=\S+", "", line)


def test_run_success_then_cache_hit(temp_workdir: Path, write_config: Path, source_workbooks, capsys):
    reset_logging()
    assert cli_main([]) == 0
    first = _summary(capsys.readouterr().out)
    assert "cache=stored" in first

    reset_logging()
    assert cli_main([]) == 0
    second = _summary(capsys.readouterr().out)
    assert "cache=hit" in second
    # the cached graph reports the same counts
    assert _counts(first) == _counts(second)

    reset_logging()
    assert cli_main(["--force"]) == 0
    assert "cache=stored" in _summary(capsys.readouterr().out)


def test_cached_payload_holds_reconciled_graph(temp_workdir: Path, write_config: Path, source_workbooks, capsys):
    reset_logging()
    assert cli_main([]) == 0
    capsys.readouterr()

    store = CacheStore.sqlite(temp_workdir / "cache" / "recon.db")
    try:
        payload = store.load("project_data")
    finally:
        store.close()
    assert payload is not None
    projects, employees = result_from_payload(payload)
    p1 = projects["P1"]
    assert p1.budget == 1000.0
    assert p1.actual_spent == 600.0
    assert p1.customer == "Acme"
    assert projects["P2"].customer == "Unknown"
    consulting = next(a for a in p1.activities if a.activity_seq == "100001")
    assert consulting.has_estimate
    assert consulting.budget_cost == 1000.0
    assert consulting.actual_hours == 5.0
    assert sorted(employees) == ["E1", "E2"]
    assert sorted(employees["E1"].projects) == ["P1"]


def test_alerts_listed_when_threshold_crossed(temp_workdir: Path, write_config: Path, source_workbooks, capsys):
    reset_logging()
    text = write_config.read_text(encoding="utf-8").replace("alert_threshold: 80", "alert_threshold: 40")
    write_config.write_text(text, encoding="utf-8")

    assert cli_main(["--alerts"]) == 0

    out = capsys.readouterr().out
    assert "INFO alerts=1 threshold=40.0" in out
    assert (
        "INFO ALERT attention project=P1 activity=P1:100001:main "
        "cost_usage=50.0% hours_usage=50.0% variance=-500.0"
    ) in out


def test_no_alerts_at_default_threshold(temp_workdir: Path, write_config: Path, source_workbooks, capsys):
    reset_logging()
    assert cli_main(["--alerts"]) == 0
    out = capsys.readouterr().out
    assert "INFO alerts=0 threshold=80.0" in out
    assert "ALERT " not in out
