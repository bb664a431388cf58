from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from pathlib import Path

"""Diagnostics log: JSON Lines record of dropped rows and load problems.

- fixed key set (timestamp, source, sheet, row, error_type, message)
- one file per run: ``<dir>/diagnostics-YYYYMMDD-HHMMSS.log`` (UTC)
- records are buffered and written once by ``flush()``
"""

__all__ = [
    "DiagnosticRecord",
    "ErrorLogBuffer",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


@dataclass(frozen=True)
class DiagnosticRecord:
    """One diagnostics event.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        source: logical source (projects | transactions | estimates)
        sheet: sheet name, "<FILE_LEVEL>" when the sheet never loaded
        row: 1-based spreadsheet row, -1 when not row specific
        error_type: UPPER_SNAKE classification (SENTINEL_ROW, MISSING_KEY, ...)
        message: human readable detail
    """
    timestamp: str
    source: str
    sheet: str
    row: int
    error_type: str
    message: str

    @staticmethod
    def create(source: str, sheet: str, row: int, error_type: str, message: str) -> DiagnosticRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return DiagnosticRecord(
            timestamp=ts,
            source=source,
            sheet=sheet,
            row=row,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)


class ErrorLogBuffer:
    """In-memory buffer of DiagnosticRecords; ``flush()`` appends JSON Lines.

    The file path is fixed on first access. Appends happen from the pipeline
    thread only.
    """
    def __init__(self, directory: Path | str | None = None) -> None:
        self._directory = Path(directory) if directory is not None else LOGS_DIR
        self._records: list[DiagnosticRecord] = []
        self._file_path: Path | None = None

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            self._directory.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._directory / f"diagnostics-{stamp}.log"
        return self._file_path

    def append(self, record: DiagnosticRecord) -> None:
        self._records.append(record)

    def __len__(self) -> int:  # pragma: no cover (trivial)
        return len(self._records)

    def flush(self) -> Path | None:
        """Write buffered records; returns the file path, or None when nothing was buffered."""
        if not self._records:
            return None
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp
