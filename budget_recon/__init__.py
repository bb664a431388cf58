"""Project budget reconciliation: P / PT / AE workbooks -> budget vs actual."""

__version__ = "0.1.0"
