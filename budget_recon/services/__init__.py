"""Ingest, join, aggregation and orchestration services."""
