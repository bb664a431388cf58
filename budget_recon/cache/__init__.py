"""Persistent cache for reconciled results."""
