"""Command line interface (``python -m budget_recon.cli``)."""
