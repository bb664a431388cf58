"""Workbook reading, cell normalization and column resolution."""
