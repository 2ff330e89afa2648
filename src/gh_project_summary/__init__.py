"""Collect GitHub project activity into a single queryable result file."""

__version__ = "0.1.0"
