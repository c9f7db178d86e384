"""Clinic scheduling and ledger engine."""

__version__ = "1.0.0"
