"""Periodic column snapshots from ODBC and Access sources."""

__version__ = "0.1.0"
