"""Civic Report Tracker - lifecycle and access engine for civic issue reports."""

__version__ = "0.1.0"
