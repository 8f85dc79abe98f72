"""Pydantic models for reports and profiles."""
