"""Core settings and domain errors."""
