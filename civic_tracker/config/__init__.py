"""Configuration for external services (Firebase)."""
