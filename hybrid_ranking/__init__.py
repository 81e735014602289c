"""Hybrid candidate ranking: semantic (pgvector) similarity blended with keyword coverage."""

__version__ = "0.1.0"
