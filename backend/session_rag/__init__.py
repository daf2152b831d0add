"""Therapy session transcript store with semantic (RAG) search."""

__version__ = "0.1.0"
