"""Database access helpers."""
