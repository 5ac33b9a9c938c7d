"""Database session and persistence helpers."""
