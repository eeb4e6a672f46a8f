"""Async repositories over the SQLAlchemy models."""
