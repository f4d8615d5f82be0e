"""Repositories and domain services for DocNotes.

Each domain exposes a ``Protocol`` repository with a SQLAlchemy implementation
for production and an in-memory one for tests and local demos.
"""
