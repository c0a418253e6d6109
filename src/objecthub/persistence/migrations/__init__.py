"""Alembic migrations for the objecthub metadata store."""
