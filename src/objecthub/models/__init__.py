"""Domain models for objecthub."""

from objecthub.models.object_record import ObjectRecord

__all__ = ["ObjectRecord"]
