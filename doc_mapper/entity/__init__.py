"""Entity layer - dirty-tracked pydantic models."""

from __future__ import annotations

from doc_mapper.entity.base import Entity
from doc_mapper.entity.types import PropertyType, describe_annotation

__all__ = [
    "Entity",
    "PropertyType",
    "describe_annotation",
]
