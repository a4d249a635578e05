"""Mapping layer - path resolution, patches, the mapper and cursors."""

from __future__ import annotations

from doc_mapper.mapping.cursor import Cursor
from doc_mapper.mapping.mapper import Mapper
from doc_mapper.mapping.patch import DirtyPatch, PatchBuilder, generate_id
from doc_mapper.mapping.resolver import Path, PathResolver, ResolvedReference, ResolvedStep

__all__ = [
    "Cursor",
    "DirtyPatch",
    "Mapper",
    "Path",
    "PathResolver",
    "PatchBuilder",
    "ResolvedReference",
    "ResolvedStep",
    "generate_id",
]
