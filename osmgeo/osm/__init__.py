"""
OpenStreetMap primitive handling

Modular components for:
- Models: Data structures (OSMNode, OSMWay, OSMRelation)
- Parser / Reader: Overpass JSON and osmium file decoding
- Store: Id-indexed primitive arena
- Assembler: Tagged primitives to shapely geometries
- Stats: Per-tag occurrence counts
"""

from .models import ElementType, Member, OSMNode, OSMRelation, OSMWay
from .store import PrimitiveStore
from .assembler import AssemblyResult, GeometryAssembler, GeomTags, SkippedPrimitive
from .stats import DominantType, TagCount, TagCounter, TagCounts

__all__ = [
    "ElementType",
    "Member",
    "OSMNode",
    "OSMRelation",
    "OSMWay",
    "PrimitiveStore",
    "AssemblyResult",
    "GeometryAssembler",
    "GeomTags",
    "SkippedPrimitive",
    "DominantType",
    "TagCount",
    "TagCounter",
    "TagCounts",
]
