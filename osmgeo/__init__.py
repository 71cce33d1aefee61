"""
osmgeo: tagged feature extraction from OpenStreetMap data and
datum-aware coordinate reprojection
"""

from .errors import (
    OSMGeoError, ConfigError, DecodeError, ResolutionError,
    CRSDefinitionError, TransformError, ProjectionError, DatumTransformError
)
from .osm import GeomTags, DominantType, PrimitiveStore, TagCount, TagCounts
from .pipeline import TagExtract, TagPipeline, PipelineResult, count_tags, extract_tag
from .proj import SpatialReference, Transform, build_transform, parse

__version__ = "0.1.0"

__all__ = [
    "OSMGeoError",
    "ConfigError",
    "DecodeError",
    "ResolutionError",
    "CRSDefinitionError",
    "TransformError",
    "ProjectionError",
    "DatumTransformError",
    "GeomTags",
    "DominantType",
    "PrimitiveStore",
    "TagCount",
    "TagCounts",
    "TagExtract",
    "TagPipeline",
    "PipelineResult",
    "count_tags",
    "extract_tag",
    "SpatialReference",
    "Transform",
    "build_transform",
    "parse",
]
