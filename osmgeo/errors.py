"""
Exception hierarchy for osmgeo

Decode and descriptor errors abort the enclosing operation, resolution
errors are counted per primitive, transform errors are per point.
"""

import math
from typing import Optional


class OSMGeoError(Exception):
    """Base exception for osmgeo operations."""
    pass


class ConfigError(OSMGeoError, ValueError):
    """Invalid configuration values."""
    pass


class DecodeError(OSMGeoError):
    """The primitive stream could not be read or decoded."""
    pass


class ResolutionError(OSMGeoError):
    """A single primitive could not be resolved into a geometry."""

    def __init__(self, kind: str, osm_id: int, reason: str):
        self.kind = kind
        self.osm_id = osm_id
        self.reason = reason
        super().__init__(f"{kind} {osm_id}: {reason}")


class CRSDefinitionError(OSMGeoError):
    """A CRS definition could not be turned into a usable descriptor."""
    pass


class TransformError(OSMGeoError):
    """A point could not be transformed.

    The failed coordinates are always NaN so callers that keep going with
    the result can't mistake it for a real position.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.x = math.nan
        self.y = math.nan
        self.cause = cause
        super().__init__(message)


class ProjectionError(TransformError):
    """A forward or inverse projection produced no real-valued result."""
    pass


class DatumTransformError(TransformError):
    """A datum shift produced no real-valued result."""
    pass
