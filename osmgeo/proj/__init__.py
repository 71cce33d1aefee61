"""
Coordinate reference system handling

- CRS: Descriptors parsed with pyproj (SpatialReference)
- Datum: Geocentric conversions and Helmert / grid shifts
- Transform: The datum-aware reprojection pipeline
"""

from .crs import SpatialReference, parse
from .datum import Datum, DatumType
from .transform import Transform, build_transform

__all__ = [
    "SpatialReference",
    "parse",
    "Datum",
    "DatumType",
    "Transform",
    "build_transform",
]
