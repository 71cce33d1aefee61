"""
Pydantic models for osmgeo output
Matches the GeoJSON (RFC 7946) feature layout
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


# ============================================================
# GeoJSON Types
# ============================================================

class GeoJSONFeature(BaseModel):
    type: Literal["Feature"] = "Feature"
    id: Optional[str] = None  # "node/123", "way/456", "relation/789"
    geometry: Dict[str, Any]
    properties: Dict[str, str] = Field(default_factory=dict)


class GeoJSONFeatureCollection(BaseModel):
    type: Literal["FeatureCollection"] = "FeatureCollection"
    features: List[GeoJSONFeature] = Field(default_factory=list)


# ============================================================
# Tag Statistics
# ============================================================

class TagCountRow(BaseModel):
    key: str
    value: str
    total: int
    node: int = 0
    closed_way: int = 0
    open_way: int = 0
    relation: int = 0
    dominant_type: str
