"""
OSM data models

Data classes for representing OSM nodes, ways and relations
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Tuple, Union


class ElementType(str, Enum):
    """Kind of OSM primitive"""
    NODE = "node"
    WAY = "way"
    RELATION = "relation"

    @classmethod
    def from_code(cls, code: str) -> "ElementType":
        """Map a one-letter member type ('n', 'w', 'r') or a full name"""
        codes = {"n": cls.NODE, "w": cls.WAY, "r": cls.RELATION}
        if code in codes:
            return codes[code]
        return cls(code)


@dataclass(frozen=True)
class OSMNode:
    """Represents an OSM node (point)"""
    id: int
    lon: float
    lat: float
    tags: Dict[str, str] = field(default_factory=dict)

    kind = ElementType.NODE

    @property
    def coordinate(self) -> Tuple[float, float]:
        return (self.lon, self.lat)


@dataclass(frozen=True)
class OSMWay:
    """Represents an OSM way (line or polygon)"""
    id: int
    refs: List[int]
    tags: Dict[str, str] = field(default_factory=dict)

    kind = ElementType.WAY

    @property
    def is_closed(self) -> bool:
        """A way is closed when its first and last node references are equal"""
        return len(self.refs) >= 2 and self.refs[0] == self.refs[-1]


@dataclass(frozen=True)
class Member:
    """A relation member"""
    kind: ElementType
    ref: int
    role: str = ""


@dataclass(frozen=True)
class OSMRelation:
    """Represents an OSM relation"""
    id: int
    members: List[Member]
    tags: Dict[str, str] = field(default_factory=dict)

    kind = ElementType.RELATION


Primitive = Union[OSMNode, OSMWay, OSMRelation]
