"""
OSM response parser

Parses Overpass API JSON responses into OSMNode, OSMWay and OSMRelation objects
"""

from typing import Dict, Any, Iterator, List

from loguru import logger

from ..errors import DecodeError
from .models import ElementType, Member, OSMNode, OSMRelation, OSMWay, Primitive


class OSMResponseParser:
    """Parses Overpass API responses ('out body' format)"""

    @staticmethod
    def iter_elements(data: Dict[str, Any]) -> Iterator[Primitive]:
        """
        Yield primitives from an Overpass response, in response order

        Args:
            data: JSON response from Overpass API (dict with an "elements" list)

        Yields:
            OSMNode, OSMWay or OSMRelation objects

        Raises:
            DecodeError: If an element is missing required fields
        """
        for element in data.get("elements", []):
            try:
                element_type = element["type"]
                if element_type == "node":
                    yield OSMNode(
                        id=element["id"],
                        lon=float(element["lon"]),
                        lat=float(element["lat"]),
                        tags=dict(element.get("tags", {}))
                    )
                elif element_type == "way":
                    yield OSMWay(
                        id=element["id"],
                        refs=list(element.get("nodes", [])),
                        tags=dict(element.get("tags", {}))
                    )
                elif element_type == "relation":
                    members = [
                        Member(
                            kind=ElementType.from_code(m["type"]),
                            ref=m["ref"],
                            role=m.get("role", "")
                        )
                        for m in element.get("members", [])
                    ]
                    yield OSMRelation(
                        id=element["id"],
                        members=members,
                        tags=dict(element.get("tags", {}))
                    )
                else:
                    logger.debug(f"Ignoring Overpass element of type {element_type!r}")
            except (KeyError, TypeError, ValueError) as e:
                raise DecodeError(f"Malformed Overpass element {element!r}: {e}") from e

    @staticmethod
    def parse_elements(data: Dict[str, Any]) -> List[Primitive]:
        """Parse an Overpass response into a list of primitives"""
        return list(OSMResponseParser.iter_elements(data))
