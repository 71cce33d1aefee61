"""
OSM file reader

Streams primitives out of .osm.pbf / .osm files with pyosmium. The
container decoding itself is done by libosmium; objects are copied into
osmgeo models immediately because osmium buffers are only valid during
iteration.
"""

import json
import os
from typing import Iterable, Iterator, Union

import osmium
from loguru import logger

from ..errors import DecodeError
from .models import ElementType, Member, OSMNode, OSMRelation, OSMWay, Primitive
from .parser import OSMResponseParser


def _tags(obj) -> dict:
    return {tag.k: tag.v for tag in obj.tags}


def read_osm_file(path: str) -> Iterator[Primitive]:
    """
    Yield every node, way and relation of an OSM file in file order

    Args:
        path: Path to an .osm.pbf, .osm or compressed .osm file

    Yields:
        OSMNode, OSMWay or OSMRelation objects

    Raises:
        DecodeError: If the file can't be opened or decoded
    """
    if not os.path.exists(path):
        raise DecodeError(f"OSM file not found: {path}")

    logger.info(f"Reading OSM primitives from {path}")
    try:
        for obj in osmium.FileProcessor(path):
            type_code = obj.type_str()
            if type_code == "n":
                if not obj.location.valid():
                    logger.debug(f"Skipping node {obj.id} without a valid location")
                    continue
                yield OSMNode(
                    id=obj.id,
                    lon=obj.location.lon,
                    lat=obj.location.lat,
                    tags=_tags(obj)
                )
            elif type_code == "w":
                yield OSMWay(
                    id=obj.id,
                    refs=[n.ref for n in obj.nodes],
                    tags=_tags(obj)
                )
            elif type_code == "r":
                yield OSMRelation(
                    id=obj.id,
                    members=[
                        Member(kind=ElementType.from_code(m.type), ref=m.ref, role=m.role)
                        for m in obj.members
                    ],
                    tags=_tags(obj)
                )
    except RuntimeError as e:
        raise DecodeError(f"Failed to decode OSM file {path}: {e}") from e


def read_overpass_json(path: str) -> Iterator[Primitive]:
    """Yield primitives from an Overpass JSON dump on disk"""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise DecodeError(f"Failed to read Overpass JSON {path}: {e}") from e
    return OSMResponseParser.iter_elements(data)


def open_stream(source: Union[str, Iterable[Primitive]]) -> Iterable[Primitive]:
    """
    Resolve a source into a primitive stream

    Strings are treated as file paths (.json via the Overpass parser,
    anything else via osmium); iterables are passed through unchanged.
    """
    if isinstance(source, (str, os.PathLike)):
        path = os.fspath(source)
        if path.lower().endswith(".json"):
            return read_overpass_json(path)
        return read_osm_file(path)
    return source
