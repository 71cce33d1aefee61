"""
Shared fixtures: a small synthetic extract around Honolulu plus a few
planar test shapes for ring assembly.
"""

import json

import pytest

from osmgeo.config import AssemblyConfig, PipelineConfig, StatsConfig, TransformConfig
from osmgeo.osm.models import ElementType, Member, OSMNode, OSMRelation, OSMWay
from osmgeo.osm.store import PrimitiveStore


def _nodes():
    return [
        # trees
        OSMNode(1, -158.1244373, 21.2650476, {"natural": "tree"}),
        OSMNode(2, -157.8015, 21.2589, {"natural": "tree", "leaf_type": "broadleaved"}),
        # trail
        OSMNode(3, -157.8260688, 21.404186),
        OSMNode(4, -157.8258194, 21.4036865),
        OSMNode(5, -157.8255, 21.4031),
        # building
        OSMNode(10, -157.8245, 21.2800),
        OSMNode(11, -157.8240, 21.2800),
        OSMNode(12, -157.8240, 21.2805),
        OSMNode(13, -157.8245, 21.2805),
        # multipolygon outer (split across two ways) and inner
        OSMNode(20, 0.0, 0.0),
        OSMNode(21, 10.0, 0.0),
        OSMNode(22, 10.0, 10.0),
        OSMNode(23, 0.0, 10.0),
        OSMNode(30, 4.0, 4.0),
        OSMNode(31, 6.0, 4.0),
        OSMNode(32, 6.0, 6.0),
        OSMNode(33, 4.0, 6.0),
        # two disjoint squares
        OSMNode(40, 20.0, 0.0),
        OSMNode(41, 22.0, 0.0),
        OSMNode(42, 22.0, 2.0),
        OSMNode(43, 20.0, 2.0),
        OSMNode(50, 30.0, 0.0),
        OSMNode(51, 33.0, 0.0),
        OSMNode(52, 33.0, 3.0),
        OSMNode(53, 30.0, 3.0),
    ]


def _ways():
    return [
        OSMWay(100, [3, 4], {
            "highway": "path",
            "surface": "dirt",
            "access": "private",
            "trail_visibility": "bad",
        }),
        OSMWay(101, [10, 11, 12, 13, 10], {
            "building": "apartments",
            "name": "Napili Tower",
            "addr:housenumber": "1520",
            "addr:street": "Ward Avenue",
        }),
        OSMWay(102, [3, 999], {"highway": "residential"}),
        OSMWay(103, [4, 5], {"highway": "residential"}),
        OSMWay(104, [10, 11, 12, 10], {"highway": "residential", "area": "yes"}),
        OSMWay(200, [20, 21, 22]),
        OSMWay(201, [22, 23, 20]),
        OSMWay(202, [30, 31, 32, 33, 30]),
        OSMWay(701, [40, 41, 42, 43, 40]),
        OSMWay(702, [50, 51, 52, 53, 50]),
    ]


def _relations():
    return [
        OSMRelation(400, [
            Member(ElementType.WAY, 200, "outer"),
            Member(ElementType.WAY, 201, "outer"),
            Member(ElementType.WAY, 202, "inner"),
        ], {"type": "multipolygon", "start_date": "1974"}),
        OSMRelation(500, [
            Member(ElementType.WAY, 100, ""),
        ], {"type": "route", "wikipedia": "en:Pearl City, Hawaii"}),
        OSMRelation(600, [
            Member(ElementType.RELATION, 601, ""),
            Member(ElementType.WAY, 100, ""),
        ], {"type": "route", "name": "loop"}),
        OSMRelation(601, [
            Member(ElementType.RELATION, 600, ""),
        ], {"type": "route", "name": "loop"}),
        OSMRelation(700, [
            Member(ElementType.WAY, 701, "outer"),
            Member(ElementType.WAY, 702, "outer"),
        ], {"type": "multipolygon", "landuse": "forest"}),
    ]


@pytest.fixture
def primitives():
    """Synthetic primitive stream in file order"""
    return _nodes() + _ways() + _relations()


@pytest.fixture
def store(primitives):
    return PrimitiveStore.build(primitives)


@pytest.fixture
def overpass_response():
    """A small Overpass 'out body' response"""
    return {
        "version": 0.6,
        "elements": [
            {"type": "node", "id": 1, "lat": 21.2650476, "lon": -158.1244373,
             "tags": {"natural": "tree"}},
            {"type": "node", "id": 3, "lat": 21.404186, "lon": -157.8260688},
            {"type": "node", "id": 4, "lat": 21.4036865, "lon": -157.8258194},
            {"type": "way", "id": 100, "nodes": [3, 4],
             "tags": {"highway": "path", "trail_visibility": "bad"}},
            {"type": "relation", "id": 500,
             "members": [{"type": "way", "ref": 100, "role": ""}],
             "tags": {"type": "route", "wikipedia": "en:Pearl City, Hawaii"}},
        ],
    }


@pytest.fixture
def overpass_file(tmp_path, overpass_response):
    path = tmp_path / "extract.json"
    path.write_text(json.dumps(overpass_response), encoding="utf-8")
    return str(path)


@pytest.fixture
def pipeline_config():
    return PipelineConfig(
        assembly=AssemblyConfig(),
        stats=StatsConfig(),
        transform=TransformConfig(),
    )
