"""
Geometry assembly

Resolves tagged primitives into shapely geometries:
- Nodes become Points
- Open ways become LineStrings, closed ways single-ring Polygons
- Area relations (outer/inner members) become Polygons or MultiPolygons
- Other relations become MultiLineStrings of their member ways

Relation members that point at other relations are never followed, so
cyclic relation graphs can't keep the assembler from terminating.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from loguru import logger
from shapely.geometry import (
    LineString, MultiLineString, MultiPolygon, Point, Polygon, mapping
)
from shapely.geometry.base import BaseGeometry, BaseMultipartGeometry
from shapely.ops import linemerge

from ..config import get_config, AssemblyConfig
from ..errors import ResolutionError
from ..models import GeoJSONFeature, GeoJSONFeatureCollection
from .models import ElementType, OSMNode, OSMRelation, OSMWay, Primitive
from .store import PrimitiveStore

# A way resolved to (lon, lat) pairs
Coords = List[Tuple[float, float]]


@dataclass
class GeomTags:
    """An assembled geometry and the full tag map of its primitive"""
    geom: BaseGeometry
    tags: Dict[str, str]
    kind: ElementType
    id: int

    def to_feature(self) -> GeoJSONFeature:
        return GeoJSONFeature(
            id=f"{self.kind.value}/{self.id}",
            geometry=mapping(self.geom),
            properties=dict(self.tags)
        )


@dataclass(frozen=True)
class SkippedPrimitive:
    """A matching primitive that could not be resolved"""
    kind: ElementType
    id: int
    reason: str


@dataclass
class AssemblyResult:
    """Features in scan order plus the primitives that were skipped"""
    features: List[GeomTags] = field(default_factory=list)
    skipped: List[SkippedPrimitive] = field(default_factory=list)

    def extend(self, other: "AssemblyResult") -> None:
        self.features.extend(other.features)
        self.skipped.extend(other.skipped)


class GeometryAssembler:
    """Builds geometries for every primitive carrying key=value"""

    def __init__(
        self,
        store: PrimitiveStore,
        key: str,
        value: str,
        config: Optional[AssemblyConfig] = None
    ):
        self.store = store
        self.key = key
        self.value = value
        self.config = config or get_config().assembly

    def matches(self) -> List[Primitive]:
        """Primitives whose tags contain key=value, in scan order"""
        return [p for p in self.store if p.tags.get(self.key) == self.value]

    def assemble(self) -> AssemblyResult:
        """
        Resolve every matching primitive

        Failures are local to one primitive: it is recorded in
        AssemblyResult.skipped and the pass continues.

        Returns:
            AssemblyResult with features and skipped primitives in scan order
        """
        matched = self.matches()
        workers = self.config.workers
        if workers <= 1 or len(matched) <= self.config.chunk_size:
            result = self._resolve_all(matched)
        else:
            size = self.config.chunk_size
            chunks = [matched[i:i + size] for i in range(0, len(matched), size)]
            result = AssemblyResult()
            with ThreadPoolExecutor(max_workers=workers) as executor:
                # map() yields in submission order, so output order is scan order
                for partial in executor.map(self._resolve_all, chunks):
                    result.extend(partial)

        logger.info(f"Assembled {len(result.features)} geometries for {self.key}={self.value}")
        if result.skipped:
            logger.warning(f"Skipped {len(result.skipped)} unresolvable primitives "
                           f"for {self.key}={self.value}")
        return result

    def _resolve_all(self, primitives: Sequence[Primitive]) -> AssemblyResult:
        result = AssemblyResult()
        for primitive in primitives:
            try:
                geom = self.resolve(primitive)
            except ResolutionError as e:
                logger.debug(f"Skipping {e}")
                result.skipped.append(SkippedPrimitive(primitive.kind, primitive.id, e.reason))
                continue
            result.features.append(GeomTags(
                geom=geom,
                tags=dict(primitive.tags),
                kind=primitive.kind,
                id=primitive.id
            ))
        return result

    def resolve(self, primitive: Primitive) -> BaseGeometry:
        """Resolve one primitive; raises ResolutionError when it can't be done"""
        if isinstance(primitive, OSMNode):
            return Point(primitive.lon, primitive.lat)
        if isinstance(primitive, OSMWay):
            return self._resolve_way(primitive)
        if isinstance(primitive, OSMRelation):
            return self._resolve_relation(primitive)
        raise TypeError(f"Not an OSM primitive: {primitive!r}")

    # ------------------------------------------------------------------
    # Ways
    # ------------------------------------------------------------------

    def _way_points(self, way: OSMWay) -> Coords:
        points = []
        for ref in way.refs:
            node = self.store.node(ref)
            if node is None:
                raise ResolutionError("way", way.id, f"dangling node reference {ref}")
            points.append((node.lon, node.lat))
        if len(points) < 2:
            raise ResolutionError("way", way.id, f"only {len(points)} resolvable nodes")
        return points

    def _resolve_way(self, way: OSMWay) -> BaseGeometry:
        coords = self._way_points(way)
        if way.is_closed:
            if len(coords) < 4:
                raise ResolutionError("way", way.id, f"closed way with {len(coords)} nodes is not a ring")
            return Polygon(coords)
        return LineString(coords)

    # ------------------------------------------------------------------
    # Relations
    # ------------------------------------------------------------------

    def _is_area(self, relation: OSMRelation) -> bool:
        if relation.tags.get("type") in self.config.area_relation_types:
            return True
        ring_roles = (self.config.outer_role, self.config.inner_role)
        return any(
            m.kind == ElementType.WAY and m.role in ring_roles
            for m in relation.members
        )

    def _member_ways(self, relation: OSMRelation) -> List[Tuple[str, Coords]]:
        """Resolvable way members as (role, points), in member order"""
        resolved = []
        for member in relation.members:
            if member.kind != ElementType.WAY:
                # Relation members are never followed; node members carry no shape
                continue
            way = self.store.way(member.ref)
            if way is None:
                logger.debug(f"relation {relation.id}: member way {member.ref} not in store")
                continue
            try:
                resolved.append((member.role, self._way_points(way)))
            except ResolutionError as e:
                logger.debug(f"relation {relation.id}: dropping member {e}")
        return resolved

    def _resolve_relation(self, relation: OSMRelation) -> BaseGeometry:
        members = self._member_ways(relation)
        if not members:
            raise ResolutionError("relation", relation.id, "no resolvable way members")
        if self._is_area(relation):
            return self._build_area(relation, members)
        lines = [LineString(points) for _, points in members]
        return MultiLineString(lines)

    def _build_area(self, relation: OSMRelation, members: List[Tuple[str, Coords]]) -> BaseGeometry:
        outer_segments = []
        inner_segments = []
        for role, points in members:
            if role in (self.config.outer_role, ""):
                outer_segments.append(points)
            elif role == self.config.inner_role:
                inner_segments.append(points)
            else:
                logger.debug(f"relation {relation.id}: ignoring way member with role {role!r}")

        outers = join_rings(outer_segments)
        if not outers:
            raise ResolutionError("relation", relation.id, "no closed outer ring")
        inners = join_rings(inner_segments)

        shells = [Polygon(ring) for ring in outers]
        holes: List[List[List[Tuple[float, float]]]] = [[] for _ in shells]
        for ring in inners:
            index = containing_shell(shells, Polygon(ring))
            if index is None:
                logger.debug(f"relation {relation.id}: inner ring outside every outer ring")
                continue
            holes[index].append(ring)

        polygons = [Polygon(ring, holes[i]) for i, ring in enumerate(outers)]
        if len(polygons) == 1:
            return polygons[0]
        return MultiPolygon(polygons)


def join_rings(segments: List[Coords]) -> List[Coords]:
    """
    Join way segments end to end into closed rings

    Segments sharing end points are merged by shapely, reversing them where
    needed. Chains that can't be closed, and rings too short to bound an
    area, are dropped.

    Returns:
        Rings as coordinate lists whose first and last coordinates are equal
    """
    if not segments:
        return []
    merged = linemerge([LineString(segment) for segment in segments])

    rings = []
    for line in _flatten(merged):
        if line.is_empty:
            continue
        coords = list(line.coords)
        if not line.is_closed:
            logger.debug(f"Dropping unclosed ring chain {coords[0]}..{coords[-1]}")
        elif len(coords) < 4:
            logger.debug(f"Dropping degenerate ring with {len(coords)} points")
        else:
            rings.append(coords)
    return rings


def _flatten(geom: BaseGeometry) -> Iterable[BaseGeometry]:
    if isinstance(geom, BaseMultipartGeometry):
        return (part for contained in geom.geoms for part in _flatten(contained))
    return (geom,)


def containing_shell(shells: List[Polygon], inner: Polygon) -> Optional[int]:
    """Index of the smallest shell containing the inner ring, or None"""
    best: Optional[int] = None
    for i, shell in enumerate(shells):
        if shell.contains(inner) and (best is None or shell.area < shells[best].area):
            best = i
    return best


def feature_collection(features: List[GeomTags]) -> Dict[str, Any]:
    """GeoJSON FeatureCollection dict for a list of GeomTags"""
    collection = GeoJSONFeatureCollection(features=[f.to_feature() for f in features])
    return collection.model_dump()
