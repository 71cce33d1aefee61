"""
Primitive store

In-memory, id-indexed nodes, ways and relations built from one pass over
a primitive stream. Read-only once built.
"""

from types import MappingProxyType
from typing import Dict, Iterable, Iterator, Mapping, Optional, Tuple

from loguru import logger

from .models import OSMNode, OSMRelation, OSMWay, Primitive


class PrimitiveStore:
    """Arena of decoded primitives, indexed by id per kind"""

    def __init__(
        self,
        nodes: Dict[int, OSMNode],
        ways: Dict[int, OSMWay],
        relations: Dict[int, OSMRelation]
    ):
        self._nodes = nodes
        self._ways = ways
        self._relations = relations

    @classmethod
    def build(cls, stream: Iterable[Primitive]) -> "PrimitiveStore":
        """
        Index every primitive of a stream

        Insertion order of each index is the stream order, which is the
        order the assembler scans in.

        Args:
            stream: Iterable of OSMNode, OSMWay and OSMRelation objects

        Returns:
            Completed PrimitiveStore
        """
        nodes: Dict[int, OSMNode] = {}
        ways: Dict[int, OSMWay] = {}
        relations: Dict[int, OSMRelation] = {}

        for primitive in stream:
            if isinstance(primitive, OSMNode):
                nodes[primitive.id] = primitive
            elif isinstance(primitive, OSMWay):
                ways[primitive.id] = primitive
            elif isinstance(primitive, OSMRelation):
                relations[primitive.id] = primitive
            else:
                raise TypeError(f"Not an OSM primitive: {primitive!r}")

        logger.info(f"Primitive store built: {len(nodes)} nodes, {len(ways)} ways, "
                    f"{len(relations)} relations")
        return cls(nodes, ways, relations)

    @property
    def nodes(self) -> Mapping[int, OSMNode]:
        return MappingProxyType(self._nodes)

    @property
    def ways(self) -> Mapping[int, OSMWay]:
        return MappingProxyType(self._ways)

    @property
    def relations(self) -> Mapping[int, OSMRelation]:
        return MappingProxyType(self._relations)

    def node(self, node_id: int) -> Optional[OSMNode]:
        return self._nodes.get(node_id)

    def way(self, way_id: int) -> Optional[OSMWay]:
        return self._ways.get(way_id)

    def relation(self, relation_id: int) -> Optional[OSMRelation]:
        return self._relations.get(relation_id)

    def __iter__(self) -> Iterator[Primitive]:
        """Scan order: nodes, then ways, then relations"""
        yield from self._nodes.values()
        yield from self._ways.values()
        yield from self._relations.values()

    def __len__(self) -> int:
        return len(self._nodes) + len(self._ways) + len(self._relations)

    def counts(self) -> Tuple[int, int, int]:
        return len(self._nodes), len(self._ways), len(self._relations)
