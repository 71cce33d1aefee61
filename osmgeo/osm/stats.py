"""
Tag statistics

Counts, for every (key, value) tag pair, how often it occurs on nodes,
closed ways, open ways and relations.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from itertools import islice
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from loguru import logger

from ..config import get_config, StatsConfig
from ..models import TagCountRow
from .models import OSMNode, OSMRelation, OSMWay, Primitive
from .store import PrimitiveStore

TABLE_HEADER = ["Key", "Value", "Total", "Node", "Closed way", "Open way", "Relation"]


class DominantType(Enum):
    """Bucket a tag occurs in most. Declaration order is the tie-break precedence."""
    NODE = "Node"
    CLOSED_WAY = "ClosedWay"
    OPEN_WAY = "OpenWay"
    RELATION = "Relation"


@dataclass
class TagCount:
    """Occurrences of one (key, value) pair per primitive kind"""
    key: str
    value: str
    node: int = 0
    closed_way: int = 0
    open_way: int = 0
    relation: int = 0

    @property
    def total(self) -> int:
        return self.node + self.closed_way + self.open_way + self.relation

    def add(self, other: "TagCount") -> None:
        self.node += other.node
        self.closed_way += other.closed_way
        self.open_way += other.open_way
        self.relation += other.relation

    def dominant_type(self) -> DominantType:
        """Return the bucket with the largest count, ties going to the earlier bucket"""
        buckets = [
            (DominantType.NODE, self.node),
            (DominantType.CLOSED_WAY, self.closed_way),
            (DominantType.OPEN_WAY, self.open_way),
            (DominantType.RELATION, self.relation),
        ]
        best, best_count = buckets[0]
        for bucket, count in buckets[1:]:
            if count > best_count:
                best, best_count = bucket, count
        return best

    def to_model(self) -> TagCountRow:
        return TagCountRow(
            key=self.key,
            value=self.value,
            total=self.total,
            node=self.node,
            closed_way=self.closed_way,
            open_way=self.open_way,
            relation=self.relation,
            dominant_type=self.dominant_type().value
        )

    def row(self) -> List[str]:
        return [
            self.key,
            self.value,
            str(self.total),
            str(self.node),
            str(self.closed_way),
            str(self.open_way),
            str(self.relation),
        ]


def _presentation_key(count: TagCount) -> Tuple[int, str, str]:
    return (-count.total, count.key, count.value)


class TagCounts:
    """
    A collection of TagCount entries

    Iteration, indexing and len() follow presentation order: descending
    total, ties broken by key then value.
    """

    def __init__(self, counts: Iterable[TagCount], ordered: bool = False):
        entries = list(counts)
        if not ordered:
            entries.sort(key=_presentation_key)
        self._entries = entries
        self._lookup = {(c.key, c.value): c for c in entries}

    @property
    def lookup(self) -> Dict[Tuple[str, str], TagCount]:
        """The full, unordered collection keyed by (key, value)"""
        return dict(self._lookup)

    def get(self, key: str, value: str) -> Optional[TagCount]:
        return self._lookup.get((key, value))

    def __iter__(self) -> Iterator[TagCount]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, index: int) -> TagCount:
        return self._entries[index]

    def filter(self, predicate: Callable[[TagCount], bool]) -> "TagCounts":
        """Return the entries matching predicate, keeping their relative order"""
        return TagCounts((c for c in self._entries if predicate(c)), ordered=True)

    def table(self) -> List[List[str]]:
        """Render as rows of strings, header row first"""
        return [list(TABLE_HEADER)] + [c.row() for c in self._entries]


class TagCounter:
    """Accumulates tag counts over a stream of primitives"""

    def __init__(self):
        self._counts: Dict[Tuple[str, str], TagCount] = {}
        self.primitives = 0

    def _bucket(self, key: str, value: str) -> TagCount:
        count = self._counts.get((key, value))
        if count is None:
            count = TagCount(key=key, value=value)
            self._counts[(key, value)] = count
        return count

    def add(self, primitive: Primitive) -> None:
        self.primitives += 1
        if not primitive.tags:
            return
        if isinstance(primitive, OSMNode):
            field_name = "node"
        elif isinstance(primitive, OSMWay):
            field_name = "closed_way" if primitive.is_closed else "open_way"
        elif isinstance(primitive, OSMRelation):
            field_name = "relation"
        else:
            raise TypeError(f"Not an OSM primitive: {primitive!r}")
        for key, value in primitive.tags.items():
            bucket = self._bucket(key, value)
            setattr(bucket, field_name, getattr(bucket, field_name) + 1)

    def update(self, primitives: Iterable[Primitive]) -> "TagCounter":
        for primitive in primitives:
            self.add(primitive)
        return self

    def merge(self, other: "TagCounter") -> None:
        """Fold another counter's partial results into this one"""
        self.primitives += other.primitives
        for (key, value), count in other._counts.items():
            self._bucket(key, value).add(count)

    def result(self) -> TagCounts:
        return TagCounts(TagCount(**vars(c)) for c in self._counts.values())


def count_tags(stream: Iterable[Primitive]) -> TagCounts:
    """
    Count tag occurrences in one streaming pass

    Args:
        stream: Iterable of primitives (decode errors propagate unchanged)

    Returns:
        TagCounts in presentation order
    """
    counter = TagCounter().update(stream)
    counts = counter.result()
    logger.info(f"Counted {len(counts)} distinct tags over {counter.primitives} primitives")
    return counts


def _chunks(primitives: Iterable[Primitive], size: int) -> Iterator[List[Primitive]]:
    iterator = iter(primitives)
    while True:
        chunk = list(islice(iterator, size))
        if not chunk:
            return
        yield chunk


def count_store(store: PrimitiveStore, config: Optional[StatsConfig] = None) -> TagCounts:
    """
    Count tag occurrences over a completed store, optionally in parallel

    Each worker counts one chunk of the scan; partial counters are merged in
    chunk order so the result doesn't depend on scheduling.
    """
    config = config or get_config().stats
    if config.workers <= 1:
        return count_tags(store)

    total = TagCounter()
    with ThreadPoolExecutor(max_workers=config.workers) as executor:
        partials = executor.map(
            lambda chunk: TagCounter().update(chunk),
            _chunks(store, config.chunk_size)
        )
        for partial in partials:
            total.merge(partial)

    counts = total.result()
    logger.info(f"Counted {len(counts)} distinct tags over {total.primitives} primitives "
                f"with {config.workers} workers")
    return counts
