"""
Pipeline orchestration

Entry points that tie the stream readers, the primitive store, the
geometry assembler and the tag statistics engine together:

  count_tags(source, config)      -> TagCounts
  extract_tag(source, key, value) -> TagExtract handle (.geom(), .skipped)
  TagPipeline().run(...)          -> both from a single decode pass
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Union

from loguru import logger

from .config import get_config, AssemblyConfig, PipelineConfig, StatsConfig
from .osm import stats
from .osm.assembler import AssemblyResult, GeometryAssembler, GeomTags, SkippedPrimitive
from .osm.models import Primitive
from .osm.reader import open_stream
from .osm.stats import TagCounts, count_store
from .osm.store import PrimitiveStore

Source = Union[str, Iterable[Primitive]]


class TagExtract:
    """
    Handle on the primitives carrying one tag

    Geometry assembly runs on the first call to geom() (or skipped) and the
    result is kept, so repeated calls return the same objects.
    """

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
        self.assembler = GeometryAssembler(store, key, value, config)
        self._result: Optional[AssemblyResult] = None

    def result(self) -> AssemblyResult:
        if self._result is None:
            self._result = self.assembler.assemble()
        return self._result

    def geom(self) -> List[GeomTags]:
        """Assembled geometries with their tags, in scan order"""
        return self.result().features

    @property
    def skipped(self) -> List[SkippedPrimitive]:
        """Matching primitives that could not be resolved"""
        return self.result().skipped


def count_tags(source: Source, config: Optional[StatsConfig] = None) -> TagCounts:
    """
    Count every tag of a file path or primitive stream

    With one worker the source is counted as it streams; otherwise it is
    indexed first and the store is counted in parallel chunks.
    """
    config = config or get_config().stats
    if config.workers <= 1:
        return stats.count_tags(open_stream(source))
    logger.debug(f"Counting with {config.workers} workers")
    return count_store(PrimitiveStore.build(open_stream(source)), config)


def extract_tag(
    source: Source,
    key: str,
    value: str,
    config: Optional[AssemblyConfig] = None
) -> TagExtract:
    """
    Index a file path or primitive stream and return a handle for key=value

    Raises:
        DecodeError: If the source can't be read
    """
    store = PrimitiveStore.build(open_stream(source))
    return TagExtract(store, key, value, config)


@dataclass
class PipelineResult:
    """Tag statistics and extracted geometries from one pass"""
    counts: TagCounts
    features: List[GeomTags] = field(default_factory=list)
    skipped: List[SkippedPrimitive] = field(default_factory=list)


class TagPipeline:
    """
    Decode once, then count and extract in parallel

    Usage:
        pipeline = TagPipeline()
        result = pipeline.run("honolulu.osm.pbf", "natural", "tree")
    """

    def __init__(self, config: Optional[PipelineConfig] = None):
        self.config = config or get_config()

    def run(self, source: Source, key: str, value: str) -> PipelineResult:
        """
        Run tag statistics and extraction of key=value over one source

        Args:
            source: File path or iterable of primitives
            key: Tag key to extract
            value: Tag value to extract

        Returns:
            PipelineResult
        """
        logger.info(f"Starting tag pipeline for {key}={value}")
        store = PrimitiveStore.build(open_stream(source))

        assembler = GeometryAssembler(store, key, value, self.config.assembly)
        with ThreadPoolExecutor(max_workers=2) as executor:
            counts_future = executor.submit(count_store, store, self.config.stats)
            assembly_future = executor.submit(assembler.assemble)
            counts = counts_future.result()
            assembly = assembly_future.result()

        logger.info(f"Pipeline finished: {len(counts)} distinct tags, "
                    f"{len(assembly.features)} geometries, {len(assembly.skipped)} skipped")
        return PipelineResult(counts=counts, features=assembly.features, skipped=assembly.skipped)
