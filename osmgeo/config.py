"""
Configuration settings for osmgeo
"""

from dataclasses import dataclass, field
from typing import List, Optional
import os

from dotenv import load_dotenv

from .errors import ConfigError


@dataclass
class AssemblyConfig:
    """Geometry assembly settings"""
    # Parallel resolution of matched primitives (1 = sequential)
    workers: int = 1
    chunk_size: int = 5000

    # Relations with one of these "type" tags are assembled as areas
    area_relation_types: List[str] = field(default_factory=lambda: [
        "multipolygon",
        "boundary",
    ])
    outer_role: str = "outer"
    inner_role: str = "inner"


@dataclass
class StatsConfig:
    """Tag statistics settings"""
    workers: int = 1
    chunk_size: int = 50000


@dataclass
class TransformConfig:
    """Coordinate transform settings"""
    # Pivot used when a datum shift has no direct path to the other datum
    pivot_crs: str = "+proj=longlat +datum=WGS84 +no_defs"
    pivot_datum_code: str = "WGS84"

    # Datum codes that need no shift relative to WGS84
    zero_shift_datums: List[str] = field(default_factory=lambda: [
        "WGS84",
        "NAD83",
    ])


@dataclass
class PipelineConfig:
    """Pipeline configuration"""
    assembly: AssemblyConfig = field(default_factory=AssemblyConfig)
    stats: StatsConfig = field(default_factory=StatsConfig)
    transform: TransformConfig = field(default_factory=TransformConfig)

    log_level: str = "INFO"


# Global config instance
config = PipelineConfig()


def get_config() -> PipelineConfig:
    """Get global configuration"""
    return config


def load_config(env_file: Optional[str] = None) -> PipelineConfig:
    """
    Build a configuration from the defaults plus OSMGEO_* environment variables

    Values from a .env file never override variables already set in the
    environment.

    Args:
        env_file: Optional path to a .env file (defaults to dotenv's search)

    Returns:
        New, validated PipelineConfig
    """
    if env_file:
        load_dotenv(env_file, override=False)
    else:
        load_dotenv(override=False)

    cfg = PipelineConfig()
    workers = os.getenv("OSMGEO_WORKERS")
    if workers:
        try:
            cfg.assembly.workers = int(workers)
            cfg.stats.workers = int(workers)
        except ValueError as e:
            raise ConfigError(f"OSMGEO_WORKERS must be an integer, got {workers!r}") from e
    cfg.log_level = os.getenv("OSMGEO_LOG_LEVEL", cfg.log_level).upper()
    cfg.transform.pivot_crs = os.getenv("OSMGEO_PIVOT_CRS", cfg.transform.pivot_crs)

    validate_config(cfg)
    return cfg


def validate_config(config: PipelineConfig) -> None:
    """
    Validate that all required configuration values are set.
    Raises ConfigError if any required value is missing or invalid.
    """
    errors = []

    for name, section in (("assembly", config.assembly), ("stats", config.stats)):
        if section.workers is None or section.workers < 1:
            errors.append(f"{name}.workers must be at least 1, got {section.workers}")
        if section.chunk_size is None or section.chunk_size < 1:
            errors.append(f"{name}.chunk_size must be at least 1, got {section.chunk_size}")

    if not config.assembly.outer_role:
        errors.append("assembly.outer_role is required but not set")
    if not config.assembly.inner_role:
        errors.append("assembly.inner_role is required but not set")
    elif config.assembly.inner_role == config.assembly.outer_role:
        errors.append("assembly.inner_role and assembly.outer_role must differ")

    if not config.transform.pivot_crs:
        errors.append("transform.pivot_crs is required but not set")
    if not config.transform.pivot_datum_code:
        errors.append("transform.pivot_datum_code is required but not set")

    if config.log_level not in ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"):
        errors.append(f"log_level is not a loguru level: {config.log_level}")

    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ConfigError(error_msg)
