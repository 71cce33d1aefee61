"""
Coordinate transform pipeline

build_transform() turns a (source, dest) pair of CRS descriptors into an
immutable, thread-safe Transform. Two variants exist:

- _DirectTransform: axis -> geographic -> prime meridian -> datum shift ->
  prime meridian -> projection -> axis
- _PivotTransform: source -> WGS84 -> dest, used when a 3/7-parameter
  datum shift has no direct path to the other datum
"""

import math
from typing import Iterable, List, Optional, Tuple, Union

import numpy as np
import shapely
from loguru import logger
from shapely.geometry.base import BaseGeometry

from ..config import get_config, TransformConfig
from ..errors import TransformError
from .crs import SpatialReference, parse
from .datum import datum_transform

CRSLike = Union[str, SpatialReference]
Coords = Tuple[float, ...]


def adjust_axis(axis: str, denormalize: bool, x: float, y: float, z: float) -> Tuple[float, float, float]:
    """
    Reorder and flip a coordinate between a CRS axis order and east-north-up

    Args:
        axis: Three letters from "enwsud", e.g. "neu"
        denormalize: False to go from the CRS order to enu, True for the reverse
    """
    if not denormalize:
        values = (x, y, z)
        out = [x, y, z]
        for i, direction in enumerate(axis):
            v = values[i]
            if direction == "e":
                out[0] = v
            elif direction == "w":
                out[0] = -v
            elif direction == "n":
                out[1] = v
            elif direction == "s":
                out[1] = -v
            elif direction == "u":
                out[2] = v
            elif direction == "d":
                out[2] = -v
            else:
                raise TransformError(f"invalid axis direction {direction!r} in {axis!r}")
        return out[0], out[1], out[2]

    enu = {"e": x, "w": -x, "n": y, "s": -y, "u": z, "d": -z}
    try:
        out = [enu[direction] for direction in axis]
    except KeyError as e:
        raise TransformError(f"invalid axis direction {e.args[0]!r} in {axis!r}") from e
    return out[0], out[1], out[2]


def needs_pivot(first: SpatialReference, second: SpatialReference, pivot_code: str) -> bool:
    """True when first's datum shift is parametric and second isn't the pivot datum"""
    return first.datum.has_params and second.datum_code != pivot_code


class _DirectTransform:
    """Single-stage transform between two descriptors"""

    def __init__(self, source: SpatialReference, dest: SpatialReference):
        self.source = source
        self.dest = dest

    def __call__(self, x: float, y: float, z: Optional[float]) -> Tuple[float, float, Optional[float]]:
        source, dest = self.source, self.dest
        h = 0.0 if z is None else z

        if source.axis != "enu":
            x, y, h = adjust_axis(source.axis, False, x, y, h)

        if source.is_geographic:
            lam, phi = math.radians(x), math.radians(y)
        else:
            _, inverse = source.transform_funcs()
            lam, phi = inverse(x * source.to_meter, y * source.to_meter)

        lam += source.from_greenwich
        lam, phi, h = datum_transform(source.datum, dest.datum, lam, phi, h)
        lam -= dest.from_greenwich

        if dest.is_geographic:
            x, y = math.degrees(lam), math.degrees(phi)
        else:
            forward, _ = dest.transform_funcs()
            x, y = forward(lam, phi)
            x /= dest.to_meter
            y /= dest.to_meter

        if dest.axis != "enu":
            x, y, h = adjust_axis(dest.axis, True, x, y, h)

        return x, y, (None if z is None else h)


class _PivotTransform:
    """Two-stage transform through the pivot datum"""

    def __init__(self, to_pivot: _DirectTransform, from_pivot: _DirectTransform):
        self.to_pivot = to_pivot
        self.from_pivot = from_pivot

    def __call__(self, x: float, y: float, z: Optional[float]) -> Tuple[float, float, Optional[float]]:
        x, y, z = self.to_pivot(x, y, z)
        return self.from_pivot(x, y, z)


def _plan(
    source: SpatialReference,
    dest: SpatialReference,
    pivot: SpatialReference,
    config: TransformConfig
) -> Union[_DirectTransform, _PivotTransform]:
    code = config.pivot_datum_code
    if needs_pivot(source, dest, code) or needs_pivot(dest, source, code):
        # The pivot leg itself never needs a pivot: its dest is the pivot datum,
        # and the pivot datum has no parametric shift.
        return _PivotTransform(_DirectTransform(source, pivot), _DirectTransform(pivot, dest))
    return _DirectTransform(source, dest)


class Transform:
    """
    Pure function from source CRS coordinates to destination CRS coordinates

    Safe to share between threads: it holds only immutable descriptors.
    """

    def __init__(self, source: SpatialReference, dest: SpatialReference,
                 stages: Union[_DirectTransform, _PivotTransform]):
        self.source = source
        self.dest = dest
        self._stages = stages

    @property
    def uses_pivot(self) -> bool:
        return isinstance(self._stages, _PivotTransform)

    def __call__(self, x: float, y: float, z: Optional[float] = None) -> Coords:
        """
        Transform one point

        Returns:
            (x, y), or (x, y, z) when z is given

        Raises:
            TransformError: With NaN x/y attributes, if any step fails
        """
        x, y = float(x), float(y)
        if z is not None:
            z = float(z)
        try:
            out_x, out_y, out_z = self._stages(x, y, z)
        except (ValueError, ZeroDivisionError, OverflowError) as e:
            raise TransformError(f"transform of ({x}, {y}) failed: {e}", cause=e) from e
        if not (math.isfinite(out_x) and math.isfinite(out_y)):
            raise TransformError(f"transform of ({x}, {y}) has no real-valued result")
        if z is None:
            return out_x, out_y
        return out_x, out_y, out_z

    def try_transform(self, x: float, y: float) -> Tuple[float, float, Optional[TransformError]]:
        """Transform one point, returning (nan, nan, error) instead of raising"""
        try:
            out_x, out_y = self(x, y)
        except TransformError as e:
            return math.nan, math.nan, e
        return out_x, out_y, None

    def transform_many(self, coords: Iterable[Tuple[float, float]]) -> List[Coords]:
        return [self(*c) for c in coords]

    def _transform_array(self, coords: np.ndarray) -> np.ndarray:
        # shapely hands over an (N, 2) or (N, 3) array of vertices
        out = [self(*row) for row in coords.tolist()]
        return np.array(out, dtype=float).reshape(coords.shape)

    def transform_geometry(self, geom: BaseGeometry) -> BaseGeometry:
        """Transform every vertex of a shapely geometry, keeping z where present"""
        return shapely.transform(geom, self._transform_array, include_z=geom.has_z)


def build_transform(
    source: CRSLike,
    dest: CRSLike,
    config: Optional[TransformConfig] = None
) -> Transform:
    """
    Build the transform from source to dest

    Definitions given as strings are parsed first; the pivot CRS is parsed
    here too so descriptor problems surface before any point is processed.

    Args:
        source: Source descriptor or CRS definition
        dest: Destination descriptor or CRS definition
        config: Transform settings (pivot CRS)

    Returns:
        Transform

    Raises:
        CRSDefinitionError: If a definition can't be interpreted
    """
    config = config or get_config().transform
    if isinstance(source, str):
        source = parse(source, config)
    if isinstance(dest, str):
        dest = parse(dest, config)

    pivot = parse(config.pivot_crs, config)
    stages = _plan(source, dest, pivot, config)
    transform = Transform(source, dest, stages)
    logger.debug(f"Built transform {source.definition or source.name} -> "
                 f"{dest.definition or dest.name} ({'pivot' if transform.uses_pivot else 'direct'})")
    return transform
