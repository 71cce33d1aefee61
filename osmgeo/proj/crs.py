"""
CRS descriptors

A SpatialReference carries what the transform pipeline needs from a CRS:
datum, axis order, unit scale, prime meridian and a forward/inverse
projection pair. Definitions are interpreted by pyproj; the projection
formulas themselves are pyproj.Proj evaluated in radians and metres.
"""

import math
import warnings
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from loguru import logger
from pyproj import CRS, Proj
from pyproj.exceptions import CRSError, ProjError
from pyproj.transformer import TransformerGroup

from ..config import get_config, TransformConfig
from ..errors import CRSDefinitionError, ProjectionError
from .datum import (
    Datum, DatumType, SRS_WGS84_ESQUARED, SRS_WGS84_SEMIMAJOR, SRS_WGS84_SEMIMINOR,
    SEC_TO_RAD, grid_shift_transformer, helmert_params
)

ProjectionFunc = Callable[[float, float], Tuple[float, float]]

GEOGRAPHIC = "longlat"

# proj-string keys that describe things the pipeline handles itself
_NON_PROJECTION_KEYS = {
    "datum", "towgs84", "nadgrids", "pm", "axis", "units", "to_meter",
    "vunits", "vto_meter", "type", "no_defs", "wktext", "geoidgrids",
}
_ELLIPSOID_KEYS = {"ellps", "a", "b", "rf", "f", "es", "e", "R"}


@dataclass(frozen=True)
class SpatialReference:
    """Immutable CRS descriptor"""
    name: str
    datum: Datum
    datum_code: str = ""
    axis: str = "enu"
    to_meter: float = 1.0
    from_greenwich: float = 0.0  # radians
    forward: Optional[ProjectionFunc] = field(default=None, compare=False, repr=False)
    inverse: Optional[ProjectionFunc] = field(default=None, compare=False, repr=False)
    definition: str = ""

    @property
    def is_geographic(self) -> bool:
        return self.name == GEOGRAPHIC

    def transform_funcs(self) -> Tuple[ProjectionFunc, ProjectionFunc]:
        """Return (forward, inverse); raises ProjectionError if there is no projection"""
        if self.forward is None or self.inverse is None:
            raise ProjectionError(f"CRS {self.definition or self.name} has no projection functions")
        return self.forward, self.inverse


def _proj_funcs(proj: Proj, label: str) -> Tuple[ProjectionFunc, ProjectionFunc]:
    """Bind radian-based forward/inverse functions to a pyproj.Proj"""

    def forward(lam: float, phi: float) -> Tuple[float, float]:
        try:
            x, y = proj(lam, phi, radians=True, errcheck=True)
        except ProjError as e:
            raise ProjectionError(f"{label} forward projection failed: {e}", cause=e) from e
        if not (math.isfinite(x) and math.isfinite(y)):
            raise ProjectionError(f"{label} forward projection has no value at ({lam}, {phi})")
        return x, y

    def inverse(x: float, y: float) -> Tuple[float, float]:
        try:
            lam, phi = proj(x, y, inverse=True, radians=True, errcheck=True)
        except ProjError as e:
            raise ProjectionError(f"{label} inverse projection failed: {e}", cause=e) from e
        if not (math.isfinite(lam) and math.isfinite(phi)):
            raise ProjectionError(f"{label} inverse projection has no value at ({x}, {y})")
        return lam, phi

    return forward, inverse


def _as_values(value: Any) -> list:
    """pyproj.CRS.to_dict() returns comma lists as lists or strings"""
    if isinstance(value, (list, tuple)):
        return [float(v) for v in value]
    if isinstance(value, (int, float)):
        return [float(value)]
    return [float(v) for v in str(value).split(",")]


def _base_crs(crs: CRS) -> CRS:
    return crs.source_crs if crs.is_bound else crs


def _build_datum(crs: CRS, params: Dict[str, Any], config: TransformConfig) -> Datum:
    ellipsoid = _base_crs(crs).ellipsoid
    if ellipsoid is None:
        raise CRSDefinitionError(f"CRS {crs.name!r} has no ellipsoid")
    a = ellipsoid.semi_major_metre
    b = ellipsoid.semi_minor_metre
    es = 1.0 - (b * b) / (a * a)
    code = str(params.get("datum", ""))

    nadgrids = params.get("nadgrids")
    if nadgrids is not None:
        grids = ",".join(g for g in str(nadgrids).split(",") if g != "@null")
        if not grids:
            # @null: a no-op grid that pins the datum to WGS84
            return Datum(code, DatumType.WGS84, SRS_WGS84_SEMIMAJOR, SRS_WGS84_SEMIMINOR, SRS_WGS84_ESQUARED)
        try:
            transformer = grid_shift_transformer(grids)
        except ProjError as e:
            raise CRSDefinitionError(f"Grid shift {grids!r} is not available: {e}") from e
        return Datum(code, DatumType.GRIDSHIFT, a, b, es, grids=grids, grid_shift=transformer)

    towgs84 = params.get("towgs84")
    if towgs84 is not None:
        try:
            datum_type, values = helmert_params(_as_values(towgs84))
        except ValueError as e:
            raise CRSDefinitionError(f"Invalid towgs84 {towgs84!r}: {e}") from e
        return Datum(code, datum_type, a, b, es, params=values)

    if code in config.zero_shift_datums:
        return Datum(code, DatumType.WGS84, a, b, es)

    geodetic = _base_crs(crs).geodetic_crs
    datum_name = geodetic.datum.name if geodetic is not None and geodetic.datum is not None else ""
    if not datum_name or datum_name.startswith("Unknown based on"):
        logger.debug(f"CRS {crs.name!r} has no named datum; no datum shift will be applied")
        return Datum(code, DatumType.NODATUM, a, b, es)
    if datum_name.startswith("World Geodetic System 1984"):
        return Datum(code or "WGS84", DatumType.WGS84, a, b, es)

    values = _helmert_from_database(geodetic)
    if values is None:
        logger.warning(f"No Helmert transformation from datum {datum_name!r} to WGS84 is known; "
                       f"coordinates in {crs.name!r} will not be datum shifted")
        return Datum(code, DatumType.NODATUM, a, b, es)
    datum_type, params = helmert_params(values)
    return Datum(code or datum_name, datum_type, a, b, es, params=params)


# Helmert parameter name -> (index in towgs84 order, SI -> towgs84 unit factor)
_HELMERT_PARAMETERS = {
    "X-axis translation": (0, 1.0),
    "Y-axis translation": (1, 1.0),
    "Z-axis translation": (2, 1.0),
    "X-axis rotation": (3, 1.0 / SEC_TO_RAD),
    "Y-axis rotation": (4, 1.0 / SEC_TO_RAD),
    "Z-axis rotation": (5, 1.0 / SEC_TO_RAD),
    "Scale difference": (6, 1000000.0),
}

# SI conversion factors of the units EPSG uses for Helmert parameters
_UNIT_FACTORS = {
    "metre": 1.0,
    "radian": 1.0,
    "arc-second": SEC_TO_RAD,
    "milliarc-second": SEC_TO_RAD / 1000.0,
    "microradian": 1e-6,
    "unity": 1.0,
    "parts per million": 1e-6,
    "parts per billion": 1e-9,
}


def _unit_factor(unit: Any) -> Optional[float]:
    if isinstance(unit, dict):
        factor = unit.get("conversion_factor")
        return float(factor) if factor is not None else _UNIT_FACTORS.get(unit.get("name"))
    if unit is None:
        return 1.0
    return _UNIT_FACTORS.get(str(unit))


def helmert_values(operation: Dict[str, Any]) -> Optional[List[float]]:
    """
    Read towgs84-style values out of a PROJJSON Helmert transformation

    Rotations come back in arc-seconds with the position vector sign
    convention, the scale in ppm. Returns None for anything that isn't a
    3-parameter or 7-parameter Helmert.
    """
    if operation.get("type") == "ConcatenatedOperation":
        # axis swaps and unit changes wrapped around a single datum step
        steps = [s for s in operation.get("steps", []) if s.get("type") == "Transformation"]
        if len(steps) != 1:
            return None
        operation = steps[0]
    if operation.get("type") != "Transformation":
        return None
    method = str(operation.get("method", {}).get("name", ""))
    if "Time-dependent" in method:
        return None
    if method.startswith("Geocentric translations"):
        count, rotation_sign = 3, 1.0
    elif method.startswith("Position Vector"):
        count, rotation_sign = 7, 1.0
    elif method.startswith("Coordinate Frame"):
        count, rotation_sign = 7, -1.0
    else:
        return None

    values = [0.0] * 7
    for parameter in operation.get("parameters", []):
        target = _HELMERT_PARAMETERS.get(parameter.get("name"))
        if target is None:
            continue
        factor = _unit_factor(parameter.get("unit"))
        if factor is None:
            return None
        index, to_towgs84 = target
        values[index] = float(parameter["value"]) * factor * to_towgs84
    values[3:6] = [rotation_sign * v for v in values[3:6]]
    return values[:count]


def _helmert_from_database(geodetic: CRS) -> Optional[List[float]]:
    """towgs84 values of the best Helmert operation from a geodetic CRS to WGS84"""
    try:
        with warnings.catch_warnings():
            # TransformerGroup warns when the best operation needs a missing grid
            warnings.simplefilter("ignore", UserWarning)
            group = TransformerGroup(geodetic, CRS.from_epsg(4326))
    except (CRSError, ProjError) as e:
        logger.debug(f"Operation lookup for {geodetic.name!r} failed: {e}")
        return None

    for transformer in group.transformers:
        values = helmert_values(transformer.to_json_dict())
        if values is not None:
            logger.debug(f"Datum {geodetic.datum.name!r}: using {transformer.description!r}")
            return values
    return None


def _to_meter(crs: CRS, params: Dict[str, Any]) -> float:
    if "to_meter" in params:
        return _as_values(params["to_meter"])[0]
    axis_info = _base_crs(crs).axis_info
    if axis_info and axis_info[0].unit_conversion_factor:
        return float(axis_info[0].unit_conversion_factor)
    return 1.0


def _from_greenwich(crs: CRS) -> float:
    pm = _base_crs(crs).prime_meridian
    if pm is None or not pm.longitude:
        return 0.0
    return pm.longitude * pm.unit_conversion_factor


def parse(definition: str, config: Optional[TransformConfig] = None) -> SpatialReference:
    """
    Build a descriptor from any definition pyproj understands

    "EPSG:3857", PROJ strings ("+proj=tmerc ... +towgs84=..."), WKT and
    authority names are all accepted. Axis order follows the PROJ string
    (+axis, default "enu"), so geographic CRSs are longitude first.
    Named datums without +towgs84 (EPSG:27700, EPSG:4230, ...) take their
    shift from the best Helmert operation to WGS84 in the PROJ database.

    Args:
        definition: CRS definition
        config: Transform settings (zero-shift datum codes)

    Returns:
        SpatialReference

    Raises:
        CRSDefinitionError: If the definition can't be interpreted
    """
    config = config or get_config().transform
    try:
        crs = CRS.from_user_input(definition)
        with warnings.catch_warnings():
            # to_dict() warns about information lost in the PROJ string
            warnings.simplefilter("ignore", UserWarning)
            params = crs.to_dict()
    except CRSError as e:
        raise CRSDefinitionError(f"Unrecognised CRS {definition!r}: {e}") from e
    if not params:
        raise CRSDefinitionError(f"CRS {definition!r} has no PROJ string representation")

    datum = _build_datum(crs, params, config)
    proj_name = str(params.get("proj", ""))
    axis = str(params.get("axis", "enu"))
    if len(axis) != 3:
        raise CRSDefinitionError(f"CRS {definition!r} has invalid axis {axis!r}")

    if proj_name in ("longlat", "latlong", "lonlat", "latlon"):
        sr = SpatialReference(
            name=GEOGRAPHIC,
            datum=datum,
            datum_code=datum.code,
            axis=axis,
            from_greenwich=_from_greenwich(crs),
            definition=str(definition),
        )
    else:
        projection = {k: v for k, v in params.items() if k not in _NON_PROJECTION_KEYS}
        if not _ELLIPSOID_KEYS.intersection(projection):
            # only +datum named the ellipsoid; spell it out so no datum shift sneaks in
            ellipsoid = _base_crs(crs).ellipsoid
            projection.update(a=ellipsoid.semi_major_metre, b=ellipsoid.semi_minor_metre)
        projection["units"] = "m"
        try:
            proj = Proj(projection, preserve_units=False)
        except (CRSError, ProjError) as e:
            raise CRSDefinitionError(f"Projection of {definition!r} is not usable: {e}") from e
        forward, inverse = _proj_funcs(proj, proj_name)
        sr = SpatialReference(
            name=proj_name,
            datum=datum,
            datum_code=datum.code,
            axis=axis,
            to_meter=_to_meter(crs, params),
            from_greenwich=_from_greenwich(crs),
            forward=forward,
            inverse=inverse,
            definition=str(definition),
        )

    logger.debug(f"Parsed CRS {definition!r}: {sr.name}, datum {datum.datum_type.value} "
                 f"({datum.code or 'unnamed'}), axis {sr.axis}, to_meter {sr.to_meter}")
    return sr
