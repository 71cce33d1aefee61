"""
Datum definitions and datum shifts

Geodetic <-> geocentric conversion and 3/7-parameter Helmert shifts to and
from WGS84, following the classic PROJ.4 pj_datum_transform sequence.
Grid shifts are delegated to pyproj's hgridshift operation.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple

from pyproj import Transformer
from pyproj.enums import TransformDirection
from pyproj.exceptions import ProjError

from ..errors import DatumTransformError

SRS_WGS84_SEMIMAJOR = 6378137.0
SRS_WGS84_SEMIMINOR = 6356752.314245179
SRS_WGS84_ESQUARED = 0.0066943799901413165

HALF_PI = math.pi / 2
SEC_TO_RAD = 4.84813681109535993589914102357e-6

# Geocentric -> geodetic iteration
GENAU = 1.0e-12
GENAU2 = GENAU * GENAU
MAXITER = 30


class DatumType(Enum):
    WGS84 = "wgs84"
    PARAM3 = "3param"
    PARAM7 = "7param"
    GRIDSHIFT = "gridshift"
    NODATUM = "nodatum"


@dataclass(frozen=True)
class Datum:
    """
    Datum of a CRS descriptor

    params holds (dx, dy, dz) for PARAM3 and (dx, dy, dz, rx, ry, rz, m) for
    PARAM7 with rotations in radians and m = 1 + ppm / 1e6.
    """
    code: str
    datum_type: DatumType
    a: float
    b: float
    es: float
    params: Tuple[float, ...] = ()
    grids: Optional[str] = None
    grid_shift: Optional[Any] = field(default=None, compare=False, repr=False)

    @property
    def has_params(self) -> bool:
        return self.datum_type in (DatumType.PARAM3, DatumType.PARAM7)


def helmert_params(towgs84) -> Tuple[DatumType, Tuple[float, ...]]:
    """
    Classify +towgs84 values and convert them to internal units

    Returns:
        (datum type, params); all-zero values mean WGS84
    """
    values = [float(v) for v in towgs84]
    if len(values) not in (3, 7):
        raise ValueError(f"towgs84 needs 3 or 7 values, got {len(values)}")
    if len(values) == 7 and not any(values[3:]):
        values = values[:3]
    if not any(values):
        return DatumType.WGS84, ()
    if len(values) == 3:
        return DatumType.PARAM3, tuple(values)
    dx, dy, dz, rx, ry, rz, ppm = values
    return DatumType.PARAM7, (
        dx, dy, dz,
        rx * SEC_TO_RAD, ry * SEC_TO_RAD, rz * SEC_TO_RAD,
        ppm / 1000000.0 + 1,
    )


def grid_shift_transformer(grids: str) -> Transformer:
    """Build a degree-in/degree-out horizontal grid shift for a +nadgrids list"""
    pipeline = (
        "+proj=pipeline "
        "+step +proj=unitconvert +xy_in=deg +xy_out=rad "
        f"+step +proj=hgridshift +grids={grids} "
        "+step +proj=unitconvert +xy_in=rad +xy_out=deg"
    )
    return Transformer.from_pipeline(pipeline)


def compare_datums(source: Datum, dest: Datum) -> bool:
    """True when no shift is needed between the two datums"""
    if source.datum_type != dest.datum_type:
        return False
    if source.a != dest.a or abs(source.es - dest.es) > 0.000000000050:
        # the tolerance for es is to ensure that GRS80 and WGS84 are considered identical
        return False
    if source.datum_type == DatumType.PARAM3:
        return source.params[:3] == dest.params[:3]
    if source.datum_type == DatumType.PARAM7:
        return source.params == dest.params
    if source.datum_type == DatumType.GRIDSHIFT:
        return source.grids == dest.grids
    return True


def geodetic_to_geocentric(lam: float, phi: float, h: float, a: float, es: float) -> Tuple[float, float, float]:
    """Convert geodetic (radians, metres) to geocentric X, Y, Z"""
    if -HALF_PI * 1.001 < phi < -HALF_PI:
        phi = -HALF_PI
    elif HALF_PI < phi < HALF_PI * 1.001:
        phi = HALF_PI
    elif phi < -HALF_PI or phi > HALF_PI or math.isnan(phi):
        raise DatumTransformError(f"latitude {phi} rad out of range for geocentric conversion")

    if lam > math.pi:
        lam -= 2 * math.pi

    sin_lat = math.sin(phi)
    cos_lat = math.cos(phi)
    rn = a / math.sqrt(1.0 - es * sin_lat * sin_lat)
    x = (rn + h) * cos_lat * math.cos(lam)
    y = (rn + h) * cos_lat * math.sin(lam)
    z = ((rn * (1 - es)) + h) * sin_lat
    return x, y, z


def geocentric_to_geodetic(x: float, y: float, z: float, a: float, es: float, b: float) -> Tuple[float, float, float]:
    """Iterative geocentric -> geodetic conversion (radians, metres)"""
    p = math.sqrt(x * x + y * y)
    rr = math.sqrt(x * x + y * y + z * z)

    if p / a < GENAU:
        # at the pole or the centre of the earth
        lam = 0.0
        if rr / a < GENAU:
            return lam, HALF_PI, -b
    else:
        lam = math.atan2(y, x)

    ct = z / rr
    st = p / rr
    rx = 1.0 / math.sqrt(1.0 - es * (2.0 - es) * st * st)
    cphi0 = st * (1.0 - es) * rx
    sphi0 = ct * rx

    iteration = 0
    while True:
        iteration += 1
        rn = a / math.sqrt(1.0 - es * sphi0 * sphi0)
        height = p * cphi0 + z * sphi0 - rn * (1.0 - es * sphi0 * sphi0)
        rk = es * rn / (rn + height)
        rx = 1.0 / math.sqrt(1.0 - rk * (2.0 - rk) * st * st)
        cphi = st * (1.0 - rk) * rx
        sphi = ct * rx
        sdphi = sphi * cphi0 - cphi * sphi0
        cphi0 = cphi
        sphi0 = sphi
        if sdphi * sdphi <= GENAU2 or iteration >= MAXITER:
            break

    phi = math.atan(sphi / abs(cphi))
    return lam, phi, height


def geocentric_to_wgs84(x: float, y: float, z: float, datum: Datum) -> Tuple[float, float, float]:
    if datum.datum_type == DatumType.PARAM3:
        dx, dy, dz = datum.params[:3]
        return x + dx, y + dy, z + dz
    dx, dy, dz, rx, ry, rz, m = datum.params
    return (
        m * (x - rz * y + ry * z) + dx,
        m * (rz * x + y - rx * z) + dy,
        m * (-ry * x + rx * y + z) + dz,
    )


def geocentric_from_wgs84(x: float, y: float, z: float, datum: Datum) -> Tuple[float, float, float]:
    if datum.datum_type == DatumType.PARAM3:
        dx, dy, dz = datum.params[:3]
        return x - dx, y - dy, z - dz
    dx, dy, dz, rx, ry, rz, m = datum.params
    xt = (x - dx) / m
    yt = (y - dy) / m
    zt = (z - dz) / m
    return (
        xt + rz * yt - ry * zt,
        -rz * xt + yt + rx * zt,
        ry * xt - rx * yt + zt,
    )


def apply_grid_shift(datum: Datum, inverse: bool, lam: float, phi: float) -> Tuple[float, float]:
    """Shift radians through the datum's grid (to WGS84, or back when inverse)"""
    if datum.grid_shift is None:
        raise DatumTransformError(f"datum {datum.code or datum.grids} has no grid shift operation")
    direction = TransformDirection.INVERSE if inverse else TransformDirection.FORWARD
    try:
        lon, lat = datum.grid_shift.transform(
            math.degrees(lam), math.degrees(phi), direction=direction, errcheck=True
        )
    except ProjError as e:
        raise DatumTransformError(f"grid shift {datum.grids} failed: {e}", cause=e) from e
    if not (math.isfinite(lon) and math.isfinite(lat)):
        raise DatumTransformError(f"grid shift {datum.grids} returned no value")
    return math.radians(lon), math.radians(lat)


def datum_transform(
    source: Datum,
    dest: Datum,
    lam: float,
    phi: float,
    h: float = 0.0
) -> Tuple[float, float, float]:
    """
    Shift a geodetic point from the source datum to the destination datum

    Args:
        source: Datum of the input coordinates
        dest: Datum of the output coordinates
        lam, phi: Longitude and latitude in radians
        h: Ellipsoidal height in metres (0 for 2D points)

    Returns:
        (lam, phi, h) referenced to the destination datum

    Raises:
        DatumTransformError: If any step yields no real-valued result
    """
    if compare_datums(source, dest):
        return lam, phi, h
    if source.datum_type == DatumType.NODATUM or dest.datum_type == DatumType.NODATUM:
        return lam, phi, h

    src_a, src_es = source.a, source.es
    if source.datum_type == DatumType.GRIDSHIFT:
        lam, phi = apply_grid_shift(source, False, lam, phi)
        src_a, src_es = SRS_WGS84_SEMIMAJOR, SRS_WGS84_ESQUARED

    dst_a, dst_b, dst_es = dest.a, dest.b, dest.es
    if dest.datum_type == DatumType.GRIDSHIFT:
        dst_a, dst_b, dst_es = SRS_WGS84_SEMIMAJOR, SRS_WGS84_SEMIMINOR, SRS_WGS84_ESQUARED

    if src_es != dst_es or src_a != dst_a or source.has_params or dest.has_params:
        x, y, z = geodetic_to_geocentric(lam, phi, h, src_a, src_es)
        if source.has_params:
            x, y, z = geocentric_to_wgs84(x, y, z, source)
        if dest.has_params:
            x, y, z = geocentric_from_wgs84(x, y, z, dest)
        lam, phi, h = geocentric_to_geodetic(x, y, z, dst_a, dst_es, dst_b)

    if dest.datum_type == DatumType.GRIDSHIFT:
        lam, phi = apply_grid_shift(dest, True, lam, phi)

    if not all(math.isfinite(v) for v in (lam, phi, h)):
        raise DatumTransformError("datum shift produced a non-finite coordinate")
    return lam, phi, h
