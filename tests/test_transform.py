"""
Tests for the coordinate transform pipeline

pyproj's own Transformer is the reference for real CRS pairs; small
hand-built descriptors cover axis order, prime meridians and failures.
"""

import math
import warnings
from concurrent.futures import ThreadPoolExecutor

import pytest
from pyproj import Transformer
from shapely.geometry import LineString, Point, Polygon

from osmgeo.config import TransformConfig
from osmgeo.errors import CRSDefinitionError, ProjectionError, TransformError
from osmgeo.proj.crs import SpatialReference, parse
from osmgeo.proj.datum import (
    Datum, DatumType, SRS_WGS84_ESQUARED, SRS_WGS84_SEMIMAJOR, SRS_WGS84_SEMIMINOR
)
from osmgeo.proj.transform import adjust_axis, build_transform

WGS84 = "+proj=longlat +datum=WGS84 +no_defs"
OSGB36 = (
    "+proj=tmerc +lat_0=49 +lon_0=-2 +k=0.9996012717 +x_0=400000 +y_0=-100000 "
    "+ellps=airy +towgs84=446.448,-125.157,542.06,0.15,0.247,0.842,-20.489 +units=m +no_defs"
)
ED50_UTM31 = "+proj=utm +zone=31 +ellps=intl +towgs84=-87,-98,-121,0,0,0,0 +units=m +no_defs"
TMERC_FEET = "+proj=tmerc +lat_0=0 +lon_0=0 +k=1 +x_0=0 +y_0=0 +ellps=WGS84 +units=ft +no_defs"

POINTS = [
    (-157.8260688, 21.404186),
    (-0.1276, 51.5074),
    (2.3522, 48.8566),
    (0.0, 0.0),
]

WGS84_DATUM = Datum("WGS84", DatumType.WGS84, SRS_WGS84_SEMIMAJOR, SRS_WGS84_SEMIMINOR, SRS_WGS84_ESQUARED)


def reference(source, dest, x, y):
    return Transformer.from_crs(source, dest, always_xy=True).transform(x, y)


@pytest.fixture
def config():
    return TransformConfig()


@pytest.mark.parametrize("lon,lat", POINTS)
def test_wgs84_to_web_mercator(config, lon, lat):
    transform = build_transform("EPSG:4326", "EPSG:3857", config)
    x, y = transform(lon, lat)

    expected = reference(WGS84, "EPSG:3857", lon, lat)
    assert x == pytest.approx(expected[0], abs=1e-6)
    assert y == pytest.approx(expected[1], abs=1e-6)
    assert not transform.uses_pivot


@pytest.mark.parametrize("lon,lat", POINTS)
def test_web_mercator_round_trip(config, lon, lat):
    forward = build_transform("EPSG:4326", "EPSG:3857", config)
    inverse = build_transform("EPSG:3857", "EPSG:4326", config)

    back = inverse(*forward(lon, lat))
    assert back[0] == pytest.approx(lon, abs=1e-9)
    assert back[1] == pytest.approx(lat, abs=1e-9)


def test_identity_converts_each_coordinate_once(config):
    transform = build_transform(WGS84, WGS84, config)
    x, y = transform(-157.8260688, 21.404186)
    assert x == pytest.approx(-157.8260688, abs=1e-12)
    assert y == pytest.approx(21.404186, abs=1e-12)


def test_seven_parameter_shift(config):
    transform = build_transform(WGS84, OSGB36, config)
    assert not transform.uses_pivot

    x, y = transform(-0.1276, 51.5074)
    expected = reference(WGS84, OSGB36, -0.1276, 51.5074)
    assert x == pytest.approx(expected[0], abs=0.01)
    assert y == pytest.approx(expected[1], abs=0.01)


def test_pivot_through_wgs84(config):
    transform = build_transform(OSGB36, ED50_UTM31, config)
    assert transform.uses_pivot

    x, y = transform(530000.0, 180000.0)
    lon, lat = reference(OSGB36, WGS84, 530000.0, 180000.0)
    expected = reference(WGS84, ED50_UTM31, lon, lat)
    assert x == pytest.approx(expected[0], abs=0.01)
    assert y == pytest.approx(expected[1], abs=0.01)


@pytest.mark.parametrize("lon,lat", [(-0.1276, 51.5074), (-3.1883, 55.9533), (-1.2577, 51.752)])
def test_epsg_codes_keep_their_datum_shift(config, lon, lat):
    transform = build_transform("EPSG:4326", "EPSG:27700", config)
    x, y = transform(lon, lat)

    # pyproj may pick a grid based operation; the Helmert fit is good to a few metres
    expected = Transformer.from_crs("EPSG:4326", "EPSG:27700", always_xy=True).transform(lon, lat)
    assert x == pytest.approx(expected[0], abs=5.0)
    assert y == pytest.approx(expected[1], abs=5.0)


@pytest.mark.parametrize("lon,lat", POINTS[1:3])
def test_seven_parameter_round_trip(config, lon, lat):
    forward = build_transform(WGS84, OSGB36, config)
    inverse = build_transform(OSGB36, WGS84, config)

    # the ellipsoidal height is dropped after the first leg, which moves the point by a few mm
    back = inverse(*forward(lon, lat))
    assert back[0] == pytest.approx(lon, abs=1e-6)
    assert back[1] == pytest.approx(lat, abs=1e-6)


def test_pivot_round_trip(config):
    forward = build_transform(OSGB36, ED50_UTM31, config)
    inverse = build_transform(ED50_UTM31, OSGB36, config)
    assert forward.uses_pivot and inverse.uses_pivot

    for x, y in [(530000.0, 180000.0), (325000.0, 674000.0)]:
        back = inverse(*forward(x, y))
        assert back[0] == pytest.approx(x, abs=0.01)
        assert back[1] == pytest.approx(y, abs=0.01)


def test_pivot_round_trip_with_height(config):
    forward = build_transform(OSGB36, ED50_UTM31, config)
    inverse = build_transform(ED50_UTM31, OSGB36, config)

    back = inverse(*forward(530000.0, 180000.0, 45.0))
    assert back == pytest.approx((530000.0, 180000.0, 45.0), abs=1e-3)


def test_unit_scale(config):
    transform = build_transform(WGS84, TMERC_FEET, config)
    x, y = transform(0.5, 0.5)

    expected = reference(WGS84, TMERC_FEET, 0.5, 0.5)
    assert x == pytest.approx(expected[0], abs=1e-4)
    assert y == pytest.approx(expected[1], abs=1e-4)

    back = build_transform(TMERC_FEET, WGS84, config)(x, y)
    assert back == pytest.approx((0.5, 0.5), abs=1e-9)


def test_height_is_carried_when_given(config):
    transform = build_transform("EPSG:4326", "EPSG:3857", config)
    result = transform(-157.8, 21.3, 10.0)
    assert len(result) == 3
    assert result[2] == 10.0


def test_axis_order():
    source = SpatialReference(name="longlat", datum=WGS84_DATUM, datum_code="WGS84", axis="neu")
    dest = SpatialReference(name="longlat", datum=WGS84_DATUM, datum_code="WGS84")
    transform = build_transform(source, dest, TransformConfig())

    x, y = transform(21.3, -157.8)
    assert x == pytest.approx(-157.8, abs=1e-12)
    assert y == pytest.approx(21.3, abs=1e-12)


def test_adjust_axis():
    assert adjust_axis("wsu", False, 1.0, 2.0, 3.0) == (-1.0, -2.0, 3.0)
    assert adjust_axis("neu", False, 21.3, -157.8, 0.0) == (-157.8, 21.3, 0.0)
    assert adjust_axis("neu", True, -157.8, 21.3, 0.0) == (21.3, -157.8, 0.0)
    assert adjust_axis("end", True, 1.0, 2.0, 3.0) == (1.0, 2.0, -3.0)
    with pytest.raises(TransformError):
        adjust_axis("exu", False, 1.0, 2.0, 3.0)


def test_prime_meridian():
    paris = math.radians(2.33722917)
    source = SpatialReference(name="longlat", datum=WGS84_DATUM, datum_code="WGS84", from_greenwich=paris)
    dest = SpatialReference(name="longlat", datum=WGS84_DATUM, datum_code="WGS84")

    x, y = build_transform(source, dest, TransformConfig())(0.0, 48.8566)
    assert x == pytest.approx(2.33722917, abs=1e-9)
    assert y == pytest.approx(48.8566, abs=1e-12)

    same = build_transform(source, source, TransformConfig())(0.0, 48.8566)
    assert same == pytest.approx((0.0, 48.8566), abs=1e-12)


def test_failed_projection_yields_nan():
    def forward(lam, phi):
        return lam, phi

    def inverse(x, y):
        raise ProjectionError("outside the projection domain")

    source = SpatialReference(
        name="fake", datum=WGS84_DATUM, datum_code="WGS84", forward=forward, inverse=inverse
    )
    transform = build_transform(source, WGS84, TransformConfig())

    x, y, error = transform.try_transform(1.0, 2.0)
    assert math.isnan(x) and math.isnan(y)
    assert isinstance(error, ProjectionError)
    assert math.isnan(error.x) and math.isnan(error.y)

    with pytest.raises(TransformError):
        transform(1.0, 2.0)


def test_pole_has_no_mercator_value(config):
    transform = build_transform("EPSG:4326", "EPSG:3857", config)
    x, y, error = transform.try_transform(0.0, 90.0)

    assert math.isnan(x) and math.isnan(y)
    assert isinstance(error, TransformError)


def test_invalid_definition(config):
    with pytest.raises(CRSDefinitionError):
        build_transform("EPSG:4326", "no such crs", config)


def test_transform_many_and_geometry(config):
    transform = build_transform("EPSG:4326", "EPSG:3857", config)
    coords = POINTS[:2]

    points = transform.transform_many(coords)
    line = transform.transform_geometry(LineString(coords))
    for (x, y), (lx, ly) in zip(points, line.coords):
        assert lx == pytest.approx(x)
        assert ly == pytest.approx(y)


def test_transform_is_shareable_between_threads(config):
    transform = build_transform(OSGB36, ED50_UTM31, config)
    coords = [(500000.0 + i * 1000.0, 150000.0 + i * 500.0) for i in range(50)]

    sequential = [transform(x, y) for x, y in coords]
    with ThreadPoolExecutor(max_workers=4) as executor:
        parallel = list(executor.map(lambda c: transform(*c), coords))

    assert parallel == sequential


def test_parsed_descriptor_can_be_reused(config):
    mercator = parse("EPSG:3857", config)
    to_mercator = build_transform(WGS84, mercator, config)
    from_mercator = build_transform(mercator, WGS84, config)

    back = from_mercator(*to_mercator(-157.8, 21.3))
    assert back == pytest.approx((-157.8, 21.3), abs=1e-9)


def test_transform_geometry_without_deprecation_warnings(config):
    transform = build_transform("EPSG:4326", "EPSG:3857", config)
    square = Polygon([(0, 0), (1, 0), (1, 1), (0, 1)], [[(0.2, 0.2), (0.4, 0.2), (0.4, 0.4)]])

    with warnings.catch_warnings():
        warnings.simplefilter("error", DeprecationWarning)
        projected = transform.transform_geometry(square)

    assert projected.geom_type == "Polygon"
    assert len(projected.interiors) == 1
    assert projected.exterior.coords[1] == pytest.approx(transform(1, 0))


def test_transform_geometry_keeps_height(config):
    transform = build_transform("EPSG:4326", "EPSG:3857", config)
    projected = transform.transform_geometry(Point(10.0, 20.0, 5.0))

    assert projected.has_z
    assert projected.coords[0] == pytest.approx(transform(10.0, 20.0, 5.0))
