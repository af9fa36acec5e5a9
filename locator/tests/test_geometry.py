import math

import pytest
from locator.geometry import (
    EARTH_RADIUS_KM,
    azimuthal_gap,
    planar_azimuth,
    planar_distance,
    reference_point,
    to_geographic,
    to_local_xy,
)


def test_reference_point_is_mean_coordinate():
    lat, lon = reference_point([(45.0, 10.0), (46.0, 11.0), (47.0, 15.0)])
    assert lat == pytest.approx(46.0)
    assert lon == pytest.approx(12.0)


def test_reference_point_requires_coordinates():
    with pytest.raises(ValueError):
        reference_point([])


def test_to_local_xy_reference_is_origin():
    assert to_local_xy(45.0, 10.0, 45.0, 10.0) == pytest.approx((0.0, 0.0))


def test_to_local_xy_one_degree_north():
    x, y = to_local_xy(1.0, 0.0, 0.0, 0.0)
    assert x == pytest.approx(0.0)
    assert y == pytest.approx(EARTH_RADIUS_KM * math.pi / 180.0)
    assert 111.0 < y < 111.4


def test_to_local_xy_longitude_shrinks_with_latitude():
    x_equator, _ = to_local_xy(0.0, 1.0, 0.0, 0.0)
    x_sixty, _ = to_local_xy(60.0, 1.0, 60.0, 0.0)
    assert x_sixty == pytest.approx(0.5 * x_equator)


def test_to_geographic_inverts_to_local_xy():
    ref = (47.5, 19.05)
    x, y = to_local_xy(47.62, 18.91, *ref)
    lat, lon = to_geographic(x, y, *ref)
    assert lat == pytest.approx(47.62, abs=1e-9)
    assert lon == pytest.approx(18.91, abs=1e-9)


def test_planar_distance():
    assert planar_distance(0.0, 0.0, 3.0, 4.0) == pytest.approx(5.0)
    assert planar_distance(1.0, 1.0, 1.0, 1.0) == 0.0


def test_planar_azimuth():
    # North
    assert planar_azimuth(0.0, 0.0, 0.0, 1.0) == pytest.approx(0.0)
    # East
    assert planar_azimuth(0.0, 0.0, 1.0, 0.0) == pytest.approx(90.0)
    # South
    assert planar_azimuth(0.0, 0.0, 0.0, -1.0) == pytest.approx(180.0)
    # West
    assert planar_azimuth(0.0, 0.0, -1.0, 0.0) == pytest.approx(270.0)


def test_azimuthal_gap_single_station():
    gap = azimuthal_gap([45.0])
    assert gap == 360.0


def test_azimuthal_gap_two_stations():
    gap = azimuthal_gap([0.0, 180.0])
    assert gap == 180.0


def test_azimuthal_gap_evenly_distributed():
    gap = azimuthal_gap([0.0, 120.0, 240.0])
    assert gap == 120.0


def test_azimuthal_gap_clustered():
    gap = azimuthal_gap([10.0, 20.0, 30.0])
    assert gap == pytest.approx(340.0, abs=1.0)
