import math

import pytest

from examtrack.geo import EARTH_RADIUS_KM, distance_m, is_within


def test_same_point_is_zero():
    assert distance_m(26.1445, 91.7362, 26.1445, 91.7362) == 0


def test_distance_is_symmetric():
    a = distance_m(26.1445, 91.7362, 26.1800, 91.7500)
    b = distance_m(26.1800, 91.7500, 26.1445, 91.7362)
    assert a == pytest.approx(b)


def test_short_hop_in_meters():
    # 0.0001 deg on both axes near Guwahati
    assert distance_m(26.1445, 91.7362, 26.1446, 91.7363) == pytest.approx(14.94, abs=0.05)


def test_one_degree_of_latitude():
    expected = EARTH_RADIUS_KM * 1000 * math.pi / 180
    assert distance_m(0, 0, 1, 0) == pytest.approx(expected, rel=1e-9)


def test_antipodal_points():
    assert distance_m(0, 0, 0, 180) == pytest.approx(math.pi * EARTH_RADIUS_KM * 1000, rel=1e-9)


def test_out_of_range_latitude_rejected():
    with pytest.raises(ValueError):
        distance_m(91, 0, 0, 0)


def test_geofence_boundary_is_inclusive():
    assert is_within(100.0, 100)
    assert not is_within(100.01, 100)
