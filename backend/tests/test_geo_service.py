"""Tests for the geofence service."""
import time

import pytest

from attendance_engine.errors import LocationError
from attendance_engine.models.entities import GeoLocation
from attendance_engine.services.geo_service import GeoService
from tests.conftest import ANCHOR, NEARBY, FAR_AWAY


class StaticProvider:
    def __init__(self, location=None, error=None, delay=0.0):
        self.location = location
        self.error = error
        self.delay = delay
        self.calls = 0

    def get_current_location(self):
        self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.error:
            raise self.error
        return self.location


@pytest.mark.parametrize('point', [
    GeoLocation(0.0, 0.0),
    GeoLocation(12.97, 77.59),
    GeoLocation(-33.86, 151.21),
    GeoLocation(89.9, -179.9),
])
def test_distance_to_self_is_zero(point):
    """A point is zero meters from itself."""
    assert GeoService.distance(point, point) == 0


def test_distance_is_symmetric():
    """Distance does not depend on argument order."""
    a, b = GeoLocation(12.97, 77.59), GeoLocation(28.61, 77.21)
    assert GeoService.distance(a, b) == pytest.approx(GeoService.distance(b, a))


def test_one_degree_longitude_at_equator():
    """One degree along the equator is about 111.2 km."""
    expected = 111195
    distance = GeoService.distance(GeoLocation(0.0, 10.0), GeoLocation(0.0, 11.0))
    assert abs(distance - expected) / expected < 0.01


def test_nearby_point_within_radius():
    """The classroom fixture is roughly 15 m from the anchor."""
    distance = GeoService.distance(NEARBY, ANCHOR)
    assert 10 < distance < 20
    assert GeoService.within_radius(NEARBY, ANCHOR, 300)


def test_far_point_outside_radius():
    check = GeoService.check(FAR_AWAY, ANCHOR, 300)
    assert not check.within
    assert check.distance > 300
    assert not check.waived


def test_radius_boundary_is_inclusive():
    distance = GeoService.distance(NEARBY, ANCHOR)
    assert GeoService.within_radius(NEARBY, ANCHOR, distance)


def test_degenerate_anchor_waives_check():
    """An anchor at lat 0 never blocks attendance."""
    check = GeoService.check(FAR_AWAY, GeoLocation(0.0, 0.0), 300)
    assert check.within
    assert check.waived
    assert check.distance is None


def test_missing_current_location_fails():
    check = GeoService.check(None, ANCHOR, 300)
    assert not check.within


def test_fetch_location_returns_fresh_fix_every_call():
    provider = StaticProvider(location=NEARBY)
    assert GeoService.fetch_location(provider) == NEARBY
    assert GeoService.fetch_location(provider) == NEARBY
    assert provider.calls == 2


def test_fetch_location_permission_denied():
    provider = StaticProvider(error=PermissionError('denied'))
    with pytest.raises(LocationError, match='permission denied'):
        GeoService.fetch_location(provider)


def test_fetch_location_provider_failure():
    provider = StaticProvider(error=RuntimeError('no satellites'))
    with pytest.raises(LocationError, match='unavailable'):
        GeoService.fetch_location(provider)


def test_fetch_location_timeout():
    provider = StaticProvider(location=NEARBY, delay=0.5)
    with pytest.raises(LocationError, match='timed out') as exc_info:
        GeoService.fetch_location(provider, timeout_seconds=0.05)
    assert exc_info.value.status_code == 408
