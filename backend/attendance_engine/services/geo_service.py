"""GPS geofence verification service."""
import logging
import math
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass
from typing import Dict, Optional

from attendance_engine.constants import (
    EARTH_RADIUS_METERS, GEOFENCE_RADIUS_METERS, LOCATION_TIMEOUT_SECONDS
)
from attendance_engine.errors import LocationError
from attendance_engine.models.entities import GeoLocation

logger = logging.getLogger(__name__)


@dataclass
class GeoCheck:
    """Outcome of a geofence test."""
    within: bool
    distance: Optional[float]
    radius: float
    waived: bool = False

    def to_dict(self) -> Dict:
        return {
            'within': self.within,
            'distance': round(self.distance, 1) if self.distance is not None else None,
            'radius': self.radius,
            'waived': self.waived
        }


class GeoService:
    """Great-circle distance and radius checks."""

    @staticmethod
    def distance(a: GeoLocation, b: GeoLocation) -> float:
        """Haversine distance between two points in meters."""
        if a.lat == b.lat and a.lng == b.lng:
            return 0.0

        lat1_rad = math.radians(a.lat)
        lat2_rad = math.radians(b.lat)
        delta_lat = math.radians(b.lat - a.lat)
        delta_lng = math.radians(b.lng - a.lng)

        h = (math.sin(delta_lat / 2) ** 2 +
             math.cos(lat1_rad) * math.cos(lat2_rad) *
             math.sin(delta_lng / 2) ** 2)
        # float error can push h slightly outside [0, 1]
        h = max(0.0, min(1.0, h))
        c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))

        return EARTH_RADIUS_METERS * c

    @classmethod
    def check(cls, current: Optional[GeoLocation], anchor: GeoLocation,
              radius_meters: float = GEOFENCE_RADIUS_METERS) -> GeoCheck:
        """Test ``current`` against the geofence around ``anchor``.

        A degenerate anchor (lat == 0) means the instructor's location was
        never captured; the check is then waived instead of failed.
        """
        if anchor.is_degenerate:
            return GeoCheck(within=True, distance=None, radius=radius_meters, waived=True)
        if current is None:
            return GeoCheck(within=False, distance=None, radius=radius_meters)

        distance = cls.distance(current, anchor)
        return GeoCheck(within=distance <= radius_meters, distance=distance, radius=radius_meters)

    @classmethod
    def within_radius(cls, current: GeoLocation, anchor: GeoLocation,
                      radius_meters: float = GEOFENCE_RADIUS_METERS) -> bool:
        return cls.check(current, anchor, radius_meters).within

    @staticmethod
    def fetch_location(provider, timeout_seconds: float = LOCATION_TIMEOUT_SECONDS) -> GeoLocation:
        """Ask ``provider`` for a fresh fix, giving up after ``timeout_seconds``.

        Fixes are never cached; each call hits the provider again.
        """
        executor = ThreadPoolExecutor(max_workers=1)
        future = executor.submit(provider.get_current_location)
        try:
            location = future.result(timeout=timeout_seconds)
        except FutureTimeout:
            future.cancel()
            raise LocationError("Location request timed out. Check your connection.", 408)
        except LocationError:
            raise
        except PermissionError:
            raise LocationError("Location permission denied. Please enable GPS.")
        except Exception as e:
            logger.warning("Location provider failed: %s", e)
            raise LocationError(f"Location information unavailable: {e}")
        finally:
            executor.shutdown(wait=False)

        if location is None:
            raise LocationError("Location information unavailable.")
        return location
