"""Wires the verification services together for one application."""
import logging
from typing import Callable, Optional

from flask import current_app

from attendance_engine import constants
from attendance_engine.constants import USERS
from attendance_engine.models.entities import User
from attendance_engine.services.alert_service import AlertService
from attendance_engine.services.attendance_ledger import AttendanceLedger
from attendance_engine.services.qr_service import QRService
from attendance_engine.services.report_service import ReportService
from attendance_engine.services.session_registry import SessionRegistry
from attendance_engine.services.similarity_service import SimilarityService
from attendance_engine.services.timetable_service import TimetableService
from attendance_engine.services.token_rotator import RotationScheduler
from attendance_engine.services.verification_service import AttendanceVerifier
from attendance_engine.storage.document_store import DocumentStore
from attendance_engine.utils.helpers import now_ms
from attendance_engine.utils.locks import KeyedLock

logger = logging.getLogger(__name__)


class AttendanceEngine:
    """Container for the store-backed services."""

    def __init__(self, store: DocumentStore, locks=None,
                 clock: Callable[[], int] = now_ms,
                 context_factory: Optional[Callable] = None,
                 background_rotation: bool = True,
                 rotation_interval_ms: int = constants.QR_ROTATION_INTERVAL_MS,
                 freshness_ms: int = constants.QR_FRESHNESS_WINDOW_MS,
                 face_threshold: float = constants.FACE_MATCH_THRESHOLD,
                 radius_meters: float = constants.GEOFENCE_RADIUS_METERS,
                 location_timeout_seconds: float = constants.LOCATION_TIMEOUT_SECONDS,
                 staleness_minutes: int = constants.SESSION_STALENESS_MINUTES):
        self.store = store
        self.clock = clock
        self.staleness_minutes = staleness_minutes
        locks = locks or KeyedLock()

        self.registry = SessionRegistry(store, locks=locks, clock=clock)
        self.scheduler = RotationScheduler(
            self.registry,
            interval_ms=rotation_interval_ms,
            clock=clock,
            context_factory=context_factory,
            background=background_rotation
        )
        self.registry.attach_scheduler(self.scheduler)

        self.qr_service = QRService(self.registry, freshness_ms=freshness_ms, clock=clock)
        self.scorer = SimilarityService(threshold=face_threshold)
        self.ledger = AttendanceLedger(
            store, self.registry, locks=locks, clock=clock,
            staleness_minutes=staleness_minutes
        )
        self.verifier = AttendanceVerifier(
            self.qr_service, self.registry, self.scorer, self.ledger,
            radius_meters=radius_meters,
            location_timeout_seconds=location_timeout_seconds,
            clock=clock
        )
        self.timetable = TimetableService(store)
        self.alerts = AlertService()
        self.reports = ReportService()

    @classmethod
    def from_config(cls, config, store: DocumentStore, locks=None,
                    context_factory: Optional[Callable] = None) -> 'AttendanceEngine':
        return cls(
            store,
            locks=locks,
            context_factory=context_factory,
            background_rotation=config.get('TOKEN_ROTATION_ENABLED', True),
            rotation_interval_ms=config.get('QR_ROTATION_INTERVAL_MS', constants.QR_ROTATION_INTERVAL_MS),
            freshness_ms=config.get('QR_FRESHNESS_WINDOW_MS', constants.QR_FRESHNESS_WINDOW_MS),
            face_threshold=config.get('FACE_MATCH_THRESHOLD', constants.FACE_MATCH_THRESHOLD),
            radius_meters=config.get('GEOFENCE_RADIUS_METERS', constants.GEOFENCE_RADIUS_METERS),
            location_timeout_seconds=config.get('LOCATION_TIMEOUT_SECONDS', constants.LOCATION_TIMEOUT_SECONDS),
            staleness_minutes=config.get('SESSION_STALENESS_MINUTES', constants.SESSION_STALENESS_MINUTES)
        )

    # Users are owned by the registration system; the engine only reads them.
    def get_user(self, user_id: str) -> Optional[User]:
        doc = self.store.read(USERS, str(user_id))
        return User.from_dict(doc) if doc else None

    def all_users(self):
        return [User.from_dict(doc) for doc in self.store.scan(USERS)]

    def save_user(self, user: User) -> User:
        self.store.create_or_replace(USERS, user.id, user.to_dict())
        return user

    def shutdown(self) -> None:
        self.scheduler.cancel_all()


def get_engine() -> AttendanceEngine:
    """Engine of the current Flask application."""
    return current_app.extensions['attendance_engine']
