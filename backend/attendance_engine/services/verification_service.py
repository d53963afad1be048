"""Attendance verification flow.

Verification runs QR -> face -> location -> commit. Each step either
passes or raises an AttendanceError; nothing is written to the ledger
unless every step passed.
"""
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from attendance_engine.constants import (
    GEOFENCE_RADIUS_METERS, LOCATION_TIMEOUT_SECONDS, SCAN_TIMEOUT_SECONDS
)
from attendance_engine.errors import (
    AttendanceError, BiometricError, FormatError, LocationError,
    ScanTimeoutError, SessionError, TokenError
)
from attendance_engine.models.entities import (
    AttendanceRecord, AttendanceStatus, GeoLocation, Session, User
)
from attendance_engine.services.attendance_ledger import new_record_id
from attendance_engine.services.geo_service import GeoCheck, GeoService
from attendance_engine.services.similarity_service import SimilarityResult
from attendance_engine.utils.helpers import now_ms

logger = logging.getLogger(__name__)


class VerificationState(Enum):
    """Client verification flow states."""
    IDLE = "idle"
    SCANNING = "scanning"
    FACE_CAPTURE = "face_capture"
    LOCATING = "locating"
    COMMITTING = "committing"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class VerificationOutcome:
    """A committed attendance with the evidence behind it."""
    record: AttendanceRecord
    similarity: SimilarityResult
    geo: GeoCheck

    def to_dict(self):
        return {
            'record': self.record.to_dict(),
            'face': self.similarity.to_dict(),
            'location': self.geo.to_dict()
        }


class AttendanceVerifier:
    """Individual verification steps plus a one-shot server-side check."""

    def __init__(self, qr_service, registry, scorer, ledger,
                 radius_meters: float = GEOFENCE_RADIUS_METERS,
                 location_timeout_seconds: float = LOCATION_TIMEOUT_SECONDS,
                 clock: Callable[[], int] = now_ms):
        self.qr_service = qr_service
        self.registry = registry
        self.scorer = scorer
        self.ledger = ledger
        self.radius_meters = radius_meters
        self.location_timeout_seconds = location_timeout_seconds
        self.clock = clock

    def active_session(self, session_id: str) -> Session:
        session = self.registry.get_session(session_id)
        if session is None:
            raise SessionError("Session not found")
        if not session.is_active:
            raise SessionError("Session has ended")
        return session

    def check_face(self, student: User, captured) -> SimilarityResult:
        if not student.reference_image:
            raise BiometricError("No reference face image on file. Please register your face first.")
        if captured is None:
            raise BiometricError("Could not capture face.")

        result = self.scorer.compare(student.reference_image, captured)
        if not result.match:
            logger.info("Face mismatch for student %s (score %.1f)", student.id, result.score)
            raise BiometricError("Face does not match the registered student.")
        return result

    def resolve_location(self, session: Session, provider) -> Optional[GeoLocation]:
        """Fetch a fresh fix; failures are waived only for degenerate anchors."""
        try:
            return GeoService.fetch_location(provider, self.location_timeout_seconds)
        except LocationError:
            if session.location.is_degenerate:
                logger.warning("Session %s has no anchor; location check waived", session.id)
                return None
            raise

    def check_location(self, session: Session, location: Optional[GeoLocation]) -> GeoCheck:
        check = GeoService.check(location, session.location, self.radius_meters)
        if not check.within:
            if check.distance is None:
                raise LocationError("Location information unavailable.")
            raise LocationError(
                f"Out of range! You are {round(check.distance)}m away. "
                f"Must be within {round(self.radius_meters)}m."
            )
        return check

    def commit(self, student: User, session: Session,
               similarity: SimilarityResult, geo: GeoCheck) -> AttendanceRecord:
        # the session may have ended while the student was being verified
        session = self.active_session(session.id)
        record = AttendanceRecord(
            id=new_record_id(),
            session_id=session.id,
            student_id=student.id,
            student_name=student.name,
            subject=session.subject,
            timestamp=self.clock(),
            status=AttendanceStatus.PRESENT.value,
            verified_by_face=similarity.match,
            verified_by_location=geo.within and not geo.waived
        )
        return self.ledger.commit_or_raise(record)

    def verify(self, student: User, payload: str, captured_image,
               location: Optional[GeoLocation] = None) -> VerificationOutcome:
        """Validate everything a device submitted in one request."""
        session_id = self.qr_service.validate_or_raise(payload)
        session = self.active_session(session_id)
        similarity = self.check_face(student, captured_image)
        geo = self.check_location(session, location)
        record = self.commit(student, session, similarity, geo)
        return VerificationOutcome(record=record, similarity=similarity, geo=geo)


class VerificationOrchestrator:
    """Drives one student's device through scan, capture, locate and commit.

    ``scanner`` returns the latest decoded QR payload or None. Malformed and
    stale codes are ignored while scanning; the scan phase fails after
    ``scan_timeout_seconds`` and the flow has to restart from scanning.
    """

    def __init__(self, verifier: AttendanceVerifier, image_source, location_provider,
                 scan_timeout_seconds: float = SCAN_TIMEOUT_SECONDS,
                 poll_interval_seconds: float = 0.25,
                 clock: Callable[[], int] = now_ms,
                 sleep: Callable[[float], None] = time.sleep):
        self.verifier = verifier
        self.image_source = image_source
        self.location_provider = location_provider
        self.scan_timeout_ms = int(scan_timeout_seconds * 1000)
        self.poll_interval_seconds = poll_interval_seconds
        self.clock = clock
        self.sleep = sleep
        self.state = VerificationState.IDLE
        self.reason: Optional[str] = None
        self.transitions: List[VerificationState] = []

    def _enter(self, state: VerificationState) -> None:
        self.state = state
        self.transitions.append(state)

    def reset(self) -> None:
        self.state = VerificationState.IDLE
        self.reason = None
        self.transitions = []

    def _capture_frame(self):
        try:
            return self.image_source.capture_frame()
        except AttendanceError:
            raise
        except Exception as e:
            logger.warning("Camera capture failed: %s", e)
            raise BiometricError("Could not capture face.")

    def scan(self, scanner: Callable[[], Optional[str]]) -> str:
        deadline = self.clock() + self.scan_timeout_ms
        while True:
            payload = scanner()
            if payload:
                try:
                    return self.verifier.qr_service.validate_or_raise(payload)
                except (FormatError, TokenError) as e:
                    logger.debug("Ignoring scanned code: %s", e.message)
            if self.clock() >= deadline:
                raise ScanTimeoutError("No valid QR code detected in time. Please scan again.")
            self.sleep(self.poll_interval_seconds)

    def run(self, student: User, scanner: Callable[[], Optional[str]]) -> VerificationOutcome:
        self.reset()
        try:
            self._enter(VerificationState.SCANNING)
            session_id = self.scan(scanner)
            session = self.verifier.active_session(session_id)

            self._enter(VerificationState.FACE_CAPTURE)
            frame = self._capture_frame()
            similarity = self.verifier.check_face(student, frame)

            self._enter(VerificationState.LOCATING)
            location = self.verifier.resolve_location(session, self.location_provider)
            geo = self.verifier.check_location(session, location)

            self._enter(VerificationState.COMMITTING)
            record = self.verifier.commit(student, session, similarity, geo)
        except AttendanceError as e:
            self.reason = e.message
            self._enter(VerificationState.FAILED)
            logger.info("Verification failed for student %s: %s", student.id, e.message)
            raise

        self._enter(VerificationState.SUCCESS)
        return VerificationOutcome(record=record, similarity=similarity, geo=geo)
