"""Tests for the attendance verification flow."""
import numpy as np
import pytest
from PIL import Image

from attendance_engine.engine import AttendanceEngine
from attendance_engine.errors import (
    BiometricError, DuplicateError, LocationError, ScanTimeoutError, SessionError, TokenError
)
from attendance_engine.models.entities import GeoLocation, User
from attendance_engine.services.token_rotator import TokenRotator
from attendance_engine.services.verification_service import (
    VerificationOrchestrator, VerificationState
)
from attendance_engine.storage.document_store import MemoryDocumentStore
from tests.conftest import ANCHOR, FAR_AWAY, NEARBY, FakeClock, data_url


class Provider:
    def __init__(self, location=None, error=None):
        self.location = location
        self.error = error

    def get_current_location(self):
        if self.error:
            raise self.error
        return self.location


class Camera:
    def __init__(self, frame, on_capture=None):
        self.frame = frame
        self.on_capture = on_capture

    def capture_frame(self):
        if self.on_capture:
            self.on_capture()
        return self.frame


class BrokenCamera:
    def capture_frame(self):
        raise RuntimeError('camera unavailable')


def scripted(*payloads):
    """Scanner returning the given payloads, then nothing."""
    remaining = list(payloads)

    def _scan():
        return remaining.pop(0) if remaining else None
    return _scan


def split_image(top, bottom):
    pixels = np.full((64, 64, 3), bottom, dtype=np.uint8)
    pixels[:32] = top
    return Image.fromarray(pixels)


def start_with_token(engine, location=ANCHOR, token='T1', instructor='faculty-1'):
    session = engine.registry.start_session(instructor, 'Algorithms', location)
    TokenRotator(engine.registry, session.id, clock=engine.clock, token_factory=lambda: token).rotate()
    return engine.registry.get_session(session.id)


def orchestrator(engine, clock, frame, location_provider):
    def sleep(seconds):
        clock.advance(int(seconds * 1000))
    return VerificationOrchestrator(
        engine.verifier, Camera(frame), location_provider, clock=clock, sleep=sleep
    )


def test_end_to_end_check_in():
    """Scan a 5 s old code near the anchor with a slightly different face, commit once."""
    clock = FakeClock(start=0)
    engine = AttendanceEngine(MemoryDocumentStore(), clock=clock, background_rotation=False)
    engine.registry.id_factory = lambda: 'S1'
    face = split_image(40, 200)
    student = engine.save_user(User(id='stu-1', name='Priya', reference_image=data_url(face)))
    captured = split_image(120, 200)

    start_with_token(engine)
    clock.advance(5000)

    outcome = engine.verifier.verify(student, 'SECURE:S1:0:T1', captured, NEARBY)

    assert outcome.record.session_id == 'S1'
    assert outcome.record.student_id == 'stu-1'
    assert outcome.record.subject == 'Algorithms'
    assert outcome.record.timestamp == 5000
    assert 0 < outcome.similarity.score <= 115
    assert outcome.similarity.score == pytest.approx(40, abs=5)
    assert outcome.record.verified_by_face
    assert outcome.record.verified_by_location
    assert outcome.geo.distance < 300

    with pytest.raises(DuplicateError, match='already marked'):
        engine.verifier.verify(student, 'SECURE:S1:0:T1', captured, NEARBY)
    assert len(engine.ledger.records_for_session('S1')) == 1


def test_verify_rejects_stale_token(engine, student, face, clock):
    session = start_with_token(engine)
    payload = session.current_qr_code
    engine.scheduler.rotate_now(session.id)

    with pytest.raises(TokenError, match='Token mismatch'):
        engine.verifier.verify(student, payload, face, NEARBY)
    assert engine.ledger.records_for_session(session.id) == []


def test_verify_rejects_face_mismatch(engine, clock):
    student = engine.save_user(User(id='stu-2', name='Ravi', reference_image=data_url(split_image(0, 255))))
    session = start_with_token(engine)

    with pytest.raises(BiometricError, match='does not match'):
        engine.verifier.verify(student, session.current_qr_code, split_image(255, 0), NEARBY)
    assert engine.ledger.records_for_session(session.id) == []


def test_verify_requires_reference_image(engine, face):
    student = engine.save_user(User(id='stu-3', name='No Face'))
    session = start_with_token(engine)

    with pytest.raises(BiometricError, match='register your face'):
        engine.verifier.verify(student, session.current_qr_code, face, NEARBY)


def test_verify_out_of_range(engine, student, face):
    session = start_with_token(engine)

    with pytest.raises(LocationError, match='Out of range') as exc_info:
        engine.verifier.verify(student, session.current_qr_code, face, FAR_AWAY)
    assert 'Must be within 300m' in exc_info.value.message
    assert exc_info.value.status_code == 403


def test_verify_without_location_fails(engine, student, face):
    session = start_with_token(engine)
    with pytest.raises(LocationError, match='unavailable'):
        engine.verifier.verify(student, session.current_qr_code, face, None)


def test_verify_degenerate_anchor_waives_location(engine, student, face):
    session = start_with_token(engine, location=GeoLocation(0.0, 0.0))

    outcome = engine.verifier.verify(student, session.current_qr_code, face, FAR_AWAY)

    assert outcome.geo.waived
    assert outcome.record.verified_by_location is False


def test_orchestrator_happy_path_ignores_bad_scans(engine, student, face, clock):
    session = start_with_token(engine)
    flow = orchestrator(engine, clock, face, Provider(NEARBY))
    scanner = scripted('not-a-qr', f'SECURE:{session.id}:{clock.now}:OLD', session.current_qr_code)

    outcome = flow.run(student, scanner)

    assert outcome.record.session_id == session.id
    assert flow.state is VerificationState.SUCCESS
    assert flow.transitions == [
        VerificationState.SCANNING,
        VerificationState.FACE_CAPTURE,
        VerificationState.LOCATING,
        VerificationState.COMMITTING,
        VerificationState.SUCCESS,
    ]


def test_orchestrator_scan_timeout(engine, student, face, clock):
    start_with_token(engine)
    flow = orchestrator(engine, clock, face, Provider(NEARBY))
    started = clock.now

    with pytest.raises(ScanTimeoutError):
        flow.run(student, scripted())

    assert clock.now - started >= 45_000
    assert flow.state is VerificationState.FAILED
    assert flow.transitions == [VerificationState.SCANNING, VerificationState.FAILED]


def test_orchestrator_ended_session_fails_scan(engine, student, face, clock):
    session = start_with_token(engine)
    engine.registry.end_session(session.id)
    flow = orchestrator(engine, clock, face, Provider(NEARBY))

    with pytest.raises(SessionError, match='ended'):
        flow.run(student, scripted(session.current_qr_code))
    assert flow.reason == 'Session has ended'


def test_orchestrator_session_ending_before_commit(engine, student, face, clock):
    session = start_with_token(engine)
    flow = VerificationOrchestrator(
        engine.verifier,
        Camera(face, on_capture=lambda: engine.registry.end_session(session.id)),
        Provider(NEARBY),
        clock=clock,
        sleep=lambda seconds: None
    )

    with pytest.raises(SessionError):
        flow.run(student, scripted(session.current_qr_code))
    assert VerificationState.COMMITTING in flow.transitions
    assert engine.ledger.records_for_session(session.id) == []


def test_orchestrator_location_failure(engine, student, face, clock):
    session = start_with_token(engine)
    flow = orchestrator(engine, clock, face, Provider(error=PermissionError('denied')))

    with pytest.raises(LocationError, match='permission denied'):
        flow.run(student, scripted(session.current_qr_code))
    assert flow.state is VerificationState.FAILED
    assert engine.ledger.records_for_session(session.id) == []


def test_orchestrator_degenerate_anchor_tolerates_location_failure(engine, student, face, clock):
    session = start_with_token(engine, location=GeoLocation(0.0, 0.0))
    flow = orchestrator(engine, clock, face, Provider(error=RuntimeError('no fix')))

    outcome = flow.run(student, scripted(session.current_qr_code))

    assert flow.state is VerificationState.SUCCESS
    assert outcome.record.verified_by_location is False


def test_orchestrator_restarts_cleanly(engine, student, face, clock):
    session = start_with_token(engine)
    flow = orchestrator(engine, clock, face, Provider(NEARBY))

    with pytest.raises(ScanTimeoutError):
        flow.run(student, scripted())

    # the first token aged out while the scan was timing out
    payload = engine.scheduler.rotate_now(session.id)
    flow.run(student, scripted(payload))
    assert flow.state is VerificationState.SUCCESS
    assert flow.reason is None


def test_orchestrator_camera_error_fails_flow(engine, student, clock):
    session = start_with_token(engine)
    flow = VerificationOrchestrator(engine.verifier, BrokenCamera(), Provider(NEARBY), clock=clock)

    with pytest.raises(BiometricError, match='Could not capture face'):
        flow.run(student, scripted(session.current_qr_code))
    assert flow.state is VerificationState.FAILED
    assert flow.reason == 'Could not capture face.'
    assert flow.transitions[-2:] == [VerificationState.FACE_CAPTURE, VerificationState.FAILED]
    assert engine.ledger.records_for_session(session.id) == []
