"""Tests for token rotation."""
import threading
import time

from attendance_engine.services.token_rotator import RotationScheduler, TokenRotator, generate_token
from tests.conftest import ANCHOR


def test_generated_tokens_are_colon_free_and_unique():
    tokens = {generate_token() for _ in range(200)}
    assert len(tokens) == 200
    assert all(':' not in t for t in tokens)


def test_rotate_publishes_payload(engine, clock):
    session = engine.registry.start_session('faculty-1', 'Algorithms', ANCHOR)
    clock.advance(10_000)
    rotator = TokenRotator(engine.registry, session.id, clock=clock, token_factory=lambda: 'T1')

    payload = rotator.rotate()

    assert payload == f'SECURE:{session.id}:{clock.now}:T1'
    stored = engine.registry.get_session(session.id)
    assert stored.current_token == 'T1'
    assert stored.token_issued_at == clock.now
    assert stored.current_qr_code == payload


def test_rotation_after_end_loses(engine, clock):
    """Ending wins over a rotation that fires afterwards."""
    session = engine.registry.start_session('faculty-1', 'Algorithms', ANCHOR)
    rotator = TokenRotator(engine.registry, session.id, clock=clock, token_factory=lambda: 'LATE')
    engine.registry.end_session(session.id)

    assert rotator.rotate() is None
    assert engine.registry.get_session(session.id).current_token != 'LATE'
    # the rotator has stopped itself
    assert rotator.rotate() is None


def test_rotate_now_changes_token(engine, clock):
    session = engine.registry.start_session('faculty-1', 'Algorithms', ANCHOR)
    first = engine.registry.get_session(session.id).current_token

    clock.advance(10_000)
    payload = engine.scheduler.rotate_now(session.id)

    stored = engine.registry.get_session(session.id)
    assert stored.current_token != first
    assert payload == stored.current_qr_code


def test_background_rotation_and_cancel(store, clock):
    from attendance_engine.engine import AttendanceEngine

    engine = AttendanceEngine(store, clock=clock, background_rotation=True, rotation_interval_ms=20)
    counter = iter(range(1000))
    published = threading.Event()

    original = engine.registry.publish_token

    def counting_publish(session_id, token, issued_at):
        result = original(session_id, f'tok{next(counter)}', issued_at)
        published.set()
        return result

    engine.registry.publish_token = counting_publish
    session = engine.registry.start_session('faculty-1', 'Algorithms', ANCHOR)

    assert published.wait(1.0)
    deadline = time.time() + 2.0
    while engine.registry.get_session(session.id).current_token in ('', 'tok0') and time.time() < deadline:
        time.sleep(0.01)
    assert engine.registry.get_session(session.id).current_token not in ('', 'tok0')
    assert engine.scheduler.is_running(session.id)

    engine.registry.end_session(session.id)
    assert not engine.scheduler.is_running(session.id)

    token_after_end = engine.registry.get_session(session.id).current_token
    time.sleep(0.1)
    assert engine.registry.get_session(session.id).current_token == token_after_end
    engine.shutdown()


def test_scheduler_cancel_all(engine):
    scheduler = RotationScheduler(engine.registry, interval_ms=10_000, background=True)
    s1 = engine.registry.start_session('faculty-1', 'Algorithms', ANCHOR)
    s2 = engine.registry.start_session('faculty-2', 'Surveying', ANCHOR)
    scheduler.schedule(s1.id)
    scheduler.schedule(s2.id)

    assert scheduler.is_running(s1.id)
    scheduler.cancel_all()
    assert not scheduler.is_running(s1.id)
    assert not scheduler.is_running(s2.id)
