"""Shared fixtures."""
import base64
import io

import numpy as np
import pytest
from PIL import Image

from attendance_engine import create_app, db
from attendance_engine.engine import AttendanceEngine
from attendance_engine.models.entities import GeoLocation, User, UserRole
from attendance_engine.storage.document_store import MemoryDocumentStore


class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


def make_image(seed: int = 0, size: int = 64) -> Image.Image:
    rng = np.random.default_rng(seed)
    pixels = rng.integers(0, 256, size=(size, size, 3), dtype=np.uint8)
    return Image.fromarray(pixels)


def png_bytes(image: Image.Image) -> bytes:
    buffered = io.BytesIO()
    image.save(buffered, format='PNG')
    return buffered.getvalue()


def data_url(image: Image.Image) -> str:
    return 'data:image/png;base64,' + base64.b64encode(png_bytes(image)).decode()


ANCHOR = GeoLocation(lat=12.97, lng=77.59)
NEARBY = GeoLocation(lat=12.9701, lng=77.5901)
FAR_AWAY = GeoLocation(lat=12.99, lng=77.61)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return MemoryDocumentStore()


@pytest.fixture
def engine(store, clock):
    """Engine on an in-memory store without background rotation."""
    return AttendanceEngine(store, clock=clock, background_rotation=False)


@pytest.fixture
def face():
    return make_image(seed=7)


@pytest.fixture
def student(engine, face):
    return engine.save_user(User(
        id='student-1',
        name='Arjun Kumar',
        role=UserRole.STUDENT.value,
        department='Computer Science and Engineering',
        roll_no='CSE001',
        reference_image=data_url(face)
    ))


@pytest.fixture
def instructor(engine):
    return engine.save_user(User(
        id='faculty-1',
        name='Dr. Meera Rao',
        role=UserRole.FACULTY.value,
        department='Computer Science and Engineering'
    ))


@pytest.fixture
def app():
    """Create test app."""
    app = create_app('testing')
    with app.app_context():
        yield app
        app.extensions['attendance_engine'].shutdown()
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def app_engine(app):
    return app.extensions['attendance_engine']


@pytest.fixture
def auth_header(app):
    """Build an Authorization header for a user id."""
    from flask_jwt_extended import create_access_token

    def _header(user_id: str):
        token = create_access_token(identity=user_id)
        return {'Authorization': f'Bearer {token}'}
    return _header
