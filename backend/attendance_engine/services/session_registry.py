"""Class session lifecycle."""
import logging
import uuid
from typing import Callable, List, Optional

from attendance_engine.constants import SESSIONS, LOCATION_TIMEOUT_SECONDS
from attendance_engine.errors import SessionError
from attendance_engine.models.entities import GeoLocation, Session
from attendance_engine.services.geo_service import GeoService
from attendance_engine.storage.document_store import DocumentStore
from attendance_engine.utils.helpers import now_ms
from attendance_engine.utils.locks import KeyedLock

logger = logging.getLogger(__name__)


def _new_session_id() -> str:
    return uuid.uuid4().hex[:16]


class SessionRegistry:
    """Owns every session of every instructor.

    At most one session per instructor is active. Starting, ending and
    publishing tokens for an instructor's sessions are serialized on that
    instructor's key, so a token rotation racing an end always loses. The
    store's conditional updates keep that true across worker processes.
    """

    def __init__(self, store: DocumentStore, locks=None,
                 clock: Callable[[], int] = now_ms,
                 id_factory: Callable[[], str] = _new_session_id):
        self.store = store
        self.locks = locks or KeyedLock()
        self.clock = clock
        self.id_factory = id_factory
        self.scheduler = None

    def attach_scheduler(self, scheduler) -> None:
        """Start/cancel token rotation together with sessions."""
        self.scheduler = scheduler

    @staticmethod
    def _lock_key(instructor_id: str) -> str:
        return f'instructor:{instructor_id}'

    def start_session(self, instructor_id: str, subject: str, location: GeoLocation) -> Session:
        """End the instructor's active session, if any, and open a new one."""
        ended = []
        with self.locks.hold(self._lock_key(instructor_id)):
            now = self.clock()
            for doc in self.store.query_equal(SESSIONS, 'instructor_id', instructor_id):
                if doc.get('is_active') and self._deactivate(doc['id'], now):
                    ended.append(doc['id'])

            session = Session(
                id=self.id_factory(),
                instructor_id=instructor_id,
                subject=subject,
                start_time=now,
                location=location,
                end_time=None,
                is_active=True,
                current_token="",
                token_issued_at=0
            )
            self.store.create_or_replace(SESSIONS, session.id, session.to_dict())

        for session_id in ended:
            logger.info("Session %s superseded by %s", session_id, session.id)
            self._cancel_rotation(session_id)

        logger.info("Instructor %s started session %s for %s", instructor_id, session.id, subject)
        if self.scheduler is not None:
            self.scheduler.schedule(session.id)
        return session

    def start_session_with_provider(self, instructor_id: str, subject: str, provider,
                                    timeout_seconds: float = LOCATION_TIMEOUT_SECONDS) -> Session:
        """Start a session anchored at the provider's current fix.

        Raises LocationError, creating nothing, when no fix is available.
        """
        location = GeoService.fetch_location(provider, timeout_seconds)
        return self.start_session(instructor_id, subject, location)

    def end_session(self, session_id: str) -> Session:
        """Deactivate a session. Ending an ended session is a no-op."""
        session = self.get_session(session_id)
        if session is None:
            raise SessionError("Session not found")

        with self.locks.hold(self._lock_key(session.instructor_id)):
            if self._deactivate(session_id, self.clock()):
                logger.info("Session %s ended", session_id)
            session = self.get_session(session_id)

        self._cancel_rotation(session_id)
        return session

    def publish_token(self, session_id: str, token: str, issued_at: int) -> bool:
        """Store a rotated token. Refused once the session has ended."""
        session = self.get_session(session_id)
        if session is None:
            return False

        with self.locks.hold(self._lock_key(session.instructor_id)):
            updated = self.store.update_fields_if(
                SESSIONS, session_id,
                {'current_token': token, 'token_issued_at': issued_at},
                expected={'is_active': True}
            )
        return updated is not None

    def active_session_for(self, instructor_id: str) -> Optional[Session]:
        for doc in self.store.query_equal(SESSIONS, 'instructor_id', instructor_id):
            if doc.get('is_active'):
                return Session.from_dict(doc)
        return None

    def get_session(self, session_id: str) -> Optional[Session]:
        doc = self.store.read(SESSIONS, session_id)
        return Session.from_dict(doc) if doc else None

    def all_sessions(self) -> List[Session]:
        return [Session.from_dict(doc) for doc in self.store.scan(SESSIONS)]

    def sessions_for(self, instructor_id: str) -> List[Session]:
        """Sessions of one instructor, newest first."""
        sessions = [
            Session.from_dict(doc)
            for doc in self.store.query_equal(SESSIONS, 'instructor_id', instructor_id)
        ]
        return sorted(sessions, key=lambda s: s.start_time, reverse=True)

    def end_stale_sessions(self, staleness_ms: int) -> List[str]:
        """End active sessions that started longer than ``staleness_ms`` ago."""
        now = self.clock()
        ended = []
        for session in self.all_sessions():
            if session.is_active and now - session.start_time > staleness_ms:
                self.end_session(session.id)
                ended.append(session.id)
        return ended

    def _deactivate(self, session_id: str, now: int) -> bool:
        """Flip an active session to ended. False if it had already ended."""
        updated = self.store.update_fields_if(
            SESSIONS, session_id,
            {'is_active': False, 'end_time': now},
            expected={'is_active': True}
        )
        return updated is not None

    def _cancel_rotation(self, session_id: str) -> None:
        if self.scheduler is not None:
            self.scheduler.cancel(session_id)
