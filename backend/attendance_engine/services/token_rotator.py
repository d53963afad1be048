"""Rotating QR token publication."""
import logging
import secrets
import threading
from contextlib import nullcontext
from typing import Callable, Dict, Optional

from attendance_engine.constants import QR_ROTATION_INTERVAL_MS, QR_TOKEN_BYTES
from attendance_engine.models.entities import build_qr_payload
from attendance_engine.utils.helpers import now_ms

logger = logging.getLogger(__name__)


def generate_token() -> str:
    """Short opaque token. URL-safe alphabet never contains ':'."""
    return secrets.token_urlsafe(QR_TOKEN_BYTES)


class TokenRotator:
    """Regenerates one session's token on a fixed interval.

    The first token is published immediately on start. The rotator stops
    itself as soon as the registry refuses a publish, which happens once
    the session has ended.
    """

    def __init__(self, registry, session_id: str,
                 interval_ms: int = QR_ROTATION_INTERVAL_MS,
                 clock: Callable[[], int] = now_ms,
                 token_factory: Callable[[], str] = generate_token,
                 context_factory: Optional[Callable] = None):
        self.registry = registry
        self.session_id = session_id
        self.interval_ms = interval_ms
        self.clock = clock
        self.token_factory = token_factory
        self.context_factory = context_factory or nullcontext
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def rotate(self) -> Optional[str]:
        """Publish a new token and return its QR payload, or None once ended."""
        if self._stop.is_set():
            return None

        token = self.token_factory()
        issued_at = self.clock()
        with self.context_factory():
            published = self.registry.publish_token(self.session_id, token, issued_at)

        if not published:
            logger.info("Session %s no longer active; stopping rotation", self.session_id)
            self._stop.set()
            return None

        logger.debug("Session %s rotated token at %s", self.session_id, issued_at)
        return build_qr_payload(self.session_id, issued_at, token)

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self.rotate()
            except Exception:
                logger.exception("Token rotation failed for session %s", self.session_id)
            if self._stop.wait(self.interval_ms / 1000):
                break

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self._run,
            name=f'token-rotator-{self.session_id}',
            daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()

    @property
    def is_running(self) -> bool:
        return (self._thread is not None and self._thread.is_alive()
                and not self._stop.is_set())


class RotationScheduler:
    """Server-owned rotators keyed by session id."""

    def __init__(self, registry, interval_ms: int = QR_ROTATION_INTERVAL_MS,
                 clock: Callable[[], int] = now_ms,
                 context_factory: Optional[Callable] = None,
                 background: bool = True):
        self.registry = registry
        self.interval_ms = interval_ms
        self.clock = clock
        self.context_factory = context_factory
        self.background = background
        self._rotators: Dict[str, TokenRotator] = {}
        self._lock = threading.Lock()

    def _make_rotator(self, session_id: str) -> TokenRotator:
        return TokenRotator(
            self.registry,
            session_id,
            interval_ms=self.interval_ms,
            clock=self.clock,
            context_factory=self.context_factory
        )

    def schedule(self, session_id: str) -> TokenRotator:
        """Begin rotating ``session_id``.

        Without background threads only the first token is published; later
        rotations happen through ``rotate_now``.
        """
        self.cancel(session_id)
        rotator = self._make_rotator(session_id)
        if not self.background:
            rotator.rotate()
            return rotator

        with self._lock:
            self._rotators[session_id] = rotator
        rotator.start()
        return rotator

    def rotate_now(self, session_id: str) -> Optional[str]:
        with self._lock:
            rotator = self._rotators.get(session_id)
        return (rotator or self._make_rotator(session_id)).rotate()

    def cancel(self, session_id: str) -> None:
        with self._lock:
            rotator = self._rotators.pop(session_id, None)
        if rotator is not None:
            rotator.stop()

    def cancel_all(self) -> None:
        with self._lock:
            rotators = list(self._rotators.values())
            self._rotators.clear()
        for rotator in rotators:
            rotator.stop()

    def is_running(self, session_id: str) -> bool:
        with self._lock:
            rotator = self._rotators.get(session_id)
        return rotator is not None and rotator.is_running
