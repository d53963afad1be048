"""QR code rendering and validation service."""
import base64
import io
from dataclasses import dataclass
from typing import Callable, Optional

import qrcode

from attendance_engine.constants import QR_PREFIX, QR_FRESHNESS_WINDOW_MS
from attendance_engine.errors import FormatError, SessionError, TokenError
from attendance_engine.utils.helpers import now_ms

BAD_FORMAT = 'bad format'
SESSION_NOT_FOUND = 'session not found'
SESSION_ENDED = 'session ended'
TOKEN_MISMATCH = 'token mismatch'
EXPIRED = 'expired'

# reason -> (exception, message shown to the student)
_REASON_ERRORS = {
    BAD_FORMAT: (FormatError, "Invalid QR Code format"),
    SESSION_NOT_FOUND: (SessionError, "Session not found"),
    SESSION_ENDED: (SessionError, "Session has ended"),
    TOKEN_MISMATCH: (TokenError, "QR Code expired (Token mismatch)"),
    EXPIRED: (TokenError, "QR Code expired (Timeout)"),
}


@dataclass
class QRValidationResult:
    """Result of validating a scanned payload."""
    valid: bool
    session_id: Optional[str] = None
    reason: Optional[str] = None

    def to_dict(self):
        return {'valid': self.valid, 'session_id': self.session_id, 'reason': self.reason}


class QRService:
    """Validates SECURE:<sessionId>:<issueTimeMs>:<token> payloads."""

    def __init__(self, registry, freshness_ms: int = QR_FRESHNESS_WINDOW_MS,
                 clock: Callable[[], int] = now_ms):
        self.registry = registry
        self.freshness_ms = freshness_ms
        self.clock = clock

    def validate(self, payload: str) -> QRValidationResult:
        if not isinstance(payload, str):
            return QRValidationResult(False, reason=BAD_FORMAT)

        parts = payload.split(':')
        if len(parts) != 4 or parts[0] != QR_PREFIX:
            return QRValidationResult(False, reason=BAD_FORMAT)

        _, session_id, timestamp_str, token = parts
        try:
            timestamp = int(timestamp_str)
        except ValueError:
            return QRValidationResult(False, reason=BAD_FORMAT)

        session = self.registry.get_session(session_id)
        if session is None:
            return QRValidationResult(False, reason=SESSION_NOT_FOUND)

        if not session.is_active:
            return QRValidationResult(False, session_id=session_id, reason=SESSION_ENDED)

        # Token and age are independent: a current token still ages out, and a
        # fresh timestamp cannot revive a rotated-away token.
        if session.current_token != token:
            return QRValidationResult(False, session_id=session_id, reason=TOKEN_MISMATCH)

        if self.clock() - timestamp > self.freshness_ms:
            return QRValidationResult(False, session_id=session_id, reason=EXPIRED)

        return QRValidationResult(True, session_id=session_id)

    def validate_or_raise(self, payload: str) -> str:
        """Return the session id or raise the matching verification error."""
        result = self.validate(payload)
        if result.valid:
            return result.session_id
        error_class, message = _REASON_ERRORS[result.reason]
        raise error_class(message)

    @staticmethod
    def render_qr_image(payload: str) -> str:
        """Render ``payload`` as a base64 PNG data URL."""
        qr = qrcode.QRCode(
            version=None,  # Auto-determine size
            error_correction=qrcode.constants.ERROR_CORRECT_M,
            box_size=10,
            border=4,
        )
        qr.add_data(payload)
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")

        buffered = io.BytesIO()
        img.save(buffered, format="PNG")
        img_str = base64.b64encode(buffered.getvalue()).decode()

        return f"data:image/png;base64,{img_str}"
