"""Verification error taxonomy.

Every error raised while verifying attendance carries a human-readable
message for the student and the HTTP status the API answers with.
"""


class AttendanceError(Exception):
    """Base class for attendance verification failures."""

    status_code = 400
    error_type = 'attendance_error'

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {
            'error': True,
            'error_type': self.error_type,
            'message': self.message,
            'status_code': self.status_code
        }


class FormatError(AttendanceError):
    """Scanned payload is not a SECURE QR code."""
    error_type = 'format_error'


class SessionError(AttendanceError):
    """Session not found or already ended."""
    status_code = 404
    error_type = 'session_error'


class TokenError(AttendanceError):
    """Token mismatch or expired timestamp."""
    error_type = 'token_error'


class BiometricError(AttendanceError):
    """Missing reference image, unreadable frame or face mismatch."""
    status_code = 403
    error_type = 'biometric_error'


class LocationError(AttendanceError):
    """Location unavailable, timed out or outside the geofence."""
    status_code = 403
    error_type = 'location_error'


class DuplicateError(AttendanceError):
    """Attendance already marked for this session."""
    status_code = 409
    error_type = 'duplicate_error'


class ScanTimeoutError(AttendanceError):
    """No valid QR code was scanned in time."""
    status_code = 408
    error_type = 'scan_timeout'
