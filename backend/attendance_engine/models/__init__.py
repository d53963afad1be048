"""Models package with all models."""
from .entities import (
    GeoLocation, User, UserRole, Session, AttendanceRecord, AttendanceStatus,
    TimetableEntry, AttendanceAlert, AlertSeverity, StudentReport,
    build_qr_payload
)

__all__ = [
    'GeoLocation', 'User', 'UserRole', 'Session',
    'AttendanceRecord', 'AttendanceStatus', 'TimetableEntry',
    'AttendanceAlert', 'AlertSeverity', 'StudentReport',
    'build_qr_payload'
]
