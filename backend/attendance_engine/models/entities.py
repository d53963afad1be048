"""Domain entities stored as documents."""
from dataclasses import dataclass, asdict, field, fields
from enum import Enum
from typing import Dict, Any, Optional

from attendance_engine.constants import QR_PREFIX


class UserRole(Enum):
    """User role enumeration."""
    STUDENT = "student"
    FACULTY = "faculty"
    ADMIN = "admin"


class AttendanceStatus(Enum):
    """Attendance status enumeration."""
    PRESENT = "present"
    ABSENT = "absent"


class AlertSeverity(Enum):
    """Alert severity enumeration."""
    WARNING = "warning"
    CRITICAL = "critical"


def _known_fields(cls, data: Dict) -> Dict:
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


def build_qr_payload(session_id: str, issued_at: int, token: str) -> str:
    """Build the scannable payload SECURE:<sessionId>:<issueTimeMs>:<token>."""
    return f"{QR_PREFIX}:{session_id}:{issued_at}:{token}"


@dataclass
class GeoLocation:
    """Latitude/longitude pair in degrees."""
    lat: float
    lng: float

    @property
    def is_degenerate(self) -> bool:
        # Anchors that failed upstream are stored as lat=0
        return self.lat == 0

    def to_dict(self) -> Dict[str, float]:
        return {'lat': self.lat, 'lng': self.lng}

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> 'GeoLocation':
        data = data or {}
        return cls(lat=float(data.get('lat', 0)), lng=float(data.get('lng', 0)))


@dataclass
class User:
    """User as read from the store. Only students are verified."""
    id: str
    name: str
    role: str = UserRole.STUDENT.value
    email: Optional[str] = None
    department: Optional[str] = None
    subject: Optional[str] = None
    roll_no: Optional[str] = None
    reference_image: Optional[str] = None

    @property
    def is_student(self) -> bool:
        return self.role == UserRole.STUDENT.value

    @property
    def is_faculty(self) -> bool:
        return self.role == UserRole.FACULTY.value

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    def to_dict(self, include_image: bool = True) -> Dict[str, Any]:
        data = asdict(self)
        if not include_image:
            data.pop('reference_image')
            data['has_reference_image'] = bool(self.reference_image)
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> 'User':
        return cls(**_known_fields(cls, data))


@dataclass
class Session:
    """One instructor-initiated attendance window."""
    id: str
    instructor_id: str
    subject: str
    start_time: int
    location: GeoLocation
    end_time: Optional[int] = None
    is_active: bool = True
    current_token: str = ""
    token_issued_at: int = 0

    @property
    def current_qr_code(self) -> str:
        if not self.current_token:
            return ""
        return build_qr_payload(self.id, self.token_issued_at, self.current_token)

    def has_concluded(self, now: int, staleness_ms: int) -> bool:
        """Inactive, past its end time, or running longer than the staleness window."""
        if not self.is_active:
            return True
        if self.end_time is not None and now > self.end_time:
            return True
        return now - self.start_time > staleness_ms

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['location'] = self.location.to_dict()
        return data

    def to_public_dict(self) -> Dict[str, Any]:
        """Session view without the live token."""
        data = self.to_dict()
        data.pop('current_token')
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> 'Session':
        values = _known_fields(cls, data)
        values['location'] = GeoLocation.from_dict(data.get('location'))
        return cls(**values)


@dataclass
class AttendanceRecord:
    """Attendance event for one student in one session."""
    id: str
    session_id: str
    student_id: str
    student_name: str
    subject: str
    timestamp: int
    status: str = AttendanceStatus.PRESENT.value
    verified_by_face: bool = False
    verified_by_location: bool = False

    @property
    def is_present(self) -> bool:
        return self.status == AttendanceStatus.PRESENT.value

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> 'AttendanceRecord':
        return cls(**_known_fields(cls, data))


@dataclass
class TimetableEntry:
    """Weekly slot an instructor teaches a subject in."""
    id: str
    instructor_id: str
    subject: str
    day: str
    start_time: str
    end_time: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> 'TimetableEntry':
        return cls(**_known_fields(cls, data))


@dataclass
class AttendanceAlert:
    """Derived low-attendance warning. Never persisted."""
    id: str
    student_id: str
    student_name: str
    severity: str
    message: str
    percentage: int
    missed_sessions: int
    total_sessions: int
    roll_no: Optional[str] = None
    department: Optional[str] = None

    @property
    def is_critical(self) -> bool:
        return self.severity == AlertSeverity.CRITICAL.value

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class StudentReport:
    """Per-student attendance summary over a date range."""
    student_id: str
    student_name: str
    total_sessions: int
    total_present: int
    overall_percentage: int
    roll_no: Optional[str] = None
    department: Optional[str] = None
    subject_breakdown: Dict[str, Dict[str, int]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
