"""Attendance reports, statistics and export."""
from typing import Dict, Iterable, List, Optional

import pandas as pd

from attendance_engine.models.entities import (
    AttendanceRecord, Session, StudentReport, User, UserRole
)
from attendance_engine.services.curriculum import is_relevant
from attendance_engine.utils.helpers import round_half_up

EXPORT_COLUMNS = [
    'id', 'session_id', 'student_id', 'student_name', 'subject',
    'timestamp', 'status', 'verified_by_face', 'verified_by_location'
]


class ReportService:
    """Read-side summaries for the admin dashboard."""

    @staticmethod
    def build_reports(
        users: Iterable[User],
        sessions: Iterable[Session],
        records: Iterable[AttendanceRecord],
        start_ms: int,
        end_ms: int,
        department: Optional[str] = None
    ) -> List[StudentReport]:
        """Per-student totals with a per-subject breakdown, lowest first."""
        in_range = [s for s in sessions if start_ms <= s.start_time <= end_ms]
        records = [r for r in records
                   if r.is_present and start_ms <= r.timestamp <= end_ms]
        reports = []

        for student in users:
            if not student.is_student:
                continue
            if department and student.department != department:
                continue

            relevant = {s.id: s for s in in_range if is_relevant(s.subject, student.department)}
            breakdown: Dict[str, Dict[str, int]] = {}
            for session in relevant.values():
                stats = breakdown.setdefault(session.subject, {'total': 0, 'present': 0, 'percentage': 0})
                stats['total'] += 1

            total_present = 0
            for record in records:
                if record.student_id != student.id:
                    continue
                session = relevant.get(record.session_id)
                if session is None:
                    continue
                total_present += 1
                breakdown[session.subject]['present'] += 1

            for stats in breakdown.values():
                stats['percentage'] = round_half_up(100 * stats['present'] / stats['total'])

            total = len(relevant)
            reports.append(StudentReport(
                student_id=student.id,
                student_name=student.name,
                roll_no=student.roll_no,
                department=student.department,
                total_sessions=total,
                total_present=total_present,
                overall_percentage=round_half_up(100 * total_present / total) if total else 0,
                subject_breakdown=breakdown
            ))

        return sorted(reports, key=lambda r: r.overall_percentage)

    @staticmethod
    def global_stats(users: Iterable[User], sessions: Iterable[Session],
                     records: Iterable[AttendanceRecord]) -> Dict[str, int]:
        users = list(users)
        sessions = list(sessions)
        return {
            'total_students': sum(1 for u in users if u.role == UserRole.STUDENT.value),
            'total_faculty': sum(1 for u in users if u.role == UserRole.FACULTY.value),
            'total_sessions': len(sessions),
            'active_sessions': sum(1 for s in sessions if s.is_active),
            'total_attendance': sum(1 for _ in records)
        }

    @staticmethod
    def export_records_csv(records: Iterable[AttendanceRecord]) -> str:
        df = pd.DataFrame([r.to_dict() for r in records], columns=EXPORT_COLUMNS)
        if not df.empty:
            df['timestamp'] = pd.to_datetime(df['timestamp'], unit='ms', utc=True)
        return df.to_csv(index=False)
