"""Low attendance alerts."""
from typing import Iterable, List

from attendance_engine.constants import ALERT_WARNING_THRESHOLD, ALERT_CRITICAL_THRESHOLD
from attendance_engine.models.entities import (
    AlertSeverity, AttendanceAlert, AttendanceRecord, Session, User
)
from attendance_engine.services.curriculum import is_relevant
from attendance_engine.utils.helpers import now_ms, round_half_up


class AlertService:
    """Derives warning/critical alerts from sessions and attendance."""

    @staticmethod
    def generate_alerts(
        users: Iterable[User],
        sessions: Iterable[Session],
        records: Iterable[AttendanceRecord],
        warning_threshold: int = ALERT_WARNING_THRESHOLD,
        critical_threshold: int = ALERT_CRITICAL_THRESHOLD,
        now: int = None
    ) -> List[AttendanceAlert]:
        now = now_ms() if now is None else now
        started = [s for s in sessions if s.start_time < now]
        records = [r for r in records if r.is_present]
        alerts = []

        for student in users:
            if not student.is_student:
                continue

            relevant_ids = {
                s.id for s in started if is_relevant(s.subject, student.department)
            }
            if not relevant_ids:
                continue

            present = sum(
                1 for r in records
                if r.student_id == student.id and r.session_id in relevant_ids
            )
            total = len(relevant_ids)
            percentage = round_half_up(100 * present / total)

            if percentage >= warning_threshold:
                continue

            missed = total - present
            critical = percentage < critical_threshold
            if critical:
                message = f"Critical: Attendance at {percentage}% ({missed} missed)"
            else:
                message = f"Warning: Low attendance {percentage}% ({missed} missed)"

            alerts.append(AttendanceAlert(
                id=f'alert-{student.id}-{now}',
                student_id=student.id,
                student_name=student.name,
                roll_no=student.roll_no,
                department=student.department,
                severity=(AlertSeverity.CRITICAL if critical else AlertSeverity.WARNING).value,
                message=message,
                percentage=percentage,
                missed_sessions=missed,
                total_sessions=total
            ))

        # critical first, then lowest percentage
        return sorted(alerts, key=lambda a: (not a.is_critical, a.percentage))
