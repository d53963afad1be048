"""Weekly timetable management."""
import re
import uuid
from datetime import datetime
from typing import Dict, List, Optional

from attendance_engine.constants import DAYS_OF_WEEK, TIMETABLE
from attendance_engine.models.entities import TimetableEntry
from attendance_engine.services.curriculum import is_relevant
from attendance_engine.storage.document_store import DocumentStore
from attendance_engine.utils.validators import ValidationError

TIME_PATTERN = re.compile(r'^([01]\d|2[0-3]):[0-5]\d$')


def time_to_minutes(value: str) -> int:
    hours, minutes = value.split(':')
    return int(hours) * 60 + int(minutes)


class TimetableService:
    """Instructor timetable entries and today's current/next class."""

    def __init__(self, store: DocumentStore):
        self.store = store

    def add_entry(self, instructor_id: str, subject: str, day: str,
                  start_time: str, end_time: str) -> TimetableEntry:
        if day not in DAYS_OF_WEEK:
            raise ValidationError(f"Invalid day: {day}")
        for value in (start_time, end_time):
            if not TIME_PATTERN.match(value or ''):
                raise ValidationError(f"Invalid time: {value}. Use HH:MM")
        if time_to_minutes(end_time) <= time_to_minutes(start_time):
            raise ValidationError("End time must be after start time")

        start, end = time_to_minutes(start_time), time_to_minutes(end_time)
        for other in self.entries_for(instructor_id):
            if other.day != day:
                continue
            if start < time_to_minutes(other.end_time) and time_to_minutes(other.start_time) < end:
                raise ValidationError(
                    f"Overlaps with {other.subject} ({other.start_time}-{other.end_time})"
                )

        entry = TimetableEntry(
            id=uuid.uuid4().hex[:12],
            instructor_id=instructor_id,
            subject=subject,
            day=day,
            start_time=start_time,
            end_time=end_time
        )
        self.store.create_or_replace(TIMETABLE, entry.id, entry.to_dict())
        return entry

    def delete_entry(self, instructor_id: str, entry_id: str) -> bool:
        doc = self.store.read(TIMETABLE, entry_id)
        if doc is None or doc.get('instructor_id') != instructor_id:
            return False
        return self.store.delete(TIMETABLE, entry_id)

    def entries_for(self, instructor_id: str) -> List[TimetableEntry]:
        entries = [TimetableEntry.from_dict(d)
                   for d in self.store.query_equal(TIMETABLE, 'instructor_id', instructor_id)]
        return self._ordered(entries)

    def entries_for_department(self, department: Optional[str]) -> List[TimetableEntry]:
        """A student's weekly schedule."""
        entries = [TimetableEntry.from_dict(d) for d in self.store.scan(TIMETABLE)]
        return self._ordered([e for e in entries if is_relevant(e.subject, department)])

    @staticmethod
    def _ordered(entries: List[TimetableEntry]) -> List[TimetableEntry]:
        return sorted(entries, key=lambda e: (DAYS_OF_WEEK.index(e.day), time_to_minutes(e.start_time)))

    @staticmethod
    def schedule_status(entries: List[TimetableEntry], now: datetime = None) -> Dict[str, Optional[str]]:
        """Ids of the class running now and the next one today."""
        now = now or datetime.now()
        today = DAYS_OF_WEEK[now.weekday()]
        minutes = now.hour * 60 + now.minute

        current_id = None
        next_id = None
        min_diff = None
        for entry in entries:
            if entry.day != today:
                continue
            start = time_to_minutes(entry.start_time)
            end = time_to_minutes(entry.end_time)
            if start <= minutes < end:
                current_id = entry.id
            elif minutes < start and (min_diff is None or start - minutes < min_diff):
                min_diff = start - minutes
                next_id = entry.id

        return {'current_class_id': current_id, 'next_class_id': next_id}
