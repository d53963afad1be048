"""Attendance ledger with exactly-once commits."""
import logging
import uuid
from typing import Callable, List

from attendance_engine.constants import ATTENDANCE, SESSION_STALENESS_MINUTES
from attendance_engine.errors import DuplicateError
from attendance_engine.models.entities import AttendanceRecord, AttendanceStatus, User
from attendance_engine.services.curriculum import is_relevant
from attendance_engine.storage.document_store import DocumentStore
from attendance_engine.utils.helpers import now_ms
from attendance_engine.utils.locks import KeyedLock

logger = logging.getLogger(__name__)


def new_record_id() -> str:
    return uuid.uuid4().hex


class AttendanceLedger:
    """Stores at most one present record per (session, student).

    Absent records are never written; ``history_for`` derives them at read
    time from the sessions a student missed.
    """

    def __init__(self, store: DocumentStore, registry, locks=None,
                 clock: Callable[[], int] = now_ms,
                 staleness_minutes: int = SESSION_STALENESS_MINUTES):
        self.store = store
        self.registry = registry
        self.locks = locks or KeyedLock()
        self.clock = clock
        self.staleness_ms = staleness_minutes * 60 * 1000

    @staticmethod
    def _doc_id(session_id: str, student_id: str) -> str:
        """One slot per (session, student); the store refuses a second insert."""
        return f'{session_id}:{student_id}'

    def commit(self, record: AttendanceRecord) -> bool:
        """Persist ``record`` unless the student is already marked.

        Returns False, without touching the store, for a repeat commit.
        """
        if not record.is_present:
            raise ValueError("Only present records can be committed")

        with self.locks.hold(f'attendance:{record.session_id}:{record.student_id}'):
            created = self.store.create_if_absent(
                ATTENDANCE, self._doc_id(record.session_id, record.student_id), record.to_dict()
            )
            if not created:
                logger.info("Student %s already marked for session %s",
                            record.student_id, record.session_id)
                return False

        logger.info("Student %s marked present for session %s", record.student_id, record.session_id)
        return True

    def commit_or_raise(self, record: AttendanceRecord) -> AttendanceRecord:
        if not self.commit(record):
            raise DuplicateError("Attendance already marked for this session.")
        return record

    def mark_manual(self, student: User, subject: str, session_id: str = None) -> AttendanceRecord:
        """Instructor/admin entry; neither verification flag is set."""
        now = self.clock()
        record = AttendanceRecord(
            id=new_record_id(),
            session_id=session_id or f'manual-{now}',
            student_id=student.id,
            student_name=student.name,
            subject=subject,
            timestamp=now,
            status=AttendanceStatus.PRESENT.value,
            verified_by_face=False,
            verified_by_location=False
        )
        return self.commit_or_raise(record)

    def records_for_student(self, student_id: str) -> List[AttendanceRecord]:
        records = [AttendanceRecord.from_dict(d)
                   for d in self.store.query_equal(ATTENDANCE, 'student_id', student_id)]
        return sorted(records, key=lambda r: r.timestamp, reverse=True)

    def records_for_session(self, session_id: str) -> List[AttendanceRecord]:
        records = [AttendanceRecord.from_dict(d)
                   for d in self.store.query_equal(ATTENDANCE, 'session_id', session_id)]
        return sorted(records, key=lambda r: r.timestamp)

    def all_records(self) -> List[AttendanceRecord]:
        records = [AttendanceRecord.from_dict(d) for d in self.store.scan(ATTENDANCE)]
        return sorted(records, key=lambda r: r.timestamp, reverse=True)

    def delete_record(self, record_id: str) -> bool:
        docs = self.store.query_equal(ATTENDANCE, 'id', record_id)
        if not docs:
            return False
        doc = docs[0]
        deleted = self.store.delete(ATTENDANCE, self._doc_id(doc['session_id'], doc['student_id']))
        if deleted:
            logger.info("Attendance record %s deleted", record_id)
        return deleted

    def history_for(self, student: User, now: int = None) -> List[AttendanceRecord]:
        """Present records plus absences for concluded, relevant sessions."""
        now = self.clock() if now is None else now
        present = self.records_for_student(student.id)
        attended = {r.session_id for r in present if r.is_present}

        absences = []
        for session in self.registry.all_sessions():
            if session.id in attended:
                continue
            if not is_relevant(session.subject, student.department):
                continue
            if not session.has_concluded(now, self.staleness_ms):
                continue
            absences.append(AttendanceRecord(
                id=f'absent-{session.id}-{student.id}',
                session_id=session.id,
                student_id=student.id,
                student_name=student.name,
                subject=session.subject,
                timestamp=session.start_time,
                status=AttendanceStatus.ABSENT.value,
                verified_by_face=False,
                verified_by_location=False
            ))

        return sorted(present + absences, key=lambda r: r.timestamp, reverse=True)
