"""Department curriculum lookups."""
from typing import List, Optional

from attendance_engine.constants import SUBJECTS_BY_DEPT


def subjects_for(department: Optional[str]) -> List[str]:
    if not department:
        return []
    return SUBJECTS_BY_DEPT.get(department, [])


def is_relevant(subject: str, department: Optional[str]) -> bool:
    """A session counts for a student when its subject is in their curriculum.

    Students without a known curriculum are expected at every session.
    """
    subjects = subjects_for(department)
    return not subjects or subject in subjects
