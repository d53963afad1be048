"""Demo data seeding service."""
import base64
import io
from typing import List

from PIL import Image, ImageDraw

from attendance_engine.constants import SUBJECTS_BY_DEPT
from attendance_engine.models.entities import User, UserRole


def placeholder_face(shade: int) -> str:
    """Simple synthetic face image as a PNG data URL."""
    img = Image.new('RGB', (64, 64), (shade, shade, shade))
    draw = ImageDraw.Draw(img)
    draw.ellipse((12, 6, 52, 58), fill=(shade + 60, shade + 45, shade + 30))
    draw.ellipse((22, 22, 28, 28), fill=(20, 20, 20))
    draw.ellipse((36, 22, 42, 28), fill=(20, 20, 20))
    draw.line((24, 44, 40, 44), fill=(90, 30, 30), width=2)

    buffered = io.BytesIO()
    img.save(buffered, format='PNG')
    return 'data:image/png;base64,' + base64.b64encode(buffered.getvalue()).decode()


class SeedService:
    """Service to seed the store with demo data."""

    @staticmethod
    def seed_all(engine) -> List[User]:
        """Seed all demo data."""
        users = SeedService.seed_users(engine)
        SeedService.seed_timetable(engine)
        return users

    @staticmethod
    def seed_users(engine) -> List[User]:
        department = "Computer Science and Engineering"
        users = [
            User(id='admin-1', name='System Administrator', role=UserRole.ADMIN.value,
                 email='admin@university.edu'),
            User(id='faculty-1', name='Dr. Meera Rao', role=UserRole.FACULTY.value,
                 email='meera.rao@university.edu', department=department,
                 subject='Data Structures'),
            User(id='student-1', name='Arjun Kumar', role=UserRole.STUDENT.value,
                 email='arjun@university.edu', department=department,
                 roll_no='CSE2021001', reference_image=placeholder_face(90)),
            User(id='student-2', name='Priya Shah', role=UserRole.STUDENT.value,
                 email='priya@university.edu', department=department,
                 roll_no='CSE2021002', reference_image=placeholder_face(120)),
        ]
        for user in users:
            engine.save_user(user)
        return users

    @staticmethod
    def seed_timetable(engine) -> None:
        if engine.timetable.entries_for('faculty-1'):
            return
        subjects = SUBJECTS_BY_DEPT["Computer Science and Engineering"]
        for index, day in enumerate(['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday']):
            subject = subjects[index % len(subjects)]
            engine.timetable.add_entry('faculty-1', subject, day, '09:00', '10:00')
