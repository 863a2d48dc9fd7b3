from datetime import timedelta
from pathlib import Path
import sys


# Ensure imports work when running this file directly: `python scripts/init_db.py`.
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from counselling.core.time_provider import default_time_provider
from counselling.db import Base, SessionLocal, engine
from counselling.models import User
from counselling.services.auth_service import complete_onboarding, register
from counselling.services.availability_service import create_slot
from counselling.services.booking_service import book_appointment, slot_weekday


DEMO_PASSWORD = 'password123'
COUNSELLORS = [
    ('Dr. Meera Nair', 'meera@campus.test', 'Anxiety and stress'),
    ('Dr. Arjun Rao', 'arjun@campus.test', 'Academic pressure'),
]
STUDENTS = [
    ('aarav@campus.test', '2', 'Computer Science'),
    ('diya@campus.test', '3', 'Mechanical'),
    ('ishaan@campus.test', '1', 'Computer Science'),
]


Base.metadata.create_all(bind=engine)

db = SessionLocal()
try:
    if not db.query(User).first():
        register(db, 'admin@campus.test', DEMO_PASSWORD, role='management', name='Wellness Office')

        counsellor_ids = []
        for name, email, specialization in COUNSELLORS:
            data = register(db, email, DEMO_PASSWORD, role='counsellor', name=name, specialization=specialization)
            counsellor_id = data['user']['id']
            counsellor_ids.append(counsellor_id)
            for day in range(1, 6):
                create_slot(db, counsellor_id, day, '10:00', '11:00')
                create_slot(db, counsellor_id, day, '15:00', '16:00')

        student_ids = []
        for email, year, department in STUDENTS:
            data = register(db, email, DEMO_PASSWORD, role='student')
            complete_onboarding(db, data['user']['id'], year, department)
            student_ids.append(data['user']['id'])

        # One upcoming booking so the counsellor dashboard is not empty.
        target = default_time_provider.today() + timedelta(days=1)
        while slot_weekday(target) in (0, 6):
            target += timedelta(days=1)
        counsellor = db.query(User).filter(User.id == counsellor_ids[0]).first()
        slot = next(s for s in counsellor.time_slots if s.day_of_week == slot_weekday(target))
        book_appointment(db, student_ids[0], counsellor.id, slot.id, target)
finally:
    db.close()

print(f'DB initialized with sample data (password for every account: {DEMO_PASSWORD}).')
