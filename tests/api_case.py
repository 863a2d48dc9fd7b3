import tempfile
import unittest
from datetime import date, timedelta
from pathlib import Path

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from counselling.core.errors import install_error_handlers
from counselling.core.time_provider import default_time_provider
from counselling.db import Base, get_db
from counselling.routers import analytics, appointments, auth, counsellors, journals, moods, sessions


PASSWORD = 'Password@123'


def next_weekday(day_of_week: int, *, after: date | None = None) -> date:
    """First date strictly after ``after`` (default today) falling on ``day_of_week`` (0 = Sunday)."""
    current = (after or default_time_provider.today()) + timedelta(days=1)
    while (current.weekday() + 1) % 7 != day_of_week:
        current += timedelta(days=1)
    return current


class ApiTestCase(unittest.TestCase):
    db_name = 'test_api.db'

    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / cls.db_name
        cls._engine = create_engine(f"sqlite:///{db_path}", connect_args={'check_same_thread': False})
        cls._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=cls._engine)
        Base.metadata.create_all(bind=cls._engine)

        app = FastAPI()
        install_error_handlers(app)
        for module in (auth, counsellors, appointments, sessions, journals, moods, analytics):
            app.include_router(module.router)

        def override_get_db():
            db = cls._session_factory()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        cls.client = TestClient(app)

    @classmethod
    def tearDownClass(cls):
        cls.client.close()
        cls._engine.dispose()
        cls._tmpdir.cleanup()

    def setUp(self):
        db = self._session_factory()
        try:
            for table in reversed(Base.metadata.sorted_tables):
                db.execute(table.delete())
            db.commit()
        finally:
            db.close()

    @staticmethod
    def auth(token: str) -> dict:
        return {'Authorization': f'Bearer {token}'}

    def register(self, email: str, role: str = 'student', **extra) -> tuple[str, dict]:
        response = self.client.post(
            '/api/auth/register',
            json={'email': email, 'password': PASSWORD, 'role': role, **extra},
        )
        self.assertEqual(response.status_code, 201, response.text)
        data = response.json()['data']
        return data['token'], data['user']

    def register_student(self, email: str, *, year: str = '2', department: str = 'Computer Science') -> tuple[str, dict]:
        token, _ = self.register(email)
        response = self.client.post(
            '/api/auth/onboarding',
            json={'year': year, 'department': department},
            headers=self.auth(token),
        )
        self.assertEqual(response.status_code, 200, response.text)
        return token, response.json()['data']

    def register_counsellor(self, email: str, name: str = 'Dr. Meera Nair') -> tuple[str, dict]:
        return self.register(email, 'counsellor', name=name, specialization='Anxiety')

    def create_slot(self, token: str, day_of_week: int, start: str = '09:00', end: str = '10:00'):
        return self.client.post(
            '/api/appointments/slots',
            json={'dayOfWeek': day_of_week, 'startTime': start, 'endTime': end},
            headers=self.auth(token),
        )

    def book(self, token: str, counsellor_id: int, slot_id: int, appointment_date: date):
        return self.client.post(
            '/api/appointments',
            json={
                'counsellorId': counsellor_id,
                'timeSlotId': slot_id,
                'appointmentDate': appointment_date.isoformat(),
            },
            headers=self.auth(token),
        )

    def counsellor_is_active(self, counsellor_id: int) -> bool:
        response = self.client.get(f'/api/counsellors/{counsellor_id}')
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()['data']['is_active']
