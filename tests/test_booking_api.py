from datetime import timedelta

from api_case import ApiTestCase, next_weekday

from counselling.core.time_provider import default_time_provider


class BookingApiTests(ApiTestCase):
    db_name = 'test_booking.db'

    def setUp(self):
        super().setUp()
        self.counsellor_token, self.counsellor = self.register_counsellor('c1@campus.test')
        self.monday_slot = self.create_slot(self.counsellor_token, 1, '09:00', '10:00').json()['data']
        self.tuesday_slot = self.create_slot(self.counsellor_token, 2, '09:00', '10:00').json()['data']
        self.student_token, self.student = self.register_student('s1@campus.test')

    def test_book_returns_scheduled_appointment(self):
        monday = next_weekday(1)
        response = self.book(self.student_token, self.counsellor['id'], self.monday_slot['id'], monday)

        self.assertEqual(response.status_code, 201, response.text)
        data = response.json()['data']
        self.assertEqual(data['status'], 'scheduled')
        self.assertEqual(data['appointment_date'], monday.isoformat())
        self.assertEqual(data['counsellor']['name'], 'Dr. Meera Nair')
        self.assertEqual(data['time_slot']['start_time'], '09:00')

    def test_second_booking_conflicts_until_first_is_cancelled(self):
        monday = next_weekday(1)
        first = self.book(self.student_token, self.counsellor['id'], self.monday_slot['id'], monday)
        self.assertEqual(first.status_code, 201)

        second = self.book(self.student_token, self.counsellor['id'], self.tuesday_slot['id'], next_weekday(2))
        self.assertEqual(second.status_code, 400)
        self.assertEqual(second.json()['message'], 'You already have a scheduled appointment')

        cancelled = self.client.put(
            f"/api/appointments/{first.json()['data']['id']}/cancel",
            headers=self.auth(self.student_token),
        )
        self.assertEqual(cancelled.status_code, 200)
        self.assertEqual(cancelled.json()['data']['status'], 'cancelled')

        retry = self.book(self.student_token, self.counsellor['id'], self.tuesday_slot['id'], next_weekday(2))
        self.assertEqual(retry.status_code, 201, retry.text)

    def test_completed_appointment_frees_the_student_to_book_again(self):
        first = self.book(self.student_token, self.counsellor['id'], self.monday_slot['id'], next_weekday(1)).json()['data']
        session = self.client.post(
            '/api/sessions/start',
            json={'studentId': self.student['id'], 'appointmentId': first['id']},
            headers=self.auth(self.counsellor_token),
        ).json()['data']
        ended = self.client.post(
            f"/api/sessions/{session['id']}/end",
            json={'notes': 'Follow up next week', 'severity': 'low'},
            headers=self.auth(self.counsellor_token),
        )
        self.assertEqual(ended.status_code, 200)

        mine = self.client.get('/api/appointments/my', headers=self.auth(self.student_token)).json()['data']
        self.assertEqual(mine[0]['status'], 'completed')

        again = self.book(self.student_token, self.counsellor['id'], self.tuesday_slot['id'], next_weekday(2))
        self.assertEqual(again.status_code, 201, again.text)
        self.assertEqual(again.json()['data']['status'], 'scheduled')

    def test_slot_cannot_be_double_booked_for_same_date(self):
        other_token, _ = self.register_student('s2@campus.test')
        monday = next_weekday(1)
        self.assertEqual(self.book(self.student_token, self.counsellor['id'], self.monday_slot['id'], monday).status_code, 201)

        taken = self.book(other_token, self.counsellor['id'], self.monday_slot['id'], monday)
        self.assertEqual(taken.status_code, 400)
        self.assertEqual(taken.json()['message'], 'This time slot is already booked for that date')

        following_week = self.book(other_token, self.counsellor['id'], self.monday_slot['id'], monday + timedelta(days=7))
        self.assertEqual(following_week.status_code, 201)

    def test_date_must_match_slot_weekday_and_not_be_past(self):
        wrong_day = self.book(self.student_token, self.counsellor['id'], self.monday_slot['id'], next_weekday(3))
        self.assertEqual(wrong_day.status_code, 400)
        self.assertEqual(wrong_day.json()['message'], 'Appointment date does not fall on the time slot day')

        yesterday = default_time_provider.today() - timedelta(days=1)
        past = self.book(self.student_token, self.counsellor['id'], self.monday_slot['id'], yesterday)
        self.assertEqual(past.status_code, 400)

    def test_slot_of_another_counsellor_is_not_found(self):
        other_token, other = self.register_counsellor('c2@campus.test', 'Dr. Arjun Rao')
        response = self.book(self.student_token, other['id'], self.monday_slot['id'], next_weekday(1))
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()['message'], 'Time slot not found')

    def test_unavailable_slot_cannot_be_booked(self):
        self.client.put(
            f"/api/appointments/slots/{self.monday_slot['id']}/availability",
            json={'isAvailable': False},
            headers=self.auth(self.counsellor_token),
        )
        response = self.book(self.student_token, self.counsellor['id'], self.monday_slot['id'], next_weekday(1))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['message'], 'Time slot is not available')

    def test_only_students_book(self):
        response = self.book(self.counsellor_token, self.counsellor['id'], self.monday_slot['id'], next_weekday(1))
        self.assertEqual(response.status_code, 403)

    def test_cancel_requires_owner(self):
        appointment = self.book(self.student_token, self.counsellor['id'], self.monday_slot['id'], next_weekday(1)).json()['data']
        other_student_token, _ = self.register_student('s2@campus.test')
        other_counsellor_token, _ = self.register_counsellor('c2@campus.test', 'Dr. Arjun Rao')

        for token in (other_student_token, other_counsellor_token):
            response = self.client.put(f"/api/appointments/{appointment['id']}/cancel", headers=self.auth(token))
            self.assertEqual(response.status_code, 403)

        own_counsellor = self.client.put(
            f"/api/appointments/{appointment['id']}/cancel",
            headers=self.auth(self.counsellor_token),
        )
        self.assertEqual(own_counsellor.status_code, 200)
        self.assertEqual(own_counsellor.json()['data']['status'], 'cancelled')

        again = self.client.put(
            f"/api/appointments/{appointment['id']}/cancel",
            headers=self.auth(self.student_token),
        )
        self.assertEqual(again.status_code, 200)
        self.assertEqual(again.json()['data']['status'], 'cancelled')

    def test_cancel_missing_appointment(self):
        response = self.client.put('/api/appointments/9999/cancel', headers=self.auth(self.student_token))
        self.assertEqual(response.status_code, 404)

    def test_my_appointments_are_scoped_to_requester(self):
        other_token, _ = self.register_student('s2@campus.test')
        mine = self.book(self.student_token, self.counsellor['id'], self.monday_slot['id'], next_weekday(1)).json()['data']
        theirs = self.book(other_token, self.counsellor['id'], self.tuesday_slot['id'], next_weekday(2)).json()['data']

        student_view = self.client.get('/api/appointments/my', headers=self.auth(self.student_token)).json()
        self.assertEqual([row['id'] for row in student_view['data']], [mine['id']])

        other_view = self.client.get('/api/appointments/my', headers=self.auth(other_token)).json()
        self.assertEqual([row['id'] for row in other_view['data']], [theirs['id']])

        counsellor_view = self.client.get('/api/appointments/my', headers=self.auth(self.counsellor_token)).json()
        self.assertEqual(counsellor_view['count'], 2)

    def test_deleting_booked_slot_only_deactivates_it(self):
        appointment = self.book(self.student_token, self.counsellor['id'], self.monday_slot['id'], next_weekday(1)).json()['data']

        response = self.client.delete(
            f"/api/appointments/slots/{self.monday_slot['id']}",
            headers=self.auth(self.counsellor_token),
        )
        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.json()['data']['deleted'])

        mine = self.client.get('/api/appointments/my', headers=self.auth(self.student_token)).json()['data']
        self.assertEqual(mine[0]['id'], appointment['id'])
        self.assertFalse(mine[0]['time_slot']['is_available'])
