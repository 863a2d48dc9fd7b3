from api_case import ApiTestCase, next_weekday


class SessionLifecycleApiTests(ApiTestCase):
    db_name = 'test_sessions.db'

    def setUp(self):
        super().setUp()
        self.counsellor_token, self.counsellor = self.register_counsellor('c1@campus.test')
        self.student_token, self.student = self.register_student('s1@campus.test', year='3', department='Physics')

    def start(self, token=None, **payload):
        return self.client.post('/api/sessions/start', json=payload, headers=self.auth(token or self.counsellor_token))

    def end(self, session_id, token=None, **payload):
        return self.client.post(
            f'/api/sessions/{session_id}/end',
            json=payload,
            headers=self.auth(token or self.counsellor_token),
        )

    def test_start_and_end_toggle_active_flag(self):
        self.assertFalse(self.counsellor_is_active(self.counsellor['id']))

        started = self.start(studentId=self.student['id'])
        self.assertEqual(started.status_code, 201, started.text)
        session = started.json()['data']
        self.assertEqual(session['status'], 'open')
        self.assertIsNone(session['end_time'])
        self.assertEqual(session['student']['anonymous_username'], self.student['anonymous_username'])
        self.assertTrue(self.counsellor_is_active(self.counsellor['id']))

        ended = self.end(session['id'], notes='Discussed exam stress', severity='moderate')
        self.assertEqual(ended.status_code, 200, ended.text)
        closed = ended.json()['data']
        self.assertEqual(closed['status'], 'closed')
        self.assertEqual(closed['severity'], 'moderate')
        self.assertEqual(closed['notes'], 'Discussed exam stress')
        self.assertIsNotNone(closed['end_time'])
        self.assertFalse(self.counsellor_is_active(self.counsellor['id']))

    def test_second_open_session_conflicts(self):
        other_token, other = self.register_student('s2@campus.test')
        self.assertEqual(self.start(studentId=self.student['id']).status_code, 201)

        second = self.start(studentId=other['id'])
        self.assertEqual(second.status_code, 400)
        self.assertEqual(second.json()['message'], 'You already have a session in progress')
        self.assertTrue(self.counsellor_is_active(self.counsellor['id']))

    def test_start_by_qr_secret(self):
        qr = self.client.get('/api/auth/qr-code', headers=self.auth(self.student_token)).json()['data']
        started = self.start(qrSecret=qr['qr_secret'])
        self.assertEqual(started.status_code, 201, started.text)
        self.assertEqual(started.json()['data']['student_id'], self.student['id'])

        unknown = self.start(self.register_counsellor('c2@campus.test', 'Other')[0], qrSecret='not-a-secret')
        self.assertEqual(unknown.status_code, 404)

    def test_start_requires_a_student(self):
        response = self.start()
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['message'], 'studentId or qrSecret is required')

    def test_ending_completes_only_the_linked_appointment(self):
        other_token, other = self.register_student('s2@campus.test')
        monday_slot = self.create_slot(self.counsellor_token, 1).json()['data']
        tuesday_slot = self.create_slot(self.counsellor_token, 2).json()['data']
        linked = self.book(self.student_token, self.counsellor['id'], monday_slot['id'], next_weekday(1)).json()['data']
        unrelated = self.book(other_token, self.counsellor['id'], tuesday_slot['id'], next_weekday(2)).json()['data']

        session = self.start(studentId=self.student['id'], appointmentId=linked['id']).json()['data']
        self.assertEqual(session['appointment_id'], linked['id'])
        self.assertEqual(self.end(session['id'], severity='low').status_code, 200)

        rows = {
            row['id']: row['status']
            for row in self.client.get('/api/appointments/my', headers=self.auth(self.counsellor_token)).json()['data']
        }
        self.assertEqual(rows[linked['id']], 'completed')
        self.assertEqual(rows[unrelated['id']], 'scheduled')

    def test_appointment_must_belong_to_counsellor_and_student(self):
        other_token, other = self.register_student('s2@campus.test')
        slot = self.create_slot(self.counsellor_token, 1).json()['data']
        appointment = self.book(other_token, self.counsellor['id'], slot['id'], next_weekday(1)).json()['data']

        response = self.start(studentId=self.student['id'], appointmentId=appointment['id'])
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()['message'], 'Appointment not found')
        self.assertFalse(self.counsellor_is_active(self.counsellor['id']))

    def test_cancelled_appointment_cannot_start_a_session(self):
        slot = self.create_slot(self.counsellor_token, 1).json()['data']
        appointment = self.book(self.student_token, self.counsellor['id'], slot['id'], next_weekday(1)).json()['data']
        self.client.put(f"/api/appointments/{appointment['id']}/cancel", headers=self.auth(self.student_token))

        response = self.start(studentId=self.student['id'], appointmentId=appointment['id'])
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['message'], 'Appointment is cancelled')

    def test_other_counsellor_cannot_end_session(self):
        other_token, other = self.register_counsellor('c2@campus.test', 'Dr. Arjun Rao')
        session = self.start(studentId=self.student['id']).json()['data']

        response = self.end(session['id'], token=other_token, severity='high')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()['message'], 'Session not found')
        self.assertTrue(self.counsellor_is_active(self.counsellor['id']))
        self.assertFalse(self.counsellor_is_active(other['id']))

    def test_closed_session_cannot_be_ended_again(self):
        session = self.start(studentId=self.student['id']).json()['data']
        self.assertEqual(self.end(session['id'], severity='low').status_code, 200)

        again = self.end(session['id'], severity='high')
        self.assertEqual(again.status_code, 400)
        self.assertEqual(again.json()['message'], 'Session already ended')
        self.assertFalse(self.counsellor_is_active(self.counsellor['id']))

    def test_invalid_severity_is_rejected(self):
        session = self.start(studentId=self.student['id']).json()['data']
        response = self.end(session['id'], severity='critical')
        self.assertEqual(response.status_code, 422)
        self.assertTrue(self.counsellor_is_active(self.counsellor['id']))

    def test_session_listing_and_fetch_are_scoped(self):
        other_token, other = self.register_student('s2@campus.test')
        first = self.start(studentId=self.student['id']).json()['data']
        self.end(first['id'], severity='low')
        second = self.start(studentId=other['id']).json()['data']

        mine = self.client.get('/api/sessions', headers=self.auth(self.student_token)).json()
        self.assertEqual([row['id'] for row in mine['data']], [first['id']])

        counsellor_view = self.client.get('/api/sessions', headers=self.auth(self.counsellor_token)).json()
        self.assertEqual(counsellor_view['count'], 2)

        forbidden = self.client.get(f"/api/sessions/{second['id']}", headers=self.auth(self.student_token))
        self.assertEqual(forbidden.status_code, 403)
        allowed = self.client.get(f"/api/sessions/{second['id']}", headers=self.auth(other_token))
        self.assertEqual(allowed.status_code, 200)

        history = self.client.get(
            f"/api/sessions/students/{self.student['id']}",
            headers=self.auth(self.counsellor_token),
        ).json()
        self.assertEqual([row['id'] for row in history['data']], [first['id']])

    def test_students_cannot_start_sessions(self):
        response = self.start(self.student_token, studentId=self.student['id'])
        self.assertEqual(response.status_code, 403)
