from api_case import ApiTestCase

from counselling.core.time_provider import default_time_provider


class AnalyticsApiTests(ApiTestCase):
    db_name = 'test_analytics.db'

    def setUp(self):
        super().setUp()
        self.admin_token, _ = self.register('admin@campus.test', 'management', name='Wellness Office')
        self.counsellor_token, self.counsellor = self.register_counsellor('c1@campus.test')
        _, self.cs_student = self.register_student('s1@campus.test', year='1', department='Computer Science')
        _, self.me_student = self.register_student('s2@campus.test', year='3', department='Mechanical')
        self.walk_in, _ = self.register('s3@campus.test')

    def run_session(self, student_id, severity):
        session = self.client.post(
            '/api/sessions/start',
            json={'studentId': student_id},
            headers=self.auth(self.counsellor_token),
        ).json()['data']
        if severity is not None:
            self.client.post(
                f"/api/sessions/{session['id']}/end",
                json={'severity': severity},
                headers=self.auth(self.counsellor_token),
            )
        return session

    def get(self, path):
        response = self.client.get(f'/api/analytics/{path}', headers=self.auth(self.admin_token))
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()['data']

    def test_aggregates(self):
        self.run_session(self.cs_student['id'], 'high')
        self.run_session(self.cs_student['id'], 'low')
        self.run_session(self.me_student['id'], 'moderate')
        un_onboarded = self.client.get('/api/auth/me', headers=self.auth(self.walk_in)).json()['data']
        self.run_session(un_onboarded['id'], None)

        by_department = self.get('department')
        self.assertEqual(by_department['Computer Science'], {'total': 2, 'high': 1, 'moderate': 0, 'low': 1})
        self.assertEqual(by_department['Mechanical']['moderate'], 1)
        self.assertEqual(by_department['Unknown']['total'], 1)

        by_year = self.get('year')
        self.assertEqual(by_year['1']['total'], 2)
        self.assertEqual(by_year['3']['total'], 1)

        self.assertEqual(self.get('severity'), {'total': 4, 'high': 1, 'moderate': 1, 'low': 1})

        month = default_time_provider.today().strftime('%Y-%m')
        self.assertEqual(self.get('volume'), {month: 4})

        overview = self.get('overview')
        self.assertEqual(overview['total_sessions'], 4)
        self.assertEqual(overview['total_students'], 3)
        self.assertEqual(overview['total_counsellors'], 1)
        self.assertEqual(overview['active_counsellors'], 1)

    def test_management_only(self):
        response = self.client.get('/api/analytics/overview', headers=self.auth(self.counsellor_token))
        self.assertEqual(response.status_code, 403)
        self.assertFalse(response.json()['success'])
