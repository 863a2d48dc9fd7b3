from counselling.routers import analytics, appointments, auth, counsellors, journals, moods, sessions

__all__ = [
    'analytics',
    'appointments',
    'auth',
    'counsellors',
    'journals',
    'moods',
    'sessions',
]
