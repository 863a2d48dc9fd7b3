import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import patch

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from counselling.core.errors import RateLimitError
from counselling.db import Base
from counselling.services.auth_service import login, register
from counselling.services.rate_limit_service import check_rate_limit


def _utc(y, m, d, hh=0, mm=0, ss=0):
    return datetime(y, m, d, hh, mm, ss, tzinfo=timezone.utc)


@pytest.fixture()
def db():
    tmpdir = tempfile.TemporaryDirectory()
    db_path = Path(tmpdir.name) / 'test_rate_limit.db'
    engine = create_engine(f"sqlite:///{db_path}", connect_args={'check_same_thread': False})
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    session = Session()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()
        tmpdir.cleanup()


def _hit(db, **overrides):
    params = {
        'scope_type': 'email',
        'scope_key': 'student@campus.test',
        'action_name': 'auth_login',
        'max_requests': 5,
        'window_seconds': 60,
    }
    params.update(overrides)
    return check_rate_limit(db, **params)


def test_rate_limit_blocks_after_threshold_and_resets(db):
    base = _utc(2026, 10, 19, 6, 0, 0)
    with patch('counselling.services.rate_limit_service.default_time_provider.now', return_value=base):
        for _ in range(5):
            assert _hit(db)
        with pytest.raises(RateLimitError) as excinfo:
            _hit(db)
    assert excinfo.value.status_code == 429
    assert 'Retry in 60 seconds' in excinfo.value.message

    with patch('counselling.services.rate_limit_service.default_time_provider.now', return_value=base + timedelta(seconds=61)):
        assert _hit(db)


def test_rate_limit_scopes_are_independent(db):
    base = _utc(2026, 10, 19, 6, 0, 0)
    with patch('counselling.services.rate_limit_service.default_time_provider.now', return_value=base):
        for _ in range(5):
            _hit(db)
        assert _hit(db, scope_key='other@campus.test')
        assert _hit(db, action_name='auth_register')
        with pytest.raises(RateLimitError):
            _hit(db, scope_key='STUDENT@campus.test ')


def test_login_is_throttled_per_email(db):
    register(db, 'student@campus.test', 'Password@123')
    with patch('counselling.services.auth_service.settings.rate_limit_max_requests', 3):
        for _ in range(3):
            assert login(db, 'student@campus.test', 'Password@123')['token']
        with pytest.raises(RateLimitError):
            login(db, 'student@campus.test', 'Password@123')
