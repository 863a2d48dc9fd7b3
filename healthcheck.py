import sys

import httpx
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import inspect, text

from counselling.config import settings
from counselling.db import engine


EXPECTED_TABLES = {
    'users',
    'time_slots',
    'appointments',
    'sessions',
    'journals',
    'moods',
    'rate_limit_states',
    'revoked_tokens',
}

GREEN = '\033[32m'
RED = '\033[31m'
RESET = '\033[0m'


def run_check(name, fn):
    try:
        message = fn() or ''
        suffix = f' - {message}' if message else ''
        print(f'{GREEN}PASS{RESET} {name}{suffix}')
        return True
    except Exception as exc:
        print(f'{RED}FAIL{RESET} {name} - {exc}')
        return False


def check_db_connectivity():
    with engine.connect() as conn:
        conn.execute(text('SELECT 1'))
    return engine.url.get_backend_name()


def check_tables_present():
    missing = sorted(EXPECTED_TABLES - set(inspect(engine).get_table_names()))
    if missing:
        raise RuntimeError(f'Missing tables: {missing}')
    return f'{len(EXPECTED_TABLES)} tables'


def check_open_session_index():
    indexes = {row['name'] for row in inspect(engine).get_indexes('sessions')}
    if 'uq_sessions_open_per_counsellor' not in indexes:
        raise RuntimeError('Open-session unique index missing on sessions')
    return 'present'


def check_alembic_head():
    cfg = Config('alembic.ini')
    heads = set(ScriptDirectory.from_config(cfg).get_heads())
    if not heads:
        raise RuntimeError('No alembic heads found in repository')
    with engine.connect() as conn:
        current = MigrationContext.configure(conn).get_current_revision()
    if current is None:
        raise RuntimeError('No migration version in DB (run alembic upgrade head)')
    if current not in heads:
        raise RuntimeError(f'DB revision {current} is not at head {sorted(heads)}')
    return f'current={current}'


def check_auth_secret():
    if not settings.auth_secret.strip() or settings.auth_secret == 'change-me':
        if settings.app_env != 'local':
            raise RuntimeError('AUTH_SECRET is unset or left at the default')
        return 'default secret (local only)'
    return 'configured'


def check_http_health():
    res = httpx.get(f'{settings.app_base_url.rstrip("/")}/health', timeout=8)
    if res.status_code != 200:
        raise RuntimeError(f'HTTP {res.status_code} from /health')
    payload = res.json()
    if not payload.get('success'):
        raise RuntimeError(f'/health responded not ok: {payload}')
    return 'ok'


def main():
    checks = [
        ('Database connectivity', check_db_connectivity),
        ('Tables present', check_tables_present),
        ('Open-session guard index', check_open_session_index),
        ('Alembic migration status at head', check_alembic_head),
        ('Auth secret configured', check_auth_secret),
        ('HTTP /health reachable', check_http_health),
    ]

    all_ok = True
    for name, fn in checks:
        all_ok = run_check(name, fn) and all_ok
    sys.exit(0 if all_ok else 1)


if __name__ == '__main__':
    main()
