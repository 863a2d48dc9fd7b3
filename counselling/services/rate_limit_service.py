from __future__ import annotations

import logging
from datetime import timedelta

from sqlalchemy.orm import Session

from counselling.core.errors import RateLimitError
from counselling.core.time_provider import TimeProvider, default_time_provider
from counselling.db import commit_or_raise
from counselling.models import RateLimitState


logger = logging.getLogger(__name__)


def check_rate_limit(
    db: Session,
    *,
    scope_type: str,
    scope_key: str,
    action_name: str,
    max_requests: int,
    window_seconds: int,
    time_provider: TimeProvider = default_time_provider,
) -> bool:
    normalized_scope_type = str(scope_type or 'user').strip().lower() or 'user'
    normalized_scope_key = str(scope_key or '').strip().lower() or 'unknown'
    normalized_action_name = str(action_name or '').strip() or 'unknown_action'
    max_allowed = max(1, int(max_requests or 1))
    window = max(1, int(window_seconds or 60))
    now = time_provider.naive_now()

    row = (
        db.query(RateLimitState)
        .filter(
            RateLimitState.scope_type == normalized_scope_type,
            RateLimitState.scope_key == normalized_scope_key,
            RateLimitState.action_name == normalized_action_name,
        )
        .with_for_update()
        .first()
    )

    if row is None:
        db.add(
            RateLimitState(
                scope_type=normalized_scope_type,
                scope_key=normalized_scope_key,
                action_name=normalized_action_name,
                window_start=now,
                request_count=1,
            )
        )
        commit_or_raise(db)
        return True

    if (now - row.window_start).total_seconds() >= window:
        row.window_start = now
        row.request_count = 1
        commit_or_raise(db)
        return True

    if int(row.request_count or 0) >= max_allowed:
        logger.warning(
            'rate_limit_blocked',
            extra={
                'scope_type': normalized_scope_type,
                'scope_key': normalized_scope_key,
                'action_name': normalized_action_name,
                'max_requests': max_allowed,
                'window_seconds': window,
            },
        )
        retry_after = max(
            1,
            int((row.window_start + timedelta(seconds=window) - now).total_seconds()),
        )
        db.rollback()
        raise RateLimitError(f'Too many requests. Retry in {retry_after} seconds.')

    row.request_count = int(row.request_count or 0) + 1
    commit_or_raise(db)
    return True
