from __future__ import annotations

from typing import Iterable

from fastapi import HTTPException, Request
from sqlalchemy.orm import Session

from counselling.services.auth_service import validate_session_token


def _resolve_token(request: Request) -> str | None:
    authorization = request.headers.get('authorization', '')
    if authorization.lower().startswith('bearer '):
        return authorization[7:].strip()
    return None


def require_auth_user(request: Request, db: Session) -> dict:
    token = _resolve_token(request)
    session = validate_session_token(db, token)
    if not session:
        raise HTTPException(status_code=401, detail='Not authorized, token missing or invalid')
    user_id = int(session.get('user_id') or 0)
    if user_id <= 0:
        raise HTTPException(status_code=401, detail='Not authorized, token missing or invalid')
    return {
        'user_id': user_id,
        'role': str(session.get('role') or '').strip().lower(),
        'email': str(session.get('email') or ''),
        'token': token,
    }


def require_role(user: dict, allowed_roles: set[str] | Iterable[str]) -> None:
    normalized = {str(role).strip().lower() for role in allowed_roles}
    if str(user.get('role') or '').strip().lower() not in normalized:
        raise HTTPException(status_code=403, detail=f"Role {user.get('role') or 'unknown'} is not authorized to access this route")
