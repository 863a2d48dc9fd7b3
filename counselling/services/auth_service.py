from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
import re
import secrets
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from counselling.config import settings
from counselling.core.errors import AuthenticationError, ConflictError, ForbiddenError, NotFoundError, ValidationError
from counselling.core.time_provider import APP_ZONEINFO, TimeProvider, default_time_provider
from counselling.db import commit_or_raise
from counselling.models import RevokedToken, Role, User
from counselling.services.rate_limit_service import check_rate_limit


_EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
ANONYMOUS_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'
logger = logging.getLogger(__name__)


def _normalize_email(email: str) -> str:
    return (email or '').strip().lower()


def _mask_email(email: str) -> str:
    local, _, domain = _normalize_email(email).partition('@')
    if not domain:
        return '***'
    return f'{local[:1]}***@{domain}'


def _hash_password(password: str) -> str:
    if len(password or '') < 8:
        raise ValidationError('Password must be at least 8 characters')
    salt = secrets.token_hex(16)
    iterations = 120000
    derived = hashlib.pbkdf2_hmac('sha256', password.encode('utf-8'), salt.encode('utf-8'), iterations)
    return f'pbkdf2_sha256${iterations}${salt}${derived.hex()}'


def _verify_password(password: str, password_hash: str) -> bool:
    try:
        algo, iter_raw, salt, digest_hex = password_hash.split('$', 3)
        if algo != 'pbkdf2_sha256':
            return False
        iterations = int(iter_raw)
        derived = hashlib.pbkdf2_hmac('sha256', (password or '').encode('utf-8'), salt.encode('utf-8'), iterations).hex()
        return hmac.compare_digest(derived, digest_hex)
    except ValueError:
        return False


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode('ascii').rstrip('=')


def _b64url_decode(value: str) -> bytes:
    padding = '=' * (-len(value) % 4)
    return base64.urlsafe_b64decode((value + padding).encode('ascii'))


def _encode_jwt(payload: dict) -> str:
    header = {'alg': 'HS256', 'typ': 'JWT'}
    header_part = _b64url_encode(json.dumps(header, separators=(',', ':')).encode('utf-8'))
    payload_part = _b64url_encode(json.dumps(payload, separators=(',', ':')).encode('utf-8'))
    signing_input = f'{header_part}.{payload_part}'.encode('ascii')
    signature = hmac.new(settings.auth_secret.encode('utf-8'), signing_input, hashlib.sha256).digest()
    signature_part = _b64url_encode(signature)
    return f'{header_part}.{payload_part}.{signature_part}'


def _decode_jwt(token: str) -> dict | None:
    try:
        header_part, payload_part, signature_part = token.split('.')
        signing_input = f'{header_part}.{payload_part}'.encode('ascii')
    except ValueError:
        return None

    expected_signature = hmac.new(settings.auth_secret.encode('utf-8'), signing_input, hashlib.sha256).digest()
    try:
        provided_signature = _b64url_decode(signature_part)
    except ValueError:
        return None
    if not hmac.compare_digest(provided_signature, expected_signature):
        return None

    try:
        payload = json.loads(_b64url_decode(payload_part).decode('utf-8'))
    except (ValueError, json.JSONDecodeError, UnicodeDecodeError):
        return None

    if not isinstance(payload, dict):
        return None
    return payload


def serialize_user(user: User) -> dict:
    data = {
        'id': user.id,
        'email': user.email,
        'role': user.role,
        'name': user.name,
        'is_onboarded': bool(user.is_onboarded),
    }
    if user.role == Role.STUDENT.value:
        data.update(
            {
                'anonymous_username': user.anonymous_username,
                'year': user.year,
                'department': user.department,
            }
        )
    elif user.role == Role.COUNSELLOR.value:
        data.update({'specialization': user.specialization, 'is_active': bool(user.is_active)})
    return data


def _issue_session_token(user: User, *, time_provider: TimeProvider = default_time_provider) -> dict:
    now = time_provider.now()
    expires_at = now + timedelta(hours=settings.auth_token_expiry_hours)
    token = _encode_jwt(
        {
            'sub': user.id,
            'email': user.email,
            'role': user.role,
            'iat': int(now.timestamp()),
            'exp': int(expires_at.timestamp()),
            'jti': secrets.token_hex(16),
        }
    )
    return {
        'token': token,
        'expires_at': expires_at.isoformat(),
        'user': serialize_user(user),
    }


def _throttle(db: Session, action_name: str, email: str, time_provider: TimeProvider) -> None:
    check_rate_limit(
        db,
        scope_type='email',
        scope_key=email,
        action_name=action_name,
        max_requests=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
        time_provider=time_provider,
    )


def register(
    db: Session,
    email: str,
    password: str,
    role: str = Role.STUDENT.value,
    name: str = '',
    specialization: str | None = None,
    *,
    time_provider: TimeProvider = default_time_provider,
) -> dict:
    clean_email = _normalize_email(email)
    if not _EMAIL_RE.match(clean_email):
        raise ValidationError('A valid email is required')
    role_value = (role or Role.STUDENT.value).strip().lower()
    if role_value not in {item.value for item in Role}:
        raise ValidationError('Role must be one of: student, counsellor, management')
    _throttle(db, 'auth_register', clean_email, time_provider)

    if db.query(User.id).filter(User.email == clean_email).first():
        raise ConflictError('An account with this email already exists')

    user = User(
        email=clean_email,
        password_hash=_hash_password(password),
        role=role_value,
        name=(name or '').strip() or clean_email.split('@', 1)[0],
        specialization=specialization if role_value == Role.COUNSELLOR.value else None,
        # Only students go through onboarding.
        is_onboarded=role_value != Role.STUDENT.value,
    )
    db.add(user)
    commit_or_raise(db, conflict_message='An account with this email already exists')
    db.refresh(user)
    logger.info('auth_register_success email=%s role=%s', _mask_email(clean_email), role_value)
    return _issue_session_token(user, time_provider=time_provider)


def login(
    db: Session,
    email: str,
    password: str,
    *,
    time_provider: TimeProvider = default_time_provider,
) -> dict:
    clean_email = _normalize_email(email)
    if not clean_email or not password:
        raise ValidationError('Please provide email and password')
    _throttle(db, 'auth_login', clean_email, time_provider)

    user = db.query(User).filter(User.email == clean_email).first()
    if not user or not user.password_hash or not _verify_password(password, user.password_hash):
        logger.warning('auth_login_failed email=%s', _mask_email(clean_email))
        raise AuthenticationError('Invalid credentials')
    logger.info('auth_login_success email=%s role=%s', _mask_email(clean_email), user.role)
    return _issue_session_token(user, time_provider=time_provider)


def validate_session_token(
    db: Session,
    token: str | None,
    *,
    time_provider: TimeProvider = default_time_provider,
) -> dict | None:
    if not token:
        return None

    payload = _decode_jwt(token)
    if not payload:
        return None

    role = payload.get('role')
    user_id = payload.get('sub')
    expires_at = payload.get('exp')
    jti = payload.get('jti')
    if not role or user_id is None or not jti:
        return None
    if expires_at is not None and int(expires_at) <= int(time_provider.now().timestamp()):
        return None
    if db.query(RevokedToken.id).filter(RevokedToken.jti == str(jti)).first():
        return None

    return {
        'user_id': int(user_id),
        'role': str(role),
        'email': str(payload.get('email') or ''),
    }


def clear_session_token(
    db: Session,
    token: str | None,
    *,
    time_provider: TimeProvider = default_time_provider,
) -> None:
    payload = _decode_jwt(token) if token else None
    if not payload or not payload.get('jti'):
        return
    jti = str(payload['jti'])
    if db.query(RevokedToken.id).filter(RevokedToken.jti == jti).first():
        return
    expires_raw = payload.get('exp')
    if expires_raw is not None:
        expires_at = datetime.fromtimestamp(int(expires_raw), APP_ZONEINFO).replace(tzinfo=None)
    else:
        expires_at = time_provider.naive_now()
    # Drop revocations whose tokens have expired.
    db.query(RevokedToken).filter(RevokedToken.expires_at <= time_provider.naive_now()).delete(synchronize_session=False)
    db.add(RevokedToken(jti=jti, user_id=int(payload.get('sub') or 0), expires_at=expires_at))
    commit_or_raise(db, conflict_message='Token already revoked')
    logger.info('auth_logout user_id=%s', payload.get('sub'))


def get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError('User not found')
    return user


def _generate_anonymous_username(db: Session) -> str:
    while True:
        candidate = 'S-' + ''.join(secrets.choice(ANONYMOUS_ALPHABET) for _ in range(5))
        if not db.query(User.id).filter(User.anonymous_username == candidate).first():
            return candidate


def complete_onboarding(db: Session, user_id: int, year: str, department: str) -> User:
    user = db.query(User).filter(User.id == user_id).with_for_update().first()
    if not user:
        raise NotFoundError('User not found')
    if user.role != Role.STUDENT.value:
        raise ForbiddenError('Only students can complete onboarding')
    if user.is_onboarded:
        raise ConflictError('User already onboarded')

    user.year = year.strip()
    user.department = department.strip()
    user.anonymous_username = _generate_anonymous_username(db)
    user.qr_secret = secrets.token_urlsafe(24)
    user.is_onboarded = True
    commit_or_raise(db, conflict_message='Could not assign an anonymous username, please retry')
    db.refresh(user)
    logger.info('student_onboarded user_id=%s department=%s', user.id, user.department)
    return user


def get_qr_payload(db: Session, user_id: int) -> dict:
    user = get_user(db, user_id)
    if user.role != Role.STUDENT.value:
        raise ForbiddenError('Only students have QR codes')
    if not user.qr_secret:
        raise ConflictError('Complete onboarding to get a QR code')
    # Clients render this string as the QR image; counsellors scan it back into start_session.
    qr_data = json.dumps(
        {'studentId': user.id, 'username': user.anonymous_username, 'secret': user.qr_secret},
        separators=(',', ':'),
    )
    return {
        'qr_secret': user.qr_secret,
        'qr_data': qr_data,
        'username': user.anonymous_username,
    }
