from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from counselling.core.router_guard import require_auth_user, require_role
from counselling.db import get_db
from counselling.models import Role
from counselling.request_context import EndpointNameRoute
from counselling.schemas import LoginRequest, OnboardingRequest, RegisterRequest
from counselling.services.auth_service import (
    clear_session_token,
    complete_onboarding,
    get_qr_payload,
    get_user,
    login,
    register,
    serialize_user,
)


router = APIRouter(prefix='/api/auth', tags=['Auth'], route_class=EndpointNameRoute)


@router.post('/register', status_code=201)
def auth_register(payload: RegisterRequest, db: Session = Depends(get_db)):
    data = register(
        db,
        email=payload.email,
        password=payload.password,
        role=payload.role,
        name=payload.name,
        specialization=payload.specialization,
    )
    return {'success': True, 'data': data}


@router.post('/login')
def auth_login(payload: LoginRequest, db: Session = Depends(get_db)):
    data = login(db, payload.email, payload.password)
    return {'success': True, 'data': data}


@router.post('/logout')
def auth_logout(request: Request, db: Session = Depends(get_db)):
    user = require_auth_user(request, db)
    clear_session_token(db, user['token'])
    return {'success': True, 'message': 'Logged out'}


@router.get('/me')
def me(request: Request, db: Session = Depends(get_db)):
    user = require_auth_user(request, db)
    return {'success': True, 'data': serialize_user(get_user(db, user['user_id']))}


@router.post('/onboarding')
def onboarding(payload: OnboardingRequest, request: Request, db: Session = Depends(get_db)):
    user = require_auth_user(request, db)
    require_role(user, {Role.STUDENT.value})
    row = complete_onboarding(db, user['user_id'], payload.year, payload.department)
    return {'success': True, 'data': serialize_user(row)}


@router.get('/qr-code')
def qr_code(request: Request, db: Session = Depends(get_db)):
    user = require_auth_user(request, db)
    require_role(user, {Role.STUDENT.value})
    return {'success': True, 'data': get_qr_payload(db, user['user_id'])}
