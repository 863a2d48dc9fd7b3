from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from counselling.core.router_guard import require_auth_user, require_role
from counselling.db import get_db
from counselling.models import Role
from counselling.request_context import EndpointNameRoute
from counselling.services import analytics_service


router = APIRouter(prefix='/api/analytics', tags=['Analytics'], route_class=EndpointNameRoute)


def _require_management(request: Request, db: Session) -> dict:
    user = require_auth_user(request, db)
    require_role(user, {Role.MANAGEMENT.value})
    return user


@router.get('/department')
def department(request: Request, db: Session = Depends(get_db)):
    _require_management(request, db)
    return {'success': True, 'data': analytics_service.sessions_by_department(db)}


@router.get('/year')
def year(request: Request, db: Session = Depends(get_db)):
    _require_management(request, db)
    return {'success': True, 'data': analytics_service.sessions_by_year(db)}


@router.get('/severity')
def severity(request: Request, db: Session = Depends(get_db)):
    _require_management(request, db)
    return {'success': True, 'data': analytics_service.severity_distribution(db)}


@router.get('/volume')
def volume(request: Request, db: Session = Depends(get_db)):
    _require_management(request, db)
    return {'success': True, 'data': analytics_service.session_volume(db)}


@router.get('/overview')
def overview(request: Request, db: Session = Depends(get_db)):
    _require_management(request, db)
    return {'success': True, 'data': analytics_service.overview(db)}
