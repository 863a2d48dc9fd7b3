from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from counselling.core.router_guard import require_auth_user, require_role
from counselling.db import get_db
from counselling.models import Role
from counselling.request_context import EndpointNameRoute
from counselling.schemas import JournalWriteRequest
from counselling.services.journal_service import create_journal, delete_journal, list_journals, serialize_journal, update_journal


router = APIRouter(prefix='/api/journals', tags=['Journals'], route_class=EndpointNameRoute)


def _require_student(request: Request, db: Session) -> dict:
    user = require_auth_user(request, db)
    require_role(user, {Role.STUDENT.value})
    return user


@router.get('')
def get_all(request: Request, db: Session = Depends(get_db)):
    user = _require_student(request, db)
    rows = list_journals(db, user['user_id'])
    return {'success': True, 'count': len(rows), 'data': [serialize_journal(row) for row in rows]}


@router.post('', status_code=201)
def create(payload: JournalWriteRequest, request: Request, db: Session = Depends(get_db)):
    user = _require_student(request, db)
    row = create_journal(db, user['user_id'], payload.title, payload.content, payload.mood)
    return {'success': True, 'data': serialize_journal(row)}


@router.put('/{journal_id}')
def update(journal_id: int, payload: JournalWriteRequest, request: Request, db: Session = Depends(get_db)):
    user = _require_student(request, db)
    row = update_journal(db, user['user_id'], journal_id, payload.title, payload.content, payload.mood)
    return {'success': True, 'data': serialize_journal(row)}


@router.delete('/{journal_id}')
def delete(journal_id: int, request: Request, db: Session = Depends(get_db)):
    user = _require_student(request, db)
    delete_journal(db, user['user_id'], journal_id)
    return {'success': True, 'message': 'Journal deleted'}
