from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from counselling.db import get_db
from counselling.request_context import EndpointNameRoute
from counselling.services.counsellor_service import get_counsellor, list_counsellors


router = APIRouter(prefix='/api/counsellors', tags=['Counsellors'], route_class=EndpointNameRoute)


@router.get('')
def get_all(db: Session = Depends(get_db)):
    rows = list_counsellors(db)
    return {'success': True, 'count': len(rows), 'data': rows}


@router.get('/{counsellor_id}')
def get_one(counsellor_id: int, db: Session = Depends(get_db)):
    return {'success': True, 'data': get_counsellor(db, counsellor_id)}
