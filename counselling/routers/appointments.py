from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from counselling.core.router_guard import require_auth_user, require_role
from counselling.db import get_db
from counselling.models import Role
from counselling.request_context import EndpointNameRoute
from counselling.schemas import AppointmentCreateRequest, TimeSlotAvailabilityRequest, TimeSlotCreateRequest
from counselling.services.availability_service import create_slot, delete_slot, list_slots, serialize_slot, set_slot_availability
from counselling.services.booking_service import book_appointment, cancel_appointment, list_my_appointments, serialize_appointment


router = APIRouter(prefix='/api/appointments', tags=['Appointments'], route_class=EndpointNameRoute)


@router.get('/slots/{counsellor_id}')
def get_slots(counsellor_id: int, db: Session = Depends(get_db)):
    rows = list_slots(db, counsellor_id)
    return {'success': True, 'count': len(rows), 'data': [serialize_slot(row) for row in rows]}


@router.post('/slots', status_code=201)
def post_slot(payload: TimeSlotCreateRequest, request: Request, db: Session = Depends(get_db)):
    user = require_auth_user(request, db)
    require_role(user, {Role.COUNSELLOR.value})
    row = create_slot(
        db,
        counsellor_id=user['user_id'],
        day_of_week=payload.day_of_week,
        start_time=payload.start_time,
        end_time=payload.end_time,
    )
    return {'success': True, 'data': serialize_slot(row)}


@router.put('/slots/{slot_id}/availability')
def put_slot_availability(slot_id: int, payload: TimeSlotAvailabilityRequest, request: Request, db: Session = Depends(get_db)):
    user = require_auth_user(request, db)
    require_role(user, {Role.COUNSELLOR.value})
    row = set_slot_availability(db, user['user_id'], slot_id, payload.is_available)
    return {'success': True, 'data': serialize_slot(row)}


@router.delete('/slots/{slot_id}')
def remove_slot(slot_id: int, request: Request, db: Session = Depends(get_db)):
    user = require_auth_user(request, db)
    require_role(user, {Role.COUNSELLOR.value})
    deleted = delete_slot(db, user['user_id'], slot_id)
    message = 'Time slot deleted' if deleted else 'Time slot has bookings and was marked unavailable'
    return {'success': True, 'message': message, 'data': {'id': slot_id, 'deleted': deleted}}


@router.get('/my')
def my_appointments(request: Request, db: Session = Depends(get_db)):
    user = require_auth_user(request, db)
    rows = list_my_appointments(db, user['user_id'], user['role'])
    return {'success': True, 'count': len(rows), 'data': [serialize_appointment(row) for row in rows]}


@router.post('', status_code=201)
def book(payload: AppointmentCreateRequest, request: Request, db: Session = Depends(get_db)):
    user = require_auth_user(request, db)
    require_role(user, {Role.STUDENT.value})
    row = book_appointment(
        db,
        student_id=user['user_id'],
        counsellor_id=payload.counsellor_id,
        time_slot_id=payload.time_slot_id,
        appointment_date=payload.appointment_date,
    )
    return {'success': True, 'data': serialize_appointment(row)}


@router.put('/{appointment_id}/cancel')
def cancel(appointment_id: int, request: Request, db: Session = Depends(get_db)):
    user = require_auth_user(request, db)
    row = cancel_appointment(db, user['user_id'], user['role'], appointment_id)
    return {'success': True, 'data': serialize_appointment(row)}
