from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from ...core.database import get_db
from ...api.deps import get_current_user
from ...services.appointment_service import AppointmentService, parse_appointment_date
from ...schemas.appointment import (
    AppointmentBook, AppointmentCancel, AppointmentStatusUpdate,
    AppointmentResponse, AppointmentList, BookedSlots, CancellationResponse,
    DoctorParty, Party
)
from ...models.appointment import Appointment
from ...models.user import User

router = APIRouter(prefix="/appointments", tags=["Appointments"])

def appointment_response(appointment: Appointment) -> AppointmentResponse:
    """Denormalize doctor and patient details for the response body."""
    doctor, patient = appointment.doctor, appointment.patient
    profile = appointment.doctor_profile

    return AppointmentResponse(
        id=appointment.id,
        doctor=DoctorParty(
            id=doctor.id,
            name=doctor.username,
            email=doctor.email,
            phone=doctor.phone,
            profile_id=appointment.doctor_profile_id,
            specialization=profile.specialization if profile else None,
        ),
        patient=Party(
            id=patient.id,
            name=patient.username,
            email=patient.email,
            phone=patient.phone,
        ),
        appointment_date=appointment.appointment_date,
        appointment_time=appointment.appointment_time,
        reason=appointment.reason,
        notes=appointment.notes or "",
        status=appointment.status,
        consultation_fee=appointment.consultation_fee,
        cancelled_by=appointment.cancelled_by,
        cancellation_reason=appointment.cancellation_reason,
        created_at=appointment.created_at,
        updated_at=appointment.updated_at,
    )

@router.post("/book", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
async def book_appointment(
    booking: AppointmentBook,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Book an appointment slot with a doctor."""
    appointment = AppointmentService(db).book_appointment(
        current_user,
        booking.doctor_id,
        booking.appointment_date,
        booking.appointment_time,
        booking.reason,
        booking.notes,
    )
    return appointment_response(appointment)

@router.get("/booked-slots", response_model=BookedSlots)
async def get_booked_slots(
    doctor_id: int = Query(...),
    appointment_date: str = Query(..., alias="date"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List slot times already held for a doctor on a day."""
    slot_date = parse_appointment_date(appointment_date)
    slots = AppointmentService(db).booked_slots(doctor_id, slot_date)
    return BookedSlots(
        doctor_id=doctor_id,
        appointment_date=slot_date,
        booked_slots=slots,
    )

@router.get("/my", response_model=AppointmentList)
async def get_my_appointments(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List the caller's appointments as a patient."""
    appointments = AppointmentService(db).list_for_patient(current_user)
    return AppointmentList(
        count=len(appointments),
        appointments=[appointment_response(a) for a in appointments],
    )

@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get one appointment; visible to its patient, its doctor and admins."""
    appointment = AppointmentService(db).get_for_caller(
        current_user, current_user.role, appointment_id
    )
    return appointment_response(appointment)

@router.put("/{appointment_id}/cancel", response_model=CancellationResponse)
async def cancel_appointment(
    appointment_id: int,
    cancel_data: Optional[AppointmentCancel] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Cancel an appointment."""
    appointment = AppointmentService(db).cancel_appointment(
        current_user,
        current_user.role,
        appointment_id,
        cancel_data.cancellation_reason if cancel_data else None,
    )
    return CancellationResponse(
        id=appointment.id,
        status=appointment.status,
        cancelled_by=appointment.cancelled_by,
        cancellation_reason=appointment.cancellation_reason,
    )

@router.put("/{appointment_id}/status", response_model=AppointmentResponse)
async def update_appointment_status(
    appointment_id: int,
    status_data: AppointmentStatusUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Confirm or complete an appointment."""
    appointment = AppointmentService(db).update_status(
        current_user, current_user.role, appointment_id, status_data.status
    )
    return appointment_response(appointment)
