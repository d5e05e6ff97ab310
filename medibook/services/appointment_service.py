from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from datetime import date, datetime
from typing import List, Optional, Union
import logging

from ..core.exceptions import (
    ConflictError, ForbiddenError, InvalidInputError,
    InvalidOperationError, NotFoundError
)
from ..core.security import UserRole
from ..models.appointment import (
    Appointment, AppointmentStatus, CancelledBy, ACTIVE_STATUSES,
    ALLOWED_TRANSITIONS, DEFAULT_CANCELLATION_REASON
)
from ..models.doctor import Doctor
from ..models.user import User

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M"

DOCTOR_SLOT_TAKEN = "This time slot is already booked. Please choose another time."
PATIENT_SLOT_TAKEN = "You already have an appointment at this time."

def parse_appointment_date(value: Union[str, date]) -> date:
    """Parse a YYYY-MM-DD date; the calendar day is all a slot keeps."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(value.strip(), DATE_FORMAT).date()
    except ValueError:
        raise InvalidInputError("Invalid appointment date format. Use YYYY-MM-DD")

def parse_time_slot(value: str) -> str:
    """Validate an HH:MM slot token and return it zero-padded."""
    try:
        return datetime.strptime(value.strip(), TIME_FORMAT).strftime(TIME_FORMAT)
    except ValueError:
        raise InvalidInputError("Invalid appointment time format. Use HH:MM")

SLOT_INDEXES = (
    "uq_appointments_doctor_active_slot",
    "uq_appointments_patient_active_slot",
)

def _blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())

def _is_slot_violation(exc: IntegrityError) -> bool:
    message = str(exc.orig)
    if any(name in message for name in SLOT_INDEXES):
        return True
    # SQLite reports the indexed columns rather than the index name
    return "UNIQUE constraint failed" in message and "appointments.appointment_time" in message

class AppointmentService:
    def __init__(self, db: Session):
        self.db = db

    def slot_taken(self, role_key: str, party_id: int, appointment_date: date, time_slot: str) -> bool:
        """Whether the doctor or patient already holds an active appointment in this slot."""
        if role_key == "doctorId":
            column = Appointment.doctor_id
        elif role_key == "patientId":
            column = Appointment.patient_id
        else:
            raise ValueError(f"Unknown role key: {role_key}")

        query = self.db.query(Appointment.id).filter(
            column == party_id,
            Appointment.appointment_date == appointment_date,
            Appointment.appointment_time == time_slot,
            Appointment.status.in_(ACTIVE_STATUSES)
        )
        return self.db.query(query.exists()).scalar()

    def book_appointment(
        self,
        caller: User,
        doctor_profile_id: Optional[int],
        appointment_date: Union[str, date, None],
        time_slot: Optional[str],
        reason: Optional[str],
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Appointment:
        """Book a pending appointment for ``caller`` with a doctor.

        All validation runs before the single insert, so a rejected booking
        never leaves a partial record. The two partial unique indexes on the
        ledger reject a concurrent duplicate that slipped past the checks.
        """
        if (
            _blank(doctor_profile_id) or _blank(appointment_date)
            or _blank(time_slot) or _blank(reason)
        ):
            raise InvalidInputError(
                "Doctor ID, appointment date, time, and reason are required"
            )

        slot_date = parse_appointment_date(appointment_date)
        slot_time = parse_time_slot(time_slot)

        doctor = self.db.query(Doctor).filter(Doctor.id == doctor_profile_id).first()
        if not doctor:
            raise NotFoundError("Doctor not found")

        if doctor.user_id == caller.id:
            raise InvalidOperationError("Cannot book appointment with yourself")

        starts_at = datetime.combine(
            slot_date, datetime.strptime(slot_time, TIME_FORMAT).time()
        )
        if starts_at <= (now or datetime.now()):
            raise InvalidInputError("Appointment date and time must be in the future")

        if self.slot_taken("doctorId", doctor.user_id, slot_date, slot_time):
            raise ConflictError(DOCTOR_SLOT_TAKEN)

        if self.slot_taken("patientId", caller.id, slot_date, slot_time):
            raise ConflictError(PATIENT_SLOT_TAKEN)

        appointment = Appointment(
            patient_id=caller.id,
            doctor_id=doctor.user_id,
            doctor_profile_id=doctor.id,
            appointment_date=slot_date,
            appointment_time=slot_time,
            reason=reason.strip(),
            notes=(notes or "").strip(),
            consultation_fee=doctor.consultation_fee,
            status=AppointmentStatus.PENDING,
        )

        self.db.add(appointment)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            if not _is_slot_violation(exc):
                logger.error(f"Booking insert failed: {exc.orig}")
                raise
            logger.warning(
                f"Store rejected booking for doctor {doctor.user_id} "
                f"at {slot_date} {slot_time}: slot taken concurrently"
            )
            raise self._store_conflict(doctor.user_id, caller.id, slot_date, slot_time)

        self.db.refresh(appointment)
        logger.info(
            f"Appointment {appointment.id} booked: patient {caller.id} with doctor "
            f"{doctor.user_id} at {slot_date} {slot_time}"
        )
        return appointment

    def _store_conflict(self, doctor_id: int, patient_id: int, slot_date: date, slot_time: str) -> ConflictError:
        # The index violation does not say which party collided, so look again
        if self.slot_taken("patientId", patient_id, slot_date, slot_time) and not self.slot_taken(
            "doctorId", doctor_id, slot_date, slot_time
        ):
            return ConflictError(PATIENT_SLOT_TAKEN)
        return ConflictError(DOCTOR_SLOT_TAKEN)

    def cancel_appointment(
        self,
        caller: User,
        caller_role: UserRole,
        appointment_id: int,
        reason: Optional[str] = None,
    ) -> Appointment:
        """Cancel an appointment on behalf of its patient, its doctor or an admin."""
        appointment = self._get(appointment_id)

        is_patient = appointment.patient_id == caller.id
        is_doctor = appointment.doctor_id == caller.id
        is_admin = caller_role == UserRole.ADMIN

        if not (is_patient or is_doctor or is_admin):
            raise ForbiddenError("You don't have permission to cancel this appointment")

        self._ensure_cancellable(appointment.status)

        if is_patient:
            cancelled_by = CancelledBy.PATIENT
        elif is_doctor:
            cancelled_by = CancelledBy.DOCTOR
        else:
            cancelled_by = CancelledBy.ADMIN

        reason = reason.strip() if reason and reason.strip() else DEFAULT_CANCELLATION_REASON

        self._transition(
            appointment,
            AppointmentStatus.CANCELLED,
            cancelled_by=cancelled_by,
            cancellation_reason=reason,
        )
        logger.info(f"Appointment {appointment.id} cancelled by {cancelled_by.value} (user {caller.id})")
        return appointment

    def update_status(
        self,
        caller: User,
        caller_role: UserRole,
        appointment_id: int,
        new_status: str,
    ) -> Appointment:
        """Confirm or complete an appointment as its doctor or an admin."""
        try:
            target = AppointmentStatus(new_status)
        except ValueError:
            raise InvalidInputError(
                f"Invalid status. Must be one of: {[s.value for s in AppointmentStatus]}"
            )

        if target == AppointmentStatus.CANCELLED:
            raise InvalidOperationError("Use the cancel operation to cancel an appointment")
        if target == AppointmentStatus.PENDING:
            raise InvalidOperationError("Appointments cannot be moved back to pending")

        appointment = self._get(appointment_id)
        if appointment.doctor_id != caller.id and caller_role != UserRole.ADMIN:
            raise ForbiddenError("Only the appointment's doctor or an admin can change its status")

        if target not in ALLOWED_TRANSITIONS[appointment.status]:
            raise InvalidOperationError(
                f"Cannot change status from {appointment.status.value} to {target.value}"
            )

        self._transition(appointment, target)
        logger.info(f"Appointment {appointment.id} is now {target.value} (user {caller.id})")
        return appointment

    def list_for_patient(self, caller: User) -> List[Appointment]:
        return self.db.query(Appointment).filter(
            Appointment.patient_id == caller.id
        ).order_by(
            Appointment.appointment_date.desc(),
            Appointment.appointment_time.desc()
        ).all()

    def list_for_doctor(self, caller: User) -> List[Appointment]:
        profile = self.db.query(Doctor).filter(Doctor.user_id == caller.id).first()
        if not profile:
            raise NotFoundError("Doctor profile not found")

        return self.db.query(Appointment).filter(
            Appointment.doctor_id == caller.id
        ).order_by(
            Appointment.appointment_date.asc(),
            Appointment.appointment_time.asc()
        ).all()

    def get_for_caller(self, caller: User, caller_role: UserRole, appointment_id: int) -> Appointment:
        appointment = self._get(appointment_id)

        if (
            appointment.patient_id != caller.id
            and appointment.doctor_id != caller.id
            and caller_role != UserRole.ADMIN
        ):
            raise ForbiddenError("You don't have permission to view this appointment")

        return appointment

    def booked_slots(self, doctor_profile_id: int, appointment_date: Union[str, date]) -> List[str]:
        """Slot tokens currently held for a doctor on a given day."""
        slot_date = parse_appointment_date(appointment_date)

        doctor = self.db.query(Doctor).filter(Doctor.id == doctor_profile_id).first()
        if not doctor:
            raise NotFoundError("Doctor not found")

        rows = self.db.query(Appointment.appointment_time).filter(
            Appointment.doctor_id == doctor.user_id,
            Appointment.appointment_date == slot_date,
            Appointment.status.in_(ACTIVE_STATUSES)
        ).order_by(Appointment.appointment_time.asc()).all()

        return [row.appointment_time for row in rows]

    def _get(self, appointment_id: int) -> Appointment:
        appointment = self.db.query(Appointment).filter(
            Appointment.id == appointment_id
        ).first()
        if not appointment:
            raise NotFoundError("Appointment not found")
        return appointment

    @staticmethod
    def _ensure_cancellable(current: AppointmentStatus):
        if current == AppointmentStatus.CANCELLED:
            raise InvalidOperationError("Appointment is already cancelled")
        if current == AppointmentStatus.COMPLETED:
            raise InvalidOperationError("Cannot cancel a completed appointment")

    def _transition(self, appointment: Appointment, target: AppointmentStatus, **fields):
        """Write ``target`` only if the row still has the status we validated against."""
        expected = appointment.status
        values = {"status": target, "updated_at": datetime.utcnow(), **fields}

        updated = self.db.query(Appointment).filter(
            Appointment.id == appointment.id,
            Appointment.status == expected
        ).update(values, synchronize_session=False)
        self.db.commit()

        self.db.refresh(appointment)
        if updated == 0:
            # Someone else moved the appointment first; report against its real state
            if target == AppointmentStatus.CANCELLED:
                self._ensure_cancellable(appointment.status)
            raise InvalidOperationError(
                f"Cannot change status from {appointment.status.value} to {target.value}"
            )
