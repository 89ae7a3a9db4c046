from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from fastapi import HTTPException, status
from datetime import datetime
from typing import List, Optional
import logging

from ..models.appointment import Appointment, AppointmentStatus
from ..models.content import Service
from ..schemas.appointment import (
    AppointmentCreate, AppointmentRead, AppointmentStats, AppointmentUpdate,
    ContactMessage, StaffAppointmentCreate
)
from .live_feed import AppointmentFeed

logger = logging.getLogger(__name__)

STORE_WRITE_FAILED = "Please try again or call us directly."

# Optional fields an update may reset to null
CLEARABLE_FIELDS = {"service_id", "preferred_date", "preferred_time", "admin_notes"}

class AppointmentStore:
    def __init__(self, db: Session, feed: Optional[AppointmentFeed] = None):
        self.db = db
        self.feed = feed

    def create(self, data: AppointmentCreate) -> AppointmentRead:
        """Persist a booking request. Public submissions always start Pending."""
        fields = data.model_dump()
        if isinstance(data, StaffAppointmentCreate):
            booking_status = fields.pop("status")
        else:
            booking_status = AppointmentStatus.PENDING

        fields["service_id"] = fields.get("service_id") or None
        self._check_service(fields["service_id"])

        now = datetime.utcnow()
        appointment = Appointment(
            **fields,
            status=booking_status,
            created_at=now,
            updated_at=now,
        )
        self.db.add(appointment)
        self._commit("adding appointment")
        self.db.refresh(appointment)

        logger.info(f"Appointment {appointment.id} created with status {booking_status.value}")
        return self._published(appointment)

    def create_from_contact(self, contact: ContactMessage) -> AppointmentRead:
        """Contact form submissions are kept as pending appointments."""
        return self.create(AppointmentCreate(
            name=contact.name,
            email=contact.email,
            phone=contact.phone,
            message=contact.message,
        ))

    def get(self, appointment_id: str) -> AppointmentRead:
        return AppointmentRead.model_validate(self._get_or_404(appointment_id))

    def list(
        self,
        search: Optional[str] = None,
        status_filter: Optional[AppointmentStatus] = None
    ) -> List[AppointmentRead]:
        query = self.db.query(Appointment)

        if status_filter is not None:
            query = query.filter(Appointment.status == status_filter)

        if search:
            term = f"%{search.lower()}%"
            query = query.filter(or_(
                func.lower(Appointment.name).like(term),
                func.lower(Appointment.email).like(term),
                Appointment.phone.like(f"%{search}%"),
                func.lower(Appointment.message).like(term),
            ))

        rows = query.order_by(Appointment.created_at.desc(), Appointment.id).all()
        return [AppointmentRead.model_validate(row) for row in rows]

    def update(self, appointment_id: str, changes: AppointmentUpdate) -> AppointmentRead:
        appointment = self._get_or_404(appointment_id)
        fields = {
            name: value
            for name, value in changes.model_dump(exclude_unset=True).items()
            if value is not None or name in CLEARABLE_FIELDS
        }

        if "service_id" in fields:
            self._check_service(fields["service_id"])

        for name, value in fields.items():
            setattr(appointment, name, value)
        appointment.updated_at = datetime.utcnow()

        self._commit("updating appointment")
        self.db.refresh(appointment)

        logger.info(f"Appointment {appointment.id} updated: {sorted(fields)}")
        return self._published(appointment)

    def delete(self, appointment_id: str) -> None:
        appointment = self._get_or_404(appointment_id)
        self.db.delete(appointment)
        self._commit("deleting appointment")

        logger.info(f"Appointment {appointment_id} deleted")
        if self.feed is not None:
            self.feed.notify_changed()

    def stats(self) -> AppointmentStats:
        counts = dict(
            self.db.query(Appointment.status, func.count(Appointment.id))
            .group_by(Appointment.status)
            .all()
        )
        by_status = {s: counts.get(s, 0) for s in AppointmentStatus}
        return AppointmentStats(total=sum(by_status.values()), by_status=by_status)

    def _get_or_404(self, appointment_id: str) -> Appointment:
        appointment = self.db.query(Appointment).filter(
            Appointment.id == appointment_id
        ).first()

        if not appointment:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Appointment not found"
            )
        return appointment

    def _check_service(self, service_id: Optional[str]):
        if not service_id:
            return
        exists = self.db.query(Service.id).filter(Service.id == service_id).first()
        if not exists:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Unknown service"
            )

    def _commit(self, action: str):
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error {action}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=STORE_WRITE_FAILED
            )

    def _published(self, appointment: Appointment) -> AppointmentRead:
        record = AppointmentRead.model_validate(appointment)
        if self.feed is not None:
            self.feed.notify_changed()
        return record
