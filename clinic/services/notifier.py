from typing import Callable
import logging

from pydantic import BaseModel

from ..schemas.appointment import AppointmentRead

logger = logging.getLogger(__name__)

NEW_APPOINTMENT_TITLE = "New Appointment!"

class Toast(BaseModel):
    """Transient notification shown on the administrator dashboard."""
    title: str
    description: str

    @property
    def text(self) -> str:
        return f"{self.title} {self.description}"

class NotificationDispatcher:
    """Raises one toast per fresh appointment handed to it."""

    def __init__(self, present: Callable[[Toast], None]):
        self._present = present

    def notify_new_appointment(self, appointment: AppointmentRead) -> Toast:
        toast = Toast(
            title=NEW_APPOINTMENT_TITLE,
            description=f"{appointment.name} has booked an appointment",
        )
        logger.info(f"New appointment toast for {appointment.id}")
        self._present(toast)
        return toast
