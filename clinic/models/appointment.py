from sqlalchemy import Column, String, ForeignKey, DateTime, Text, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from ..core.database import Base, generate_id

class AppointmentStatus(str, enum.Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    CANCELED = "Canceled"
    COMPLETED = "Completed"

# Half-hour slots, closed for lunch between 12:30 and 14:00
TIME_SLOTS = [
    "09:00 AM", "09:30 AM", "10:00 AM", "10:30 AM",
    "11:00 AM", "11:30 AM", "12:00 PM", "12:30 PM",
    "02:00 PM", "02:30 PM", "03:00 PM", "03:30 PM",
    "04:00 PM", "04:30 PM", "05:00 PM", "05:30 PM",
    "06:00 PM", "06:30 PM", "07:00 PM", "07:30 PM",
]

class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(String(32), primary_key=True, default=generate_id)

    # Requester
    name = Column(String(120), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(40), nullable=False)
    message = Column(Text, nullable=False, default="")

    # Booking preferences
    service_id = Column(String(32), ForeignKey("services.id", ondelete="SET NULL"), nullable=True)
    preferred_date = Column(String(10), nullable=True)  # yyyy-MM-dd
    preferred_time = Column(String(8), nullable=True)

    status = Column(
        SQLEnum(AppointmentStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=AppointmentStatus.PENDING,
    )
    admin_notes = Column(Text, nullable=True)

    # Tracking
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    service = relationship("Service")

    @property
    def service_title(self):
        return self.service.title if self.service else None

    def __repr__(self):
        return f"<Appointment(id={self.id}, name='{self.name}', status='{self.status}')>"
