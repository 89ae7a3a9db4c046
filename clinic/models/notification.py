from sqlalchemy import Column, Integer, String, DateTime, Text
from datetime import datetime

from ..core.database import Base

class DeliveryLogEntry(Base):
    """One attempted outbound message leg, delivered or recorded as fallback."""
    __tablename__ = "notification_log"

    id = Column(Integer, primary_key=True, index=True)
    kind = Column(String(20), nullable=False)  # appointment, contact
    recipient_role = Column(String(10), nullable=False)  # admin, user
    intent = Column(String(20), nullable=False)
    recipient = Column(String(40), nullable=False)
    message = Column(Text, nullable=False)
    status = Column(String(20), nullable=False)  # sent, fallback
    error = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    def __repr__(self):
        return f"<DeliveryLogEntry(id={self.id}, recipient='{self.recipient}', status='{self.status}')>"
