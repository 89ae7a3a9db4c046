from datetime import datetime
from enum import Enum
from typing import Optional, Any, Dict
from pydantic import BaseModel, ConfigDict, computed_field

class MessageKind(str, Enum):
    APPOINTMENT = "appointment"
    CONTACT = "contact"

class RecipientRole(str, Enum):
    ADMIN = "admin"
    USER = "user"

class MessageIntent(str, Enum):
    NEW = "new"
    REMINDER = "reminder"
    CONFIRMATION = "confirmation"
    CANCELLATION = "cancellation"

class DeliveryStatus(str, Enum):
    SENT = "sent"
    FALLBACK = "fallback"

class SendMessageRequest(BaseModel):
    intent: MessageIntent

class DeliveryOutcome(BaseModel):
    recipient_role: RecipientRole
    recipient: str
    message: str
    status: DeliveryStatus
    acknowledgment: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

class DispatchResult(BaseModel):
    """Result of a dispatch. Always successful from the caller's point of view."""
    success: bool = True
    admin: DeliveryOutcome
    user: Optional[DeliveryOutcome] = None

    @computed_field
    @property
    def fallback(self) -> bool:
        legs = [self.admin] + ([self.user] if self.user else [])
        return any(leg.status == DeliveryStatus.FALLBACK for leg in legs)

class DeliveryLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    kind: str
    recipient_role: str
    intent: str
    recipient: str
    message: str
    status: str
    error: Optional[str] = None
    created_at: datetime
