"""
Outbound messaging for bookings and contact submissions.

Every dispatch sends the new-submission summary to the clinic's
administrative number and, when asked to, a message to the person who
submitted the form. Delivery problems never reach the caller: the message is
written to the diagnostic log instead and the leg is reported as handled.
"""
from typing import Any, Callable, Dict, List, Optional, Protocol, Union
import logging
import re

from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel
from sqlalchemy.orm import sessionmaker

from ..core.config import settings
from ..models.notification import DeliveryLogEntry
from ..schemas.appointment import AppointmentRead, ContactMessage
from ..schemas.messaging import (
    DeliveryOutcome, DeliveryStatus, DispatchResult, MessageIntent,
    MessageKind, RecipientRole
)
from .messaging_gateway import MessagingGateway

logger = logging.getLogger(__name__)

MessageRecord = Union[AppointmentRead, ContactMessage]

class ClinicProfile(BaseModel):
    name: str
    phone: str

    @classmethod
    def from_settings(cls) -> "ClinicProfile":
        return cls(name=settings.CLINIC_NAME, phone=settings.CLINIC_PHONE)

def normalize_phone(phone: str, country_code: Optional[str] = None) -> str:
    """Digits only, country code on bare 10 digit numbers, leading ``+``."""
    code = country_code or settings.DEFAULT_COUNTRY_CODE
    digits = re.sub(r"\D", "", phone)
    if len(digits) == 10 and not digits.startswith(code):
        digits = code + digits
    return "+" + digits

# Message templates

def _paragraphs(*blocks: Union[str, List[str], None]) -> str:
    """Join blocks with blank lines, skipping empty ones."""
    rendered = []
    for block in blocks:
        if isinstance(block, list):
            block = "\n".join(line for line in block if line)
        if block:
            rendered.append(block)
    return "\n\n".join(rendered)

def _schedule(record: MessageRecord, date_label: str = "Date", time_label: str = "Time") -> List[str]:
    lines = []
    preferred_date = getattr(record, "preferred_date", None)
    preferred_time = getattr(record, "preferred_time", None)
    if preferred_date:
        lines.append(f"{date_label}: {preferred_date}")
    if preferred_time:
        lines.append(f"{time_label}: {preferred_time}")
    return lines

def _received(record: MessageRecord) -> Optional[str]:
    created_at = getattr(record, "created_at", None)
    if created_at is None:
        return None
    return f"Received: {created_at.strftime('%d/%m/%Y, %I:%M %p')}"

def _admin_appointment(record: MessageRecord, clinic: ClinicProfile) -> str:
    status = getattr(record, "status", None)
    service_title = getattr(record, "service_title", None)
    return _paragraphs(
        "🏥 New Appointment Booking!",
        [
            f"Name: {record.name}",
            f"Phone: {record.phone}",
            f"Email: {record.email}",
            f"Message: {record.message or 'No message provided'}",
            f"Service: {service_title}" if service_title else None,
        ] + _schedule(record, "Preferred Date", "Preferred Time"),
        [
            f"Status: {status.value if status else 'Pending'}",
            _received(record),
        ],
        "Please respond to the patient promptly.",
    )

def _admin_contact(record: MessageRecord, clinic: ClinicProfile) -> str:
    return _paragraphs(
        "💬 New Contact Form Submission!",
        [
            f"Name: {record.name}",
            f"Phone: {record.phone}",
            f"Email: {record.email}",
            f"Message: {record.message}",
        ],
        _received(record),
    )

def _user_contact(record: MessageRecord, clinic: ClinicProfile) -> str:
    return _paragraphs(
        f"🙏 Thank you for contacting {clinic.name}!",
        f"Dear {record.name},",
        "We have received your message and appreciate your interest in our "
        "Ayurvedic treatments. Our team will review your inquiry and get back "
        "to you within 24 hours.",
        f"If you have any urgent concerns, please call us at {clinic.phone}.",
        ["Wishing you wellness,", clinic.name],
    )

def _user_booking_received(record: MessageRecord, clinic: ClinicProfile) -> str:
    return _paragraphs(
        f"🙏 Thank you for booking an appointment at {clinic.name}!",
        f"Dear {record.name},",
        "We have received your appointment request with the following details:",
        _schedule(record),
        "Our staff will contact you shortly to confirm your appointment. "
        f"If you have any urgent questions, please call us at {clinic.phone}.",
        ["Wishing you wellness,", clinic.name],
    )

def _user_reminder(record: MessageRecord, clinic: ClinicProfile) -> str:
    return _paragraphs(
        f"🔔 Appointment Reminder - {clinic.name}",
        f"Dear {record.name},",
        ["This is a friendly reminder of your upcoming appointment:"] + _schedule(record),
        [
            "Please arrive 15 minutes before your appointment time.",
            f"If you need to reschedule, please call us at {clinic.phone}.",
        ],
        ["Warm regards,", clinic.name],
    )

def _user_confirmation(record: MessageRecord, clinic: ClinicProfile) -> str:
    return _paragraphs(
        f"✅ Appointment Confirmed - {clinic.name}",
        f"Dear {record.name},",
        ["We're pleased to confirm your appointment has been scheduled:"] + _schedule(record),
        [
            "We look forward to seeing you. If you have any questions before your visit,",
            f"please call us at {clinic.phone}.",
        ],
        ["Wishing you wellness,", clinic.name],
    )

def _user_cancellation(record: MessageRecord, clinic: ClinicProfile) -> str:
    return _paragraphs(
        f"❌ Appointment Cancelled - {clinic.name}",
        f"Dear {record.name},",
        ["Your appointment scheduled for:"] + _schedule(record),
        [
            "Has been cancelled as requested. If you would like to reschedule,",
            f"please call us at {clinic.phone} or book online.",
        ],
        ["Thank you,", clinic.name],
    )

Template = Callable[[MessageRecord, ClinicProfile], str]

ADMIN_TEMPLATES: Dict[MessageKind, Template] = {
    MessageKind.APPOINTMENT: _admin_appointment,
    MessageKind.CONTACT: _admin_contact,
}

USER_APPOINTMENT_TEMPLATES: Dict[MessageIntent, Template] = {
    MessageIntent.NEW: _user_booking_received,
    MessageIntent.REMINDER: _user_reminder,
    MessageIntent.CONFIRMATION: _user_confirmation,
    MessageIntent.CANCELLATION: _user_cancellation,
}

def format_message(
    kind: MessageKind,
    role: RecipientRole,
    intent: MessageIntent,
    record: MessageRecord,
    clinic: Optional[ClinicProfile] = None
) -> str:
    """Render the message text. Same inputs always give the same string."""
    clinic = clinic or ClinicProfile.from_settings()
    kind = MessageKind(kind)
    role = RecipientRole(role)
    intent = MessageIntent(intent)

    if role == RecipientRole.ADMIN:
        return ADMIN_TEMPLATES[kind](record, clinic)
    if kind == MessageKind.CONTACT:
        return _user_contact(record, clinic)
    return USER_APPOINTMENT_TEMPLATES[intent](record, clinic)

# Delivery log

class DeliveryLog(Protocol):
    def record(self, **fields: Any) -> None:
        ...

class DatabaseDeliveryLog:
    """Writes delivery attempts to the ``notification_log`` table."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def record(self, **fields: Any) -> None:
        db = self._session_factory()
        try:
            db.add(DeliveryLogEntry(**fields))
            db.commit()
        finally:
            db.close()

class MessagingAdapter:
    def __init__(
        self,
        gateway: MessagingGateway,
        delivery_log: Optional[DeliveryLog] = None,
        admin_phone: Optional[str] = None,
        country_code: Optional[str] = None,
        clinic: Optional[ClinicProfile] = None
    ):
        self.gateway = gateway
        self.delivery_log = delivery_log
        self.admin_phone = admin_phone or settings.ADMIN_PHONE
        self.country_code = country_code or settings.DEFAULT_COUNTRY_CODE
        self.clinic = clinic or ClinicProfile.from_settings()

    async def dispatch(
        self,
        kind: MessageKind,
        record: MessageRecord,
        notify_user: bool,
        intent: MessageIntent = MessageIntent.NEW
    ) -> DispatchResult:
        """Send the admin leg and, if requested, the user leg.

        Each leg succeeds or falls back on its own; this never raises for
        delivery problems.
        """
        admin = await self._send_leg(kind, RecipientRole.ADMIN, intent, self.admin_phone, record)

        user = None
        user_phone = normalize_phone(record.phone or "", self.country_code)
        # Phones without digits normalize to a bare "+"
        if notify_user and user_phone != "+":
            user = await self._send_leg(kind, RecipientRole.USER, intent, user_phone, record)

        return DispatchResult(admin=admin, user=user)

    async def _send_leg(
        self,
        kind: MessageKind,
        role: RecipientRole,
        intent: MessageIntent,
        recipient: str,
        record: MessageRecord
    ) -> DeliveryOutcome:
        message = format_message(kind, role, intent, record, self.clinic)
        payload = {
            "kind": kind.value,
            "recipientRole": role.value,
            "messageIntent": intent.value,
            "phoneNumber": recipient,
            "message": message,
            "record": record.model_dump(mode="json"),
        }

        try:
            acknowledgment = await self.gateway.send(payload)
        except Exception as exc:
            logger.warning(
                f"Messaging fallback for {role.value} {recipient} ({kind.value}/{intent.value}): "
                f"{str(exc)}\n{message}"
            )
            outcome = DeliveryOutcome(
                recipient_role=role,
                recipient=recipient,
                message=message,
                status=DeliveryStatus.FALLBACK,
                error=str(exc),
            )
        else:
            logger.info(f"Message sent to {role.value} {recipient} ({kind.value}/{intent.value})")
            outcome = DeliveryOutcome(
                recipient_role=role,
                recipient=recipient,
                message=message,
                status=DeliveryStatus.SENT,
                acknowledgment=acknowledgment if isinstance(acknowledgment, dict) else {"response": acknowledgment},
            )

        await self._log_delivery(kind, intent, outcome)
        return outcome

    async def _log_delivery(self, kind: MessageKind, intent: MessageIntent, outcome: DeliveryOutcome):
        if self.delivery_log is None:
            return
        try:
            # Log writers may block on the database
            await run_in_threadpool(
                self.delivery_log.record,
                kind=kind.value,
                recipient_role=outcome.recipient_role.value,
                intent=intent.value,
                recipient=outcome.recipient,
                message=outcome.message,
                status=outcome.status.value,
                error=outcome.error,
            )
        except Exception:
            logger.exception(f"Could not write delivery log entry for {outcome.recipient}")
