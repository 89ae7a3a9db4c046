from fastapi import APIRouter, BackgroundTasks, Depends, status

from ...api.deps import get_appointment_store, get_messaging_adapter, rate_limit_check
from ...models.appointment import TIME_SLOTS
from ...schemas.appointment import AppointmentCreate, AppointmentRead, ContactMessage, TimeSlots
from ...schemas.messaging import MessageKind
from ...services.appointment_store import AppointmentStore
from ...services.messaging import MessagingAdapter

router = APIRouter(tags=["Booking"])

@router.get("/appointments/time-slots", response_model=TimeSlots)
async def time_slots():
    """Bookable half-hour slots."""
    return TimeSlots(slots=TIME_SLOTS)

@router.post("/appointments", response_model=AppointmentRead, status_code=status.HTTP_201_CREATED)
async def book_appointment(
    booking: AppointmentCreate,
    background_tasks: BackgroundTasks,
    store: AppointmentStore = Depends(get_appointment_store),
    messaging: MessagingAdapter = Depends(get_messaging_adapter),
    _: None = Depends(rate_limit_check)
):
    """Public booking form. Success depends only on the stored record."""
    appointment = store.create(booking)

    # Messaging runs after the response is sent
    background_tasks.add_task(
        messaging.dispatch, MessageKind.APPOINTMENT, appointment, True
    )
    return appointment

@router.post("/contact", response_model=AppointmentRead, status_code=status.HTTP_201_CREATED)
async def submit_contact(
    contact: ContactMessage,
    background_tasks: BackgroundTasks,
    store: AppointmentStore = Depends(get_appointment_store),
    messaging: MessagingAdapter = Depends(get_messaging_adapter),
    _: None = Depends(rate_limit_check)
):
    """Public contact form, stored as a pending appointment."""
    appointment = store.create_from_contact(contact)

    background_tasks.add_task(
        messaging.dispatch, MessageKind.CONTACT, appointment, True
    )
    return appointment
