from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import Session
from typing import List, Optional
import asyncio
import contextlib
import logging

from ...core.database import get_db
from ...core.security import verify_token
from ...api.deps import (
    get_admin_user, get_appointment_feed, get_appointment_store,
    get_messaging_adapter, load_admin
)
from ...models.appointment import AppointmentStatus
from ...models.notification import DeliveryLogEntry
from ...schemas.appointment import (
    AppointmentRead, AppointmentStats, AppointmentUpdate, StaffAppointmentCreate
)
from ...schemas.messaging import DeliveryLogRead, DispatchResult, MessageKind, SendMessageRequest
from ...services.appointment_store import AppointmentStore
from ...services.live_feed import AppointmentFeed
from ...services.live_sync import AppointmentLiveSync
from ...services.messaging import MessagingAdapter
from ...services.notifier import NotificationDispatcher, Toast

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin",
    tags=["Administration"],
    dependencies=[Depends(get_admin_user)]
)

# Appointment management
@router.get("/appointments", response_model=List[AppointmentRead])
async def list_appointments(
    search: Optional[str] = None,
    status_filter: Optional[AppointmentStatus] = Query(None, alias="status"),
    store: AppointmentStore = Depends(get_appointment_store)
):
    """All appointments, newest first, with optional search and status filter."""
    return store.list(search=search, status_filter=status_filter)

@router.get("/appointments/stats", response_model=AppointmentStats)
async def appointment_stats(
    store: AppointmentStore = Depends(get_appointment_store)
):
    """Totals per status for the dashboard header."""
    return store.stats()

@router.post("/appointments", response_model=AppointmentRead, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    booking: StaffAppointmentCreate,
    store: AppointmentStore = Depends(get_appointment_store)
):
    """Appointment entered by staff, e.g. after a phone call."""
    return store.create(booking)

@router.get("/appointments/{appointment_id}", response_model=AppointmentRead)
async def get_appointment(
    appointment_id: str,
    store: AppointmentStore = Depends(get_appointment_store)
):
    return store.get(appointment_id)

@router.patch("/appointments/{appointment_id}", response_model=AppointmentRead)
async def update_appointment(
    appointment_id: str,
    changes: AppointmentUpdate,
    store: AppointmentStore = Depends(get_appointment_store)
):
    """Change status, notes or booking details."""
    return store.update(appointment_id, changes)

@router.delete("/appointments/{appointment_id}")
async def delete_appointment(
    appointment_id: str,
    store: AppointmentStore = Depends(get_appointment_store)
):
    store.delete(appointment_id)
    return {"message": "Appointment deleted successfully"}

@router.post("/appointments/{appointment_id}/messages", response_model=DispatchResult)
async def send_appointment_message(
    appointment_id: str,
    message_request: SendMessageRequest,
    store: AppointmentStore = Depends(get_appointment_store),
    messaging: MessagingAdapter = Depends(get_messaging_adapter)
):
    """Send a reminder, confirmation or cancellation to the patient."""
    appointment = store.get(appointment_id)
    return await messaging.dispatch(
        MessageKind.APPOINTMENT, appointment, True, message_request.intent
    )

@router.get("/notifications", response_model=List[DeliveryLogRead])
async def list_notifications(
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db)
):
    """Most recent outbound message attempts."""
    return (
        db.query(DeliveryLogEntry)
        .order_by(DeliveryLogEntry.created_at.desc(), DeliveryLogEntry.id.desc())
        .limit(limit)
        .all()
    )

# Live dashboard view. Websockets carry the token as a query parameter,
# so this route sits outside the bearer-protected router.
live_router = APIRouter(prefix="/admin", tags=["Administration"])

async def _forward(websocket: WebSocket, outbox: asyncio.Queue):
    while True:
        message = await outbox.get()
        await websocket.send_json(message)

@live_router.websocket("/appointments/live")
async def live_appointments(
    websocket: WebSocket,
    token: str = Query(...),
    db: Session = Depends(get_db),
    feed: AppointmentFeed = Depends(get_appointment_feed)
):
    """Stream appointment snapshots and new-booking toasts to the dashboard."""
    admin = load_admin(verify_token(token), db)
    db.close()
    if not admin:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    outbox: asyncio.Queue = asyncio.Queue()

    def push_snapshot(appointments: List[AppointmentRead]):
        outbox.put_nowait({
            "type": "snapshot",
            "loading": False,
            "appointments": [a.model_dump(mode="json") for a in appointments],
        })

    def push_toast(toast: Toast):
        outbox.put_nowait({
            "type": "toast",
            "title": toast.title,
            "description": toast.description,
            "text": toast.text,
        })

    def push_error(exc: Exception):
        outbox.put_nowait({"type": "error", "message": "Live appointment updates stopped"})

    live_sync = AppointmentLiveSync(
        feed,
        NotificationDispatcher(push_toast),
        on_change=push_snapshot,
        on_error=push_error,
    )
    sender = asyncio.create_task(_forward(websocket, outbox))
    live_sync.activate()
    logger.info(f"Dashboard live view opened by {admin.email}")

    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info(f"Dashboard live view closed by {admin.email}")
    finally:
        live_sync.deactivate()
        sender.cancel()
        with contextlib.suppress(asyncio.CancelledError, WebSocketDisconnect, RuntimeError):
            await sender
