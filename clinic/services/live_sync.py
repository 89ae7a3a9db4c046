"""
Live appointment view for the administrator dashboard.

Keeps the ordered list of appointments in step with the store's live feed
and hands appointments that were booked moments ago to the notification
dispatcher.
"""
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Protocol
import logging

from ..core.config import settings
from ..models.appointment import AppointmentStatus
from ..schemas.appointment import AppointmentRead
from .live_feed import (
    AppointmentQuery, ChangeType, ErrorCallback, EventCallback, FeedEvent, Unsubscribe
)
from .notifier import NotificationDispatcher

logger = logging.getLogger(__name__)

class LiveFeed(Protocol):
    def subscribe(
        self,
        query: AppointmentQuery,
        on_next: EventCallback,
        on_error: Optional[ErrorCallback] = None
    ) -> Unsubscribe:
        ...

class AppointmentLiveSync:
    def __init__(
        self,
        feed: LiveFeed,
        dispatcher: NotificationDispatcher,
        fresh_window: Optional[timedelta] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
        on_change: Optional[Callable[[List[AppointmentRead]], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        self._feed = feed
        self._dispatcher = dispatcher
        self._fresh_window = fresh_window or timedelta(
            seconds=settings.FRESH_APPOINTMENT_WINDOW_SECONDS
        )
        self._clock = clock
        self._on_change = on_change
        self._on_error = on_error
        self._appointments: List[AppointmentRead] = []
        self._loading = True
        self._unsubscribe: Optional[Unsubscribe] = None

    @property
    def appointments(self) -> List[AppointmentRead]:
        return list(self._appointments)

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def active(self) -> bool:
        return self._unsubscribe is not None

    def activate(self):
        """Subscribe to every appointment, newest first."""
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self._feed.subscribe(
            AppointmentQuery(),
            self._handle_event,
            self._handle_error,
        )

    def deactivate(self):
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is not None:
            unsubscribe()

    def __enter__(self):
        self.activate()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.deactivate()

    def is_fresh(self, appointment: AppointmentRead, now: datetime) -> bool:
        return (
            appointment.status == AppointmentStatus.PENDING
            and now - appointment.created_at < self._fresh_window
        )

    def _handle_event(self, event: FeedEvent):
        now = self._clock()
        fresh = [
            change.document
            for change in event.changes
            if change.type == ChangeType.ADDED and self.is_fresh(change.document, now)
        ]

        self._appointments = list(event.snapshot)
        self._loading = False

        if self._on_change:
            self._on_change(self.appointments)

        for appointment in fresh:
            self._dispatcher.notify_new_appointment(appointment)

    def _handle_error(self, exc: Exception):
        # Keep the last known list on screen
        logger.error(f"Error listening to appointments: {str(exc)}")
        self._loading = False
        if self._on_error:
            self._on_error(exc)
