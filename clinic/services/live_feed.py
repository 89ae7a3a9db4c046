"""
Live-query feed over the appointment store.

Subscribers receive one event right after subscribing (every current record
tagged ``added``) and one event per committed store mutation afterwards.
Each event carries the change entries since the subscriber's previous event
and the full ordered snapshot.
"""
from enum import Enum
from typing import Callable, Dict, List, Optional
import logging

from pydantic import BaseModel
from sqlalchemy.orm import Query, sessionmaker

from ..models.appointment import Appointment, AppointmentStatus
from ..schemas.appointment import AppointmentRead

logger = logging.getLogger(__name__)

class ChangeType(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"

class DocumentChange(BaseModel):
    type: ChangeType
    document: AppointmentRead

class FeedEvent(BaseModel):
    changes: List[DocumentChange]
    snapshot: List[AppointmentRead]

class AppointmentQuery(BaseModel):
    """Filter of a live subscription. Results are always newest first."""
    status: Optional[AppointmentStatus] = None

    def apply(self, query: Query) -> Query:
        if self.status is not None:
            query = query.filter(Appointment.status == self.status)
        return query.order_by(Appointment.created_at.desc(), Appointment.id)

EventCallback = Callable[[FeedEvent], None]
ErrorCallback = Callable[[Exception], None]
Unsubscribe = Callable[[], None]

def diff_snapshots(
    previous: Dict[str, AppointmentRead],
    snapshot: List[AppointmentRead]
) -> List[DocumentChange]:
    """Change entries that turn ``previous`` into ``snapshot``."""
    changes = []
    for doc in snapshot:
        old = previous.get(doc.id)
        if old is None:
            changes.append(DocumentChange(type=ChangeType.ADDED, document=doc))
        elif old != doc:
            changes.append(DocumentChange(type=ChangeType.MODIFIED, document=doc))

    current_ids = {doc.id for doc in snapshot}
    for doc_id, old in previous.items():
        if doc_id not in current_ids:
            changes.append(DocumentChange(type=ChangeType.REMOVED, document=old))

    return changes

class _Subscription:
    def __init__(self, query: AppointmentQuery, on_next: EventCallback, on_error: Optional[ErrorCallback]):
        self.query = query
        self.on_next = on_next
        self.on_error = on_error
        self.known: Dict[str, AppointmentRead] = {}
        self.delivered = False
        self.active = True

class AppointmentFeed:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory
        self._subscriptions: List[_Subscription] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(
        self,
        query: AppointmentQuery,
        on_next: EventCallback,
        on_error: Optional[ErrorCallback] = None
    ) -> Unsubscribe:
        """Register a listener and deliver the initial snapshot to it."""
        subscription = _Subscription(query, on_next, on_error)
        self._subscriptions.append(subscription)
        self._deliver(subscription)

        def unsubscribe():
            self._cancel(subscription)

        return unsubscribe

    def notify_changed(self):
        """Push fresh events to every subscriber after a store mutation."""
        for subscription in list(self._subscriptions):
            self._deliver(subscription)

    def load(self, query: AppointmentQuery) -> List[AppointmentRead]:
        db = self._session_factory()
        try:
            rows = query.apply(db.query(Appointment)).all()
            return [AppointmentRead.model_validate(row) for row in rows]
        finally:
            db.close()

    def _cancel(self, subscription: _Subscription):
        subscription.active = False
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def _deliver(self, subscription: _Subscription):
        if not subscription.active:
            return

        try:
            snapshot = self.load(subscription.query)
        except Exception as exc:
            # The listener is dead after an error; the client resubscribes
            logger.error(f"Live appointment query failed: {str(exc)}")
            self._cancel(subscription)
            if subscription.on_error:
                subscription.on_error(exc)
            return

        changes = diff_snapshots(subscription.known, snapshot)
        subscription.known = {doc.id: doc for doc in snapshot}

        if subscription.delivered and not changes:
            return
        subscription.delivered = True

        try:
            subscription.on_next(FeedEvent(changes=changes, snapshot=snapshot))
        except Exception:
            logger.exception("Live appointment subscriber failed to handle event")
