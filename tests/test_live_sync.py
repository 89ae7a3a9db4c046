from datetime import datetime, timedelta

import pytest

from clinic.models.appointment import AppointmentStatus
from clinic.schemas.appointment import AppointmentRead
from clinic.services.live_feed import ChangeType, DocumentChange, FeedEvent
from clinic.services.live_sync import AppointmentLiveSync
from clinic.services.notifier import NotificationDispatcher

NOW = datetime(2025, 3, 10, 9, 30, 0)

def appointment(doc_id, name="Priya M", age=timedelta(seconds=1), status=AppointmentStatus.PENDING):
    created_at = NOW - age
    return AppointmentRead(
        id=doc_id,
        name=name,
        email="priya@example.com",
        phone="9876543210",
        message="",
        status=status,
        created_at=created_at,
        updated_at=created_at,
    )

def event(*changes, snapshot=None):
    docs = [DocumentChange(type=kind, document=doc) for kind, doc in changes]
    if snapshot is None:
        snapshot = [c.document for c in docs if c.type != ChangeType.REMOVED]
    return FeedEvent(changes=docs, snapshot=snapshot)

class FakeFeed:
    """Feed whose events and errors are pushed by the test."""

    def __init__(self):
        self.subscribers = []
        self.unsubscribe_calls = 0

    def subscribe(self, query, on_next, on_error=None):
        entry = (on_next, on_error)
        self.subscribers.append(entry)

        def unsubscribe():
            self.unsubscribe_calls += 1
            self.subscribers.remove(entry)

        return unsubscribe

    def push(self, feed_event):
        for on_next, _ in list(self.subscribers):
            on_next(feed_event)

    def fail(self, exc):
        for _, on_error in list(self.subscribers):
            on_error(exc)

@pytest.fixture
def fake_feed():
    return FakeFeed()

@pytest.fixture
def toasts():
    return []

@pytest.fixture
def live_sync(fake_feed, toasts):
    sync = AppointmentLiveSync(
        fake_feed,
        NotificationDispatcher(toasts.append),
        clock=lambda: NOW,
    )
    sync.activate()
    yield sync
    sync.deactivate()

class TestFreshness:

    def test_fresh_pending_booking_raises_one_toast(self, fake_feed, live_sync, toasts):
        fresh = appointment("a1", name="Priya M", age=timedelta(seconds=2))
        fake_feed.push(event((ChangeType.ADDED, fresh)))

        assert [t.text for t in toasts] == ["New Appointment! Priya M has booked an appointment"]
        assert [a.id for a in live_sync.appointments] == ["a1"]

    def test_old_booking_is_listed_without_toast(self, fake_feed, live_sync, toasts):
        old = appointment("a1", age=timedelta(seconds=10))
        fake_feed.push(event((ChangeType.ADDED, old)))

        assert toasts == []
        assert [a.id for a in live_sync.appointments] == ["a1"]

    def test_window_boundary_is_exclusive(self, fake_feed, live_sync, toasts):
        edge = appointment("a1", age=timedelta(seconds=5))
        fake_feed.push(event((ChangeType.ADDED, edge)))

        assert toasts == []

    @pytest.mark.parametrize("status", [
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.CANCELED,
        AppointmentStatus.COMPLETED,
    ])
    def test_only_pending_bookings_toast(self, fake_feed, live_sync, toasts, status):
        fake_feed.push(event((ChangeType.ADDED, appointment("a1", status=status))))

        assert toasts == []

    def test_modified_and_removed_never_toast(self, fake_feed, live_sync, toasts):
        doc = appointment("a1", age=timedelta(seconds=20))
        fake_feed.push(event((ChangeType.ADDED, doc)))

        changed = appointment("a1", age=timedelta(seconds=1))
        fake_feed.push(event((ChangeType.MODIFIED, changed)))
        fake_feed.push(event((ChangeType.REMOVED, changed), snapshot=[]))

        assert toasts == []
        assert live_sync.appointments == []

    def test_snapshot_without_added_changes_does_not_toast_again(self, fake_feed, live_sync, toasts):
        fresh = appointment("a1")
        fake_feed.push(event((ChangeType.ADDED, fresh)))
        fake_feed.push(event(snapshot=[fresh]))

        assert len(toasts) == 1

    def test_toast_per_fresh_booking_in_order(self, fake_feed, live_sync, toasts):
        first = appointment("a1", name="First")
        second = appointment("a2", name="Second")
        fake_feed.push(event((ChangeType.ADDED, second), (ChangeType.ADDED, first)))

        assert [t.description for t in toasts] == [
            "Second has booked an appointment",
            "First has booked an appointment",
        ]

    def test_custom_window(self, fake_feed, toasts):
        sync = AppointmentLiveSync(
            fake_feed,
            NotificationDispatcher(toasts.append),
            fresh_window=timedelta(minutes=1),
            clock=lambda: NOW,
        )
        with sync:
            fake_feed.push(event((ChangeType.ADDED, appointment("a1", age=timedelta(seconds=30)))))

        assert len(toasts) == 1

class TestListState:

    def test_loading_until_first_event(self, fake_feed, live_sync):
        assert live_sync.loading is True
        assert live_sync.appointments == []

        fake_feed.push(event())

        assert live_sync.loading is False

    def test_list_replaced_by_snapshot_order(self, fake_feed, live_sync):
        newer = appointment("a2", age=timedelta(minutes=1))
        older = appointment("a1", age=timedelta(minutes=2))
        fake_feed.push(event((ChangeType.ADDED, newer), (ChangeType.ADDED, older)))

        assert [a.id for a in live_sync.appointments] == ["a2", "a1"]

    def test_on_change_receives_list_before_toasts(self, fake_feed):
        calls = []
        sync = AppointmentLiveSync(
            fake_feed,
            NotificationDispatcher(lambda toast: calls.append(("toast", toast.description))),
            clock=lambda: NOW,
            on_change=lambda appointments: calls.append(("list", [a.id for a in appointments])),
        )
        with sync:
            fake_feed.push(event((ChangeType.ADDED, appointment("a1", name="Priya M"))))

        assert calls == [("list", ["a1"]), ("toast", "Priya M has booked an appointment")]

    def test_error_keeps_last_list(self, fake_feed, live_sync, toasts):
        errors = []
        live_sync._on_error = errors.append
        fake_feed.push(event((ChangeType.ADDED, appointment("a1", age=timedelta(minutes=1)))))

        failure = RuntimeError("permission denied")
        fake_feed.fail(failure)

        assert [a.id for a in live_sync.appointments] == ["a1"]
        assert live_sync.loading is False
        assert errors == [failure]

    def test_error_before_first_event_stops_loading(self, fake_feed, live_sync):
        fake_feed.fail(RuntimeError("offline"))

        assert live_sync.loading is False
        assert live_sync.appointments == []

    def test_appointments_is_a_copy(self, fake_feed, live_sync):
        fake_feed.push(event((ChangeType.ADDED, appointment("a1"))))

        live_sync.appointments.clear()

        assert len(live_sync.appointments) == 1

class TestLifecycle:

    def test_activate_is_idempotent(self, fake_feed, live_sync):
        live_sync.activate()

        assert len(fake_feed.subscribers) == 1
        assert live_sync.active is True

    def test_deactivate_releases_subscription_once(self, fake_feed, live_sync):
        live_sync.deactivate()
        live_sync.deactivate()

        assert fake_feed.unsubscribe_calls == 1
        assert fake_feed.subscribers == []
        assert live_sync.active is False

    def test_no_events_after_deactivate(self, fake_feed, live_sync, toasts):
        live_sync.deactivate()
        fake_feed.push(event((ChangeType.ADDED, appointment("a1"))))

        assert toasts == []
        assert live_sync.appointments == []

    def test_context_manager(self, fake_feed, toasts):
        sync = AppointmentLiveSync(fake_feed, NotificationDispatcher(toasts.append))

        with sync:
            assert len(fake_feed.subscribers) == 1

        assert fake_feed.subscribers == []
