from datetime import datetime, timedelta

import pytest
from starlette.websockets import WebSocketDisconnect

from clinic.models.appointment import Appointment
from tests.conftest import TestingSessionLocal

CANCELLATION_MESSAGE = """❌ Appointment Cancelled - Dr. Basavaiah Ayurveda Hospital

Dear Aarti S,

Your appointment scheduled for:
Date: 2025-03-10
Time: 10:00 AM

Has been cancelled as requested. If you would like to reschedule,
please call us at +916281508325 or book online.

Thank you,
Dr. Basavaiah Ayurveda Hospital"""

def book(client, **overrides):
    payload = {
        "name": "Aarti S",
        "email": "a@x.com",
        "phone": "9876543210",
        "preferred_date": "2025-03-10",
        "preferred_time": "10:00 AM",
    }
    payload.update(overrides)
    response = client.post("/api/v1/appointments", json=payload)
    assert response.status_code == 201
    return response.json()

class TestAppointmentAdministration:

    def test_list_newest_first(self, client, admin_headers):
        first = book(client, name="First Patient")
        second = book(client, name="Second Patient")

        response = client.get("/api/v1/admin/appointments", headers=admin_headers)
        assert response.status_code == 200
        assert [a["id"] for a in response.json()] == [second["id"], first["id"]]

    def test_search_and_status_filter(self, client, admin_headers):
        book(client, name="Lakshmi N", email="lakshmi@example.com")
        other = book(client, name="Suresh P", email="suresh@example.com", message="Knee pain")
        client.patch(
            f"/api/v1/admin/appointments/{other['id']}",
            json={"status": "Confirmed"},
            headers=admin_headers
        )

        by_name = client.get("/api/v1/admin/appointments?search=lakshmi", headers=admin_headers)
        assert [a["name"] for a in by_name.json()] == ["Lakshmi N"]

        by_message = client.get("/api/v1/admin/appointments?search=knee", headers=admin_headers)
        assert [a["name"] for a in by_message.json()] == ["Suresh P"]

        confirmed = client.get("/api/v1/admin/appointments?status=Confirmed", headers=admin_headers)
        assert [a["name"] for a in confirmed.json()] == ["Suresh P"]

    def test_stats(self, client, admin_headers):
        book(client)
        other = book(client)
        client.patch(
            f"/api/v1/admin/appointments/{other['id']}",
            json={"status": "Canceled"},
            headers=admin_headers
        )

        response = client.get("/api/v1/admin/appointments/stats", headers=admin_headers)
        assert response.status_code == 200

        data = response.json()
        assert data["total"] == 2
        assert data["by_status"] == {
            "Pending": 1, "Confirmed": 0, "Canceled": 1, "Completed": 0
        }

    def test_update_status_and_notes(self, client, admin_headers):
        appointment = book(client)

        response = client.patch(
            f"/api/v1/admin/appointments/{appointment['id']}",
            json={"status": "Confirmed", "admin_notes": "Called back, confirmed"},
            headers=admin_headers
        )
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "Confirmed"
        assert data["admin_notes"] == "Called back, confirmed"
        assert data["created_at"] == appointment["created_at"]
        assert data["updated_at"] >= appointment["updated_at"]

    def test_any_status_change_is_allowed(self, client, admin_headers):
        appointment = book(client)
        path = f"/api/v1/admin/appointments/{appointment['id']}"

        for new_status in ["Completed", "Pending", "Canceled"]:
            response = client.patch(path, json={"status": new_status}, headers=admin_headers)
            assert response.json()["status"] == new_status

    def test_invalid_status_rejected(self, client, admin_headers):
        appointment = book(client)

        response = client.patch(
            f"/api/v1/admin/appointments/{appointment['id']}",
            json={"status": "Archived"},
            headers=admin_headers
        )
        assert response.status_code == 422

    def test_delete_is_hard_delete(self, client, admin_headers):
        appointment = book(client)
        path = f"/api/v1/admin/appointments/{appointment['id']}"

        assert client.delete(path, headers=admin_headers).status_code == 200
        assert client.get(path, headers=admin_headers).status_code == 404

        db = TestingSessionLocal()
        try:
            assert db.query(Appointment).count() == 0
        finally:
            db.close()

    def test_unknown_appointment(self, client, admin_headers):
        response = client.get("/api/v1/admin/appointments/missing", headers=admin_headers)
        assert response.status_code == 404

    def test_staff_created_appointment(self, client, admin_headers, gateway):
        response = client.post(
            "/api/v1/admin/appointments",
            json={
                "name": "Walk-in Patient",
                "email": "walkin@example.com",
                "phone": "9000000000",
                "preferred_time": "02:00 PM",
            },
            headers=admin_headers
        )
        assert response.status_code == 201
        assert response.json()["status"] == "Confirmed"

        # Staff bookings do not message anyone
        assert gateway.payloads == []

class TestAdministratorMessages:

    def test_cancellation_message(self, client, admin_headers, gateway):
        appointment = book(client)
        gateway.payloads.clear()

        response = client.post(
            f"/api/v1/admin/appointments/{appointment['id']}/messages",
            json={"intent": "cancellation"},
            headers=admin_headers
        )
        assert response.status_code == 200

        data = response.json()
        assert data["success"] is True
        assert data["fallback"] is False
        assert data["user"]["recipient"] == "+919876543210"
        assert data["user"]["message"] == CANCELLATION_MESSAGE

        [user] = gateway.messages_for("user")
        assert user["message"] == CANCELLATION_MESSAGE
        assert user["messageIntent"] == "cancellation"

        # The administrator leg always carries the booking summary
        [admin] = gateway.messages_for("admin")
        assert "New Appointment Booking" in admin["message"]

    def test_cancellation_before_confirmation_is_allowed(self, client, admin_headers):
        appointment = book(client)
        path = f"/api/v1/admin/appointments/{appointment['id']}/messages"

        for intent in ["cancellation", "confirmation", "reminder"]:
            response = client.post(path, json={"intent": intent}, headers=admin_headers)
            assert response.status_code == 200

    def test_unknown_intent_rejected(self, client, admin_headers):
        appointment = book(client)

        response = client.post(
            f"/api/v1/admin/appointments/{appointment['id']}/messages",
            json={"intent": "birthday"},
            headers=admin_headers
        )
        assert response.status_code == 422

    def test_failed_send_reports_fallback(self, client, admin_headers, gateway, delivery_log):
        appointment = book(client)
        gateway.fail_for = {"user"}
        delivery_log.entries.clear()

        response = client.post(
            f"/api/v1/admin/appointments/{appointment['id']}/messages",
            json={"intent": "reminder"},
            headers=admin_headers
        )
        assert response.status_code == 200

        data = response.json()
        assert data["success"] is True
        assert data["fallback"] is True
        assert data["user"]["status"] == "fallback"
        assert data["admin"]["status"] == "sent"

        fallback = [e for e in delivery_log.entries if e["status"] == "fallback"]
        assert fallback[0]["recipient"] == "+919876543210"
        assert "Appointment Reminder" in fallback[0]["message"]

class TestDeliveryLog:

    def test_list_notifications(self, client, admin_headers):
        from clinic.models.notification import DeliveryLogEntry

        db = TestingSessionLocal()
        try:
            db.add(DeliveryLogEntry(
                kind="appointment",
                recipient_role="admin",
                intent="new",
                recipient="+916281508325",
                message="🏥 New Appointment Booking!",
                status="fallback",
                error="messaging function unavailable",
            ))
            db.commit()
        finally:
            db.close()

        response = client.get("/api/v1/admin/notifications", headers=admin_headers)
        assert response.status_code == 200

        [entry] = response.json()
        assert entry["recipient"] == "+916281508325"
        assert entry["status"] == "fallback"

class TestLiveView:

    def test_rejects_bad_token(self, client):
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect("/api/v1/admin/appointments/live?token=bogus") as websocket:
                websocket.receive_json()

    def test_snapshot_then_toast_for_new_booking(self, client, admin_token, feed):
        existing = book(client, name="Earlier Patient")

        # Age the earlier booking past the toast window
        db = TestingSessionLocal()
        try:
            row = db.query(Appointment).filter(Appointment.id == existing["id"]).one()
            row.created_at = datetime.utcnow() - timedelta(minutes=5)
            db.commit()
        finally:
            db.close()

        with client.websocket_connect(f"/api/v1/admin/appointments/live?token={admin_token}") as websocket:
            initial = websocket.receive_json()
            assert initial["type"] == "snapshot"
            assert initial["loading"] is False
            assert [a["id"] for a in initial["appointments"]] == [existing["id"]]

            created = book(client, name="Priya M")

            update = websocket.receive_json()
            assert update["type"] == "snapshot"
            assert [a["id"] for a in update["appointments"]] == [created["id"], existing["id"]]

            toast = websocket.receive_json()
            assert toast["type"] == "toast"
            assert toast["text"] == "New Appointment! Priya M has booked an appointment"
