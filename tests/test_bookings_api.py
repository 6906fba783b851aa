from datetime import timedelta

from sqlmodel import select

from app.core.time_utils import utc_now
from app.models.booking import Booking
from app.services import config_service, lifecycle


def payment_of(session, booking):
    return lifecycle.get_payment_for_booking(session, booking.id)


class TestConfigEndpoints:
    def test_session_price_is_public(self, client):
        response = client.get("/config/sessionPrice")
        assert response.status_code == 200
        assert response.json() == {"sessionPrice": 8000}

    def test_session_price_missing(self, client, session):
        session.delete(config_service.get_entry(session, "sessionPrice"))
        session.commit()
        assert client.get("/config/sessionPrice").status_code == 503

    def test_notice_period_requires_auth(self, client):
        assert client.get("/config/noticePeriod").status_code == 401

    def test_notice_period_follows_config(self, client, session, user_headers):
        assert client.get("/config/noticePeriod", headers=user_headers).json() == {"noticePeriod": 2}

        config_service.set_value(session, "noticePeriod", 5)
        assert client.get("/config/noticePeriod", headers=user_headers).json() == {"noticePeriod": 5}


class TestMyBookings:
    def test_lists_active_future_bookings_with_payment(self, client, session, user_headers, make_booking):
        upcoming = make_booking(days_ahead=4, paid=True)
        make_booking(days_ahead=-4)
        cancelled = make_booking(days_ahead=6)
        lifecycle.cancel_booking(session, cancelled, "x", "User", 2)

        response = client.get("/bookings/", headers=user_headers)
        assert response.status_code == 200
        body = response.json()
        assert [b["id"] for b in body] == [upcoming.id]
        assert body[0]["transaction_status"] == "Completed"
        assert body[0]["payment_display"]["text"] == "Completed"
        assert body[0]["status_display"]["text"] == "Active"
        assert body[0]["refund_deadline"] is not None
        assert body[0]["amount_display"] == "PKR 8,000"
        assert body[0]["start_display"]["date"] != "-"

    def test_other_users_bookings_are_hidden(self, client, other_user, headers_for, make_booking):
        make_booking(days_ahead=4)
        response = client.get("/bookings/", headers=headers_for(other_user))
        assert response.json() == []

    def test_get_booking(self, client, user_headers, other_user, headers_for, make_booking):
        booking = make_booking(days_ahead=4)

        assert client.get(f"/bookings/{booking.id}", headers=user_headers).status_code == 200
        assert client.get(f"/bookings/{booking.id}", headers=headers_for(other_user)).status_code == 403
        assert client.get("/bookings/999", headers=user_headers).status_code == 404

    def test_booking_link(self, client, client_user, user_headers):
        link = client.get("/bookings/link", headers=user_headers).json()["link"]
        assert link.endswith(f"utm_content={client_user.id}")


class TestCancelMyBooking:
    def test_in_time_paid_cancellation_requests_refund(self, client, session, user_headers, make_booking):
        booking = make_booking(days_ahead=5, paid=True)

        response = client.patch(
            f"/bookings/{booking.id}/cancel",
            json={"reason": "Schedule clash"},
            headers=user_headers,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "Cancelled"
        assert body["cancelled_by"] == "User"
        assert body["cancellation_reason"] == "Schedule clash"
        assert body["transaction_status"] == "Refund Requested"
        assert body["cancellation"]["is_refund_eligible"] is True

    def test_late_cancellation_keeps_payment(self, client, session, user_headers, make_booking):
        booking = make_booking(days_ahead=1, paid=True)

        body = client.patch(f"/bookings/{booking.id}/cancel", headers=user_headers).json()
        assert body["status"] == "Cancelled"
        assert body["transaction_status"] == "Completed"
        assert body["cancellation"]["is_late"] is True
        assert body["cancellation_reason"] == "No reason provided"

    def test_notice_period_is_read_from_config(self, client, session, user_headers, make_booking):
        config_service.set_value(session, "noticePeriod", 10)
        booking = make_booking(days_ahead=5, paid=True)

        body = client.patch(f"/bookings/{booking.id}/cancel", headers=user_headers).json()
        assert body["transaction_status"] == "Completed"

    def test_unpaid_cancellation(self, client, user_headers, make_booking):
        booking = make_booking(days_ahead=5)
        body = client.patch(f"/bookings/{booking.id}/cancel", headers=user_headers).json()
        assert body["transaction_status"] == "Cancelled"

    def test_cannot_cancel_twice(self, client, user_headers, make_booking):
        booking = make_booking(days_ahead=5)
        client.patch(f"/bookings/{booking.id}/cancel", headers=user_headers)
        assert client.patch(f"/bookings/{booking.id}/cancel", headers=user_headers).status_code == 400

    def test_cannot_cancel_someone_elses_booking(self, client, other_user, headers_for, make_booking):
        booking = make_booking(days_ahead=5)
        response = client.patch(f"/bookings/{booking.id}/cancel", headers=headers_for(other_user))
        assert response.status_code == 403


class TestRefundRequest:
    def test_refund_request(self, client, session, user_headers, make_booking):
        booking = make_booking(days_ahead=5, paid=True)
        payment = payment_of(session, booking)

        response = client.post(
            "/payments/refund",
            json={"booking_id": booking.id, "payment_id": payment.id},
            headers=user_headers,
        )
        assert response.status_code == 200
        assert response.json()["transaction_status"] == "Refund Requested"
        assert response.json()["status_display"]["text"] == "Refund Requested"

    def test_refund_requires_completed_payment(self, client, session, user_headers, make_booking):
        booking = make_booking(days_ahead=5)
        payment = payment_of(session, booking)

        response = client.post(
            "/payments/refund",
            json={"booking_id": booking.id, "payment_id": payment.id},
            headers=user_headers,
        )
        assert response.status_code == 400

    def test_my_payments(self, client, user_headers, make_booking):
        make_booking(days_ahead=5)
        body = client.get("/payments/", headers=user_headers).json()
        assert len(body) == 1
        assert body[0]["status_display"]["text"] == "Not Initiated"
        assert body[0]["amount_display"] == "PKR 8,000"


def calendly_event(event, uri, start, end, user_id=None, name="Therapy Session", cancellation=None):
    payload = {
        "cancel_url": "https://calendly.com/cancellations/abc",
        "reschedule_url": "https://calendly.com/reschedulings/abc",
        "email": "client@example.com",
        "tracking": {"utm_content": str(user_id) if user_id else None},
        "scheduled_event": {
            "start_time": start.isoformat() + "Z",
            "end_time": end.isoformat() + "Z",
            "uri": uri,
            "name": name,
            "event_type": "https://api.calendly.com/event_types/1",
        },
    }
    if cancellation:
        payload["cancellation"] = cancellation
    return {"event": event, "payload": payload}


class TestCalendlyWebhook:
    URI = "https://api.calendly.com/scheduled_events/EV1"

    def test_created_then_cancelled(self, client, session, client_user):
        start = (utc_now() + timedelta(days=6)).replace(microsecond=0)
        end = start + timedelta(minutes=50)

        response = client.post(
            "/bookings/calendly",
            json=calendly_event("invitee.created", self.URI, start, end, client_user.id),
        )
        assert response.json()["status"] == "created"

        booking = session.exec(select(Booking).where(Booking.scheduled_event_uri == self.URI)).one()
        assert booking.source == "calendly"
        assert booking.event_start_time == start
        assert payment_of(session, booking).amount == 8000

        # reenvio do mesmo evento não duplica
        again = client.post(
            "/bookings/calendly",
            json=calendly_event("invitee.created", self.URI, start, end, client_user.id),
        )
        assert again.json()["status"] == "ignored"

        response = client.post(
            "/bookings/calendly",
            json=calendly_event(
                "invitee.canceled",
                self.URI,
                start,
                end,
                client_user.id,
                cancellation={"canceler_type": "user", "reason": "Busy", "created_at": utc_now().isoformat() + "Z"},
            ),
        )
        assert response.json()["status"] == "cancelled"
        session.refresh(booking)
        assert booking.status == "Cancelled"
        assert booking.cancelled_by == "User"
        assert booking.cancellation_reason == "Busy"

    def test_unknown_user_is_ignored(self, client, session):
        start = utc_now() + timedelta(days=6)
        response = client.post(
            "/bookings/calendly",
            json=calendly_event("invitee.created", self.URI, start, start + timedelta(minutes=50), 999),
        )
        assert response.json()["status"] == "ignored"
        assert session.exec(select(Booking)).all() == []

    def test_consultation_is_ignored(self, client, client_user):
        start = utc_now() + timedelta(days=6)
        response = client.post(
            "/bookings/calendly",
            json=calendly_event(
                "invitee.created",
                self.URI,
                start,
                start + timedelta(minutes=15),
                client_user.id,
                name="15 Minute Consultation",
            ),
        )
        assert response.json()["status"] == "ignored"

    def test_bad_payload(self, client):
        assert client.post("/bookings/calendly", json={"event": "ping"}).status_code == 400


class TestCalendlyCancellationPayments:
    URI = "https://api.calendly.com/scheduled_events/EV2"

    def book(self, client, session, user, days_ahead, paid=False):
        start = (utc_now() + timedelta(days=days_ahead)).replace(microsecond=0)
        end = start + timedelta(minutes=50)
        client.post("/bookings/calendly", json=calendly_event("invitee.created", self.URI, start, end, user.id))
        booking = session.exec(select(Booking).where(Booking.scheduled_event_uri == self.URI)).one()
        if paid:
            lifecycle.transition_payment(session, payment_of(session, booking), "Completed")
        return booking, start, end

    def cancel(self, client, user, start, end, created_at):
        return client.post(
            "/bookings/calendly",
            json=calendly_event(
                "invitee.canceled",
                self.URI,
                start,
                end,
                user.id,
                cancellation={"canceler_type": "user", "reason": "Busy", "created_at": created_at},
            ),
        )

    def test_paid_in_time_requests_refund(self, client, session, client_user):
        booking, start, end = self.book(client, session, client_user, days_ahead=5, paid=True)

        self.cancel(client, client_user, start, end, utc_now().isoformat() + "Z")

        payment = payment_of(session, booking)
        session.refresh(payment)
        assert payment.transaction_status == "Refund Requested"

    def test_paid_late_keeps_payment(self, client, session, client_user):
        booking, start, end = self.book(client, session, client_user, days_ahead=1, paid=True)

        self.cancel(client, client_user, start, end, utc_now().isoformat() + "Z")

        session.refresh(booking)
        payment = payment_of(session, booking)
        session.refresh(payment)
        assert booking.status == "Cancelled"
        assert payment.transaction_status == "Completed"

    def test_eligibility_uses_cancellation_time(self, client, session, client_user):
        # sessão daqui a 1 dia, mas o cancelamento foi feito 3 dias antes dela
        booking, start, end = self.book(client, session, client_user, days_ahead=1, paid=True)
        cancelled_at = start - timedelta(days=3)

        self.cancel(client, client_user, start, end, cancelled_at.isoformat() + "Z")

        session.refresh(booking)
        payment = payment_of(session, booking)
        session.refresh(payment)
        assert booking.cancellation_date == cancelled_at
        assert payment.transaction_status == "Refund Requested"

    def test_malformed_cancellation_time_uses_current_time(self, client, session, client_user):
        booking, start, end = self.book(client, session, client_user, days_ahead=5)

        response = self.cancel(client, client_user, start, end, "yesterday")

        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"
        session.refresh(booking)
        assert booking.status == "Cancelled"
        assert abs(booking.cancellation_date - utc_now()) < timedelta(minutes=1)


class TestCalendlyOverlap:
    def test_overlapping_event_is_still_stored(self, client, session, client_user, other_user, make_booking):
        existing = make_booking(days_ahead=4, user=other_user)
        uri = "https://api.calendly.com/scheduled_events/EV3"

        response = client.post(
            "/bookings/calendly",
            json=calendly_event(
                "invitee.created",
                uri,
                existing.event_start_time.replace(microsecond=0),
                existing.event_end_time.replace(microsecond=0),
                client_user.id,
            ),
        )

        assert response.status_code == 200
        assert response.json()["status"] == "created"
        booking = session.exec(select(Booking).where(Booking.scheduled_event_uri == uri)).one()
        assert booking.user_id == client_user.id
        assert payment_of(session, booking).transaction_status == "Not Initiated"
