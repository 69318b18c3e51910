"""Tests for ticket scanning, upgrades and reminders."""

import base64
import json
from unittest.mock import Mock

import pytest

from railtrans.core.coupons import CouponService
from railtrans.core.errors import NotFoundError, ValidationError
from railtrans.core.mailer import MailResult
from railtrans.core.payments import PaymentService
from railtrans.core.reminders import ReminderService
from railtrans.core.tickets import TicketService, extract_ticket_code, ticket_code_from_object
from railtrans.infra.payment_gateway import DevLogPaymentGateway
from railtrans.storage.models import MailLog


@pytest.fixture
def payments(config, db_session_factory):
    return PaymentService(DevLogPaymentGateway(config), db_session_factory)


@pytest.fixture
def coupons(db_session_factory):
    return CouponService(db_session_factory)


@pytest.fixture
def tickets(config, registrations, payments, coupons):
    return TicketService(registrations, payments, config.gst_rate, coupons=coupons)


class TestExtractTicketCode:
    """Tests for reading a ticket code out of scanned QR text."""

    def test_json_payload(self):
        assert extract_ticket_code('{"ticket_code": "123456", "id": 4}') == "123456"

    def test_preferred_key_order(self):
        assert ticket_code_from_object({"id": 4, "ticketCode": "777777"}) == "777777"

    def test_nested_object(self):
        assert extract_ticket_code({"payload": {"registrant": {"code": "424242"}}}) == "424242"

    def test_base64_json(self):
        raw = base64.b64encode(json.dumps({"ticket_code": "918273"}).encode()).decode()
        assert extract_ticket_code(raw) == "918273"

    def test_embedded_json_block(self):
        assert extract_ticket_code('scan: {"ticketId": "654321"} end') == "654321"

    def test_digits_in_text(self):
        assert extract_ticket_code("Ticket #123456 for Jane") == "123456"

    def test_bare_number(self):
        assert extract_ticket_code("482910") == "482910"

    def test_plain_token(self):
        assert extract_ticket_code("RT-2026-A1") == "RT-2026-A1"

    @pytest.mark.parametrize("raw", [None, "", "  ", "no code here!"])
    def test_nothing_found(self, raw):
        assert extract_ticket_code(raw) is None


class TestTicketService:
    """Tests for TicketService."""

    def test_validate_by_raw_qr(self, tickets, registrations):
        row = registrations.create("visitor", {"name": "Jane", "email": "j@x.in"})
        out = tickets.validate(raw=json.dumps({"ticket_code": row["ticket_code"]}))
        assert out["valid"] is True
        assert out["registrant"]["id"] == row["id"]

    def test_validate_unknown(self, tickets):
        with pytest.raises(NotFoundError) as exc:
            tickets.validate(ticket_id="000001")
        assert exc.value.details["valid"] is False

    def test_validate_without_code(self, tickets):
        with pytest.raises(ValidationError):
            tickets.validate(raw="???")

    def test_paid_upgrade_returns_checkout(self, tickets, registrations):
        row = registrations.create("visitor", {"email": "j@x.in"})
        out = tickets.upgrade({"entity_type": "visitors", "entity_id": row["id"], "new_category": "premium", "amount": 2950})

        assert out["checkoutUrl"].startswith("https://expo.example.in/mock-checkout/")
        assert "upgraded" not in out
        assert registrations.get("visitor", row["id"])["ticket_category"] != "premium"

    def test_upgrade_with_settled_payment_applies_category(self, tickets, registrations, payments):
        row = registrations.create("visitor", {"email": "j@x.in"})
        tickets.upgrade({"entity_type": "visitors", "entity_id": row["id"], "new_category": "combo", "amount": 5900})
        payments.apply_webhook("Credit", reference_id=str(row["id"]), provider_payment_id="MOJO77")

        out = tickets.upgrade({
            "entity_type": "visitors", "entity_id": str(row["id"]), "new_category": "combo",
            "amount": 5900, "txId": "MOJO77",
        })
        assert out == {
            "success": True, "upgraded": True, "entity_type": "visitors",
            "entity_id": row["id"], "new_category": "combo",
        }
        updated = registrations.get("visitor", row["id"])
        assert updated["ticket_category"] == "combo"
        assert updated["ticket_total"] == 5900
        assert updated["txId"] == "MOJO77"
        assert updated["ticket_code"] == row["ticket_code"]

    def test_unknown_transaction_is_rejected(self, tickets, registrations):
        row = registrations.create("visitor", {"email": "j@x.in"})
        with pytest.raises(ValidationError):
            tickets.upgrade({
                "entity_type": "visitors", "entity_id": row["id"], "new_category": "combo",
                "amount": 5900, "txId": "made-up",
            })
        assert registrations.get("visitor", row["id"])["ticket_category"] != "combo"

    def test_pending_order_is_not_proof_of_payment(self, tickets, registrations):
        row = registrations.create("visitor", {"email": "j@x.in"})
        order = tickets.upgrade({"entity_type": "visitors", "entity_id": row["id"], "new_category": "premium"})["order"]
        with pytest.raises(ValidationError):
            tickets.upgrade({
                "entity_type": "visitors", "entity_id": row["id"], "new_category": "premium",
                "txId": order["providerOrderId"],
            })

    def test_cheaper_payment_does_not_cover_combo(self, tickets, registrations, payments):
        row = registrations.create("visitor", {"email": "j@x.in"})
        tickets.upgrade({"entity_type": "visitors", "entity_id": row["id"], "new_category": "premium"})
        payments.apply_webhook("paid", reference_id=str(row["id"]), provider_payment_id="MOJO5")

        with pytest.raises(ValidationError) as exc:
            tickets.upgrade({
                "entity_type": "visitors", "entity_id": row["id"], "new_category": "combo", "txId": "MOJO5",
            })
        assert exc.value.details == {"paid": 2950, "due": 5900}

    def test_order_is_priced_from_category(self, tickets, registrations):
        row = registrations.create("visitor", {"email": "j@x.in"})
        out = tickets.upgrade({"entity_type": "visitors", "entity_id": row["id"], "new_category": "combo", "amount": 1})
        assert out["order"]["raw"]["amount"] == 5900
        assert "upgraded" not in out

    def test_free_category_needs_no_payment(self, tickets, registrations):
        row = registrations.create("visitor", {"email": "j@x.in"})
        out = tickets.upgrade({"entity_type": "visitors", "entity_id": row["id"], "new_category": "free"})
        assert out["upgraded"] is True
        assert registrations.get("visitor", row["id"])["ticket_total"] == 0

    def test_full_discount_coupon_must_be_reserved(self, tickets, registrations, coupons):
        row = registrations.create("visitor", {"email": "j@x.in"})
        coupons.create("ALLFREE", 100)
        body = {
            "entity_type": "visitors", "entity_id": row["id"], "new_category": "premium",
            "amount": 0, "txId": "free-1700000000000", "coupon": "ALLFREE",
        }
        with pytest.raises(ValidationError):
            tickets.upgrade(body)

        coupons.validate("ALLFREE", 2950, mark_used=True, used_by="j@x.in")
        assert tickets.upgrade(body)["upgraded"] is True
        updated = registrations.get("visitor", row["id"])
        assert (updated["ticket_category"], updated["ticket_total"]) == ("premium", 0)

    def test_free_transaction_without_coupon_is_rejected(self, tickets, registrations):
        row = registrations.create("visitor", {"email": "j@x.in"})
        with pytest.raises(ValidationError):
            tickets.upgrade({
                "entity_type": "visitors", "entity_id": row["id"], "new_category": "premium",
                "amount": 0, "txId": "free-1700000000000",
            })

    def test_upgrade_requires_fields(self, tickets):
        with pytest.raises(ValidationError):
            tickets.upgrade({"entity_type": "visitors"})

    def test_upgrade_unknown_registrant(self, tickets):
        with pytest.raises(NotFoundError):
            tickets.upgrade({"entity_type": "visitors", "entity_id": 999, "new_category": "combo"})


class TestReminderService:
    """Tests for ReminderService."""

    def test_sends_to_every_registrant_with_upgrade_link(self, registrations):
        registrations.create("visitor", {"name": "A", "email": "a@x.in"})
        registrations.create("visitor", {"name": "B", "email": "b@x.in"})
        mailer = Mock()
        mailer.send_best_effort.return_value = MailResult(success=True, status="sent", mail_log_id=1)

        out = ReminderService(registrations, mailer, "https://expo.example.in").send("visitors")

        assert (out["sent"], out["total"]) == (2, 2)
        _, kwargs = mailer.send_best_effort.call_args
        assert "https://expo.example.in/ticket-upgrade?entity=visitors" in kwargs["text"]

    def test_partners_get_no_upgrade_link(self, registrations):
        registrations.create("partner", {"company": "Rail Co", "email": "p@x.in"})
        mailer = Mock()
        mailer.send_best_effort.return_value = MailResult(success=True, status="sent")

        ReminderService(registrations, mailer, "https://expo.example.in").send("partners", subject="Hi")

        args, kwargs = mailer.send_best_effort.call_args
        assert args[1] == "Hi"
        assert "ticket-upgrade" not in kwargs["text"]

    def test_failed_mails_are_reported(self, registrations):
        registrations.create("awardee", {"name": "W", "email": "w@x.in"})
        mailer = Mock()
        mailer.send_best_effort.return_value = None

        out = ReminderService(registrations, mailer, "https://expo.example.in").send("awardee")
        assert out["sent"] == 0
        assert out["results"][0]["ok"] is False

    def test_no_recipients(self, registrations):
        out = ReminderService(registrations, Mock(), "https://expo.example.in").send("speaker")
        assert out == {"success": True, "sent": 0, "message": "No recipients found"}

    def test_entity_required(self, registrations):
        with pytest.raises(ValidationError):
            ReminderService(registrations, Mock(), "").send(None)


class TestTicketsApi:
    """Tests for /api/tickets and /api/reminders."""

    def test_validate_endpoint(self, client):
        code = client.post("/api/visitors", json={"email": "v@x.in"}).json()["ticket_code"]

        resp = client.post("/api/tickets/validate", json={"raw": f"Badge #{code} / Jane"})
        assert resp.status_code == 200
        assert resp.json()["registrant"]["email"] == "v@x.in"

        resp = client.post("/api/tickets/validate", json={"ticketId": "1"})
        assert resp.status_code == 404
        assert resp.json()["valid"] is False

    def test_upgrade_sends_mail(self, client, services, db_session_factory):
        rid = client.post("/api/visitors", json={"email": "v@x.in"}).json()["id"]
        pending = client.post("/api/tickets/upgrade", json={
            "entity_type": "visitors", "entity_id": rid, "new_category": "premium",
        })
        assert pending.json()["checkoutUrl"]
        services.payments.apply_webhook("paid", reference_id=str(rid), provider_payment_id="pay_1")

        resp = client.post("/api/tickets/upgrade", json={
            "entity_type": "visitors", "entity_id": rid, "new_category": "premium", "txId": "pay_1",
        })
        assert resp.json()["upgraded"] is True

        db = db_session_factory()
        try:
            subjects = [entry.subject for entry in db.query(MailLog).all()]
        finally:
            db.close()
        assert "Your ticket has been upgraded to premium" in subjects

    def test_upgrade_with_made_up_transaction(self, client):
        rid = client.post("/api/visitors", json={"email": "v@x.in"}).json()["id"]
        resp = client.post("/api/tickets/upgrade", json={
            "entity_type": "visitors", "entity_id": rid, "new_category": "combo", "amount": 5900, "txId": "made-up",
        })
        assert resp.status_code == 400
        assert resp.json()["error"] == "Payment not confirmed for this upgrade"
        assert client.get(f"/api/visitors/{rid}").json()["ticket_category"] != "combo"

    def test_reminders_endpoint(self, client):
        client.post("/api/exhibitors", json={"company": "Acme", "email": "a@x.in"})
        body = client.post("/api/reminders/send", json={"entity": "exhibitors"}).json()
        assert body["sent"] == 1
