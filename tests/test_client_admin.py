"""Tests for the admin dashboard helpers, ticket upgrade flow and mail resolver."""

from unittest.mock import Mock

import pytest

from railtrans.client.admin import (
    RegistrantResource,
    TableState,
    bulk_delete,
    bulk_generate_tickets,
    derive_columns,
)
from railtrans.client.api import ApiError, ClientConfig
from railtrans.client.emails import FRONTEND_BASE_ENV, EventDetailsResolver
from railtrans.client.upgrade import TicketUpgradeFlow


class RoutedApi:
    """Fake ApiClient answering GET/POST by path."""

    def __init__(self, routes=None, api_base="https://api.example.in/v1"):
        self.routes = dict(routes or {})
        self.calls = []
        self.config = ClientConfig(api_base=api_base)

    def _answer(self, method, path, body):
        self.calls.append((method, path, body))
        answer = self.routes.get((method, path))
        if answer is None:
            raise ApiError(404, "Not found")
        if isinstance(answer, Exception):
            raise answer
        return answer(body) if callable(answer) else answer

    def get(self, path, params=None):
        return self._answer("GET", path, params)

    def post(self, path, json=None):
        return self._answer("POST", path, json)

    def put(self, path, json=None):
        return self._answer("PUT", path, json)

    def delete(self, path):
        return self._answer("DELETE", path, None)


class TestRegistrantResource:
    """Tests for RegistrantResource."""

    def test_paths(self):
        api = Mock()
        api.put.return_value = {"success": True, "updated": {"id": 3}}
        resource = RegistrantResource(api, "visitors")

        resource.list(q="jane")
        resource.create({"email": "a@x.in"})
        assert resource.update(3, {"name": "N"}, force=True) == {"id": 3}

        api.get.assert_called_once_with("/api/visitors", params={"limit": 1000, "skip": 0, "q": "jane"})
        assert api.post.call_args[0] == ("/api/visitors", {"email": "a@x.in", "added_by_admin": True})
        assert api.put.call_args[0][0] == "/api/visitors/3?force=true"

    def test_review_only_for_reviewed_roles(self):
        api = Mock()
        with pytest.raises(ValueError):
            RegistrantResource(api, "visitor").approve(1)
        RegistrantResource(api, "partner").cancel(4, admin="alice")
        api.post.assert_called_once_with("/api/partners/4/cancel", {"admin": "alice"})


class TestColumns:
    """Tests for derive_columns."""

    def test_order(self):
        rows = [
            {"id": 1, "email": "a@x.in", "data": {}, "zeta": 1},
            {"id": 2, "name": "B", "booth": "A-12"},
        ]
        assert derive_columns(rows, declared=["booth"]) == ["booth", "name", "email", "id", "zeta"]


class TestTableState:
    """Tests for TableState."""

    ROWS = [
        {"name": "charlie", "ticket_total": 0},
        {"name": "Alpha", "ticket_total": None},
        {"name": "bravo", "ticket_total": 2950},
    ]

    def test_sort_toggles_and_keeps_missing_last(self):
        table = TableState(self.ROWS)
        table.toggle_sort("ticket_total")
        assert [r["name"] for r in table.sorted_rows()] == ["charlie", "bravo", "Alpha"]

        table.toggle_sort("ticket_total")
        assert [r["name"] for r in table.sorted_rows()] == ["bravo", "charlie", "Alpha"]

    def test_sort_is_case_insensitive(self):
        table = TableState(self.ROWS)
        table.toggle_sort("name")
        assert [r["name"] for r in table.sorted_rows()] == ["Alpha", "bravo", "charlie"]

    def test_paging(self):
        table = TableState([{"id": i} for i in range(25)], page_size=10)
        assert table.page_count == 3
        table.next_page()
        table.next_page()
        table.next_page()
        assert table.page == 2
        assert [r["id"] for r in table.page_rows()] == list(range(20, 25))
        table.goto(-4)
        assert table.page == 0


class TestBulk:
    """Tests for bulk row actions."""

    def test_failures_are_collected(self):
        api = Mock()
        api.post.side_effect = [{"success": True}, ApiError(404, "Visitor not found")]
        outcomes = bulk_generate_tickets(RegistrantResource(api, "visitor"), [1, 2])
        assert [o["ok"] for o in outcomes] == [True, False]
        assert outcomes[1]["error"] == "Visitor not found"

    def test_bulk_delete(self):
        api = Mock()
        api.delete.return_value = {"success": True}
        outcomes = bulk_delete(RegistrantResource(api, "speaker"), [7])
        api.delete.assert_called_once_with("/api/speakers/7")
        assert outcomes[0]["ok"] is True


class TestTicketUpgradeFlow:
    """Tests for TicketUpgradeFlow."""

    def make_api(self, extra=None):
        routes = {
            ("GET", "/api/visitors/3"): {"id": 3, "email": "v@x.in", "ticket_code": "123456"},
            ("POST", "/api/payment/create-order"): {"success": True, "orderId": 1, "checkoutUrl": "https://pay/1"},
            ("GET", "/api/payment/status"): {"status": "paid", "record": {"provider_payment_id": "MOJO9"}},
            ("POST", "/api/tickets/upgrade"): {"success": True, "upgraded": True},
        }
        routes.update(extra or {})
        return RoutedApi(routes)

    def make_flow(self, api, ticket_code="123456"):
        return TicketUpgradeFlow(api, "visitors", 3, ticket_code=ticket_code,
                                 open_url=Mock(return_value=True), sleep=Mock())

    def test_ticket_code_must_match(self):
        flow = self.make_flow(self.make_api(), ticket_code="999999")
        assert flow.load() is False
        assert flow.error == "Ticket code does not match this registration."

    def test_paid_upgrade(self):
        api = self.make_api()
        flow = self.make_flow(api)
        assert flow.load() is True
        assert [c.value for c in flow.categories()] == ["free", "premium", "combo"]
        assert flow.select("premium").total == 2950

        assert flow.complete() is True

        _, path, body = api.calls[-1]
        assert path == "/api/tickets/upgrade"
        assert body["txId"] == "MOJO9"
        assert body["ticket_total"] == 2950
        assert body["new_category"] == "premium"

    def test_complete_without_category(self):
        flow = self.make_flow(self.make_api())
        assert flow.complete() is False
        assert flow.error == "Select a ticket category first."

    def test_failed_payment_does_not_record_upgrade(self):
        api = self.make_api({("GET", "/api/payment/status"): {"status": "failed"}})
        flow = self.make_flow(api)
        flow.load()
        flow.select("combo")
        assert flow.complete() is False
        assert all(path != "/api/tickets/upgrade" for _, path, _ in api.calls)


class TestEventDetailsResolver:
    """Tests for EventDetailsResolver."""

    def test_frontend_base_precedence(self, monkeypatch):
        resolver = EventDetailsResolver(RoutedApi())
        monkeypatch.delenv(FRONTEND_BASE_ENV, raising=False)
        assert resolver.frontend_base() == "https://api.example.in"
        monkeypatch.setenv(FRONTEND_BASE_ENV, "https://expo.example.in/")
        assert resolver.frontend_base() == "https://expo.example.in"
        assert resolver.frontend_base("https://given.in/") == "https://given.in"

    def test_event_details_from_first_answering_path(self):
        api = RoutedApi({("GET", "/api/event-details"): {"name": "Expo", "venue": "Delhi"}})
        details = EventDetailsResolver(api).event_details()
        assert (details["name"], details["venue"]) == ("Expo", "Delhi")
        assert [c[1] for c in api.calls][:2] == ["/api/configs/event-details", "/api/event-details"]

    def test_event_details_fall_back_to_page_config(self):
        details = EventDetailsResolver(RoutedApi()).event_details(page_config={"eventDetails": {"title": "Summit"}})
        assert details["name"] == "Summit"

    def test_logo_is_absolute(self, monkeypatch):
        monkeypatch.delenv(FRONTEND_BASE_ENV, raising=False)
        api = RoutedApi({("GET", "/api/admin-config"): {"logoUrl": "/uploads/logo.png"}})
        assert EventDetailsResolver(api).logo_url() == "https://api.example.in/uploads/logo.png"

    def test_send_posts_to_mailer(self, monkeypatch):
        monkeypatch.setenv(FRONTEND_BASE_ENV, "https://expo.example.in")
        api = RoutedApi({
            ("GET", "/api/configs/event-details"): {"success": True, "value": {"name": "RailTrans Expo 2026"}},
            ("POST", "/api/mailer"): {"success": True},
        })
        resolver = EventDetailsResolver(api)
        email = resolver.build_email({"id": 4, "name": "Jane"}, "visitors")
        resolver.send("jane@x.in", email)

        _, path, body = api.calls[-1]
        assert path == "/api/mailer"
        assert body["subject"].startswith("RailTrans Expo 2026")
        assert "https://expo.example.in/ticket?entity=visitors&id=4" in body["text"]
