"""Tests for the API client, verified-email context and the OTP verifier."""

from unittest.mock import Mock

import pytest
import requests

from railtrans.client.api import ApiClient, ApiError, ClientConfig
from railtrans.client.otp import Debouncer, OtpVerifier
from railtrans.client.session import VERIFIED_EMAIL_KEY, VerificationContext


class FakeTimer:
    """Stands in for threading.Timer; fires only when told to."""

    created = []

    def __init__(self, delay, fn, args):
        self.delay = delay
        self.fn = fn
        self.args = args
        self.cancelled = False
        self.started = False
        FakeTimer.created.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.fn(*self.args)


@pytest.fixture(autouse=True)
def reset_timers():
    FakeTimer.created = []


def _response(status, payload):
    resp = Mock()
    resp.status_code = status
    resp.ok = status < 400
    resp.content = b"{}"
    resp.json.return_value = payload
    return resp


class TestApiClient:
    """Tests for ApiClient."""

    def test_headers_and_url(self):
        session = Mock()
        session.request.return_value = _response(200, {"ok": True})
        api = ApiClient(ClientConfig(api_base="https://api.x.in/", api_key="k"), session=session)

        assert api.get("/api/health") == {"ok": True}
        args, kwargs = session.request.call_args
        assert args == ("GET", "https://api.x.in/api/health")
        assert kwargs["headers"]["X-API-KEY"] == "k"
        assert kwargs["headers"]["ngrok-skip-browser-warning"] == "69420"

    def test_error_payload_is_kept(self):
        session = Mock()
        session.request.return_value = _response(409, {"success": False, "error": "Already registered"})
        api = ApiClient(ClientConfig(), session=session)

        with pytest.raises(ApiError) as exc:
            api.post("/api/otp/send", {"value": "a@x.in"})
        assert exc.value.status == 409
        assert exc.value.message == "Already registered"
        assert exc.value.payload["success"] is False

    def test_network_error(self):
        session = Mock()
        session.request.side_effect = requests.exceptions.ConnectionError("down")
        with pytest.raises(ApiError) as exc:
            ApiClient(ClientConfig(), session=session).get("/x")
        assert exc.value.status == 0


class TestVerificationContext:
    """Tests for VerificationContext."""

    def test_remember_and_clear(self):
        persistent, session = {}, {}
        ctx = VerificationContext(persistent, session)
        ctx.remember_verified(" A@X.in ")

        assert persistent[VERIFIED_EMAIL_KEY] == "a@x.in"
        assert ctx.is_verified("a@x.IN")
        assert not ctx.is_verified("b@x.in")

        ctx.clear()
        assert ctx.verified_email == ""


class TestDebouncer:
    """Tests for Debouncer."""

    def test_only_last_call_runs(self):
        fn = Mock()
        debouncer = Debouncer(0.35, fn, timer_factory=FakeTimer)
        debouncer.call("a")
        debouncer.call("b")

        first, second = FakeTimer.created
        assert first.cancelled is True
        first.fire()
        second.fire()
        fn.assert_called_once_with("b")


class TestOtpVerifier:
    """Tests for OtpVerifier."""

    def make(self, api, **kwargs):
        return OtpVerifier(api, "visitors", timer_factory=FakeTimer, **kwargs)

    def test_email_change_checks_existing_after_debounce(self):
        api = Mock()
        api.get.return_value = {"success": True, "found": False}
        verifier = self.make(api)

        verifier.on_email_change("new@x.in")
        assert verifier.state == "idle"
        FakeTimer.created[-1].fire()

        assert verifier.state == "sendable"
        api.get.assert_called_once_with("/api/otp/check-email", params={"email": "new@x.in", "type": "visitor"})

    def test_stale_check_is_ignored(self):
        api = Mock()
        verifier = self.make(api)
        verifier.on_email_change("old@x.in")
        timer = FakeTimer.created[-1]
        verifier.email = "other@x.in"
        timer.fire()
        api.get.assert_not_called()

    def test_existing_registration_is_reported(self):
        api = Mock()
        api.get.return_value = {"success": True, "found": True, "info": {"id": 3, "ticket_code": "123456"}}
        on_existing = Mock()
        verifier = self.make(api, on_existing=on_existing)

        verifier.on_email_change("old@x.in")
        FakeTimer.created[-1].fire()

        assert verifier.state == "existing"
        on_existing.assert_called_once_with({"id": 3, "ticket_code": "123456"})

    def test_already_verified_email_skips_checks(self):
        ctx = VerificationContext()
        ctx.remember_verified("v@x.in")
        verifier = self.make(Mock(), verification=ctx)
        verifier.on_email_change("V@x.in")
        assert verifier.verified is True
        assert FakeTimer.created == []

    def test_send_conflict_marks_existing(self):
        api = Mock()
        api.post.side_effect = ApiError(409, "Email already exists", {"existing": {"id": 9}})
        verifier = self.make(api)
        verifier.email = "dup@x.in"

        assert verifier.send() is False
        assert verifier.state == "existing"
        assert verifier.existing == {"id": 9}
        assert verifier.sending is False

    def test_send_rejects_invalid_email(self):
        verifier = self.make(Mock())
        verifier.email = "nope"
        assert verifier.send() is False
        assert verifier.error == "Enter a valid email address"

    def test_verify_remembers_email(self):
        api = Mock()
        api.post.return_value = {"success": True, "email": "jane@x.in"}
        on_verified = Mock()
        verifier = self.make(api, on_verified=on_verified)
        verifier.email = "Jane@x.in"

        assert verifier.verify("123456") is True
        assert verifier.verification.verified_email == "jane@x.in"
        on_verified.assert_called_once_with("jane@x.in")
        _, payload = api.post.call_args[0]
        assert payload == {"value": "jane@x.in", "otp": "123456", "registrationType": "visitor"}

    def test_verify_wrong_code(self):
        api = Mock()
        api.post.return_value = {"success": False, "error": "Incorrect OTP"}
        verifier = self.make(api)
        verifier.email = "a@x.in"
        assert verifier.verify("000000") is False
        assert verifier.state == "error"
        assert verifier.error == "Incorrect OTP"
