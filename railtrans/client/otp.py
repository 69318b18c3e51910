import logging
import threading
import uuid
from typing import Callable, Dict, Optional
from ..core.normalizers import is_valid_email, normalize_email, normalize_role
from .api import ApiClient, ApiError
from .session import VerificationContext

logger = logging.getLogger(__name__)

DEBOUNCE_SECONDS = 0.35


class Debouncer:
    """Runs `fn` once `delay` seconds after the last call."""

    def __init__(self, delay: float, fn: Callable, timer_factory=threading.Timer) -> None:
        self.delay = delay
        self.fn = fn
        self._timer_factory = timer_factory
        self._timer = None
        self._lock = threading.Lock()

    def call(self, *args) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = self._timer_factory(self.delay, self.fn, args)
            self._timer.daemon = True
            self._timer.start()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None


class OtpVerifier:
    """
    Email OTP for one form field.

    idle → checking → sendable | existing
    sendable → sent → verified | error
    """

    def __init__(
        self,
        api: ApiClient,
        registration_type: str,
        verification: Optional[VerificationContext] = None,
        on_verified: Optional[Callable[[str], None]] = None,
        on_existing: Optional[Callable[[dict], None]] = None,
        debounce_s: float = DEBOUNCE_SECONDS,
        timer_factory=threading.Timer,
    ) -> None:
        self.api = api
        self.registration_type = registration_type
        self.role = normalize_role(registration_type) or registration_type
        self.verification = verification or VerificationContext()
        self.on_verified = on_verified
        self.on_existing = on_existing
        self.email = ""
        self.state = "idle"
        self.error = ""
        self.existing: Optional[dict] = None
        self.sending = False
        self.verifying = False
        self._debouncer = Debouncer(debounce_s, self.check_existing, timer_factory=timer_factory)

    @property
    def verified(self) -> bool:
        return self.state == "verified"

    def on_email_change(self, value: str) -> None:
        self.email = value or ""
        self.error = ""
        self.existing = None
        if self.verification.is_verified(self.email):
            self.state = "verified"
            return
        self.state = "idle"
        if is_valid_email(self.email):
            self._debouncer.call(self.email)
        else:
            self._debouncer.cancel()

    def _mark_existing(self, info: dict) -> None:
        self.state = "existing"
        self.existing = info
        if self.on_existing is not None:
            self.on_existing(info)

    def check_existing(self, value: str) -> None:
        if normalize_email(value) != normalize_email(self.email):
            return
        self.state = "checking"
        try:
            resp = self.api.get("/api/otp/check-email", params={"email": normalize_email(value), "type": self.role})
        except ApiError as e:
            logger.warning(f"Existing-email check failed: status={e.status}, error={e.message}")
            self.state = "idle"
            return
        if resp.get("found"):
            self._mark_existing(resp.get("info") or {})
        else:
            self.state = "sendable"

    def send(self) -> bool:
        if self.sending:
            return False
        if not is_valid_email(self.email):
            self.error = "Enter a valid email address"
            return False
        self.sending = True
        self.error = ""
        try:
            self.api.post("/api/otp/send", {
                "type": "email",
                "value": normalize_email(self.email),
                "requestId": uuid.uuid4().hex,
                "registrationType": self.role,
            })
            self.state = "sent"
            return True
        except ApiError as e:
            if e.status == 409 and isinstance(e.payload, dict) and e.payload.get("existing"):
                self._mark_existing(e.payload["existing"])
            else:
                self.error = e.message
            return False
        finally:
            self.sending = False

    def verify(self, code: str) -> bool:
        if self.verifying:
            return False
        self.verifying = True
        self.error = ""
        try:
            resp: Dict = self.api.post("/api/otp/verify", {
                "value": normalize_email(self.email),
                "otp": str(code or "").strip(),
                "registrationType": self.role,
            })
        except ApiError as e:
            self.error = e.message
            self.state = "error"
            return False
        finally:
            self.verifying = False

        if not resp.get("success"):
            self.error = resp.get("error") or "Incorrect OTP"
            self.state = "error"
            return False

        email = self.verification.remember_verified(resp.get("email") or self.email)
        self.email = email
        self.state = "verified"
        if resp.get("existing"):
            self.existing = resp["existing"]
        logger.info(f"Email verified: role={self.role}")
        if self.on_verified is not None:
            self.on_verified(email)
        return True
