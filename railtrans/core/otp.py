"""
E-mail OTP challenges bound to (role, email).

send → 6-digit code stored for OTP_TTL_SECONDS, re-send blocked for
OTP_RESEND_COOLDOWN_SECONDS; verify → consumed on success, dropped after
too many wrong attempts or on expiry.
"""
import logging
import secrets
import time
from typing import Callable, Optional
from sqlalchemy.orm import Session, sessionmaker
from ..config import AppConfig
from ..session.otp_store import OtpChallenge, challenge_key
from ..storage.repository import RegistrantRepository
from .errors import ConflictError, RailTransError, RateLimitError, ValidationError
from .mailer import MailerService
from .normalizers import is_valid_email, normalize_email, normalize_role

logger = logging.getLogger(__name__)


def generate_code() -> str:
    return str(100000 + secrets.randbelow(900000))


def _mask(email: str) -> str:
    """Ex: "john.doe@x.in" → "jo***@x.in"."""
    local, _, domain = email.partition("@")
    return f"{local[:2]}***@{domain}"


class OtpService:

    def __init__(
        self,
        config: AppConfig,
        store,
        mailer: MailerService,
        db_session_factory: sessionmaker,
        code_generator: Callable[[], str] = generate_code,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config
        self._store = store
        self._mailer = mailer
        self._db_session_factory = db_session_factory
        self._code_generator = code_generator
        self._clock = clock

    def _parse(self, value: Optional[str], registration_type: Optional[str]):
        if not is_valid_email(value):
            raise ValidationError("Provide a valid email")
        if not registration_type or not str(registration_type).strip():
            raise ValidationError("registrationType required")
        role = normalize_role(registration_type)
        if role is None:
            raise ValidationError("Unknown registrationType", registrationType=registration_type)
        return normalize_email(value), role

    def find_existing(self, email: str, role: str) -> Optional[dict]:
        db_session: Session = self._db_session_factory()
        try:
            registrant = RegistrantRepository(db_session).find_by_email(role, email)
        finally:
            db_session.close()
        if registrant is None:
            return None
        return {
            "id": registrant.id,
            "ticket_code": registrant.ticket_code,
            "emailValue": registrant.email,
            "name": registrant.name,
            "mobile": registrant.mobile,
        }

    def check_email(self, email: Optional[str], registration_type: Optional[str]) -> dict:
        email, role = self._parse(email, registration_type)
        info = self.find_existing(email, role)
        if info:
            return {"success": True, "found": True, "info": info}
        return {"success": True, "found": False}

    def send(self, value: Optional[str], registration_type: Optional[str]) -> dict:
        email, role = self._parse(value, registration_type)

        existing = self.find_existing(email, role)
        if existing:
            raise ConflictError("Email already exists", existing=existing, registrationType=registration_type)

        key = challenge_key(role, email)
        now = self._clock()
        current = self._store.get(key)
        if current is not None:
            wait = int(current.last_sent_at + self._config.otp_resend_cooldown_seconds - now)
            if wait > 0:
                logger.info(f"OTP resend blocked by cooldown: role={role}, email={_mask(email)}, wait_s={wait}")
                raise RateLimitError("Please wait before requesting another OTP", retryAfter=wait)

        code = self._code_generator()
        self._store.save(key, OtpChallenge(
            code=code,
            expires_at=now + self._config.otp_ttl_seconds,
            last_sent_at=now,
        ))

        minutes = max(1, self._config.otp_ttl_seconds // 60)
        result = self._mailer.send(
            email,
            "Your RailTrans Expo OTP",
            text=f"Your OTP is {code}. It expires in {minutes} minutes.",
            html=f"<p>Your OTP is <b>{code}</b>. It expires in {minutes} minutes.</p>",
        )
        if not result.success:
            self._store.delete(key)
            logger.error(f"OTP mail failed, challenge dropped: role={role}, email={_mask(email)}")
            raise RailTransError("Failed to send OTP")

        logger.info(f"OTP sent: role={role}, email={_mask(email)}, mail_status={result.status}")
        return {
            "success": True,
            "email": email,
            "registrationType": registration_type,
            "otpSent": True,
            "expiresInSec": self._config.otp_ttl_seconds,
        }

    def verify(self, value: Optional[str], otp: Optional[str], registration_type: Optional[str]) -> dict:
        email, role = self._parse(value, registration_type)
        key = challenge_key(role, email)

        challenge = self._store.get(key)
        if challenge is None:
            return {"success": False, "error": "OTP not found or expired"}
        if challenge.is_expired(self._clock()):
            self._store.delete(key)
            return {"success": False, "error": "OTP expired"}
        if challenge.attempts >= self._config.otp_max_verify_attempts:
            self._store.delete(key)
            logger.warning(f"⚠️ OTP dropped after too many attempts: role={role}, email={_mask(email)}")
            raise RateLimitError("Too many attempts")

        supplied = str(otp or "").strip()
        if len(supplied) != 6 or not secrets.compare_digest(supplied, challenge.code):
            challenge.attempts += 1
            self._store.save(key, challenge)
            logger.info(f"Incorrect OTP: role={role}, email={_mask(email)}, attempts={challenge.attempts}")
            return {"success": False, "error": "Incorrect OTP"}

        self._store.delete(key)
        logger.info(f"OTP verified: role={role}, email={_mask(email)}")

        out = {"success": True, "email": email, "registrationType": registration_type}
        existing = self.find_existing(email, role)
        if existing:
            out["existing"] = existing
        return out
