from typing import Dict, Optional
from ..core.normalizers import normalize_email

VERIFIED_EMAIL_KEY = "verifiedEmail"


class VerificationContext:
    """
    Holds the verified email for one visitor session.

    `persistent` outlives the session (a browser's local storage),
    `session` does not. Both are plain dicts so callers can back them with
    whatever storage they have.
    """

    def __init__(self, persistent: Optional[Dict[str, str]] = None, session: Optional[Dict[str, str]] = None) -> None:
        self.persistent = persistent if persistent is not None else {}
        self.session = session if session is not None else {}

    def remember_verified(self, email: str) -> str:
        value = normalize_email(email)
        if value:
            self.persistent[VERIFIED_EMAIL_KEY] = value
            self.session[VERIFIED_EMAIL_KEY] = value
        return value

    @property
    def verified_email(self) -> str:
        return self.session.get(VERIFIED_EMAIL_KEY) or self.persistent.get(VERIFIED_EMAIL_KEY) or ""

    def is_verified(self, email: str) -> bool:
        value = normalize_email(email)
        return bool(value) and value == self.verified_email

    def clear(self) -> None:
        self.persistent.pop(VERIFIED_EMAIL_KEY, None)
        self.session.pop(VERIFIED_EMAIL_KEY, None)
