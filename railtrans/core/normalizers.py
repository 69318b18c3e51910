"""
Functions that normalize and validate user-supplied values.
"""
import re
from typing import Optional, Tuple


ROLES = ("visitor", "exhibitor", "partner", "speaker", "awardee")

# Roles whose rows go through the pending -> approved|cancelled review
REVIEWED_ROLES = ("exhibitor", "partner")

# Roles whose acknowledgement and reminder mails carry a ticket upgrade link
TICKETED_ROLES = ("visitor", "exhibitor", "speaker", "awardee")

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

PHONE_NAME_RE = re.compile(r"phone|mobile|contact|msisdn|tel", re.IGNORECASE)

DEFAULT_DIAL_CODE = "91"

NATIONAL_NUMBER_LENGTH = 10


def normalize_email(raw: Optional[str]) -> str:
    """Trim and lower-case an email address. Never returns None."""
    return str(raw or "").strip().lower()


def is_valid_email(raw: Optional[str]) -> bool:
    return bool(EMAIL_RE.match(str(raw or "").strip()))


def normalize_role(raw: Optional[str]) -> Optional[str]:
    """
    Map a registration type to its canonical singular role.

    Examples:
        "Visitors" → "visitor"
        " exhibitor " → "exhibitor"
        "guest" → None
    """
    if not raw:
        return None
    text = str(raw).strip().lower()
    singular = text[:-1] if text.endswith("s") else text
    return singular if singular in ROLES else None


def plural_role(role: str) -> str:
    return role if role.endswith("s") else f"{role}s"


def safe_field_name(raw: Optional[str]) -> str:
    """
    Normalize an admin-configured field name into a storage key.

    Examples:
        "Company Name" → "company_name"
        "e-mail" → "e_mail"
    """
    text = str(raw or "").strip().lower()
    text = re.sub(r"[\s-]+", "_", text)
    return re.sub(r"[^a-z0-9_]", "", text)


def normalize_coupon_code(raw: Optional[str]) -> str:
    return str(raw or "").strip().upper()


def split_phone(raw: Optional[str], default_dial: str = DEFAULT_DIAL_CODE) -> Tuple[str, str]:
    """
    Split a free-form phone value into (dial code, national number).

    The national part keeps digits only and is capped at 10 digits.
    A leading "+<dial>" is honoured; otherwise the default dial code is used.

    Examples:
        "+91 98765-43210" → ("91", "9876543210")
        "098765 43210" → ("91", "0987654321")
        "+1 (415) 555 0100" → ("1", "4155550100")
    """
    text = str(raw or "").strip()
    dial = default_dial
    if text.startswith("+"):
        digits = re.sub(r"\D", "", text)
        # longest national tail wins; whatever precedes it is the dial code
        if len(digits) > NATIONAL_NUMBER_LENGTH:
            dial = digits[: len(digits) - NATIONAL_NUMBER_LENGTH]
            national = digits[len(digits) - NATIONAL_NUMBER_LENGTH:]
        else:
            national = digits
    else:
        national = re.sub(r"\D", "", text)
    return dial, national[:NATIONAL_NUMBER_LENGTH]


def combine_phone(dial: str, national: str) -> str:
    dial_digits = re.sub(r"\D", "", dial or "")
    if not national:
        return ""
    return f"+{dial_digits}{national}"

