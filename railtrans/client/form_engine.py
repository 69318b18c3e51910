"""
Registration form engine: field visibility, phone normalization and the
submit sequence (terms → OTP-verified email → phone numbers → submit).
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional
from ..core.normalizers import (
    DEFAULT_DIAL_CODE,
    NATIONAL_NUMBER_LENGTH,
    PHONE_NAME_RE,
    combine_phone,
    split_phone,
)
from .api import ApiError
from .session import VerificationContext

logger = logging.getLogger(__name__)

TERMS_MESSAGE = "You must accept the terms and conditions to complete registration."
OTP_MESSAGE = "Please verify your email with the OTP before submitting."
PHONE_MESSAGE = "Please enter a valid 10-digit mobile number."


@dataclass
class FormField:
    name: str
    label: str = ""
    type: str = "text"
    options: List[str] = field(default_factory=list)
    required: bool = False
    visible: bool = True
    show_if: Optional[Dict[str, Any]] = None
    meta: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: dict) -> "FormField":
        return cls(
            name=str(raw.get("name") or ""),
            label=str(raw.get("label") or ""),
            type=str(raw.get("type") or "text"),
            options=list(raw.get("options") or []),
            required=bool(raw.get("required")),
            visible=raw.get("visible") is not False,
            show_if=raw.get("showIf") or raw.get("visibleIf") or None,
            meta=dict(raw.get("meta") or {}),
        )

    @property
    def uses_otp(self) -> bool:
        return self.type == "email" and bool(self.meta.get("useOtp"))


def is_field_visible(f: FormField, form: Dict[str, Any]) -> bool:
    """Shown unless visible=False or a showIf pair does not match exactly."""
    if not f.visible:
        return False
    if not f.show_if:
        return True
    return all(form.get(key) == value for key, value in f.show_if.items())


def is_phone_field(f: FormField) -> bool:
    if f.type == "email":
        return False
    if f.type in ("phone", "tel"):
        return True
    if f.meta.get("isPhone"):
        return True
    return bool(PHONE_NAME_RE.search(f.name))


def handle_phone_change(form: Dict[str, Any], name: str, raw: str, dial_code: Optional[str] = None) -> Dict[str, Any]:
    """
    Store a phone value under three keys: `name` (+<dial><national>),
    `name_country` and `name_national` (digits only, at most 10).
    """
    dial, national = split_phone(raw, default_dial=dial_code or form.get(f"{name}_country") or DEFAULT_DIAL_CODE)
    if dial_code:
        dial = dial_code
    form[f"{name}_country"] = dial
    form[f"{name}_national"] = national
    form[name] = combine_phone(dial, national)
    return form


def national_part(form: Dict[str, Any], name: str) -> str:
    if form.get(f"{name}_national") is not None:
        return str(form[f"{name}_national"])
    return split_phone(form.get(name))[1]


class RegistrationForm:
    """
    One registration form bound to a page config and a value bag.

    `on_submit` receives a copy of the assembled form. An OTP verifier, when
    given, is asked to send a code if submission is blocked on an
    unverified email; once it reports success the submit resumes.
    """

    def __init__(
        self,
        fields: List[FormField],
        on_submit: Callable[[Dict[str, Any]], Any],
        verification: Optional[VerificationContext] = None,
        otp_verifier=None,
        terms_required: bool = False,
        values: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.fields = fields
        self.on_submit = on_submit
        if verification is None:
            verification = otp_verifier.verification if otp_verifier is not None else VerificationContext()
        self.verification = verification
        self.otp_verifier = otp_verifier
        self.terms_required = terms_required
        self.values: Dict[str, Any] = values if values is not None else {}
        self.error = ""
        self.submitted = False
        self.pending_submit = False
        self.result: Any = None
        if otp_verifier is not None:
            otp_verifier.on_verified = self.on_email_verified

    @classmethod
    def from_config(cls, config: dict, on_submit, **kwargs) -> "RegistrationForm":
        fields = [FormField.from_dict(raw) for raw in config.get("fields") or []]
        return cls(fields, on_submit, terms_required=bool(config.get("termsRequired")), **kwargs)

    def visible_fields(self) -> List[FormField]:
        return [f for f in self.fields if is_field_visible(f, self.values)]

    def set_value(self, name: str, value: Any) -> None:
        target = next((f for f in self.fields if f.name == name), None)
        if target is not None and is_phone_field(target):
            handle_phone_change(self.values, name, value)
            return
        self.values[name] = value
        if target is not None and target.uses_otp and self.otp_verifier is not None:
            self.otp_verifier.on_email_change(value)

    def _unverified_email(self) -> Optional[FormField]:
        for f in self.visible_fields():
            if f.uses_otp and not self.verification.is_verified(self.values.get(f.name) or ""):
                return f
        return None

    def submit(self) -> bool:
        self.error = ""

        if self.terms_required and not self.values.get("termsAccepted"):
            self.error = TERMS_MESSAGE
            return False

        email_field = self._unverified_email()
        if email_field is not None:
            self.error = OTP_MESSAGE
            self.pending_submit = True
            if self.otp_verifier is not None and self.otp_verifier.state not in ("sent", "existing", "error"):
                self.otp_verifier.email = self.values.get(email_field.name) or ""
                self.otp_verifier.send()
            return False

        for f in self.visible_fields():
            if is_phone_field(f) and len(national_part(self.values, f.name)) != NATIONAL_NUMBER_LENGTH:
                self.error = PHONE_MESSAGE
                return False

        self.pending_submit = False
        try:
            self.result = self.on_submit(dict(self.values))
        except ApiError as e:
            logger.warning(f"Registration submit failed: status={e.status}, error={e.message}")
            self.error = e.message
            return False
        self.submitted = True
        return True

    def on_email_verified(self, email: str) -> None:
        for f in self.fields:
            if f.uses_otp:
                self.values[f.name] = email
        self.values["otpVerified"] = True
        if self.pending_submit:
            self.submit()
