"""Tests for the registration form engine."""

from unittest.mock import Mock

from railtrans.client.api import ApiError
from railtrans.client.form_engine import (
    OTP_MESSAGE,
    PHONE_MESSAGE,
    TERMS_MESSAGE,
    FormField,
    RegistrationForm,
    handle_phone_change,
    is_field_visible,
    is_phone_field,
)
from railtrans.client.otp import OtpVerifier
from railtrans.client.session import VerificationContext

CONFIG = {
    "termsRequired": True,
    "fields": [
        {"name": "name", "label": "Name", "type": "text", "required": True},
        {"name": "email", "label": "Email", "type": "email", "meta": {"useOtp": True}},
        {"name": "mobile", "label": "Mobile", "type": "text"},
        {"name": "student", "label": "Student?", "type": "select", "options": ["Yes", "No"]},
        {"name": "college", "label": "College", "type": "text", "showIf": {"student": "Yes"}},
    ],
}


class TestFields:
    """Tests for field helpers."""

    def test_visibility(self):
        college = FormField.from_dict(CONFIG["fields"][4])
        assert not is_field_visible(college, {"student": "No"})
        assert is_field_visible(college, {"student": "Yes"})
        assert not is_field_visible(FormField(name="x", visible=False), {})

    def test_phone_detection(self):
        assert is_phone_field(FormField(name="mobile"))
        assert is_phone_field(FormField(name="whatsapp", type="tel"))
        assert is_phone_field(FormField(name="alt", meta={"isPhone": True}))
        assert not is_phone_field(FormField(name="contact_email", type="email"))
        assert not is_phone_field(FormField(name="company"))

    def test_handle_phone_change(self):
        form = handle_phone_change({}, "mobile", "+91 98765-43210")
        assert form == {"mobile": "+919876543210", "mobile_country": "91", "mobile_national": "9876543210"}

        form = handle_phone_change({}, "mobile", "4155550100", dial_code="1")
        assert form["mobile"] == "+14155550100"

    def test_uses_otp(self):
        assert FormField.from_dict(CONFIG["fields"][1]).uses_otp
        assert not FormField(name="email", type="email").uses_otp


class TestRegistrationForm:
    """Tests for the submit sequence."""

    def make_form(self, verification=None, otp_verifier=None):
        on_submit = Mock(return_value={"success": True, "id": 1})
        form = RegistrationForm.from_config(CONFIG, on_submit, verification=verification, otp_verifier=otp_verifier)
        return form, on_submit

    def test_terms_checked_first(self):
        form, on_submit = self.make_form()
        assert form.submit() is False
        assert form.error == TERMS_MESSAGE
        on_submit.assert_not_called()

    def test_hidden_fields_are_skipped(self):
        form, _ = self.make_form()
        form.set_value("student", "No")
        assert "college" not in [f.name for f in form.visible_fields()]

    def test_unverified_email_blocks_submit(self):
        form, on_submit = self.make_form()
        form.values.update({"termsAccepted": True, "email": "a@x.in"})
        assert form.submit() is False
        assert form.error == OTP_MESSAGE
        assert form.pending_submit is True
        on_submit.assert_not_called()

    def test_phone_must_have_ten_digits(self):
        ctx = VerificationContext()
        ctx.remember_verified("a@x.in")
        form, on_submit = self.make_form(verification=ctx)
        form.values.update({"termsAccepted": True, "email": "a@x.in"})
        form.set_value("mobile", "98765")

        assert form.submit() is False
        assert form.error == PHONE_MESSAGE

        form.set_value("mobile", "9876543210")
        assert form.submit() is True
        submitted = on_submit.call_args[0][0]
        assert submitted["mobile"] == "+919876543210"

    def test_submit_resumes_after_otp(self):
        api = Mock()
        api.post.side_effect = [
            {"success": True, "otpSent": True},
            {"success": True, "email": "a@x.in"},
        ]
        verifier = OtpVerifier(api, "visitor", timer_factory=Mock())
        form, on_submit = self.make_form(otp_verifier=verifier)
        form.values.update({"termsAccepted": True, "mobile": "+919876543210"})
        form.set_value("email", "a@x.in")

        assert form.submit() is False
        assert verifier.state == "sent"
        assert api.post.call_args_list[0][0][0] == "/api/otp/send"

        assert verifier.verify("123456") is True
        assert form.submitted is True
        assert form.values["otpVerified"] is True
        on_submit.assert_called_once()

    def test_resubmit_after_wrong_code_keeps_challenge(self):
        api = Mock()
        api.post.side_effect = [
            {"success": True, "otpSent": True},
            ApiError(400, "Incorrect OTP"),
        ]
        verifier = OtpVerifier(api, "visitor", timer_factory=Mock())
        form, on_submit = self.make_form(otp_verifier=verifier)
        form.values.update({"termsAccepted": True, "mobile": "+919876543210"})
        form.set_value("email", "a@x.in")
        form.submit()
        assert verifier.verify("000000") is False

        assert form.submit() is False
        assert api.post.call_count == 2
        assert verifier.state == "error"
        assert verifier.error == "Incorrect OTP"
        on_submit.assert_not_called()

    def test_api_error_is_shown(self):
        ctx = VerificationContext()
        ctx.remember_verified("a@x.in")
        form, on_submit = self.make_form(verification=ctx)
        on_submit.side_effect = ApiError(400, "Valid email is required.")
        form.values.update({"termsAccepted": True, "email": "a@x.in", "mobile": "9876543210"})

        assert form.submit() is False
        assert form.error == "Valid email is required."
        assert form.submitted is False
