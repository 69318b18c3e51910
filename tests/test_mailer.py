"""Tests for the mail service, its log, and the /api/mailer endpoint."""

import base64
from dataclasses import replace
from smtplib import SMTPException
from unittest.mock import MagicMock, Mock, patch

import pytest

from railtrans.core.errors import ValidationError
from railtrans.core.mailer import MailerService, parse_recipients, pdf_attachments
from railtrans.infra.email_service import EmailService, MailAttachment
from railtrans.storage.models import MailLog

PDF_B64 = base64.b64encode(b"%PDF-1.4 badge").decode()


def _mail_logs(db_session_factory):
    db = db_session_factory()
    try:
        return db.query(MailLog).order_by(MailLog.id).all()
    finally:
        db.close()


class TestHelpers:
    """Tests for recipient and attachment parsing."""

    def test_parse_recipients(self):
        assert parse_recipients("a@x.in, b@y.in ,") == ["a@x.in", "b@y.in"]
        assert parse_recipients(["a@x.in", " "]) == ["a@x.in"]
        assert parse_recipients(None) == []

    def test_only_pdf_attachments_are_kept(self):
        files = pdf_attachments([
            {"filename": "badge.pdf", "content": PDF_B64, "contentType": "application/pdf"},
            {"filename": "photo.png", "content": PDF_B64, "contentType": "image/png"},
            {"filename": "noctype.pdf", "content": "data:application/pdf;base64," + PDF_B64},
            {"filename": "broken.pdf", "content": "***", "contentType": "application/pdf"},
        ])
        assert [f.filename for f in files] == ["badge.pdf", "noctype.pdf"]
        assert files[0].content.startswith(b"%PDF")


class TestMailerService:
    """Tests for MailerService."""

    def test_dev_log_send_is_logged(self, mailer, db_session_factory):
        result = mailer.send("a@x.in,b@x.in", "Hello", text="Hi")
        assert result.success is True
        assert result.status == "skipped_no_transport"

        entry = _mail_logs(db_session_factory)[0]
        assert entry.to == "a@x.in, b@x.in"
        assert entry.status == "skipped_no_transport"

    def test_requires_subject_and_body(self, mailer):
        with pytest.raises(ValidationError):
            mailer.send("a@x.in", "", text="Hi")
        with pytest.raises(ValidationError):
            mailer.send("a@x.in", "Subject")

    def test_rejects_invalid_recipient(self, mailer):
        with pytest.raises(ValidationError):
            mailer.send("not-an-address", "Hello", text="Hi")

    def test_transport_failure_is_recorded(self, db_session_factory):
        email_service = Mock()
        email_service.send.side_effect = SMTPException("relay denied")
        mailer = MailerService(email_service, db_session_factory)

        result = mailer.send("a@x.in", "Hello", text="Hi")

        assert result.success is False
        assert result.error == "Failed to send mail"
        entry = _mail_logs(db_session_factory)[0]
        assert entry.status == "failed"
        assert "relay denied" in entry.error

    def test_best_effort_never_raises(self, mailer):
        assert mailer.send_best_effort("", "Hello", text="Hi") is None


class TestEmailService:
    """Tests for the SMTP transport."""

    def test_message_has_attachment(self, config):
        msg = EmailService(config).build_message(
            ["a@x.in"], "Badge", text="Hi", html="<p>Hi</p>",
            attachments=[MailAttachment("e-badge.pdf", b"%PDF")],
        )
        names = [part.get_filename() for part in msg.iter_attachments()]
        assert names == ["e-badge.pdf"]

    def test_smtp_delivery(self, config):
        smtp_config = replace(config, smtp_host="smtp.example.in", smtp_user="u", smtp_password="p")
        with patch("railtrans.infra.email_service.smtplib.SMTP") as smtp_cls:
            server = MagicMock()
            smtp_cls.return_value.__enter__.return_value = server
            outcome = EmailService(smtp_config).send(["a@x.in"], "Hello", text="Hi")

        assert outcome == "sent"
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("u", "p")
        server.send_message.assert_called_once()


class TestMailerApi:
    """Tests for /api/mailer and /api/email."""

    def test_send(self, client, db_session_factory):
        resp = client.post("/api/mailer", json={
            "to": ["a@x.in"],
            "subject": "Your badge",
            "html": "<p>Hi</p>",
            "attachments": [{"filename": "b.pdf", "content": PDF_B64, "contentType": "application/pdf"}],
        })
        assert resp.status_code == 200
        assert resp.json()["success"] is True
        assert _mail_logs(db_session_factory)[0].attachments_count == 1

    def test_email_alias(self, client):
        resp = client.post("/api/email", json={"to": "a@x.in", "subject": "S", "text": "T"})
        assert resp.json()["status"] == "skipped_no_transport"

    def test_missing_subject(self, client):
        resp = client.post("/api/mailer", json={"to": "a@x.in", "text": "T"})
        assert resp.status_code == 400
        assert resp.json()["success"] is False

    def test_transport_failure_is_500(self, client, services):
        with patch.object(services.mailer, "_email_service") as email_service:
            email_service.send.side_effect = OSError("connection refused")
            resp = client.post("/api/mailer", json={"to": "a@x.in", "subject": "S", "text": "T"})
        assert resp.status_code == 500
        assert resp.json()["error"] == "Failed to send mail"
