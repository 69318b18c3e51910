import base64
import binascii
import logging
from dataclasses import dataclass
from smtplib import SMTPException
from typing import Iterable, List, Optional, Union
from sqlalchemy.orm import Session, sessionmaker
from ..infra.email_service import EmailService, MailAttachment
from ..storage.repository import MailLogRepository
from .email_templates import normalize_base64
from .errors import ValidationError
from .normalizers import is_valid_email

logger = logging.getLogger(__name__)


@dataclass
class MailResult:
    success: bool
    status: str
    mail_log_id: Optional[int] = None
    error: Optional[str] = None

    def as_dict(self) -> dict:
        out = {"success": self.success, "status": self.status, "mailLogId": self.mail_log_id}
        if self.error:
            out["error"] = self.error
        return out


def parse_recipients(to: Union[str, Iterable[str], None]) -> List[str]:
    """
    Accept a list or a comma-separated string.

    Example: "a@x.in, b@y.in" → ["a@x.in", "b@y.in"]
    """
    if not to:
        return []
    parts = to.split(",") if isinstance(to, str) else list(to)
    return [str(part).strip() for part in parts if str(part or "").strip()]


def pdf_attachments(raw: Optional[list]) -> List[MailAttachment]:
    """
    Keep base64 PDF attachments only. Anything else is dropped with a warning.
    """
    out: List[MailAttachment] = []
    for item in raw or []:
        if not isinstance(item, dict):
            continue
        filename = str(item.get("filename") or "attachment.pdf")
        content_type = str(item.get("contentType") or item.get("content_type") or "").lower()
        is_pdf = content_type == "application/pdf" or (not content_type and filename.lower().endswith(".pdf"))
        if not is_pdf:
            logger.warning(f"Dropping non-PDF attachment: filename={filename}, content_type={content_type or '-'}")
            continue
        try:
            content = base64.b64decode(normalize_base64(str(item.get("content") or "")), validate=True)
        except (binascii.Error, ValueError):
            logger.warning(f"Dropping attachment with invalid base64: filename={filename}")
            continue
        if not content:
            continue
        out.append(MailAttachment(filename=filename, content=content, content_type="application/pdf"))
    return out


class MailerService:
    """
    Sends mail through EmailService and records every attempt in mail_logs.
    """

    def __init__(self, email_service: EmailService, db_session_factory: sessionmaker) -> None:
        self._email_service = email_service
        self._db_session_factory = db_session_factory

    def send(
        self,
        to,
        subject: str,
        text: Optional[str] = None,
        html: Optional[str] = None,
        attachments: Optional[list] = None,
    ) -> MailResult:
        recipients = parse_recipients(to)
        if not recipients or not all(is_valid_email(r) for r in recipients):
            raise ValidationError("Valid recipient address required")
        if not subject or not (text or html):
            raise ValidationError("subject and text or html are required")

        files = pdf_attachments(attachments)

        db_session: Session = self._db_session_factory()
        try:
            repo = MailLogRepository(db_session)
            entry = repo.create(to=", ".join(recipients), subject=subject, attachments_count=len(files))
            try:
                outcome = self._email_service.send(recipients, subject, text=text, html=html, attachments=files)
            except (SMTPException, OSError, ValueError) as e:
                repo.set_status(entry, "failed", error=f"{type(e).__name__}: {e}")
                logger.error(f"Mail failed: mail_log_id={entry.id}, to={entry.to}, error={type(e).__name__}: {e}")
                return MailResult(success=False, status="failed", mail_log_id=entry.id, error="Failed to send mail")

            status = "skipped_no_transport" if outcome == "dev-log" else "sent"
            repo.set_status(entry, status)
            logger.info(f"Mail processed: mail_log_id={entry.id}, status={status}, attachments={len(files)}")
            return MailResult(success=True, status=status, mail_log_id=entry.id)
        finally:
            db_session.close()

    def send_best_effort(self, to, subject: str, text: Optional[str] = None, html: Optional[str] = None,
                         attachments: Optional[list] = None) -> Optional[MailResult]:
        """
        For side-effect mails (acknowledgements, admin notifications):
        failures are logged and never raised.
        """
        try:
            return self.send(to, subject, text=text, html=html, attachments=attachments)
        except ValidationError as e:
            logger.warning(f"Best-effort mail skipped: subject={subject}, reason={e.message}")
        except Exception as e:
            logger.error(f"Best-effort mail failed: subject={subject}, error={type(e).__name__}: {e}", exc_info=True)
        return None
