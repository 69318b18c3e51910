import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.message import EmailMessage
from smtplib import SMTPException, SMTPServerDisconnected
from typing import List, Optional, Sequence
from ..config import AppConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MailAttachment:
    filename: str
    content: bytes
    content_type: str = "application/pdf"


class EmailService:
    """
    SMTP transport.
    With SMTP_HOST=dev-log nothing is sent; the message is logged and printed.
    """

    def __init__(self, config: AppConfig) -> None:
        self._config = config

    @property
    def dev_log(self) -> bool:
        return self._config.smtp_host == "dev-log"

    def build_message(
        self,
        to: Sequence[str],
        subject: str,
        text: Optional[str] = None,
        html: Optional[str] = None,
        attachments: Sequence[MailAttachment] = (),
    ) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self._config.mail_from
        msg["To"] = ", ".join(to)
        msg.set_content(text or "")
        if html:
            msg.add_alternative(html, subtype="html")
        for attachment in attachments:
            maintype, _, subtype = attachment.content_type.partition("/")
            msg.add_attachment(
                attachment.content,
                maintype=maintype,
                subtype=subtype or "octet-stream",
                filename=attachment.filename,
            )
        return msg

    def send(
        self,
        to: Sequence[str],
        subject: str,
        text: Optional[str] = None,
        html: Optional[str] = None,
        attachments: Sequence[MailAttachment] = (),
    ) -> str:
        """
        Send one message. Returns "dev-log" when the transport is the console,
        "sent" otherwise. SMTP failures propagate.
        """
        recipients: List[str] = [addr for addr in to if addr and addr.strip()]
        if not recipients:
            logger.error(f"Attempt to send e-mail without recipients: subject={subject}")
            raise ValueError("to must not be empty")

        msg = self.build_message(recipients, subject, text, html, attachments)
        logger.debug(f"Building e-mail: to={msg['To']}, subject={subject}, attachments={len(attachments)}")

        if self.dev_log:
            logger.warning(
                f"⚠️ DEV MODE: e-mail NOT sent (simulated only). "
                f"Configure SMTP_HOST in .env to send real e-mails. "
                f"Recipients: {msg['To']}"
            )
            print("\n" + "=" * 60)
            print("📧 E-MAIL (DEV MODE - NOT SENT)")
            print("=" * 60)
            print(f"From: {msg['From']}")
            print(f"To: {msg['To']}")
            print(f"Subject: {msg['Subject']}")
            print(f"Attachments: {', '.join(a.filename for a in attachments) or '-'}")
            print("-" * 60)
            print(text or html or "")
            print("=" * 60 + "\n")
            return "dev-log"

        try:
            self._deliver(msg)
            logger.info(
                f"✅ E-mail sent via SMTP: to={msg['To']}, "
                f"host={self._config.smtp_host}, port={self._config.smtp_port}"
            )
            return "sent"
        except SMTPException as e:
            if isinstance(e, SMTPServerDisconnected) or "Connection unexpectedly closed" in str(e):
                logger.error(
                    f"SMTP error: connection closed during authentication. "
                    f"Check host={self._config.smtp_host}, port={self._config.smtp_port}, "
                    f"user={self._config.smtp_user}."
                )
            else:
                logger.error(
                    f"SMTP error while sending e-mail: to={msg['To']}, "
                    f"error={type(e).__name__}: {e}",
                    exc_info=True,
                )
            raise
        except OSError as e:
            logger.error(
                f"Unexpected error while sending e-mail: to={msg['To']}, "
                f"error={type(e).__name__}: {e}",
                exc_info=True,
            )
            raise

    def _deliver(self, msg: EmailMessage) -> None:
        logger.info(
            f"Opening SMTP connection: host={self._config.smtp_host}, "
            f"port={self._config.smtp_port}, from={self._config.mail_from}"
        )
        ssl_context = ssl.create_default_context()

        if self._config.smtp_port == 465:
            try:
                with smtplib.SMTP_SSL(self._config.smtp_host, 465, timeout=30, context=ssl_context) as server:
                    if self._config.smtp_user:
                        server.login(self._config.smtp_user, self._config.smtp_password)
                    server.send_message(msg)
                return
            except (SMTPException, OSError) as e:
                logger.warning(
                    f"Port 465 failed: {type(e).__name__}: {e}. "
                    f"Falling back to port 587 with STARTTLS..."
                )
            port = 587
        else:
            port = self._config.smtp_port

        with smtplib.SMTP(self._config.smtp_host, port, timeout=30) as server:
            if self._config.smtp_user:
                server.starttls(context=ssl_context)
                server.login(self._config.smtp_user, self._config.smtp_password)
            server.send_message(msg)
