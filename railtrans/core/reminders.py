import logging
from html import escape
from typing import Optional
from .email_templates import upgrade_url
from .errors import ValidationError
from .mailer import MailerService
from .normalizers import TICKETED_ROLES, normalize_role, plural_role
from .registrations import RegistrationService

logger = logging.getLogger(__name__)

DEFAULT_TEXT = "Hello {name},\n\nThis is a reminder about the upcoming event.\n\nRegards,\nTeam"
DEFAULT_HTML = "<p>Hello {name},</p><p>This is a reminder about the upcoming event.</p><p>Regards,<br/>Team</p>"


class ReminderService:
    """Bulk reminder mail to every registrant of one role."""

    def __init__(self, registrations: RegistrationService, mailer: MailerService, frontend_base: str) -> None:
        self._registrations = registrations
        self._mailer = mailer
        self._frontend_base = frontend_base

    def send(self, entity: Optional[str], subject: Optional[str] = None, text: Optional[str] = None,
             html: Optional[str] = None, limit: int = 1000) -> dict:
        if not entity:
            raise ValidationError("entity required")
        role = normalize_role(entity)
        if role is None:
            raise ValidationError("Unknown entity", entity=entity)

        recipients = self._registrations.list(role, limit=limit)
        if not recipients:
            return {"success": True, "sent": 0, "message": "No recipients found"}

        sent = 0
        results = []
        for row in recipients:
            to = row.get("email")
            if not to:
                results.append({"ok": False, "reason": "no-email", "id": row.get("id")})
                continue

            name = row.get("name") or ""
            subj = subject or f"{name or row.get('company') or 'Participant'} — Reminder: Event"
            body_text = text or DEFAULT_TEXT.format(name=name)
            body_html = html or DEFAULT_HTML.format(name=escape(name))
            if role in TICKETED_ROLES and row.get("ticket_code"):
                link = upgrade_url(self._frontend_base, plural_role(role), row["id"], row["ticket_code"])
                body_text += f"\n\nWant to upgrade your ticket? Visit: {link}"
                body_html += (
                    f'<p style="margin-top:12px">Want to upgrade your ticket? '
                    f'<a href="{escape(link)}">Click here to upgrade</a>.</p>'
                )

            result = self._mailer.send_best_effort(to, subj, text=body_text, html=body_html)
            if result is not None and result.success:
                sent += 1
                results.append({"ok": True, "to": to, "status": result.status})
            else:
                results.append({"ok": False, "to": to, "error": result.error if result else "Failed to send mail"})

        logger.info(f"Reminders processed: role={role}, sent={sent}, total={len(recipients)}")
        return {"success": True, "sent": sent, "total": len(recipients), "results": results}
