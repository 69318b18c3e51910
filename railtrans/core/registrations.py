"""
Registrants of every role: creation from public forms or the admin
dashboard, edits, the exhibitor/partner review, e-badge generation and the
acknowledgement mail.
"""
import base64
import logging
import secrets
from datetime import datetime
from typing import Dict, List, Optional, Tuple
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from ..config import AppConfig
from ..infra.badge import build_qr_payload, render_badge_pdf
from ..storage.repository import RegistrantRepository
from .configs import ConfigService
from .email_templates import build_ticket_email
from .errors import ConflictError, NotFoundError, ValidationError
from .mailer import MailResult, MailerService
from .normalizers import (
    REVIEWED_ROLES,
    is_valid_email,
    normalize_email,
    plural_role,
    safe_field_name,
)
from .pricing import resolve_category

logger = logging.getLogger(__name__)

# request key → registrants column
COLUMN_KEYS = {
    "name": "name",
    "email": "email",
    "mobile": "mobile",
    "company": "company",
    "designation": "designation",
    "ticket_category": "ticket_category",
    "ticket_code": "ticket_code",
    "txId": "tx_id",
    "tx_id": "tx_id",
    "payment_proof_url": "payment_proof_url",
    "ticket_price": "ticket_price",
    "ticket_gst": "ticket_gst",
    "ticket_total": "ticket_total",
}

INT_COLUMNS = ("ticket_price", "ticket_gst", "ticket_total")

RESERVED_KEYS = {
    "id", "_id", "role", "data", "extra", "status", "force", "_rawForm", "form",
    "created_at", "updated_at", "createdAt", "updatedAt",
    "added_by_admin", "admin_created_at", "approved_by", "approved_at",
    "cancelled_by", "cancelled_at",
}

CONFIRM_WHITELIST = {
    "ticket_code", "ticket_category", "txId", "email", "name", "company",
    "mobile", "designation", "slots", "ticket_price", "ticket_gst",
    "ticket_total", "payment_proof_url",
}

MAX_LIST_LIMIT = 1000


def generate_ticket_code() -> str:
    return str(100000 + secrets.randbelow(900000))


def _pick(form: dict, *keys) -> str:
    """First non-blank value among `keys`, matched exactly then case-insensitively."""
    for key in keys:
        value = form.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()
    lowered = {str(k).lower(): v for k, v in form.items()}
    for key in keys:
        value = lowered.get(key.lower())
        if value is not None and str(value).strip():
            return str(value).strip()
    return ""


def _to_int(value) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(round(float(value)))
    except (TypeError, ValueError):
        raise ValidationError("Price fields must be numbers", value=value)


def _split_update(payload: dict, allowed_extra: Optional[set] = None) -> Tuple[dict, dict]:
    """
    Split an update payload into column values and promoted extra fields.
    `allowed_extra`, when given, restricts which extra keys are accepted.
    """
    columns: Dict[str, object] = {}
    extra: Dict[str, object] = {}
    for key, value in payload.items():
        if key in RESERVED_KEYS:
            continue
        if key in COLUMN_KEYS:
            column = COLUMN_KEYS[key]
            columns[column] = _to_int(value) if column in INT_COLUMNS else value
            continue
        safe = safe_field_name(key)
        if not safe or safe in RESERVED_KEYS:
            continue
        if safe in COLUMN_KEYS:
            column = COLUMN_KEYS[safe]
            columns[column] = _to_int(value) if column in INT_COLUMNS else value
            continue
        if allowed_extra is not None and safe not in allowed_extra:
            continue
        extra[safe] = value
    if "email" in columns:
        columns["email"] = normalize_email(columns["email"]) or None
    return columns, extra


class RegistrationService:

    def __init__(
        self,
        config: AppConfig,
        db_session_factory: sessionmaker,
        config_service: ConfigService,
        mailer: MailerService,
    ) -> None:
        self._config = config
        self._db_session_factory = db_session_factory
        self._config_service = config_service
        self._mailer = mailer

    def _unique_ticket_code(self, repo: RegistrantRepository) -> str:
        for _ in range(20):
            code = generate_ticket_code()
            if not repo.ticket_code_exists(code):
                return code
        # six digits exhausted around this prefix; widen
        return f"{generate_ticket_code()}{secrets.randbelow(100):02d}"

    def create(self, role: str, body: dict) -> dict:
        """
        Store a registration. Returns the saved row as a dict.

        Visitors, speakers and awardees need a valid email; exhibitors and
        partners need a company.
        """
        body = dict(body or {})
        form = body.get("_rawForm") or body.get("form") or body
        if not isinstance(form, dict):
            raise ValidationError("Form must be an object")
        merged = {**form, **{k: v for k, v in body.items() if k not in ("_rawForm", "form")}}

        name = _pick(merged, "name", "fullName", "full_name")
        if not name and (merged.get("firstName") or merged.get("lastName")):
            name = f"{merged.get('firstName') or ''} {merged.get('lastName') or ''}".strip()
        email = normalize_email(_pick(merged, "email", "emailAddress", "email_address"))
        mobile = _pick(merged, "mobile", "phone", "contact")
        company = _pick(merged, "companyName", "company", "company_name", "organization", "org", "other")

        if role in REVIEWED_ROLES:
            if not company:
                raise ValidationError("companyName is required")
            if email and not is_valid_email(email):
                raise ValidationError("Valid email is required.")
        elif not is_valid_email(email):
            raise ValidationError("Valid email is required.")

        ticket_category = _pick(merged, "ticket_category", "ticketCategory") or None
        prices = {key: _to_int(merged.get(key)) for key in INT_COLUMNS}
        if ticket_category and all(v is None for v in prices.values()):
            prices = resolve_category(role, ticket_category, self._config.gst_rate).as_ticket_fields()

        added_by_admin = bool(merged.get("added_by_admin"))
        fields = {
            "name": name or None,
            "email": email or None,
            "mobile": mobile or None,
            "company": company or None,
            "designation": _pick(merged, "designation") or None,
            "ticket_category": ticket_category,
            "tx_id": _pick(merged, "txId", "tx_id") or None,
            "payment_proof_url": _pick(merged, "payment_proof_url") or None,
            "status": "pending" if role in REVIEWED_ROLES else "new",
            "added_by_admin": added_by_admin,
            "admin_created_at": datetime.utcnow() if added_by_admin else None,
            **{k: (v or 0) for k, v in prices.items()},
        }

        safe_names = set(self._config_service.safe_field_names(role))
        _, extra = _split_update(form, allowed_extra=safe_names)

        db_session: Session = self._db_session_factory()
        try:
            repo = RegistrantRepository(db_session)
            supplied_code = _pick(merged, "ticket_code")
            if supplied_code and repo.ticket_code_exists(supplied_code):
                raise ConflictError("ticket_code already in use", ticket_code=supplied_code)
            fields["ticket_code"] = supplied_code or self._unique_ticket_code(repo)
            try:
                registrant = repo.create(role, fields, extra=extra, data=form)
            except IntegrityError:
                raise ConflictError("ticket_code already in use", ticket_code=fields["ticket_code"])
            logger.info(
                f"Registrant created: role={role}, id={registrant.id}, "
                f"ticket_code={registrant.ticket_code}, by_admin={added_by_admin}"
            )
            return registrant.to_dict()
        finally:
            db_session.close()

    def list(self, role: str, q: Optional[str] = None, limit=200, skip=0) -> List[dict]:
        try:
            limit = min(MAX_LIST_LIMIT, max(1, int(limit)))
            skip = max(0, int(skip))
        except (TypeError, ValueError):
            raise ValidationError("limit and skip must be integers")
        db_session: Session = self._db_session_factory()
        try:
            rows = RegistrantRepository(db_session).list(role, q=(q or "").strip() or None, limit=limit, skip=skip)
            return [r.to_dict() for r in rows]
        finally:
            db_session.close()

    def get(self, role: str, registrant_id: int) -> dict:
        db_session: Session = self._db_session_factory()
        try:
            registrant = RegistrantRepository(db_session).get(role, registrant_id)
            if registrant is None:
                raise NotFoundError(f"{role.capitalize()} not found")
            return registrant.to_dict()
        finally:
            db_session.close()

    def _apply_update(self, role: str, registrant_id: int, columns: dict, extra: dict, force: bool) -> Tuple[dict, bool]:
        db_session: Session = self._db_session_factory()
        try:
            repo = RegistrantRepository(db_session)
            registrant = repo.get(role, registrant_id)
            if registrant is None:
                raise NotFoundError(f"{role.capitalize()} not found")

            if "ticket_code" in columns:
                incoming = str(columns["ticket_code"] or "").strip()
                current = str(registrant.ticket_code or "").strip()
                if not incoming or (current and not force and incoming != current):
                    del columns["ticket_code"]
                elif incoming != current and repo.ticket_code_exists(incoming):
                    raise ConflictError("ticket_code already in use", ticket_code=incoming)

            if not columns and not extra:
                return registrant.to_dict(), False
            try:
                registrant = repo.update(registrant, columns, extra=extra)
            except IntegrityError:
                raise ConflictError("ticket_code already in use")
            logger.info(f"Registrant updated: role={role}, id={registrant_id}, fields={sorted(columns) + sorted(extra)}")
            return registrant.to_dict(), True
        finally:
            db_session.close()

    def update(self, role: str, registrant_id: int, payload: dict, force: bool = False) -> dict:
        """Admin edit. ticket_code is only rewritten with force=True."""
        payload = dict(payload or {})
        force = force or bool(payload.pop("force", False))
        columns, extra = _split_update(payload)
        if not columns and not extra:
            raise ValidationError("No fields to update")
        updated, _ = self._apply_update(role, registrant_id, columns, extra, force)
        return updated

    def confirm(self, role: str, registrant_id: int, payload: dict) -> dict:
        """
        Whitelisted update used after payment or upgrade. Only the base
        whitelist and the role's configured fields are accepted.
        """
        payload = dict(payload or {})
        force = bool(payload.pop("force", False))
        safe_names = set(self._config_service.safe_field_names(role))
        accepted = {
            k: v for k, v in payload.items()
            if k in CONFIRM_WHITELIST or safe_field_name(k) in CONFIRM_WHITELIST or safe_field_name(k) in safe_names
        }
        columns, extra = _split_update(accepted, allowed_extra=safe_names)
        updated, changed = self._apply_update(role, registrant_id, columns, extra, force)
        out = {"success": True, "updated": updated}
        if not changed:
            out["note"] = "No changes applied (ticket_code protected)"
        return out

    def delete(self, role: str, registrant_id: int) -> None:
        db_session: Session = self._db_session_factory()
        try:
            repo = RegistrantRepository(db_session)
            registrant = repo.get(role, registrant_id)
            if registrant is None:
                raise NotFoundError(f"{role.capitalize()} not found")
            repo.delete(registrant)
            logger.info(f"Registrant deleted: role={role}, id={registrant_id}")
        finally:
            db_session.close()

    def review(self, role: str, registrant_id: int, action: str, admin: Optional[str] = None) -> dict:
        """
        Approve or cancel an exhibitor/partner. Returns the updated row and
        the message shown to the admin; notifications go out separately.
        """
        if role not in REVIEWED_ROLES:
            raise NotFoundError(f"{role.capitalize()} registrations are not reviewed")
        if action not in ("approve", "cancel"):
            raise ValidationError("action must be approve or cancel")
        admin = (admin or "").strip() or "web-admin"
        now = datetime.utcnow()
        columns = (
            {"status": "approved", "approved_by": admin, "approved_at": now} if action == "approve"
            else {"status": "cancelled", "cancelled_by": admin, "cancelled_at": now}
        )

        db_session: Session = self._db_session_factory()
        try:
            repo = RegistrantRepository(db_session)
            registrant = repo.get(role, registrant_id)
            if registrant is None:
                raise NotFoundError(f"{role.capitalize()} not found")
            registrant = repo.update(registrant, columns)
            updated = registrant.to_dict()
        finally:
            db_session.close()

        logger.info(f"Registrant reviewed: role={role}, id={registrant_id}, status={updated['status']}, admin={admin}")
        recipients = [r for r in (updated.get("email"),) if r] + list(self._config.notification_recipients(role))
        message = (
            f"Notification will be sent to {', '.join(recipients)}" if recipients
            else "No notification recipients configured"
        )
        return {"success": True, "id": registrant_id, "updated": updated, "message": message}

    def send_review_notifications(self, registrant: dict, action: str) -> None:
        role = registrant.get("role") or ""
        verb = "approved" if action == "approve" else "cancelled"
        name = registrant.get("name") or registrant.get("company") or ""
        rid = registrant.get("id")

        if registrant.get("email"):
            noun = "request" if action == "approve" else "registration"
            self._mailer.send_best_effort(
                registrant["email"],
                f"Your {role} {noun} has been {verb} — RailTrans Expo",
                text=f"Hello {name},\n\nYour {role} registration (ID: {rid}) has been {verb}.\n\nRegards,\nRailTrans Expo Team",
                html=f"<p>Hello {name},</p><p>Your {role} registration (ID: <strong>{rid}</strong>) has been <strong>{verb}</strong>.</p>",
            )
        for addr in self._config.notification_recipients(role):
            self._mailer.send_best_effort(
                addr,
                f"{role.capitalize()} {verb} — ID: {rid}",
                text=f"{role.capitalize()} {verb}\nID: {rid}\nName: {name}\nEmail: {registrant.get('email') or ''}",
            )

    def notify_created(self, registrant: dict) -> None:
        """
        Side effects of a new registration: the acknowledgement mail and,
        for reviewed roles, a note to the admins.
        """
        role = registrant.get("role") or ""
        if role in REVIEWED_ROLES:
            name = registrant.get("name") or registrant.get("company") or ""
            if registrant.get("email"):
                self._mailer.send_best_effort(
                    registrant["email"],
                    f"RailTrans Expo — We received your {role} request",
                    text=(
                        f"Hello {name},\n\nThank you for your {role} request. We have received your details "
                        f"and our team will get back to you soon.\n\nRegards,\nRailTrans Expo Team"
                    ),
                    html=(
                        f"<p>Hello {name},</p><p>Thank you for your {role} request. We have received your details "
                        f"and our team will get back to you soon.</p><p>Regards,<br/>RailTrans Expo Team</p>"
                    ),
                )
            for addr in self._config.notification_recipients(role):
                self._mailer.send_best_effort(
                    addr,
                    f"New {role} registration — {registrant.get('company') or name}",
                    text=(
                        f"New {role} registration\nID: {registrant.get('id')}\nCompany: {registrant.get('company') or ''}\n"
                        f"Name: {name}\nEmail: {registrant.get('email') or ''}\nMobile: {registrant.get('mobile') or ''}"
                    ),
                )
            return

        if registrant.get("email"):
            try:
                self.send_ticket_email(role, registrant["id"])
            except Exception as e:
                logger.error(
                    f"Acknowledgement mail failed: role={role}, id={registrant.get('id')}, "
                    f"error={type(e).__name__}: {e}",
                    exc_info=True,
                )

    def generate_ticket(self, role: str, registrant_id: int) -> dict:
        """
        Make sure the registrant has a ticket code and render the e-badge.
        """
        db_session: Session = self._db_session_factory()
        try:
            repo = RegistrantRepository(db_session)
            registrant = repo.get(role, registrant_id)
            if registrant is None:
                raise NotFoundError(f"{role.capitalize()} not found")
            if not registrant.ticket_code:
                registrant = repo.update(registrant, {"ticket_code": self._unique_ticket_code(repo)})
                logger.info(f"Ticket code assigned: role={role}, id={registrant_id}, ticket_code={registrant.ticket_code}")
            row = registrant.to_dict()
        finally:
            db_session.close()

        pdf = render_badge_pdf(row, self._config_service.get_event_details())
        return {
            "success": True,
            "id": registrant_id,
            "ticket_code": row["ticket_code"],
            "qrPayload": build_qr_payload(row),
            "filename": f"e-badge-{row['ticket_code']}.pdf",
            "pdfBase64": base64.b64encode(pdf).decode("ascii"),
            "registrant": row,
        }

    def send_ticket_email(self, role: str, registrant_id: int, subject: Optional[str] = None) -> MailResult:
        """Acknowledgement mail with the e-badge PDF attached."""
        ticket = self.generate_ticket(role, registrant_id)
        row = ticket["registrant"]
        if not row.get("email"):
            raise ValidationError("Registrant has no email address")
        page_config = self._config_service.get_role_config(role)
        email = build_ticket_email(
            frontend_base=self._config.frontend_base,
            entity=plural_role(role),
            registrant_id=row["id"],
            name=row.get("name") or "",
            company=row.get("company") or "",
            ticket_code=row.get("ticket_code") or "",
            ticket_category=row.get("ticket_category") or "",
            event=self._config_service.get_event_details(),
            logo_url=self._config_service.absolute_logo_url(),
            banner_url=page_config.get("banner") or "",
            form=row,
            pdf_base64=ticket["pdfBase64"],
        )
        result = self._mailer.send(row["email"], subject or email.subject, text=email.text, html=email.html,
                                   attachments=email.attachments)
        logger.info(f"Ticket e-mail processed: role={role}, id={registrant_id}, status={result.status}")
        return result

    def find_by_ticket_code(self, ticket_code: str) -> Optional[dict]:
        db_session: Session = self._db_session_factory()
        try:
            registrant = RegistrantRepository(db_session).find_by_ticket_code(ticket_code)
            return registrant.to_dict() if registrant else None
        finally:
            db_session.close()

    def with_email(self, role: str) -> List[dict]:
        db_session: Session = self._db_session_factory()
        try:
            return [r.to_dict() for r in RegistrantRepository(db_session).list_with_email(role)]
        finally:
            db_session.close()
