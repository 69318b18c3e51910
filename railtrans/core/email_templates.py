"""
Acknowledgement e-mail with the registration e-badge.

Pure functions: callers resolve event details and logo beforehand (the
server from its own settings, the client through EventDetailsResolver)
and pass them in. Only PDF content is ever attached; images are
referenced by absolute URL.
"""
import re
from dataclasses import dataclass, field
from html import escape
from typing import Dict, List, Optional
from urllib.parse import urlencode
from .normalizers import TICKETED_ROLES, normalize_role, plural_role


GUIDELINES = (
    "Entry permitted only through Gate No. 4 and Gate No. 10.",
    "Please carry and present your E-badge (received via email/WhatsApp) for scanning at the entry point. "
    "The badge is valid exclusively for RailTrans Expo 2026 and concurrent events on event days.",
    "A physical badge can be collected from the on-site registration counter.",
    "The badge is strictly non-transferable and must be worn visibly at all times within the venue.",
    "Entry is permitted to individuals aged 18 years and above; infants are not permitted.",
    "All participants must carry a valid Government-issued photo ID (Passport is mandatory for foreign nationals).",
    "The organizers reserve the right of admission. Security frisking will be carried out at all entry points.",
    "Smoking, tobacco use, and any banned substances are strictly prohibited within the venue.",
    "Paid parking facilities are available at the Bharat Mandapam basement.",
    "For any registration-related assistance, please approach the on-site registration counter.",
)

EVENT_KEYS = ("name", "dates", "time", "venue", "tagline")

_DELEGATE_RE = re.compile(r"delegate|vip|combo|paid", re.IGNORECASE)


@dataclass
class TicketEmail:
    subject: str
    text: str
    html: str
    attachments: List[dict] = field(default_factory=list)

    def as_payload(self, to) -> dict:
        """Body for POST /api/mailer."""
        return {
            "to": to,
            "subject": self.subject,
            "text": self.text,
            "html": self.html,
            "attachments": list(self.attachments),
        }


def build_absolute(base: str, path: str) -> str:
    if not base:
        return ""
    base = base.rstrip("/")
    if re.match(r"^https?://", path or "", re.IGNORECASE):
        return path
    if not path:
        return base
    return f"{base}/{path.lstrip('/')}"


def normalize_email_url(url: Optional[str], base: str) -> str:
    """
    Make an asset URL usable from inside an e-mail.

    Examples:
        ("/uploads/logo.png", "https://x.in") → "https://x.in/uploads/logo.png"
        ("https://cdn/a.png", "https://x.in") → "https://cdn/a.png"
        ("data:image/png;base64,..", ...) → unchanged
    """
    text = str(url or "").strip()
    if not text:
        return ""
    if text.startswith("data:") or re.match(r"^https?://", text, re.IGNORECASE):
        return text
    if not base:
        return text
    return build_absolute(base, text)


def normalize_base64(value: Optional[str]) -> str:
    """Strip a data: URL prefix, if any."""
    if not value:
        return ""
    if value.startswith("data:"):
        return value.split(",", 1)[1] if "," in value else ""
    return value


def canonical_event(record: Optional[dict]) -> Dict[str, str]:
    """Map a stored event-details record onto name/dates/time/venue/tagline."""
    out = dict.fromkeys(EVENT_KEYS, "")
    if not isinstance(record, dict):
        return out
    aliases = {
        "name": ("name", "eventName", "title"),
        "dates": ("dates", "date", "eventDates"),
        "time": ("time", "startTime", "eventTime"),
        "venue": ("venue", "location", "eventVenue"),
        "tagline": ("tagline", "subtitle"),
    }
    for key, candidates in aliases.items():
        for candidate in candidates:
            if record.get(candidate):
                out[key] = str(record[candidate])
                break
    return out


def event_from_form(form: Optional[dict]) -> Dict[str, str]:
    """
    Pull event details out of a submitted form or page config when no
    canonical record is available. Nested `event`/`eventDetails` objects
    win over flat keys.
    """
    out = dict.fromkeys(EVENT_KEYS, "")
    if not isinstance(form, dict):
        return out

    def pick(obj: dict) -> None:
        for key, candidates in (
            ("name", ("name", "title", "eventTitle")),
            ("dates", ("dates", "date")),
            ("time", ("time",)),
            ("venue", ("venue", "location")),
            ("tagline", ("tagline",)),
        ):
            if out[key]:
                continue
            for candidate in candidates:
                if obj.get(candidate):
                    out[key] = str(obj[candidate])
                    break

    for nested in ("event", "eventDetails"):
        if isinstance(form.get(nested), dict):
            pick(form[nested])

    flat = {
        "name": ("eventName", "event_name", "eventTitle", "eventtitle"),
        "dates": ("eventDates", "event_dates", "dates", "date"),
        "time": ("eventTime", "event_time"),
        "venue": ("eventVenue", "event_venue", "venue"),
        "tagline": ("eventTagline", "tagline"),
    }
    for key, candidates in flat.items():
        if out[key]:
            continue
        for candidate in candidates:
            if form.get(candidate):
                out[key] = str(form[candidate])
                break
    return out


def determine_role_label(record: Optional[dict] = None, ticket_category: str = "") -> str:
    """
    Human label printed on the badge and in the e-mail.

    An explicit category wins, then the entity/role, then a paid total,
    then the stored category, then boolean flags. Exhibitors and speakers
    keep their own label.
    """
    category = str(ticket_category or "").strip().lower()
    if category:
        if "partner" in category:
            return "PARTNER"
        if "award" in category:
            return "AWARDEE"
        if _DELEGATE_RE.search(category):
            return "DELEGATE"

    if not isinstance(record, dict):
        return "VISITOR"

    entity = str(record.get("entity") or record.get("role") or record.get("type") or "").lower()
    if "partner" in entity:
        return "PARTNER"
    if "award" in entity:
        return "AWARDEE"
    if "exhibitor" in entity:
        return "EXHIBITOR"
    if "speaker" in entity:
        return "SPEAKER"

    for key in ("ticket_total", "total", "amount", "price"):
        try:
            if float(record.get(key) or 0) > 0:
                return "DELEGATE"
        except (TypeError, ValueError):
            continue

    stored = str(record.get("ticket_category") or record.get("ticketCategory") or record.get("category") or "").lower()
    if "partner" in stored:
        return "PARTNER"
    if "award" in stored:
        return "AWARDEE"
    if _DELEGATE_RE.search(stored):
        return "DELEGATE"

    if record.get("isPartner") or record.get("partner"):
        return "PARTNER"
    if record.get("isAwardee") or record.get("awardee"):
        return "AWARDEE"
    return "VISITOR"


def upgrade_url(frontend_base: str, entity: str, registrant_id, ticket_code: str = "") -> str:
    query = {"entity": entity, "id": str(registrant_id or "")}
    if ticket_code:
        query["ticket_code"] = ticket_code
    return f"{frontend_base.rstrip('/')}/ticket-upgrade?{urlencode(query)}"


def manage_url(frontend_base: str, entity: str, registrant_id) -> str:
    return f"{frontend_base.rstrip('/')}/ticket?{urlencode({'entity': entity, 'id': str(registrant_id or '')})}"


def build_ticket_email(
    *,
    frontend_base: str,
    entity: str = "attendee",
    registrant_id="",
    name: str = "",
    company: str = "",
    ticket_code: str = "",
    ticket_category: str = "",
    event: Optional[dict] = None,
    logo_url: str = "",
    banner_url: str = "",
    badge_preview_url: str = "",
    download_url: str = "",
    upgrade_link: str = "",
    form: Optional[dict] = None,
    pdf_base64: Optional[str] = None,
) -> TicketEmail:
    """
    Build subject, text, html and attachments of the acknowledgement mail.

    `event` is the canonical event record; when it is empty the details are
    taken from `form`. Relative asset URLs are made absolute against
    `frontend_base`.
    """
    ev = canonical_event(event)
    if not any(ev.values()):
        ev = event_from_form(form)

    role = normalize_role(entity)
    entity_plural = plural_role(role) if role else entity
    label = determine_role_label(form or {"entity": entity_plural}, ticket_category)

    logo = normalize_email_url(logo_url, frontend_base)
    banner = normalize_email_url(banner_url, frontend_base)
    badge_preview = normalize_email_url(badge_preview_url, frontend_base)
    download = normalize_email_url(download_url, frontend_base)
    manage = manage_url(frontend_base, entity_plural, registrant_id)
    upgrade = normalize_email_url(upgrade_link, frontend_base)
    if not upgrade and role in TICKETED_ROLES:
        upgrade = upgrade_url(frontend_base, entity_plural, registrant_id, ticket_code)

    event_name = ev["name"] or "RailTrans Expo"
    subject = f"{event_name} – Download Your Registration E-Badge"
    greeting_name = name or "Participant"

    text_lines = [
        f"Dear {greeting_name},",
        "",
        f"Thank you for registering for {event_name}.",
        "",
        f"Your Registration Number: {ticket_code or 'N/A'}",
        f"Ticket category: {label}",
        f"Company: {company}" if company else None,
        f"Download your E-Badge: {download}" if download else f"Manage your ticket: {manage}",
        f"Upgrade your ticket: {upgrade}" if upgrade else None,
        "",
        "Event Details",
        f"Dates: {ev['dates']}",
        f"Time: {ev['time']}",
        f"Venue: {ev['venue']}",
        "",
        "Important Information & Guidelines:",
    ]
    text_lines.extend(f"- {line}" for line in GUIDELINES)
    text_lines.extend([
        "",
        "We look forward to welcoming you at RailTrans Expo 2026.",
        "",
        "Warm regards,",
        "Team RailTrans Expo 2026",
    ])
    text = "\n".join(line for line in text_lines if line is not None)

    guidelines_html = "\n".join(f"          <li>{escape(line)}</li>" for line in GUIDELINES)
    primary_cta = (
        f'<a href="{escape(download)}" class="cta">Download E-Badge</a>' if download
        else f'<a href="{escape(manage)}" class="cta">View / Download E-Badge</a>'
    )
    upgrade_cta = f'<a href="{escape(upgrade)}" class="cta secondary">Upgrade Ticket</a>' if upgrade else ""

    html = f"""<!doctype html>
<html>
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width,initial-scale=1" />
    <style>
      body {{ font-family: Arial, Helvetica, sans-serif; color: #1f2937; margin: 0; padding: 0; background: #f8fafc; }}
      .wrap {{ max-width: 680px; margin: 0 auto; background: #ffffff; }}
      .container {{ padding: 18px; }}
      .logo {{ height: 120px; width: auto; display: block; margin: 12px auto; }}
      .banner {{ width: 100%; height: auto; display: block; }}
      h1 {{ font-size: 20px; margin: 12px 0 6px; color: #0b4f60; }}
      .card {{ background: #f1f5f9; border-radius: 8px; padding: 14px; margin: 12px 0; text-align: center; border: 1px solid #e6eef4; }}
      .badge-preview {{ max-width: 260px; width: 100%; display: block; margin: 10px auto; border-radius: 6px; }}
      .reg {{ font-weight: 700; margin-top: 6px; }}
      .cta {{ display: inline-block; margin: 10px 6px; padding: 12px 18px; background: #c8102e; color: #fff; text-decoration: none; border-radius: 6px; font-weight: 700; }}
      .secondary {{ background: #196e87; }}
      .muted {{ color: #475569; font-size: 13px; }}
      .footer {{ font-size: 13px; color: #475569; padding: 14px 0 28px; }}
    </style>
  </head>
  <body>
    <div class="wrap">
      {f'<img src="{escape(logo)}" alt="RailTrans Expo logo" class="logo" />' if logo else ""}
      {f'<img src="{escape(banner)}" alt="{escape(event_name)}" class="banner" />' if banner else ""}
      <div class="container">
        <h1>{escape(subject)}</h1>
        <p>Dear {escape(greeting_name)},</p>
        <p>Thank you for registering for <strong>{escape(event_name)}</strong> – {escape(ev['dates'])} at {escape(ev['venue'])}.</p>

        <div class="card">
          <div style="font-size:16px; font-weight:700">{escape(name)}</div>
          {f'<div style="margin-top:6px; color:#475569">{escape(company)}</div>' if company else ""}
          <div class="muted">{escape(label)}</div>
          {f'<img src="{escape(badge_preview)}" alt="E-badge preview" class="badge-preview" />' if badge_preview else ""}
          <div class="reg">Your Registration Number: <span style="color:#0b4f60">{escape(ticket_code or "N/A")}</span></div>
          <div style="margin-top:10px;">
            {primary_cta}
            {upgrade_cta}
          </div>
        </div>

        <h2 style="font-size:16px; color:#0b4f60">Event Details</h2>
        <p class="muted">
          <strong>Dates:</strong> {escape(ev['dates'])}<br/>
          <strong>Time:</strong> {escape(ev['time'])}<br/>
          <strong>Venue:</strong> {escape(ev['venue'])}
        </p>

        <h3 style="font-size:15px; color:#0b4f60">Important Information &amp; Guidelines</h3>
        <ul>
{guidelines_html}
        </ul>

        <p>We look forward to welcoming you at RailTrans Expo 2026.</p>
        <p class="footer">Warm regards,<br/>Team RailTrans Expo 2026</p>
      </div>
    </div>
  </body>
</html>
"""

    attachments = []
    b64 = normalize_base64(pdf_base64)
    if b64:
        attachments.append({
            "filename": "e-badge.pdf",
            "content": b64,
            "encoding": "base64",
            "contentType": "application/pdf",
        })

    return TicketEmail(subject=subject, text=text, html=html, attachments=attachments)
