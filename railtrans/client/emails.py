import logging
import os
from typing import Dict, Optional
from urllib.parse import urlparse
from ..core.email_templates import (
    TicketEmail,
    build_absolute,
    build_ticket_email,
    canonical_event,
    event_from_form,
)
from .api import ApiClient, ApiError

logger = logging.getLogger(__name__)

EVENT_DETAIL_PATHS = ("/api/configs/event-details", "/api/event-details", "/api/configs/event")
LOGO_PATHS = ("/api/admin/logo-url", "/api/admin-config")
FRONTEND_BASE_ENV = "RAILTRANS_FRONTEND_BASE"


class EventDetailsResolver:
    """
    Finds the canonical event record and admin logo for acknowledgement
    mails, falling back to what the form or page config carries.
    """

    def __init__(self, api: ApiClient) -> None:
        self.api = api

    def frontend_base(self, explicit: Optional[str] = None) -> str:
        """explicit argument → RAILTRANS_FRONTEND_BASE → API origin."""
        if explicit:
            return explicit.rstrip("/")
        env_base = os.getenv(FRONTEND_BASE_ENV, "").strip()
        if env_base:
            return env_base.rstrip("/")
        parsed = urlparse(self.api.config.api_base)
        return f"{parsed.scheme}://{parsed.netloc}" if parsed.netloc else ""

    def event_details(self, form: Optional[dict] = None, page_config: Optional[dict] = None) -> Dict[str, str]:
        for path in EVENT_DETAIL_PATHS:
            try:
                resp = self.api.get(path)
            except ApiError as e:
                logger.debug(f"Event details probe failed: path={path}, status={e.status}")
                continue
            record = canonical_event(resp.get("value") if isinstance(resp.get("value"), dict) else resp)
            if any(record.values()):
                return record

        for source in (page_config, form):
            record = event_from_form(source)
            if any(record.values()):
                return record
        return canonical_event(None)

    def logo_url(self, base: Optional[str] = None) -> str:
        for path in LOGO_PATHS:
            try:
                resp = self.api.get(path)
            except ApiError as e:
                logger.debug(f"Logo probe failed: path={path}, status={e.status}")
                continue
            url = resp.get("logoUrl") or resp.get("logo_url") or resp.get("url") or ""
            if url:
                return build_absolute(base or self.frontend_base(), url)
        return ""

    def build_email(self, registrant: dict, entity: str, form: Optional[dict] = None,
                    page_config: Optional[dict] = None, frontend_base: Optional[str] = None,
                    pdf_base64: Optional[str] = None, **urls) -> TicketEmail:
        base = self.frontend_base(frontend_base)
        return build_ticket_email(
            frontend_base=base,
            entity=entity,
            registrant_id=registrant.get("id") or "",
            name=registrant.get("name") or "",
            company=registrant.get("company") or "",
            ticket_code=registrant.get("ticket_code") or "",
            ticket_category=registrant.get("ticket_category") or "",
            event=self.event_details(form=form, page_config=page_config),
            logo_url=self.logo_url(base),
            banner_url=urls.get("banner_url") or (page_config or {}).get("banner") or "",
            badge_preview_url=urls.get("badge_preview_url") or "",
            download_url=urls.get("download_url") or "",
            upgrade_link=urls.get("upgrade_link") or "",
            form=form or registrant,
            pdf_base64=pdf_base64,
        )

    def send(self, to, email: TicketEmail) -> dict:
        return self.api.post("/api/mailer", email.as_payload(to))
