import json
import logging
import re
from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Session, sessionmaker
from ..config import AppConfig
from ..storage.repository import ConfigRepository
from .email_templates import build_absolute, canonical_event
from .normalizers import safe_field_name

logger = logging.getLogger(__name__)

ADMIN_SETTINGS_KEY = "admin_config"
EVENT_DETAILS_KEY = "event_details"

_VIDEO_RE = re.compile(r"\.(mp4|webm|ogg)(\?|$)|video", re.IGNORECASE)


def _first(cfg: dict, *keys, default=""):
    for key in keys:
        value = cfg.get(key)
        if value:
            return value
    return default


def canonicalize_field(raw) -> dict:
    field = dict(raw) if isinstance(raw, dict) else {}
    field["name"] = str(field.get("name") or "").strip()
    field["label"] = str(field.get("label") or "").strip()
    field["type"] = str(field.get("type") or "text").strip()
    options = field.get("options")
    if field["type"] in ("select", "radio"):
        field["options"] = ["" if o is None else str(o) for o in options] if isinstance(options, list) else [""]
    else:
        field["options"] = options if isinstance(options, list) else []
    meta = field.get("meta")
    if meta is not None and not isinstance(meta, dict):
        try:
            meta = json.loads(str(meta))
        except ValueError:
            meta = None
        if isinstance(meta, dict):
            field["meta"] = meta
        else:
            field.pop("meta", None)
    return field


def canonicalize_config(cfg: Optional[dict]) -> dict:
    """
    Give a registration page config the shape every form expects.

    Fields without name or label are dropped, legacy snake_case keys are
    folded into their camelCase names and background media becomes
    {type, url}.
    """
    config = dict(cfg) if isinstance(cfg, dict) else {}

    fields = config.get("fields")
    config["fields"] = [
        f for f in (canonicalize_field(raw) for raw in (fields if isinstance(fields, list) else []))
        if f["name"] and f["label"]
    ]
    config["images"] = config["images"] if isinstance(config.get("images"), list) else []
    config["eventDetails"] = config["eventDetails"] if isinstance(config.get("eventDetails"), dict) else {}

    background = _first(config, "backgroundMedia", "background_media", "backgroundVideo",
                        "background_video", "backgroundImage", "background_image")
    if isinstance(background, dict):
        config["backgroundMedia"] = {"type": background.get("type") or "image", "url": background.get("url") or ""}
    elif isinstance(background, str) and background.strip():
        url = background.strip()
        config["backgroundMedia"] = {"type": "video" if _VIDEO_RE.search(url) else "image", "url": url}
    else:
        config["backgroundMedia"] = {"type": "image", "url": ""}

    config["termsUrl"] = _first(config, "termsUrl", "terms_url", "terms")
    config["termsLabel"] = _first(config, "termsLabel", "terms_label", default="Terms & Conditions")
    config["termsRequired"] = bool(config.get("termsRequired") or config.get("terms_required"))
    config["backgroundColor"] = _first(config, "backgroundColor", "background_color", default="#ffffff")
    config["badgeTemplateUrl"] = _first(config, "badgeTemplateUrl", "badge_template_url", "badgeTemplate")
    config["banner"] = _first(config, "banner", "headerBanner")
    config["hostedByLogo"] = _first(config, "hostedByLogo", "hosted_by_logo")
    return config


def empty_config() -> dict:
    return {"fields": [], "images": [], "eventDetails": {}}


class ConfigService:
    """
    Registration page configs, admin branding and the canonical event record.
    """

    def __init__(self, config: AppConfig, db_session_factory: sessionmaker) -> None:
        self._config = config
        self._db_session_factory = db_session_factory

    def get_role_config(self, role: str) -> dict:
        db_session: Session = self._db_session_factory()
        try:
            stored = ConfigRepository(db_session).get_page(role)
        finally:
            db_session.close()
        if stored is None:
            return empty_config()
        return canonicalize_config(stored)

    def save_role_config(self, role: str, incoming: dict) -> dict:
        canonical = canonicalize_config(incoming)
        db_session: Session = self._db_session_factory()
        try:
            ConfigRepository(db_session).save_page(role, canonical)
        finally:
            db_session.close()
        logger.info(f"Registration config saved: role={role}, fields={len(canonical['fields'])}")
        return canonical

    def delete_role_config(self, role: str) -> bool:
        db_session: Session = self._db_session_factory()
        try:
            deleted = ConfigRepository(db_session).delete_page(role)
        finally:
            db_session.close()
        logger.info(f"Registration config deleted: role={role}, existed={deleted}")
        return deleted

    def safe_field_names(self, role: str) -> List[str]:
        """Storage keys of the admin-configured fields of a role."""
        names = [safe_field_name(f["name"]) for f in self.get_role_config(role)["fields"]]
        return [n for n in names if n]

    def get_admin_config(self) -> dict:
        db_session: Session = self._db_session_factory()
        try:
            stored = ConfigRepository(db_session).get_setting(ADMIN_SETTINGS_KEY)
        finally:
            db_session.close()
        if not stored:
            return {}
        return {
            "logoUrl": stored.get("logoUrl") or "",
            "primaryColor": stored.get("primaryColor") or "",
            "updatedAt": stored.get("updatedAt"),
        }

    def save_admin_config(self, logo_url: Optional[str], primary_color: Optional[str]) -> dict:
        value = {
            "logoUrl": logo_url or None,
            "primaryColor": primary_color or None,
            "updatedAt": datetime.utcnow().isoformat(),
        }
        db_session: Session = self._db_session_factory()
        try:
            ConfigRepository(db_session).save_setting(ADMIN_SETTINGS_KEY, value)
        finally:
            db_session.close()
        return value

    def absolute_logo_url(self, base: Optional[str] = None) -> str:
        stored = self.get_admin_config().get("logoUrl") or ""
        if not stored:
            return ""
        return build_absolute(base or self._config.api_base, stored)

    def get_event_details(self) -> dict:
        """Stored event record, or the configured defaults when none was saved."""
        db_session: Session = self._db_session_factory()
        try:
            stored = ConfigRepository(db_session).get_setting(EVENT_DETAILS_KEY)
        finally:
            db_session.close()
        record = dict(self._config.event_defaults)
        if stored:
            record.update({k: v for k, v in canonical_event(stored).items() if v})
        return record

    def save_event_details(self, incoming: dict) -> dict:
        record = {k: v for k, v in canonical_event(incoming).items() if v}
        db_session: Session = self._db_session_factory()
        try:
            ConfigRepository(db_session).save_setting(EVENT_DETAILS_KEY, record)
        finally:
            db_session.close()
        logger.info(f"Event details saved: keys={sorted(record)}")
        return self.get_event_details()
