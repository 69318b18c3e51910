import logging
from dataclasses import dataclass
from typing import Optional
from fastapi import Header, HTTPException, Request
from ..config import AppConfig
from ..core.configs import ConfigService
from ..core.coupons import CouponService
from ..core.mailer import MailerService
from ..core.otp import OtpService
from ..core.payments import PaymentService
from ..core.registrations import RegistrationService
from ..core.reminders import ReminderService
from ..core.tickets import TicketService
from ..core.uploads import UploadService

logger = logging.getLogger(__name__)


@dataclass
class Services:
    config: AppConfig
    db_session_factory: object
    otp_store: object
    mailer: MailerService
    configs: ConfigService
    registrations: RegistrationService
    otp: OtpService
    coupons: CouponService
    payments: PaymentService
    tickets: TicketService
    reminders: ReminderService
    uploads: UploadService


def get_services(request: Request) -> Services:
    return request.app.state.services


def require_api_key(config: AppConfig, x_api_key: Optional[str]) -> None:
    """
    Check the admin API key for the current environment.

    In production (ENV=prod) the key is always required.
    In development it is only required when ADMIN_API_KEY is configured.
    """
    expected_key = config.admin_api_key or ""

    if config.env == "prod":
        if not x_api_key or x_api_key != expected_key:
            logger.warning("Unauthorized admin request in PRODUCTION")
            raise HTTPException(status_code=401, detail="Invalid API key")
    elif expected_key.strip():
        if x_api_key != expected_key:
            logger.warning("Unauthorized admin request in DEV")
            raise HTTPException(status_code=401, detail="Invalid API key")
    else:
        logger.debug("ADMIN_API_KEY not configured, accepting request without authentication (dev mode)")


def require_admin(request: Request, x_api_key: Optional[str] = Header(default=None, alias="X-API-KEY")) -> None:
    require_api_key(get_services(request).config, x_api_key)
