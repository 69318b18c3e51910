from dataclasses import dataclass, field
import os
import logging
from typing import Tuple
from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def _split_csv(raw: str) -> Tuple[str, ...]:
    return tuple(part.strip() for part in (raw or "").split(",") if part.strip())


@dataclass(frozen=True)
class AppConfig:
    """
    Main application settings.

    Everything that changes between environments lives here so the rest of
    the code receives it explicitly instead of reading globals.
    """
    database_url: str = "sqlite:///./railtrans.db"
    redis_url: str = ""
    env: str = "dev"  # "dev" or "prod"
    admin_api_key: str = ""
    smtp_host: str = "dev-log"
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    mail_from: str = "no-reply@railtransexpo.com"
    admin_emails: Tuple[str, ...] = ()
    exhibitor_admin_emails: Tuple[str, ...] = ()
    frontend_base: str = "http://localhost:3000"
    api_base: str = "http://localhost:8000"
    allowed_origins: Tuple[str, ...] = ()
    upload_dir: str = "uploads"
    max_upload_bytes: int = 300 * 1024 * 1024
    payment_provider: str = "dev-log"  # "dev-log" or "instamojo"
    instamojo_api_key: str = ""
    instamojo_auth_token: str = ""
    instamojo_endpoint: str = "https://www.instamojo.com/api/1.1"
    payment_timeout_s: float = 15.0
    otp_ttl_seconds: int = 300
    otp_resend_cooldown_seconds: int = 60
    otp_max_verify_attempts: int = 5
    gst_rate: float = 0.18
    event_defaults: dict = field(default_factory=lambda: {
        "name": "6th RailTrans Expo 2026",
        "dates": "03–04 July 2026",
        "time": "10:00 AM – 5:00 PM",
        "venue": "Halls 12 & 12A, Bharat Mandapam, New Delhi",
    })

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host) and self.smtp_host != "dev-log"

    def notification_recipients(self, role: str) -> Tuple[str, ...]:
        """Admin addresses notified about exhibitor/partner activity."""
        if role == "exhibitor" and self.exhibitor_admin_emails:
            return self.exhibitor_admin_emails
        return self.admin_emails

    @classmethod
    def load_from_env(cls) -> "AppConfig":
        """
        Load configuration from environment variables.
        A .env file is read first when present, then the process environment.
        Raises explicitly when something critical is missing.
        """
        load_dotenv()

        env = os.getenv("ENV", "dev").lower()
        if env not in ("dev", "prod"):
            logger.warning(f"Invalid ENV '{env}', falling back to 'dev'")
            env = "dev"

        admin_api_key = os.getenv("ADMIN_API_KEY", "")
        if env == "prod":
            if not admin_api_key or not admin_api_key.strip():
                raise RuntimeError(
                    "ENV=prod requires ADMIN_API_KEY. "
                    "Configure ADMIN_API_KEY in the production environment."
                )
            logger.info("PRODUCTION mode: ADMIN_API_KEY present")
        elif not admin_api_key.strip():
            logger.warning(
                "⚠️  DEV MODE: ADMIN_API_KEY not configured. "
                "Admin endpoints will accept requests without authentication."
            )

        payment_provider = os.getenv("PAYMENT_PROVIDER", "dev-log").lower()
        if payment_provider not in ("dev-log", "instamojo"):
            logger.warning(f"Unknown PAYMENT_PROVIDER '{payment_provider}', using 'dev-log'")
            payment_provider = "dev-log"

        return cls(
            database_url=os.getenv("DATABASE_URL", "sqlite:///./railtrans.db"),
            redis_url=os.getenv("REDIS_URL", ""),
            env=env,
            admin_api_key=admin_api_key,
            smtp_host=os.getenv("SMTP_HOST", "dev-log"),
            smtp_port=int(os.getenv("SMTP_PORT", "587")),
            smtp_user=os.getenv("SMTP_USER", ""),
            smtp_password=os.getenv("SMTP_PASSWORD", ""),
            mail_from=os.getenv("MAIL_FROM", os.getenv("SMTP_USER", "") or "no-reply@railtransexpo.com"),
            admin_emails=_split_csv(os.getenv("ADMIN_EMAILS", "")),
            exhibitor_admin_emails=_split_csv(os.getenv("EXHIBITOR_ADMIN_EMAILS", "")),
            frontend_base=os.getenv("FRONTEND_BASE", "http://localhost:3000").rstrip("/"),
            api_base=os.getenv("API_BASE", "http://localhost:8000").rstrip("/"),
            allowed_origins=_split_csv(os.getenv("ALLOWED_ORIGINS", "")),
            upload_dir=os.getenv("UPLOAD_DIR", "uploads"),
            max_upload_bytes=int(os.getenv("MAX_UPLOAD_BYTES", str(300 * 1024 * 1024))),
            payment_provider=payment_provider,
            instamojo_api_key=os.getenv("INSTAMOJO_API_KEY", ""),
            instamojo_auth_token=os.getenv("INSTAMOJO_AUTH_TOKEN", ""),
            instamojo_endpoint=os.getenv("INSTAMOJO_ENDPOINT", "https://www.instamojo.com/api/1.1").rstrip("/"),
            payment_timeout_s=float(os.getenv("PAYMENT_TIMEOUT_S", "15")),
            otp_ttl_seconds=int(os.getenv("OTP_TTL_SECONDS", "300")),
            otp_resend_cooldown_seconds=int(os.getenv("OTP_RESEND_COOLDOWN_SECONDS", "60")),
            otp_max_verify_attempts=int(os.getenv("OTP_MAX_VERIFY_ATTEMPTS", "5")),
            gst_rate=float(os.getenv("GST_RATE", "0.18")),
        )
