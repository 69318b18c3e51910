import logging
import os
import time
from typing import Optional
from uuid import uuid4
from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from ..config import AppConfig
from ..core.configs import ConfigService
from ..core.coupons import CouponService
from ..core.errors import RailTransError
from ..core.mailer import MailerService
from ..core.normalizers import ROLES
from ..core.otp import OtpService
from ..core.payments import PaymentService
from ..core.registrations import RegistrationService
from ..core.reminders import ReminderService
from ..core.tickets import TicketService
from ..core.uploads import UploadService
from ..infra.email_service import EmailService
from ..infra.payment_gateway import build_payment_gateway
from ..session import InMemoryOtpStore, RedisOtpStore
from ..storage.database import create_session_factory, ping_database
from .deps import Services, get_services
from .routes import coupons, configs, mailer, otp, payments, registrants, reminders, tickets, uploads

logger = logging.getLogger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Assigns a unique request_id to every request and adds it to the logs
    and the response headers.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = uuid4().hex[:16]
        request.state.request_id = request_id

        start_time = time.time()
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            f"Request processed: request_id={request_id}, "
            f"method={request.method}, path={request.url.path}, "
            f"status={response.status_code}, duration_ms={duration_ms:.2f}"
        )
        return response


def build_services(
    config: AppConfig,
    db_session_factory=None,
    otp_store=None,
    email_service: Optional[EmailService] = None,
    payment_gateway=None,
) -> Services:
    """
    Wire every service from the configuration. Tests pass their own
    session factory, store, mail transport or gateway.
    """
    if db_session_factory is None:
        db_session_factory = create_session_factory(config.database_url, create_tables=config.env != "prod")
    if otp_store is None:
        if config.redis_url and config.redis_url.strip():
            otp_store = RedisOtpStore(config.redis_url)
            logger.info("OTP store: Redis")
        else:
            otp_store = InMemoryOtpStore()
            logger.warning("⚠️ REDIS_URL not configured, OTP challenges are kept in memory")

    mailer_service = MailerService(email_service or EmailService(config), db_session_factory)
    config_service = ConfigService(config, db_session_factory)
    registration_service = RegistrationService(config, db_session_factory, config_service, mailer_service)
    payment_service = PaymentService(payment_gateway or build_payment_gateway(config), db_session_factory)
    coupon_service = CouponService(db_session_factory)

    return Services(
        config=config,
        db_session_factory=db_session_factory,
        otp_store=otp_store,
        mailer=mailer_service,
        configs=config_service,
        registrations=registration_service,
        otp=OtpService(config, otp_store, mailer_service, db_session_factory),
        coupons=coupon_service,
        payments=payment_service,
        tickets=TicketService(registration_service, payment_service, gst_rate=config.gst_rate, coupons=coupon_service),
        reminders=ReminderService(registration_service, mailer_service, config.frontend_base),
        uploads=UploadService(config.upload_dir, config.max_upload_bytes, db_session_factory),
    )


def create_app(config: Optional[AppConfig] = None, **overrides) -> FastAPI:
    """
    Create the FastAPI application and attach its services.
    """
    config = config or AppConfig.load_from_env()
    services = build_services(config, **overrides)

    app = FastAPI(
        title="RailTrans Expo Registration API",
        version="0.1.0",
        description="Registration, OTP, coupons, payments, tickets and mail for RailTrans Expo.",
    )
    app.state.services = services

    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.allowed_origins) or ["*"],
        allow_credentials=bool(config.allowed_origins),
        allow_methods=["*"],
        allow_headers=["*", "ngrok-skip-browser-warning", "X-API-KEY"],
        expose_headers=["X-Request-ID"],
    )

    @app.exception_handler(RailTransError)
    async def handle_domain_error(request: Request, exc: RailTransError):
        request_id = getattr(request.state, "request_id", "unknown")
        if exc.status_code >= 500:
            logger.error(f"Request failed: request_id={request_id}, path={request.url.path}, error={exc.message}")
        else:
            logger.info(
                f"Request rejected: request_id={request_id}, path={request.url.path}, "
                f"status={exc.status_code}, error={exc.message}"
            )
        body = {"success": False, "error": exc.message, **jsonable_encoder(exc.details)}
        return JSONResponse(status_code=exc.status_code, content=body)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.detail},
                            headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Invalid request", "detail": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        request_id = getattr(request.state, "request_id", "unknown")
        logger.error(
            f"Unhandled error: request_id={request_id}, path={request.url.path}, "
            f"error={type(exc).__name__}: {exc}",
            exc_info=exc,
        )
        return JSONResponse(status_code=500, content={"success": False, "error": "Internal server error"})

    @app.get("/api/health")
    def health_check(services: Services = Depends(get_services)):
        """
        Health check for monitoring and container healthchecks.
        """
        db_ok = ping_database(services.db_session_factory)

        if isinstance(services.otp_store, RedisOtpStore):
            redis_status = "ok" if services.otp_store.ping() else "error"
        else:
            redis_status = "disabled"

        return {
            "status": "healthy" if db_ok and redis_status != "error" else "degraded",
            "database": "ok" if db_ok else "error",
            "redis": redis_status,
            "smtpConfigured": config.smtp_configured,
        }

    for role in ROLES:
        app.include_router(registrants.build_router(role))
    for router in configs.role_config_routers():
        app.include_router(router)
    for module in (configs, otp, coupons, payments, mailer, uploads, tickets, reminders):
        app.include_router(module.router)

    os.makedirs(config.upload_dir, exist_ok=True)
    app.mount("/uploads", StaticFiles(directory=config.upload_dir), name="uploads")

    logger.info(
        f"App created: env={config.env}, payment_provider={config.payment_provider}, "
        f"smtp_configured={config.smtp_configured}"
    )
    return app
