"""Shared fixtures: in-memory database, dev-log mail and payments."""

import pytest
from fastapi.testclient import TestClient

from railtrans.api.http import create_app
from railtrans.config import AppConfig
from railtrans.core.configs import ConfigService
from railtrans.core.mailer import MailerService
from railtrans.core.registrations import RegistrationService
from railtrans.infra.email_service import EmailService
from railtrans.session import InMemoryOtpStore
from railtrans.storage.database import create_session_factory


@pytest.fixture
def config(tmp_path):
    return AppConfig(
        database_url="sqlite:///:memory:",
        upload_dir=str(tmp_path / "uploads"),
        max_upload_bytes=1024,
        admin_emails=("ops@railtransexpo.com",),
        exhibitor_admin_emails=("exhibits@railtransexpo.com",),
        frontend_base="https://expo.example.in",
        api_base="https://api.example.in",
    )


@pytest.fixture
def db_session_factory():
    return create_session_factory("sqlite:///:memory:", create_tables=True)


@pytest.fixture
def mailer(config, db_session_factory):
    return MailerService(EmailService(config), db_session_factory)


@pytest.fixture
def config_service(config, db_session_factory):
    return ConfigService(config, db_session_factory)


@pytest.fixture
def registrations(config, db_session_factory, config_service, mailer):
    return RegistrationService(config, db_session_factory, config_service, mailer)


@pytest.fixture
def otp_store():
    return InMemoryOtpStore()


@pytest.fixture
def app(config, db_session_factory, otp_store):
    return create_app(config, db_session_factory=db_session_factory, otp_store=otp_store)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def services(app):
    return app.state.services
