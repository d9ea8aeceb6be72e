"""
Test configuration and fixtures for the CeyCanvas API.

The environment is prepared before the application is imported: a throwaway
SQLite file stands in for the database and the mailer is patched out per test.
"""

import os
import tempfile
from typing import Generator
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

_db_fd, _db_path = tempfile.mkstemp(suffix=".db")
os.close(_db_fd)
os.environ["DATABASE_URL"] = f"sqlite:///{_db_path}"
os.environ["JWT_SECRET"] = "test-secret-key-that-is-long-enough-for-hs256"
os.environ["APP_ENV"] = "test"
os.environ["UPLOADS_DIR"] = tempfile.mkdtemp(prefix="ceycanvas-uploads-")
os.environ.setdefault("SMTP_HOST", "smtp.example.com")
os.environ.setdefault("SMTP_USER", "mailer@example.com")
os.environ.setdefault("SMTP_PASS", "not-a-real-password")

from ceycanvas.database import Base, engine, init_db  # noqa: E402
from ceycanvas.services.email import EmailResult  # noqa: E402
from ceycanvas.services.passwords import hash_password  # noqa: E402
from ceycanvas.services.users import user_store  # noqa: E402


@pytest.fixture(autouse=True)
def clean_database():
    """Fresh tables for every test."""
    init_db()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="session")
def test_app():
    from ceycanvas.main import app

    return app


@pytest.fixture
def client(test_app) -> Generator[TestClient, None, None]:
    with TestClient(test_app) as test_client:
        yield test_client


@pytest.fixture
def mail():
    """Patch both outgoing emails at the point the auth routes call them."""
    with patch("ceycanvas.routers.auth.send_otp_email") as otp_mail, patch(
        "ceycanvas.routers.auth.send_welcome_email"
    ) as welcome_mail:
        otp_mail.return_value = EmailResult(success=True, message_id="<otp@test>")
        welcome_mail.return_value = EmailResult(success=True, message_id="<welcome@test>")
        yield otp_mail, welcome_mail


def sent_code(otp_mail) -> str:
    """The OTP passed to the most recent send_otp_email(name, email, code) call."""
    return otp_mail.call_args.args[2]


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def register_buyer(client: TestClient, name: str, email: str, password: str = "secret123") -> dict:
    response = client.post(
        "/api/auth/register",
        json={"name": name, "email": email, "password": password},
    )
    assert response.status_code == 201, response.text
    return response.json()


def create_admin(name: str = "Support Admin", email: str = "admin@ceycanvas.com"):
    return user_store.create_user(
        {
            "name": name,
            "email": email,
            "password_hash": hash_password("admin-pass"),
            "is_admin": True,
        }
    )
