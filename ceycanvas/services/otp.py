from datetime import datetime, timedelta, timezone
import logging
import math
import secrets
from typing import Any, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from ceycanvas.config import settings
from ceycanvas.database import session_scope
from ceycanvas.models.otp import OtpEntry

LOGGER = logging.getLogger(__name__)


class OtpServiceError(RuntimeError):
    pass


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class OtpStore:
    """Email-bound verification codes carrying a pending artist registration.

    One record per email. Expiry is enforced only when a code is checked;
    stale records linger until the next check or the next registration for
    the same address.
    """

    def __init__(self, ttl_seconds: int, code_length: int) -> None:
        self._ttl_seconds = ttl_seconds
        self._code_length = code_length

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def generate_code(self) -> str:
        value = secrets.randbelow(10**self._code_length)
        return str(value).zfill(self._code_length)

    def create_otp(self, email: str, registration: dict[str, Any]) -> str:
        normalized = normalize_email(email)
        now = _utcnow()
        code = self.generate_code()
        expires_at = now + timedelta(seconds=self._ttl_seconds)
        try:
            with session_scope() as session:
                session.execute(delete(OtpEntry).where(OtpEntry.email == normalized))
                session.add(
                    OtpEntry(
                        email=normalized,
                        code=code,
                        registration=registration,
                        verified=False,
                        created_at=now,
                        expires_at=expires_at,
                    )
                )
        except SQLAlchemyError as exc:
            LOGGER.exception("Error creating OTP for %s", normalized)
            raise OtpServiceError("Failed to create OTP") from exc
        LOGGER.info("OTP created for %s (expires at %s)", normalized, expires_at.isoformat())
        return code

    def verify_otp(self, email: str, code: str) -> Optional[dict[str, Any]]:
        normalized = normalize_email(email)
        clean_code = code.strip()
        now = _utcnow()
        try:
            with session_scope() as session:
                entry = session.execute(
                    select(OtpEntry).where(
                        OtpEntry.email == normalized,
                        OtpEntry.code == clean_code,
                    )
                ).scalar_one_or_none()
                if entry is None:
                    LOGGER.warning("Invalid OTP for %s", normalized)
                    return None
                if now > _as_utc(entry.expires_at):
                    LOGGER.warning("Expired OTP for %s", normalized)
                    session.delete(entry)
                    return None
                entry.verified = True
                registration = dict(entry.registration or {})
        except SQLAlchemyError as exc:
            LOGGER.exception("Error verifying OTP for %s", normalized)
            raise OtpServiceError("Failed to verify OTP") from exc
        LOGGER.info("OTP verified for %s", normalized)
        return registration

    def delete_otp(self, email: str) -> None:
        normalized = normalize_email(email)
        try:
            with session_scope() as session:
                session.execute(delete(OtpEntry).where(OtpEntry.email == normalized))
        except SQLAlchemyError:
            LOGGER.exception("Error deleting OTP for %s", normalized)
            return
        LOGGER.info("OTP deleted for %s", normalized)

    def get_remaining_time(self, email: str) -> int:
        normalized = normalize_email(email)
        try:
            with session_scope() as session:
                entry = session.execute(
                    select(OtpEntry).where(OtpEntry.email == normalized)
                ).scalar_one_or_none()
                if entry is None:
                    return 0
                expires_at = _as_utc(entry.expires_at)
        except SQLAlchemyError:
            LOGGER.exception("Error reading OTP expiry for %s", normalized)
            return 0
        remaining = (expires_at - _utcnow()).total_seconds()
        return max(0, math.floor(remaining))

    def get_pending_registration(self, email: str) -> Optional[dict[str, Any]]:
        normalized = normalize_email(email)
        try:
            with session_scope() as session:
                entry = session.execute(
                    select(OtpEntry).where(OtpEntry.email == normalized)
                ).scalar_one_or_none()
                if entry is None:
                    return None
                return dict(entry.registration or {})
        except SQLAlchemyError as exc:
            LOGGER.exception("Error reading pending registration for %s", normalized)
            raise OtpServiceError("Failed to read pending registration") from exc


otp_store = OtpStore(settings.otp_ttl_seconds, settings.otp_length)
