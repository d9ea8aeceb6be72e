from __future__ import annotations

import logging
import smtplib
import ssl
from dataclasses import dataclass
from datetime import datetime, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, make_msgid
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from ceycanvas.config import settings

LOGGER = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parents[1] / "templates"
OTP_SUBJECT = "Verify Your Email - CeyCanvas Artist Registration"
WELCOME_SUBJECT = "Welcome to CeyCanvas - Your Art Journey Begins!"

_templates = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
)


class EmailSendError(RuntimeError):
    pass


@dataclass(frozen=True)
class EmailResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


class Mailer:
    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        secure: bool,
        from_email: str,
        from_name: str,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.secure = secure
        self.from_email = from_email
        self.from_name = from_name

    @classmethod
    def from_settings(cls) -> "Mailer":
        if not settings.smtp_host or not settings.smtp_user or not settings.smtp_pass:
            LOGGER.error("SMTP configuration is incomplete, check SMTP_HOST/SMTP_USER/SMTP_PASS")
            raise EmailSendError("SMTP configuration is incomplete")
        LOGGER.info(
            "Initializing email service host=%s port=%s user=%s",
            settings.smtp_host,
            settings.smtp_port,
            settings.smtp_user,
        )
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_user,
            password=settings.smtp_pass,
            secure=settings.smtp_secure,
            from_email=settings.smtp_from_email,
            from_name=settings.smtp_from_name,
        )

    def send(self, to_email: str, subject: str, html_body: str) -> str:
        message_id = make_msgid(domain=self.from_email.partition("@")[2] or None)
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = formataddr((self.from_name, self.from_email))
        msg["To"] = to_email
        msg["Message-ID"] = message_id
        msg.attach(MIMEText(html_body, "html", "utf-8"))

        try:
            with self._connect() as server:
                server.login(self.username, self.password)
                server.sendmail(self.from_email, [to_email], msg.as_string())
        except (smtplib.SMTPException, OSError) as exc:
            raise EmailSendError(str(exc) or "Failed to send email") from exc
        return message_id

    def _connect(self) -> smtplib.SMTP:
        if self.secure or self.port == 465:
            context = ssl.create_default_context()
            return smtplib.SMTP_SSL(self.host, self.port, context=context, timeout=10)
        server = smtplib.SMTP(self.host, self.port, timeout=10)
        server.ehlo()
        server.starttls(context=ssl.create_default_context())
        server.ehlo()
        return server


_mailer: Optional[Mailer] = None


def get_mailer() -> Mailer:
    global _mailer
    if _mailer is None:
        _mailer = Mailer.from_settings()
    return _mailer


def send_otp_email(name: str, email: str, code: str) -> EmailResult:
    html_body = render_template(
        "otp_email.html",
        name=name,
        otp=code,
        expires_in_minutes=max(1, settings.otp_ttl_seconds // 60),
    )
    return _deliver(email, OTP_SUBJECT, html_body, kind="OTP")


def send_welcome_email(name: str, email: str) -> EmailResult:
    html_body = render_template("welcome_email.html", name=name)
    return _deliver(email, WELCOME_SUBJECT, html_body, kind="welcome")


def render_template(template_name: str, **context) -> str:
    context.setdefault("year", datetime.now(timezone.utc).year)
    return _templates.get_template(template_name).render(**context)


def _deliver(to_email: str, subject: str, html_body: str, kind: str) -> EmailResult:
    try:
        message_id = get_mailer().send(to_email, subject, html_body)
    except EmailSendError as exc:
        LOGGER.error("Error sending %s email to %s: %s", kind, to_email, exc)
        return EmailResult(success=False, error=str(exc))
    LOGGER.info("Sent %s email to %s message_id=%s", kind, to_email, message_id)
    return EmailResult(success=True, message_id=message_id)
