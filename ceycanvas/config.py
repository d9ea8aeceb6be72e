import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_list(name: str, default: str) -> tuple[str, ...]:
    raw_value = os.getenv(name, default)
    return tuple(item.strip() for item in raw_value.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    database_url: str = os.getenv("DATABASE_URL", "")
    port: int = int(os.getenv("PORT", "5000"))
    environment: str = os.getenv("APP_ENV", "development").strip().lower()
    jwt_secret: str = os.getenv("JWT_SECRET", "")
    jwt_algorithm: str = os.getenv("ALGORITHM", "HS256")
    token_expire_days: int = int(os.getenv("TOKEN_EXPIRE_DAYS", "30"))
    otp_length: int = int(os.getenv("OTP_LENGTH", "6"))
    otp_ttl_seconds: int = int(os.getenv("OTP_TTL_SECONDS", "900"))
    smtp_host: str = os.getenv("SMTP_HOST", "")
    smtp_port: int = int(os.getenv("SMTP_PORT", "465"))
    smtp_user: str = os.getenv("SMTP_USER", "")
    smtp_pass: str = os.getenv("SMTP_PASS", "")
    smtp_secure: bool = _env_bool("SMTP_SECURE", True)
    smtp_from_email: str = os.getenv("SMTP_FROM_EMAIL") or os.getenv("SMTP_USER", "")
    smtp_from_name: str = os.getenv("SMTP_FROM_NAME", "CeyCanvas")
    uploads_dir: str = os.getenv("UPLOADS_DIR", "uploads")
    cors_origins: tuple[str, ...] = field(
        default=_env_list(
            "CORS_ORIGINS",
            "http://localhost:3000,http://localhost:5173",
        )
    )

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


settings = Settings()
