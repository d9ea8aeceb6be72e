from sqlalchemy import JSON, Boolean, Column, DateTime, Index, Integer, String

from ceycanvas.database import Base


class OtpEntry(Base):
    __tablename__ = "artist_otps"

    id = Column(Integer, primary_key=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    code = Column(String(10), nullable=False)
    registration = Column(JSON, nullable=False)
    verified = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_artist_otps_email_code", "email", "code"),
        Index("ix_artist_otps_expires_at", "expires_at"),
    )
