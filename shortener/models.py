import enum
import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy import String, Text, Boolean, DateTime, BigInteger, ForeignKey, Enum, Index, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func
from .database import Base

class Browser(str, enum.Enum):
    CHROME = "CHROME"
    CHROME_MOBILE = "CHROME_MOBILE"
    FIREFOX = "FIREFOX"
    FIREFOX_MOBILE = "FIREFOX_MOBILE"
    SAFARI = "SAFARI"
    MOBILE_SAFARI = "MOBILE_SAFARI"
    EDGE = "EDGE"
    OPERA = "OPERA"
    IE = "IE"
    SAMSUNG_INTERNET = "SAMSUNG_INTERNET"
    OTHER = "OTHER"

class OS(str, enum.Enum):
    WINDOWS = "WINDOWS"
    MAC_OS_X = "MAC_OS_X"
    IOS = "IOS"
    ANDROID = "ANDROID"
    LINUX = "LINUX"
    UBUNTU = "UBUNTU"
    CHROME_OS = "CHROME_OS"
    OTHER = "OTHER"

class DeviceType(str, enum.Enum):
    MOBILE = "MOBILE"
    TABLET = "TABLET"
    DESKTOP = "DESKTOP"
    BOT = "BOT"
    OTHER = "OTHER"

class ShortenedURL(Base):
    __tablename__ = "short_urls"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    long_url: Mapped[str] = mapped_column(Text, nullable=False)
    short_code: Mapped[str] = mapped_column(String(16), unique=True, index=True, nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    click_count: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    clicks: Mapped[list["ClickEvent"]] = relationship(back_populates="short_url")

    __table_args__ = (
        # At most one enabled mapping per long URL; disabled rows may repeat it
        Index(
            "uq_short_urls_enabled_long_url",
            "long_url",
            unique=True,
            postgresql_where=text("enabled"),
        ),
    )

class ClickEvent(Base):
    __tablename__ = "click_events"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    short_url_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("short_urls.id"), index=True, nullable=False
    )
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    browser: Mapped[Browser] = mapped_column(Enum(Browser, name="browser"), default=Browser.OTHER, nullable=False)
    os: Mapped[OS] = mapped_column(Enum(OS, name="os"), default=OS.OTHER, nullable=False)
    device_type: Mapped[DeviceType] = mapped_column(
        Enum(DeviceType, name="device_type"), default=DeviceType.OTHER, nullable=False
    )
    country: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    short_url: Mapped[ShortenedURL] = relationship(back_populates="clicks")
