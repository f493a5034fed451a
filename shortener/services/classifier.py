import ipaddress
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Type, TypeVar

import httpx
from starlette.requests import Request
from user_agents import parse as parse_user_agent

from ..errors import ErrorKind
from ..models import Browser, DeviceType, OS
from ..observability import GEOLOCATION_FAILURES

logger = logging.getLogger(__name__)

LOCAL_PREFIXES = ("127.", "10.", "172.", "192.168.")

E = TypeVar("E", bound=Enum)

@dataclass(frozen=True)
class GeoLocation:
    country: Optional[str] = None
    city: Optional[str] = None

@dataclass(frozen=True)
class ClickEnrichment:
    browser: Browser = Browser.OTHER
    os: OS = OS.OTHER
    device_type: DeviceType = DeviceType.OTHER
    country: Optional[str] = None
    city: Optional[str] = None

def client_ip(request: Request) -> Optional[str]:
    """First X-Forwarded-For entry when it parses as an IP address, else the peer address."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        candidate = forwarded.split(",")[0].strip()
        try:
            address = ipaddress.ip_address(candidate)
        except ValueError:
            address = None
        # Zone ids ("fe80::1%eth0") are unbounded in length
        if address is not None and not getattr(address, "scope_id", None):
            return str(address)
        logger.debug("Ignoring malformed X-Forwarded-For entry: %.64r", candidate)
    return request.client.host if request.client else None

def is_local_ip(ip: str) -> bool:
    return ip == "::1" or ip.startswith(LOCAL_PREFIXES)

def to_enum(enum_cls: Type[E], raw: Optional[str]) -> E:
    """Map a raw parser name onto ``enum_cls``, falling back to its OTHER member."""
    if not raw:
        return enum_cls.OTHER
    name = raw.upper().replace(" ", "_")
    try:
        return enum_cls(name)
    except ValueError:
        return enum_cls.OTHER

def _device_kind(user_agent) -> Optional[str]:
    if user_agent.is_bot:
        return "bot"
    if user_agent.is_tablet:
        return "tablet"
    if user_agent.is_mobile:
        return "mobile"
    if user_agent.is_pc:
        return "desktop"
    return None

def classify_user_agent(user_agent: Optional[str]) -> tuple[Browser, OS, DeviceType]:
    if not user_agent:
        return Browser.OTHER, OS.OTHER, DeviceType.OTHER

    parsed = parse_user_agent(user_agent)
    return (
        to_enum(Browser, parsed.browser.family),
        to_enum(OS, parsed.os.family),
        to_enum(DeviceType, _device_kind(parsed)),
    )

class GeoLocator:
    """ipinfo.io style lookup: ``GET {base_url}/{ip}/json`` -> ``{"country", "city"}``."""

    def __init__(self, client: httpx.AsyncClient, base_url: str, timeout: float = 2.0):
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def locate(self, ip: Optional[str]) -> GeoLocation:
        if not ip or is_local_ip(ip):
            return GeoLocation()

        try:
            response = await self.client.get(f"{self.base_url}/{ip}/json", timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            GEOLOCATION_FAILURES.inc()
            logger.warning("%s: geolocation lookup failed: %s",
                           ErrorKind.DEPENDENCY_UNAVAILABLE.name, exc, extra={"client_ip": ip})
            return GeoLocation()

        if not isinstance(data, dict):
            return GeoLocation()
        return GeoLocation(country=data.get("country"), city=data.get("city"))

class ClickClassifier:
    def __init__(self, geolocator: GeoLocator):
        self.geolocator = geolocator

    async def classify(self, ip: Optional[str], user_agent: Optional[str]) -> ClickEnrichment:
        browser, os, device_type = classify_user_agent(user_agent)
        location = await self.geolocator.locate(ip)
        return ClickEnrichment(
            browser=browser,
            os=os,
            device_type=device_type,
            country=location.country,
            city=location.city,
        )
