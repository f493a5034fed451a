import logging
import uuid
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .. import crud
from ..errors import StoreError
from ..models import Browser, ClickEvent, DeviceType, OS
from ..observability import CLICKS_RECORDED
from .registry import URLRegistry

logger = logging.getLogger(__name__)

class ClickRecorder:
    """Writes a click event and its counter increment in one transaction.

    Uses its own session so the transaction boundary is not shared with
    whatever read the request already made.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def record(
        self,
        short_url_id: uuid.UUID,
        ip_address: Optional[str],
        browser: Browser,
        os: OS,
        device_type: DeviceType,
        country: Optional[str],
        city: Optional[str],
    ) -> None:
        async with self.session_factory() as db:
            try:
                async with db.begin():
                    crud.add_click_event(db, ClickEvent(
                        short_url_id=short_url_id,
                        ip_address=ip_address,
                        browser=browser,
                        os=os,
                        device_type=device_type,
                        country=country,
                        city=city,
                    ))
                    await URLRegistry(db).increment_clicks(short_url_id)
            except SQLAlchemyError as exc:
                logger.exception("Click transaction rolled back", extra={"client_ip": ip_address})
                raise StoreError("failed to record click") from exc
            except StoreError:
                logger.error("Click transaction rolled back: %s", short_url_id)
                raise

        CLICKS_RECORDED.inc()
