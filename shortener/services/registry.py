import logging
import uuid
from datetime import datetime
from typing import Callable, Optional, Union

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .. import crud
from ..errors import ErrorKind, Failure, StoreError
from ..models import ShortenedURL
from ..observability import SHORT_CODE_CONFLICTS, SHORT_URLS_CREATED
from ..schemas import ResolvedURL
from ..utils import generate_short_code

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5

class URLRegistry:
    """Short code <-> long URL mappings in the relational store.

    Uniqueness of ``short_code`` is enforced by the store's constraint, not by
    the generator; an insert that trips it is retried with a fresh code.
    """

    def __init__(
        self,
        db: AsyncSession,
        generate: Callable[[], str] = generate_short_code,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ):
        self.db = db
        self.generate = generate
        self.max_attempts = max_attempts

    async def create_short_url(
        self, long_url: str, expires_at: Optional[datetime] = None
    ) -> Union[str, Failure]:
        if await self._has_enabled_mapping(long_url):
            return Failure(ErrorKind.DUPLICATE_ACTIVE_URL)

        for attempt in range(1, self.max_attempts + 1):
            short_code = self.generate()
            short_url = ShortenedURL(
                long_url=long_url,
                short_code=short_code,
                expires_at=expires_at,
                enabled=True,
                click_count=0,
            )
            try:
                await crud.create_short_url(self.db, short_url)
            except IntegrityError:
                await self.db.rollback()
                # A concurrent request may have won the enabled long_url index
                if await self._has_enabled_mapping(long_url):
                    return Failure(ErrorKind.DUPLICATE_ACTIVE_URL)
                SHORT_CODE_CONFLICTS.inc()
                logger.info(
                    "%s: short code collision on attempt %d",
                    ErrorKind.CONFLICT_RETRY.name, attempt,
                    extra={"short_code": short_code},
                )
                continue
            except SQLAlchemyError as exc:
                await self.db.rollback()
                logger.exception("Failed to store short URL", extra={"short_code": short_code})
                raise StoreError("failed to store short URL") from exc

            SHORT_URLS_CREATED.inc()
            logger.info("Short URL created", extra={"short_code": short_code})
            return short_code

        logger.error("Gave up generating a short code after %d attempts", self.max_attempts)
        return Failure(ErrorKind.CONFLICT_RETRY)

    async def resolve(self, short_code: str) -> Union[ResolvedURL, Failure]:
        try:
            short_url = await crud.get_short_url_by_code(self.db, short_code)
        except SQLAlchemyError as exc:
            logger.exception("Failed to look up short code", extra={"short_code": short_code})
            raise StoreError("failed to look up short code") from exc

        if short_url is None:
            return Failure(ErrorKind.NOT_FOUND)
        return ResolvedURL.model_validate(short_url)

    async def increment_clicks(self, short_url_id: uuid.UUID) -> None:
        """Add one click in the current transaction; the caller commits."""
        updated = await crud.increment_click_count(self.db, short_url_id)
        if updated != 1:
            raise StoreError(f"short URL {short_url_id} vanished while recording a click")

    async def _has_enabled_mapping(self, long_url: str) -> bool:
        try:
            return await crud.get_enabled_short_url_by_long_url(self.db, long_url) is not None
        except SQLAlchemyError as exc:
            logger.exception("Failed to check for an existing mapping")
            raise StoreError("failed to check for an existing mapping") from exc
