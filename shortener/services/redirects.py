import html
import logging
from datetime import datetime, timezone
from typing import Optional, Union

from ..errors import ErrorKind, Failure
from ..observability import REDIRECT_404_TOTAL, REDIRECT_TOTAL
from .cache import RedirectCache
from .classifier import ClickClassifier
from .recorder import ClickRecorder

logger = logging.getLogger(__name__)

class RedirectService:
    def __init__(
        self,
        cache: RedirectCache,
        classifier: ClickClassifier,
        recorder: ClickRecorder,
        enforce_expiry: bool = False,
    ):
        self.cache = cache
        self.classifier = classifier
        self.recorder = recorder
        self.enforce_expiry = enforce_expiry

    async def redirect(
        self, short_code: str, ip_address: Optional[str], user_agent: Optional[str]
    ) -> Union[str, Failure]:
        """Resolve ``short_code``, record the click and return the decoded target URL.

        Unknown codes return a NOT_FOUND failure before any enrichment or
        recording happens. Store failures while recording raise StoreError.
        """
        resolved = await self.cache.resolve(short_code)
        if isinstance(resolved, Failure):
            REDIRECT_404_TOTAL.inc()
            logger.info("Unknown short code", extra={"short_code": short_code})
            return resolved

        if self.enforce_expiry and resolved.expires_at and resolved.expires_at <= datetime.now(timezone.utc):
            REDIRECT_404_TOTAL.inc()
            logger.info("Expired short code", extra={"short_code": short_code})
            return Failure(ErrorKind.NOT_FOUND, "Short URL has expired")

        enrichment = await self.classifier.classify(ip_address, user_agent)
        await self.recorder.record(
            resolved.id,
            ip_address,
            enrichment.browser,
            enrichment.os,
            enrichment.device_type,
            enrichment.country,
            enrichment.city,
        )

        REDIRECT_TOTAL.inc()
        return html.unescape(resolved.long_url)
