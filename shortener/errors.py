import enum
from dataclasses import dataclass
from typing import Optional

class ErrorKind(enum.Enum):
    """Every failure the service can report, with its HTTP status and default message."""

    VALIDATION_ERROR = (422, "Invalid request")
    DUPLICATE_ACTIVE_URL = (400, "An active short URL already exists for this long_url")
    NOT_FOUND = (404, "Short URL not found")
    CONFLICT_RETRY = (500, "Could not generate a unique short code")
    # Log-only: redis and geolocation outages are absorbed, never returned to clients
    DEPENDENCY_UNAVAILABLE = (503, "A dependency is unavailable")
    STORE_ERROR = (500, "Something went wrong, please try again later")

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message

@dataclass(frozen=True)
class Failure:
    """An expected, non-exceptional outcome that the caller must handle."""

    kind: ErrorKind
    detail: Optional[str] = None

    @property
    def status_code(self) -> int:
        return self.kind.status_code

    @property
    def message(self) -> str:
        return self.detail or self.kind.message

class StoreError(Exception):
    """The authoritative store failed; fatal to the current request."""

    kind = ErrorKind.STORE_ERROR

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail
