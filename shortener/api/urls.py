from fastapi import APIRouter, Depends, Header, Request, status
from fastapi.responses import JSONResponse, RedirectResponse
from typing import Optional

from ..config import settings
from ..dependencies import get_redirect_service, get_registry
from ..errors import Failure
from ..schemas import ErrorResponse, ShortenRequest, ShortenResponse
from ..services.classifier import client_ip
from ..services.redirects import RedirectService
from ..services.registry import URLRegistry

router = APIRouter()

def failure_response(failure: Failure) -> JSONResponse:
    return JSONResponse(
        status_code=failure.status_code,
        content=ErrorResponse(error=failure.message).model_dump(),
    )

@router.post(
    "/shorten",
    response_model=ShortenResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
async def shorten_url(
    payload: ShortenRequest,
    registry: URLRegistry = Depends(get_registry),
):
    result = await registry.create_short_url(str(payload.long_url), payload.expires_at)
    if isinstance(result, Failure):
        return failure_response(result)

    return ShortenResponse(
        message="Short URL created successfully",
        short_url=f"{settings.BASE_URL.rstrip('/')}/{result}",
    )

@router.get(
    "/{short_code}",
    status_code=status.HTTP_302_FOUND,
    response_class=RedirectResponse,
    responses={404: {"model": ErrorResponse}},
)
async def redirect_to_url(
    short_code: str,
    request: Request,
    user_agent: Optional[str] = Header(None),
    service: RedirectService = Depends(get_redirect_service),
):
    result = await service.redirect(short_code, client_ip(request), user_agent)
    if isinstance(result, Failure):
        return failure_response(result)
    return RedirectResponse(url=result, status_code=status.HTTP_302_FOUND)
