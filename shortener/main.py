import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api import urls
from .config import settings
from .database import close_db, create_tables
from .errors import ErrorKind, StoreError
from .logging_config import setup_logging
from .observability import PrometheusMiddleware, metrics_endpoint
from .redis import RedisClient
from .services.classifier import ClickClassifier, GeoLocator

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup logic
    if settings.CREATE_TABLES:
        await create_tables()
    app.state.cache = RedisClient(
        settings.REDIS_HOST,
        settings.REDIS_PORT,
        db=settings.REDIS_DB,
        socket_timeout=settings.REDIS_SOCKET_TIMEOUT_SECONDS,
    )
    await app.state.cache.connect()
    app.state.http_client = httpx.AsyncClient(timeout=settings.GEOLOCATION_TIMEOUT_SECONDS)
    app.state.classifier = ClickClassifier(
        GeoLocator(app.state.http_client, settings.GEOLOCATION_URL, settings.GEOLOCATION_TIMEOUT_SECONDS)
    )
    yield
    # Shutdown logic
    await app.state.http_client.aclose()
    await app.state.cache.close()
    await close_db()

app = FastAPI(
    title="URL Shortener",
    description="Short links with click analytics",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(PrometheusMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_route("/metrics", metrics_endpoint)

app.include_router(urls.router, prefix="/url", tags=["urls"])

@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    logger.error("Request failed on the store: %s", exc.detail)
    return JSONResponse(
        status_code=exc.kind.status_code,
        content={"status": "fail", "error": exc.kind.message},
    )

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    kind = ErrorKind.VALIDATION_ERROR
    details = [{key: value for key, value in error.items() if key != "ctx"} for error in exc.errors()]
    return JSONResponse(
        status_code=kind.status_code,
        content=jsonable_encoder({"status": "fail", "error": kind.message, "details": details}),
    )

@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    # Unknown routes and wrong methods get the same envelope as every other error
    return JSONResponse(
        status_code=exc.status_code,
        content={"status": "fail", "error": exc.detail},
        headers=getattr(exc, "headers", None),
    )

@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"status": "fail", "error": ErrorKind.STORE_ERROR.message},
    )

@app.get("/health")
async def health():
    return {"status": "ok"}

def run():
    import uvicorn

    uvicorn.run("shortener.main:app", host="0.0.0.0", port=settings.PORT)
