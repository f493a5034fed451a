from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
import time

# Metrics definitions
HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"]
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0]
)

CACHE_HITS = Counter("cache_hits_total", "Total redirect cache hits")
CACHE_MISSES = Counter("cache_misses_total", "Total redirect cache misses")
CACHE_ERRORS = Counter("cache_errors_total", "Cache operations that failed and were skipped", ["operation"])
SHORT_URLS_CREATED = Counter("short_urls_created_total", "Total short URLs created")
SHORT_CODE_CONFLICTS = Counter("short_code_conflicts_total", "Short code inserts rejected by the uniqueness constraint")
REDIRECT_TOTAL = Counter("redirect_total", "Total redirects")
REDIRECT_404_TOTAL = Counter("redirect_404_total", "Total failed redirects (404)")
GEOLOCATION_FAILURES = Counter("geolocation_failures_total", "Geolocation lookups that degraded to empty fields")
CLICKS_RECORDED = Counter("clicks_recorded_total", "Click events committed together with their counter increment")

def metric_path(path: str) -> str:
    # Short codes would explode label cardinality
    if path == "/url/shorten":
        return path
    if path.startswith("/url/"):
        return "/url/{short_code}"
    if path in ("/metrics", "/health"):
        return path
    return "other"

class PrometheusMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()

        response = await call_next(request)

        process_time = time.perf_counter() - start_time
        path = metric_path(request.url.path)

        HTTP_REQUESTS_TOTAL.labels(method=request.method, path=path, status=str(response.status_code)).inc()
        HTTP_REQUEST_DURATION_SECONDS.labels(method=request.method, path=path).observe(process_time)

        return response

def metrics_endpoint(request: Request):
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
