from __future__ import annotations

import logging
import time
import traceback
import uuid
from typing import Any

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from fotoderma.api import auth, consultations, patients
from fotoderma.api.deps import optional_doctor
from fotoderma.core.config import settings
from fotoderma.errors import ApiError
from fotoderma.logging_utils import _request_id_ctx_var, configure_logging
from fotoderma.services.identity import Principal

configure_logging()

app = FastAPI(title=settings.app_name, version="1.0.0")

logger = logging.getLogger(__name__)

REQUEST_COUNTER = Counter(
    "fotoderma_api_requests_total",
    "Total number of processed HTTP requests.",
    ["method", "route", "status"],
)
REQUEST_LATENCY = Histogram(
    "fotoderma_api_request_duration_seconds",
    "HTTP request latency in seconds.",
    ["method", "route"],
)


def _route_label(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or "<unmatched>"


def internal_error_response(exc: Exception) -> JSONResponse:
    body: dict[str, Any] = {
        "error": "Internal Server Error",
        "message": "Something went wrong",
    }
    if not settings.is_production:
        body["detail"] = str(exc)
        body["stack"] = "".join(traceback.format_exception(exc))
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Populate the request id used by every log line of the request."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        request_id_token = _request_id_ctx_var.set(request_id)

        try:
            response = await call_next(request)
        finally:
            _request_id_ctx_var.reset(request_id_token)

        response.headers["X-Request-ID"] = request_id
        return response


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Emit structured access logs and feed metrics.

    Unhandled exceptions are logged once here and rendered as a 500 response,
    so the outer middleware still adds the request id and CORS headers.
    """

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        start_time = time.perf_counter()
        method = request.method

        try:
            response = await call_next(request)
        except Exception as exc:
            elapsed = time.perf_counter() - start_time
            route = _route_label(request)
            REQUEST_COUNTER.labels(method=method, route=route, status="500").inc()
            REQUEST_LATENCY.labels(method=method, route=route).observe(elapsed)
            logger.exception(
                "request failed",
                extra={
                    "method": method,
                    "route": route,
                    "duration_ms": round(elapsed * 1000, 2),
                },
            )
            return internal_error_response(exc)

        elapsed = time.perf_counter() - start_time
        route = _route_label(request)
        status_code = response.status_code
        principal = getattr(request.state, "principal", None)

        REQUEST_COUNTER.labels(method=method, route=route, status=str(status_code)).inc()
        REQUEST_LATENCY.labels(method=method, route=route).observe(elapsed)

        logger.info(
            "request completed",
            extra={
                "method": method,
                "route": route,
                "status_code": status_code,
                "duration_ms": round(elapsed * 1000, 2),
                "doctor_id": principal.doctor_id if principal else None,
            },
        )

        return response


app.add_middleware(AccessLogMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestContextMiddleware)


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request error", extra={"error": exc.error, "detail": exc.message})
    return JSONResponse(status_code=exc.status_code, content=exc.as_dict())


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        body = {
            "error": "Route not found",
            "message": f"The requested endpoint {request.url.path} does not exist",
        }
    else:
        body = {"error": str(exc.detail), "message": str(exc.detail)}
    return JSONResponse(status_code=exc.status_code, content=body, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    problems = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Bad Request", "message": problems or "Invalid request"},
    )


@app.get("/metrics")
def metrics() -> Response:
    """Expose Prometheus metrics for scraping."""

    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/health")
def health() -> dict[str, str]:
    """Health check endpoint used by infrastructure probes."""

    return {"status": "ok"}


@app.get("/")
def index(principal: Principal | None = Depends(optional_doctor)) -> dict[str, Any]:
    return {
        "message": f"{settings.app_name} is running",
        "version": app.version,
        "endpoints": {
            "health": "/health",
            "auth": "/auth",
            "patients": "/patients",
            "consultations": "/consultations",
        },
        "user": principal.as_dict() if principal else None,
    }


app.include_router(auth.router)
app.include_router(patients.router)
app.include_router(consultations.router)
