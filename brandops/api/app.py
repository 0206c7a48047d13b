"""
FastAPI application factory for the brand-operations insight service.

Creates the app with the page endpoints, the cache-management endpoint,
middleware and shared state.  ``use_mock=True`` wires the bundled sample
dataset and a deterministic LLM so the service runs without credentials.
"""

import logging
import time
import uuid
from http import HTTPStatus
from typing import Any, Dict, Optional

from fastapi import FastAPI, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from brandops.api.schemas import ApiResponse, ErrorResponse, HealthResponse, ManagementResponse
from brandops.cache.insight_cache import InsightCache, get_insight_cache
from brandops.clock import Clock, utcnow
from brandops.config import get_settings
from brandops.dispatcher import MODES, PageDispatcher
from brandops.exceptions import (
    BadRequestError,
    BrandOpsException,
    ConfigurationError,
    LLMError,
    MethodNotAllowedError,
    UnknownPageError,
    UpstreamFetchError,
)
from brandops.insights.llm import LLMClient, build_llm_client
from brandops.insights.pipeline import InsightPipeline
from brandops.management import CacheManagement
from brandops.upstream.client import DatasetClient, build_data_client

logger = logging.getLogger(__name__)

_STATUS_MAP = {
    UpstreamFetchError: 502,
    LLMError: 502,
    BadRequestError: 400,
    UnknownPageError: 404,
    MethodNotAllowedError: 405,
    ConfigurationError: 500,
}


def _status_for(exc: BrandOpsException) -> int:
    for cls in type(exc).__mro__:
        if cls in _STATUS_MAP:
            return _STATUS_MAP[cls]
    return 500


def _status_phrase(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Request failed"


def _error_body(
    request: Request, status_code: int, error: str, details: str, clock: Clock
) -> Dict[str, Any]:
    return ErrorResponse(
        error=error,
        message=_status_phrase(status_code),
        details=details,
        timestamp=clock().isoformat(),
        request_id=getattr(request.state, "request_id", "unknown"),
    ).model_dump()


def create_app(
    use_mock: bool = False,
    *,
    cache: Optional[InsightCache] = None,
    llm_client: Optional[LLMClient] = None,
    data_client: Optional[DatasetClient] = None,
    clock: Optional[Clock] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        use_mock: If True, use the sample dataset and the mock LLM.
        cache: Insight cache; the process-wide instance when omitted.
        llm_client: LLM collaborator override.
        data_client: Upstream data collaborator override.
        clock: Callable returning the current UTC instant.

    Returns:
        Configured FastAPI instance.
    """
    settings = get_settings()
    clock = clock or utcnow

    app = FastAPI(
        title="BrandOps Insights",
        description="Brand operations dashboard API with cached LLM insights",
        version=settings.api.version,
    )

    insight_cache = cache if cache is not None else get_insight_cache()
    pipeline = InsightPipeline(
        insight_cache,
        llm_client or build_llm_client(use_mock=use_mock),
        clock=clock,
    )

    app.state.cache = insight_cache
    app.state.dispatcher = PageDispatcher(
        data_client or build_data_client(use_mock=use_mock),
        pipeline,
        clock=clock,
    )
    app.state.management = CacheManagement(insight_cache, clock=clock)
    app.state.start_time = time.time()
    app.state.version = settings.api.version

    logger.info(
        "Application created",
        extra={"use_mock": use_mock, "pages": len(app.state.dispatcher.pages)},
    )

    # -- CORS --
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -- Request-ID middleware --
    @app.middleware("http")
    async def add_request_id(request: Request, call_next: Any) -> Response:
        """Attach a unique request ID to every request."""
        request_id = request.headers.get("X-Request-Id", uuid.uuid4().hex[:12])
        request.state.request_id = request_id
        response: Response = await call_next(request)
        response.headers["X-Request-Id"] = request_id
        return response

    # -- Global exception handlers --
    @app.exception_handler(BrandOpsException)
    async def brandops_exception_handler(
        request: Request, exc: BrandOpsException
    ) -> Response:
        """Handle all BrandOpsException subclasses with the error envelope."""
        status_code = _status_for(exc)
        # e.g. "UpstreamFetchError" -> "upstreamfetch"
        error_type = exc.__class__.__name__.replace("Error", "").lower()
        log = logger.error if status_code >= 500 else logger.info
        log(
            "Request failed",
            extra={
                "request_id": getattr(request.state, "request_id", "unknown"),
                "error": str(exc),
                "status_code": status_code,
            },
        )
        return JSONResponse(
            status_code=status_code,
            content=_error_body(request, status_code, error_type, str(exc), clock),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> Response:
        """Wrap routing errors (unknown path, wrong verb) in the envelope."""
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(request, exc.status_code, "http", str(exc.detail), clock),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request, exc: Exception
    ) -> Response:
        """Catch-all handler for unhandled exceptions."""
        request_id = getattr(request.state, "request_id", "unknown")
        logger.error(
            "Unhandled exception",
            extra={"request_id": request_id, "error": str(exc)},
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content=_error_body(
                request, 500, "internal_server_error", "An unexpected error occurred", clock
            ),
        )

    # -- Routes --

    @app.get(
        "/health",
        response_model=HealthResponse,
        summary="Service health check",
    )
    async def health(request: Request) -> HealthResponse:
        """Return service health status and component statuses."""
        cache_health = request.app.state.cache.health()
        return HealthResponse(
            status="healthy" if cache_health.healthy else "degraded",
            version=request.app.state.version,
            uptime_seconds=round(time.time() - request.app.state.start_time, 1),
            components={
                "cache": "healthy" if cache_health.healthy else "degraded",
                "dispatcher": "healthy",
            },
            cache_issues=cache_health.issues,
        )

    # Registered before ``/api/{page}`` so the literal path wins.
    @app.api_route(
        "/api/cache-management",
        methods=["GET", "POST", "DELETE", "PUT", "PATCH"],
        response_model=ManagementResponse,
        summary="Inspect and operate the insight cache",
    )
    async def cache_management(
        request: Request,
        action: Optional[str] = Query(default=None),
        namespace: Optional[str] = Query(default=None),
    ) -> Response:
        management: CacheManagement = request.app.state.management
        status_code, body = management.handle(request.method, action, namespace)
        return JSONResponse(status_code=status_code, content=body)

    @app.get(
        "/api/{page}",
        response_model=ApiResponse,
        summary="Dashboard page data and insights",
    )
    async def page_data(
        request: Request,
        page: str,
        mode: Optional[str] = Query(default=None, description=" | ".join(MODES)),
        brand: Optional[str] = Query(default=None),
    ) -> ApiResponse:
        """Serve one dashboard page in ``fast``, ``insights`` or ``full`` mode."""
        dispatcher: PageDispatcher = request.app.state.dispatcher
        data = await dispatcher.dispatch(page, mode=mode, brand=brand)
        return ApiResponse(
            data=data,
            message=f"{data['page']} data retrieved ({data['mode']} mode)",
            timestamp=clock().isoformat(),
        )

    return app
