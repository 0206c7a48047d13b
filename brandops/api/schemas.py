"""
Pydantic response models for the brand-operations REST API.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ApiResponse(BaseModel):
    """Envelope returned by every page endpoint.

    Attributes:
        success: Always ``True`` for 2xx responses.
        data: Page payload (KPIs, sections, insights, ...).
        message: Human-readable summary.
        timestamp: ISO-8601 instant the response was built.
    """

    success: bool = True
    data: Dict[str, Any] = Field(default_factory=dict)
    message: str = ""
    timestamp: str


class ErrorResponse(BaseModel):
    """Standard error body.

    Attributes:
        success: Always ``False``.
        error: Error type identifier (``upstreamfetch``, ``badrequest``).
        message: HTTP reason phrase for the status code.
        details: Human-readable error description.
        timestamp: ISO-8601 instant of the failure.
        request_id: Request ID for correlation.
    """

    success: bool = False
    error: str
    message: str = ""
    details: str
    timestamp: str
    request_id: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response.

    Attributes:
        status: ``healthy`` or ``degraded``.
        version: API version string.
        uptime_seconds: Seconds since service start.
        components: Health status of sub-components.
        cache_issues: Issues reported by the insight cache.
    """

    status: str
    version: str
    uptime_seconds: float
    components: Dict[str, str] = {}
    cache_issues: List[str] = []


class ManagementResponse(BaseModel):
    """Body of every cache-management reply."""

    success: bool
    message: str
    timestamp: str
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
