"""
Shared error handling for the SonarQube exporter.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class ExporterException(Exception):
    """Base exception for exporter services."""

    status_code = 500

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self, request_id: Optional[str] = None) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class ConfigReadError(ExporterException):
    """A configuration value could not be read; the metric stays disabled."""

    def __init__(self, key: str, message: str = "Configuration read failed", details: Optional[Dict[str, Any]] = None):
        self.key = key
        super().__init__("CONFIG_READ_ERROR", f"{key}: {message}", details)


class UpstreamTransportError(ExporterException):
    """Network or service failure while talking to SonarQube."""

    status_code = 502

    def __init__(self, service: str, message: str = "Upstream service error", details: Optional[Dict[str, Any]] = None):
        super().__init__("UPSTREAM_ERROR", f"{service}: {message}", details)


class ScrapeTimeoutError(ExporterException):
    """The scrape did not finish within its time budget."""

    status_code = 504

    def __init__(self, timeout_seconds: float, details: Optional[Dict[str, Any]] = None):
        self.timeout_seconds = timeout_seconds
        super().__init__("SCRAPE_TIMEOUT", f"Scrape exceeded {timeout_seconds}s", details)


class MeasureParseError(ExporterException):
    """A measure value reported upstream is not numeric."""

    def __init__(self, metric: str, value: str, details: Optional[Dict[str, Any]] = None):
        self.metric = metric
        self.value = value
        super().__init__("MEASURE_PARSE_ERROR", f"Non-numeric value {value!r} for metric {metric}", details)


class CatalogRegistrationConflict(ExporterException):
    """Two gauges resolved to the same exposition name.

    Only a malformed metric catalog can cause this.
    """

    def __init__(self, name: str, details: Optional[Dict[str, Any]] = None):
        self.name = name
        super().__init__("CATALOG_CONFLICT", f"Gauge {name} is already registered", details)
