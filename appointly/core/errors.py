"""
Booking engine error taxonomy plus an aggregator that keeps repeated
errors from flooding the logs.
"""
import hashlib
import time
from enum import Enum
from typing import Any, Dict, Optional

import structlog

from appointly.core.config import settings

logger = structlog.get_logger(__name__)


class BookingError(Exception):
    """Base class for every error the engine surfaces to callers."""

    status_code = 500
    code = "booking_error"

    def __init__(self, message: str, *, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message, "code": self.code}
        if self.field:
            body["field"] = self.field
        return body


class ValidationError(BookingError):
    """Malformed or missing request field. Never retried."""

    status_code = 400
    code = "validation_error"


class InvalidTimezoneError(ValidationError):
    code = "invalid_timezone"

    def __init__(self, name: str, *, field: Optional[str] = "timezone"):
        super().__init__(f"Invalid timezone: {name}", field=field)
        self.timezone = name


class TokenRequiredError(ValidationError):
    code = "token_required"

    def __init__(self):
        super().__init__("Access token is required", field="token")


class NotFoundError(BookingError):
    """Referenced record is absent or belongs to another tenant."""

    status_code = 404
    code = "not_found"


class AccessDenied(NotFoundError):
    """Token mismatch. Rendered exactly like NotFoundError."""


class ConflictError(BookingError):
    """Requested interval is no longer free on its resource."""

    status_code = 409
    code = "slot_unavailable"


class UpstreamError(BookingError):
    """Payment provider (or other downstream) call failed."""

    status_code = 502
    code = "upstream_error"


class ConfigurationError(BookingError):
    """Stored configuration (e.g. a tenant timezone) is unusable."""

    status_code = 500
    code = "configuration_error"


class ErrorSeverity(Enum):
    LOW = "low"           # validation, not found, conflicts
    MEDIUM = "medium"     # upstream failures, timeouts
    HIGH = "high"         # configuration problems, database errors
    CRITICAL = "critical"


class ErrorPattern:
    """Track error patterns to reduce duplicate logging."""

    def __init__(self, error: Exception, context: Dict[str, Any]):
        self.error_type = type(error).__name__
        self.message = str(error)[:100]
        # route template, not the raw path with slugs and ids in it
        self.endpoint = context.get('endpoint', '')
        self.signature = self._signature(error, context)
        self.fingerprint = self._generate_fingerprint()
        self.first_seen = time.time()
        self.last_seen = self.first_seen
        self.count = 1

    @staticmethod
    def _signature(error: Exception, context: Dict[str, Any]) -> str:
        # Engine and request errors group by code and field; their messages can echo client input.
        if isinstance(error, BookingError):
            return f"{error.code}:{error.field or ''}"
        if 'code' in context:
            return f"{context['code']}:{context.get('field') or ''}"
        return str(error)[:100]

    def _generate_fingerprint(self) -> str:
        content = f"{self.error_type}:{self.signature}:{self.endpoint}"
        return hashlib.md5(content.encode(), usedforsecurity=False).hexdigest()[:8]

    def update(self):
        self.last_seen = time.time()
        self.count += 1


class ErrorAggregator:
    """Aggregate and deduplicate errors before they reach the log."""

    def __init__(self, log_threshold: int = 10, time_window: int = 300, max_patterns: int = 500):
        self.log_threshold = log_threshold
        self.time_window = time_window
        self.max_patterns = max_patterns
        self.patterns: Dict[str, ErrorPattern] = {}

    def _determine_severity(self, error: Exception) -> ErrorSeverity:
        if isinstance(error, ConfigurationError):
            return ErrorSeverity.HIGH
        if isinstance(error, UpstreamError):
            return ErrorSeverity.MEDIUM
        if isinstance(error, BookingError):
            return ErrorSeverity.LOW
        if "timeout" in str(error).lower():
            return ErrorSeverity.MEDIUM
        return ErrorSeverity.HIGH

    def should_log(self, pattern: ErrorPattern, severity: ErrorSeverity) -> bool:
        if severity in (ErrorSeverity.HIGH, ErrorSeverity.CRITICAL):
            return True
        if pattern.count == 1:
            return True
        if severity == ErrorSeverity.MEDIUM:
            return pattern.count % self.log_threshold == 0
        # Low severity: every 50th occurrence with the default threshold
        return pattern.count % (self.log_threshold * 5) == 0

    def log_error(self, error: Exception, context: Optional[Dict[str, Any]] = None,
                  severity: Optional[ErrorSeverity] = None) -> str:
        """Log error with deduplication and frequency control."""
        context = context or {}
        if severity is None:
            severity = self._determine_severity(error)

        pattern = ErrorPattern(error, context)
        existing = self.patterns.get(pattern.fingerprint)
        if existing:
            existing.update()
            pattern = existing
        else:
            if len(self.patterns) >= self.max_patterns:
                self._make_room()
            self.patterns[pattern.fingerprint] = pattern

        if self.should_log(pattern, severity):
            logger.error(
                "aggregated_error",
                error_hash=pattern.fingerprint,
                error_type=pattern.error_type,
                message=str(error)[:200],
                count=pattern.count,
                severity=severity.value,
                **context
            )

        return pattern.fingerprint

    def get_error_summary(self) -> Dict[str, Any]:
        now = time.time()
        recent = [p for p in self.patterns.values() if now - p.last_seen < self.time_window]
        top = sorted(recent, key=lambda p: p.count, reverse=True)[:5]
        return {
            "total_unique_errors": len(recent),
            "total_error_count": sum(p.count for p in recent),
            "top_errors": [
                {"fingerprint": p.fingerprint, "type": p.error_type,
                 "message": p.message, "count": p.count}
                for p in top
            ],
        }

    def cleanup_old_patterns(self):
        cutoff = time.time() - (self.time_window * 10)
        stale = [fp for fp, p in self.patterns.items() if p.last_seen < cutoff]
        for fp in stale:
            del self.patterns[fp]
        if stale:
            logger.info("error_cleanup", removed_patterns=len(stale))

    def _make_room(self):
        """Drop stale patterns, then the least recently seen, to stay under max_patterns."""
        self.cleanup_old_patterns()
        overflow = len(self.patterns) - self.max_patterns + 1
        if overflow > 0:
            oldest = sorted(self.patterns.values(), key=lambda p: p.last_seen)[:overflow]
            for p in oldest:
                del self.patterns[p.fingerprint]


# Global error aggregator instance
error_aggregator = ErrorAggregator(log_threshold=settings.ERROR_AGGREGATION_THRESHOLD)


def log_error(error: Exception, context: Optional[Dict[str, Any]] = None,
              severity: Optional[ErrorSeverity] = None) -> str:
    """Convenience function to log errors through the global aggregator."""
    return error_aggregator.log_error(error, context, severity)
