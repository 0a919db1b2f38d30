"""
Structured logging for the booking engine.

Every line carries the request's correlation id and, once a route has
resolved it, the tenant. Reschedule tokens are credentials and never reach
the log; customer e-mails are masked.
"""
import logging
import time
import uuid
from contextvars import ContextVar
from typing import Any, Dict, Optional

import structlog
from fastapi import Request

# Per-request context
request_id: ContextVar[str] = ContextVar('request_id', default="")
request_context: ContextVar[Dict[str, Any]] = ContextVar('request_context', default={})

SECRET_KEYS = frozenset({'token', 'reschedule_token', 'api_key', 'x-api-key', 'authorization'})
EMAIL_KEYS = frozenset({'email', 'customer_email'})
FREE_TEXT_KEYS = ('error', 'notes', 'reason', 'body')


def mask_email(value: str) -> str:
    local, sep, domain = value.partition('@')
    if not sep:
        return '***'
    return f"{local[:1]}***@{domain}"


class RedactingProcessor:
    """Hide credentials, mask e-mails, and cap free-text fields at max_length."""

    def __init__(self, max_length: int = 200):
        self.max_length = max_length

    def __call__(self, logger, method_name, event_dict):
        for key in list(event_dict):
            value = event_dict[key]
            if value is None:
                continue
            lowered = key.lower()
            if lowered in SECRET_KEYS:
                event_dict[key] = '[redacted]'
            elif lowered in EMAIL_KEYS:
                event_dict[key] = mask_email(str(value))
            elif lowered == 'query_params' and isinstance(value, dict):
                event_dict[key] = {
                    k: ('[redacted]' if k.lower() in SECRET_KEYS else v) for k, v in value.items()
                }
            elif lowered in FREE_TEXT_KEYS:
                event_dict[key] = str(value)[:self.max_length]
        return event_dict


class RequestContextProcessor:
    """Attach correlation id, route and tenant to every event."""

    def __call__(self, logger, method_name, event_dict):
        correlation_id = request_id.get("")
        if correlation_id:
            event_dict['correlation_id'] = correlation_id
        for key, value in request_context.get({}).items():
            event_dict.setdefault(key, value)
        return event_dict


def setup_logging(debug: bool = False, max_log_length: int = 200, level: str = "INFO"):
    """Configure structlog once, at application startup."""
    log_level = logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO)

    processors = [
        structlog.stdlib.filter_by_level,
        RequestContextProcessor(),
        RedactingProcessor(max_length=max_log_length),
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
    ]
    processors.append(structlog.dev.ConsoleRenderer() if debug else structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(level=log_level, format="%(message)s")
    # SQL echo belongs to SQLAlchemy's own switch, not LOG_LEVEL
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str = __name__):
    return structlog.get_logger(name)


def bind_tenant(*, tenant_id: Optional[int] = None, slug: Optional[str] = None) -> None:
    """Called by the route dependencies once the tenant is known."""
    context = dict(request_context.get({}))
    if tenant_id is not None:
        context['tenant_id'] = tenant_id
    if slug:
        context['tenant_slug'] = slug
    request_context.set(context)


class LoggingMiddleware:
    """HTTP middleware: correlation id per request, plus access logging."""

    def __init__(self, log_requests: bool = False, log_responses: bool = False,
                 slow_threshold: float = 2.0):
        self.log_requests = log_requests
        self.log_responses = log_responses
        self.slow_threshold = slow_threshold
        self.logger = get_logger("appointly.http")

    async def __call__(self, request: Request, call_next):
        correlation_id = request.headers.get("X-Correlation-ID") or uuid.uuid4().hex[:8]
        id_token = request_id.set(correlation_id)
        ctx_token = request_context.set({'endpoint': request.url.path, 'method': request.method})
        request.state.correlation_id = correlation_id
        started = time.perf_counter()

        if self.log_requests:
            self.logger.info("request_start", query_params=dict(request.query_params))

        try:
            response = await call_next(request)
        except Exception as e:
            self.logger.error(
                "request_error",
                error=str(e),
                error_type=type(e).__name__,
                duration=round(time.perf_counter() - started, 3),
            )
            raise
        else:
            duration = time.perf_counter() - started
            slow = duration > self.slow_threshold
            if self.log_responses or slow or response.status_code >= 400:
                log = self.logger.warning if response.status_code >= 500 or slow else self.logger.info
                log("request_complete", status_code=response.status_code, duration=round(duration, 3), slow=slow)
            response.headers["X-Correlation-ID"] = correlation_id
            return response
        finally:
            request_context.reset(ctx_token)
            request_id.reset(id_token)
