#!/usr/bin/env python3
"""
Log processors: credentials and contact details stay out of the log.
"""

import sys
import os

import pytest

# Add app to Python path for testing
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from appointly.core.logging import (
    RedactingProcessor,
    RequestContextProcessor,
    bind_tenant,
    mask_email,
    request_context,
    request_id,
)


@pytest.mark.unit
class TestRedaction:

    def test_tokens_redacted(self):
        event = RedactingProcessor()(None, "info", {"event": "x", "token": "abc", "reschedule_token": "def"})
        assert event["token"] == "[redacted]"
        assert event["reschedule_token"] == "[redacted]"

    def test_query_params_token_redacted(self):
        event = RedactingProcessor()(None, "info", {"query_params": {"token": "abc", "serviceId": "3"}})
        assert event["query_params"] == {"token": "[redacted]", "serviceId": "3"}

    def test_email_masked(self):
        event = RedactingProcessor()(None, "info", {"customer_email": "jane@example.com"})
        assert event["customer_email"] == "j***@example.com"
        assert mask_email("nonsense") == "***"

    def test_free_text_truncated(self):
        event = RedactingProcessor(max_length=10)(None, "info", {"error": "x" * 50, "event": "y" * 50})
        assert event["error"] == "x" * 10
        assert event["event"] == "y" * 50


@pytest.mark.unit
class TestRequestContext:

    def test_correlation_and_tenant_attached(self):
        id_token = request_id.set("abc12345")
        ctx_token = request_context.set({"endpoint": "/book"})
        try:
            bind_tenant(tenant_id=7, slug="sunrise-spa")
            event = RequestContextProcessor()(None, "info", {"event": "booking_created"})
        finally:
            request_context.reset(ctx_token)
            request_id.reset(id_token)

        assert event["correlation_id"] == "abc12345"
        assert event["tenant_id"] == 7
        assert event["tenant_slug"] == "sunrise-spa"
        assert event["endpoint"] == "/book"

    def test_explicit_fields_win(self):
        ctx_token = request_context.set({"tenant_id": 7})
        try:
            event = RequestContextProcessor()(None, "info", {"tenant_id": 9})
        finally:
            request_context.reset(ctx_token)
        assert event["tenant_id"] == 9
