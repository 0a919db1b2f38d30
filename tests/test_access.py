#!/usr/bin/env python3
"""
Tests for token-gated appointment access.
"""

import sys
import os

import pytest

# Add app to Python path for testing
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from appointly.core.errors import AccessDenied, TokenRequiredError
from appointly.services.access import resolve_by_token


async def _booked(catalog, book):
    outcome = await book(catalog.spa, catalog.haircut, "2024-03-11T10:00:00", "2024-03-11T10:30:00",
                         staff_id=catalog.alice)
    return outcome.appointment


@pytest.mark.essential
class TestTokenAccess:

    @pytest.mark.asyncio
    async def test_valid_token(self, db, catalog, book):
        appt = await _booked(catalog, book)
        found = await resolve_by_token(db, catalog.spa, appt.id, appt.reschedule_token)
        assert found.id == appt.id
        assert found.service.name == "Haircut"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("token", [None, "", "   "])
    async def test_missing_token(self, db, catalog, book, token):
        appt = await _booked(catalog, book)
        with pytest.raises(TokenRequiredError) as exc:
            await resolve_by_token(db, catalog.spa, appt.id, token)
        assert exc.value.status_code == 400
        assert exc.value.code == "token_required"

    @pytest.mark.asyncio
    async def test_wrong_token_and_unknown_id_look_the_same(self, db, catalog, book):
        appt = await _booked(catalog, book)

        with pytest.raises(AccessDenied) as wrong:
            await resolve_by_token(db, catalog.spa, appt.id, "0" * 64)
        with pytest.raises(AccessDenied) as unknown:
            await resolve_by_token(db, catalog.spa, appt.id + 1000, appt.reschedule_token)

        assert wrong.value.to_dict() == unknown.value.to_dict()
        assert wrong.value.status_code == unknown.value.status_code == 404

    @pytest.mark.asyncio
    async def test_token_does_not_cross_tenants(self, db, catalog, book):
        appt = await _booked(catalog, book)
        with pytest.raises(AccessDenied):
            await resolve_by_token(db, catalog.dental, appt.id, appt.reschedule_token)

    @pytest.mark.asyncio
    async def test_token_of_another_appointment(self, db, catalog, book):
        first = await _booked(catalog, book)
        second = (await book(catalog.spa, catalog.haircut, "2024-03-11T11:00:00", "2024-03-11T11:30:00",
                             staff_id=catalog.alice)).appointment
        with pytest.raises(AccessDenied):
            await resolve_by_token(db, catalog.spa, first.id, second.reschedule_token)
