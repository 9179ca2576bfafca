"""
Unit tests for the welcome gate.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from shared.errors import ProfileStoreError, WelcomeGateError
from service_access.app.profiles.models import parse_profile
from service_access.app.profiles.store import InMemoryProfileStore
from service_access.app.welcome.gate import WelcomeGate


class TestWelcomeGate:
    """Test cases for WelcomeGate."""

    @pytest.fixture
    def row(self, factory):
        return factory.create_profile_row(
            profile_id="tenant-1",
            plan_type="Free",
            preferences={"cookiesAccepted": True},
        )

    @pytest.fixture
    def store(self, row):
        return InMemoryProfileStore([row])

    def test_should_show_for_new_tenant(self, row):
        """Test that the gate shows until terms are accepted."""
        assert WelcomeGate.should_show(parse_profile(row)) is True

    def test_should_not_show_without_profile(self):
        """Test that there is no gate without a profile."""
        assert WelcomeGate.should_show(None) is False

    async def test_accept_persists_preferences(self, store, row):
        """Test that acceptance is stored and the gate closes."""
        gate = WelcomeGate(store)

        updated = await gate.accept(parse_profile(row), privacy_accepted=True)

        preferences = updated.restaurant_profile.user_preferences
        assert preferences.terms_accepted is True
        assert preferences.privacy_accepted is True
        assert preferences.welcome_modal_shown is True
        assert preferences.dont_show_welcome_again is False
        assert gate.should_show(updated) is False

        stored = store.get_row("tenant-1")["settings"]["restaurantProfile"]
        assert stored["planType"] == "Free"
        assert stored["userPreferences"]["termsAccepted"] is True

    async def test_dont_show_again_closes_gate(self, store, row):
        """Test that opting out closes the gate without terms."""
        gate = WelcomeGate(store)

        updated = await gate.accept(parse_profile(row), terms_accepted=False, dont_show_again=True)

        assert gate.should_show(updated) is False

    async def test_accept_is_idempotent(self, store, row):
        """Test that a second acceptance changes nothing."""
        gate = WelcomeGate(store)

        first = await gate.accept(parse_profile(row))
        second = await gate.accept(first)

        assert first.restaurant_profile == second.restaurant_profile

    async def test_failed_write_keeps_gate_open(self, row):
        """Test that an unconfirmed write surfaces as an error."""
        store = MagicMock()
        store.update_profile = AsyncMock(side_effect=ProfileStoreError("timeout"))
        gate = WelcomeGate(store)
        profile = parse_profile(row)

        with pytest.raises(WelcomeGateError):
            await gate.accept(profile)

        assert gate.should_show(profile) is True
