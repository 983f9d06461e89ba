"""Tests for the one-session-per-identity registry."""

import pytest

from chatrelay import ConnectionRegistry

pytestmark = pytest.mark.anyio


class TestConnectionRegistry:
    async def test_first_session_is_accepted(self) -> None:
        registry = ConnectionRegistry()

        assert await registry.register_if_absent("10.0.0.1", "s1")
        assert await registry.session_for("10.0.0.1") == "s1"

    async def test_second_session_is_rejected(self) -> None:
        registry = ConnectionRegistry()
        await registry.register_if_absent("10.0.0.1", "s1")

        assert not await registry.register_if_absent("10.0.0.1", "s2")
        assert await registry.session_for("10.0.0.1") == "s1"

    async def test_distinct_identities_coexist(self) -> None:
        registry = ConnectionRegistry()

        assert await registry.register_if_absent("10.0.0.1", "s1")
        assert await registry.register_if_absent("10.0.0.2", "s2")
        assert await registry.count() == 2

    async def test_unregister_frees_identity(self) -> None:
        registry = ConnectionRegistry()
        await registry.register_if_absent("10.0.0.1", "s1")

        assert await registry.unregister("10.0.0.1", "s1")
        assert await registry.register_if_absent("10.0.0.1", "s2")

    async def test_stale_unregister_keeps_newer_session(self) -> None:
        registry = ConnectionRegistry()
        await registry.register_if_absent("10.0.0.1", "s1")
        await registry.unregister("10.0.0.1", "s1")
        await registry.register_if_absent("10.0.0.1", "s2")

        assert not await registry.unregister("10.0.0.1", "s1")
        assert await registry.session_for("10.0.0.1") == "s2"
