"""Tests for the refresh broker."""

import asyncio
import logging
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest

from crmgate.client import (
    FileSessionStore,
    MemorySessionStore,
    RefreshBroker,
    SessionState,
    SessionStore,
)
from crmgate.common import Role, UserDataBundle


def make_bundle(**overrides: object) -> UserDataBundle:
    """Build a bundle from wire-shaped data."""
    data = {"id": "u1", "role": "admin", "accounts": [{"id": "a1"}], "projects": []}
    data.update(overrides)
    return UserDataBundle.model_validate(data)


@pytest.fixture
def store() -> MemorySessionStore:
    """A store holding a logged in session with stale caches."""
    return MemorySessionStore(
        SessionState(credential="k1", account_ids=["old"], project_ids=["p0"]),
    )


@pytest.mark.asyncio
class TestRefresh:
    """Refreshing the cached lists."""

    async def test_no_credential_is_a_no_op(self) -> None:
        """Test nothing is fetched or published without a credential."""
        fetch = AsyncMock()
        subscriber = Mock()
        broker = RefreshBroker(MemorySessionStore(), fetch)
        broker.subscribe(subscriber)

        await broker.refresh()

        fetch.assert_not_awaited()
        subscriber.assert_not_called()

    async def test_stores_lists_and_publishes(self, store: MemorySessionStore) -> None:
        """Test a successful refresh replaces every list and notifies once."""
        bundle = make_bundle()
        fetch = AsyncMock(return_value=bundle)
        subscriber = Mock()
        broker = RefreshBroker(store, fetch)
        broker.subscribe(subscriber)

        await broker.refresh()

        fetch.assert_awaited_once_with("k1")
        subscriber.assert_called_once_with(bundle)
        state = store.get()
        assert state.account_ids == ["a1"]
        assert state.project_ids == []
        assert state.user_id == "u1"
        assert state.role is Role.ADMIN
        assert state.credential == "k1"

    async def test_publishes_unmodified_bundle(self, store: MemorySessionStore) -> None:
        """Test the subscriber gets the fetched object itself."""
        bundle = make_bundle()
        received = []
        broker = RefreshBroker(store, AsyncMock(return_value=bundle))
        broker.subscribe(received.append)

        await broker.refresh()

        assert len(received) == 1
        assert received[0] is bundle

    async def test_without_subscriber(self, store: MemorySessionStore) -> None:
        """Test storing still happens when nobody listens."""
        broker = RefreshBroker(store, AsyncMock(return_value=make_bundle()))

        await broker.refresh()

        assert store.get().account_ids == ["a1"]

    async def test_fetch_failure_keeps_state(
        self,
        store: MemorySessionStore,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Test a failed fetch neither raises nor touches state or subscriber."""
        subscriber = Mock()
        broker = RefreshBroker(store, AsyncMock(side_effect=ConnectionError("down")))
        broker.subscribe(subscriber)
        before = store.get()

        with caplog.at_level(logging.WARNING, logger="crmgate.client.refresh"):
            await broker.refresh()

        assert store.get() == before
        subscriber.assert_not_called()
        assert "down" in caplog.text

    async def test_undecodable_session_file(self, tmp_path: Path) -> None:
        """Test a broken session file makes refresh a no-op instead of raising."""
        path = tmp_path / "session.json"
        path.write_bytes(b'{"credential": "k\xff"}')
        fetch = AsyncMock()
        subscriber = Mock()
        broker = RefreshBroker(FileSessionStore(path), fetch)
        broker.subscribe(subscriber)

        await broker.refresh()

        fetch.assert_not_awaited()
        subscriber.assert_not_called()

    async def test_store_read_error_is_contained(
        self,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Test a store that fails to read does not fail the refresh."""
        failing = Mock(spec=SessionStore)
        failing.get.side_effect = PermissionError("denied")
        fetch = AsyncMock()
        broker = RefreshBroker(failing, fetch)

        with caplog.at_level(logging.ERROR, logger="crmgate.client.refresh"):
            await broker.refresh()

        fetch.assert_not_awaited()
        assert "session store could not be read" in caplog.text

    async def test_store_reread_error_is_contained(self) -> None:
        """Test a store that fails after the fetch keeps the subscriber quiet."""
        failing = Mock(spec=SessionStore)
        failing.get.side_effect = [SessionState(credential="k1"), OSError("gone")]
        subscriber = Mock()
        broker = RefreshBroker(failing, AsyncMock(return_value=make_bundle()))
        broker.subscribe(subscriber)

        await broker.refresh()

        failing.set.assert_not_called()
        subscriber.assert_not_called()

    async def test_credential_change_discards_result(
        self,
        store: MemorySessionStore,
    ) -> None:
        """Test a logout during the fetch is not overwritten."""
        subscriber = Mock()

        async def fetch(_: str) -> UserDataBundle:
            store.clear()
            return make_bundle()

        broker = RefreshBroker(store, fetch)
        broker.subscribe(subscriber)

        await broker.refresh()

        assert store.get() == SessionState()
        subscriber.assert_not_called()

    async def test_last_resolved_refresh_wins(self, store: MemorySessionStore) -> None:
        """Test overlapping refreshes leave the later-arriving bundle stored."""
        first_release = asyncio.Event()
        second_release = asyncio.Event()
        bundles = iter(
            [
                (first_release, make_bundle(accounts=[{"id": "first"}])),
                (second_release, make_bundle(accounts=[{"id": "second"}])),
            ],
        )

        async def fetch(_: str) -> UserDataBundle:
            release, bundle = next(bundles)
            await release.wait()
            return bundle

        received = []
        broker = RefreshBroker(store, fetch)
        broker.subscribe(lambda bundle: received.append(bundle.accounts[0].id))

        first = asyncio.create_task(broker.refresh())
        second = asyncio.create_task(broker.refresh())
        await asyncio.sleep(0)

        second_release.set()
        await second
        first_release.set()
        await first

        assert received == ["second", "first"]
        assert store.get().account_ids == ["first"]


@pytest.mark.asyncio
class TestSubscribers:
    """The single subscriber slot."""

    async def test_last_subscribe_wins(self, store: MemorySessionStore) -> None:
        """Test only the most recent subscriber is notified."""
        first = Mock()
        second = Mock()
        broker = RefreshBroker(store, AsyncMock(return_value=make_bundle()))
        broker.subscribe(first)
        broker.subscribe(second)

        await broker.refresh()

        first.assert_not_called()
        second.assert_called_once()

    async def test_unsubscribe(self, store: MemorySessionStore) -> None:
        """Test an unsubscribed callback is not notified."""
        subscriber = Mock()
        broker = RefreshBroker(store, AsyncMock(return_value=make_bundle()))
        unsubscribe = broker.subscribe(subscriber)

        unsubscribe()
        await broker.refresh()

        subscriber.assert_not_called()
        assert broker.subscriber is None

    async def test_stale_unsubscribe_keeps_replacement(
        self,
        store: MemorySessionStore,
    ) -> None:
        """Test unsubscribing a replaced callback leaves the new one in place."""
        replacement = Mock()
        broker = RefreshBroker(store, AsyncMock(return_value=make_bundle()))
        unsubscribe_old = broker.subscribe(Mock())
        broker.subscribe(replacement)

        unsubscribe_old()

        assert broker.subscriber is replacement

    async def test_async_subscriber_is_awaited(
        self,
        store: MemorySessionStore,
    ) -> None:
        """Test coroutine subscribers run to completion."""
        subscriber = AsyncMock()
        broker = RefreshBroker(store, AsyncMock(return_value=make_bundle()))
        broker.subscribe(subscriber)

        await broker.refresh()

        subscriber.assert_awaited_once()

    async def test_subscriber_error_is_contained(
        self,
        store: MemorySessionStore,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Test a failing subscriber does not fail the refresh."""
        broker = RefreshBroker(store, AsyncMock(return_value=make_bundle()))
        broker.subscribe(Mock(side_effect=RuntimeError("boom")))

        with caplog.at_level(logging.ERROR, logger="crmgate.client.refresh"):
            await broker.refresh()

        assert store.get().account_ids == ["a1"]
        assert "Refresh subscriber failed" in caplog.text
