"""Data refresh broker: keeps the cached id lists in step with the server.

**Usage:**

.. code-block:: python

    broker = RefreshBroker(store, client.fetch_user_bundle)
    unsubscribe = broker.subscribe(lambda bundle: print(bundle.accounts))
    await client.create_record("accounts", fields)
    await broker.refresh()

``refresh()`` is best effort. It never raises: a missing credential makes it a
no-op, and a failed fetch leaves the stored state as it was. Overlapping calls
run independently and the last bundle to arrive is the one that stays stored.
"""

from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from crmgate.common import UserDataBundle

    from .session import SessionStore

    Subscriber = Callable[[UserDataBundle], Awaitable[None] | None]
    BundleFetcher = Callable[[str], Awaitable[UserDataBundle]]

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)


class RefreshBroker:
    """Single-subscriber observer that re-fetches and publishes user bundles."""

    def __init__(self, store: SessionStore, fetch_bundle: BundleFetcher) -> None:
        """Create a broker.

        :param store: Session store holding the credential and the caches
        :param fetch_bundle: Coroutine function fetching a bundle by credential
        """
        self.store = store
        self.fetch_bundle = fetch_bundle
        self._subscriber: Subscriber | None = None

    @property
    def subscriber(self) -> Subscriber | None:
        """The currently registered subscriber, if any."""
        return self._subscriber

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register the subscriber, replacing any previous one.

        :param subscriber: Called with each fresh bundle, may be async
        :return: A function removing this subscriber if it is still registered
        """
        if self._subscriber is not None and self._subscriber is not subscriber:
            LOGGER.debug("Replacing existing refresh subscriber")
        self._subscriber = subscriber

        def unsubscribe() -> None:
            if self._subscriber is subscriber:
                self._subscriber = None

        return unsubscribe

    async def publish(self, bundle: UserDataBundle) -> None:
        """Hand a bundle to the subscriber. Subscriber errors are logged only."""
        subscriber = self._subscriber
        if subscriber is None:
            return
        try:
            result = subscriber(bundle)
            if inspect.isawaitable(result):
                await result
        except Exception:
            LOGGER.exception("Refresh subscriber failed")

    async def refresh(self) -> None:
        """Re-fetch the bundle for the stored credential and publish it."""
        try:
            credential = self.store.get().credential
        except Exception:
            LOGGER.exception("Refresh skipped: session store could not be read")
            return
        if not credential:
            LOGGER.debug("Refresh skipped: no credential stored")
            return

        try:
            bundle = await self.fetch_bundle(credential)
        except Exception as e:
            LOGGER.warning("Refresh failed, keeping cached data: %s", e)
            return

        try:
            # Re-read so a concurrent logout or login is not overwritten with
            # the previous user's data.
            state = self.store.get()
            if state.credential != credential:
                LOGGER.debug("Refresh discarded: credential changed during fetch")
                return
            self.store.set(state.with_bundle(bundle))
        except Exception:
            LOGGER.exception("Refresh could not persist the fetched bundle")
            return

        LOGGER.debug("Refreshed cached data for user %s", bundle.id)
        await self.publish(bundle)
