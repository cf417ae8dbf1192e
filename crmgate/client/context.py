"""Application context owning the client runtime's store, HTTP client and broker."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Self

from .api import CRMClient
from .refresh import RefreshBroker
from .session import FileSessionStore, SessionState, SessionStore

if TYPE_CHECKING:
    from types import TracebackType

    import httpx

    from crmgate.common import UserDataBundle
    from crmgate.config import ClientConfig

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)


class AppContext:
    """One client runtime: build it on start, close it on exit.

    **Example Usage:**

    .. code-block:: python

        async with AppContext(ClientConfig()) as context:
            await context.login("123456")
            context.broker.subscribe(on_bundle)
            await context.create_record("accounts", fields)
    """

    def __init__(
        self,
        config: ClientConfig,
        store: SessionStore | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Create the context.

        :param config: Client configuration
        :param store: Session store, a FileSessionStore at the configured path
            when omitted
        :param transport: Optional httpx transport, used by tests
        """
        self.config = config
        self.store = store if store is not None else FileSessionStore(config.session_path)
        self.client = CRMClient(config, self.store, transport=transport)
        self.broker = RefreshBroker(self.store, self.client.fetch_user_bundle)

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client. The persisted session is kept."""
        await self.client.aclose()

    @property
    def session(self) -> SessionState:
        """Snapshot of the persisted session."""
        return self.store.get()

    async def login(self, secret_key: str) -> UserDataBundle:
        """Authenticate with a secret key and persist the fresh session.

        :param secret_key: The user's secret key
        :return: The fetched User Data Bundle
        :raises CRMClientError: If the key is rejected or the API fails
        """
        bundle = await self.client.fetch_user_bundle(secret_key)
        self.store.clear()
        self.store.set(SessionState(credential=secret_key).with_bundle(bundle))
        LOGGER.info("Logged in as user %s (%s)", bundle.id, bundle.role)
        await self.broker.publish(bundle)
        return bundle

    def logout(self) -> None:
        """Forget the credential and every cached list."""
        self.store.clear()
        LOGGER.info("Logged out")

    async def create_record(
        self,
        table: str,
        fields: dict[str, Any],
        *,
        refresh: bool = True,
    ) -> dict:
        """Create a record, then refresh the cached id lists.

        :param table: One of accounts, projects, tasks, updates
        :param fields: Column values of the new record
        :param refresh: Whether to trigger the refresh broker afterwards
        :return: The created record
        """
        record = await self.client.create_record(table, fields)
        if refresh:
            await self.broker.refresh()
        return record

    async def update_record(
        self,
        table: str,
        record_id: int | str,
        fields: dict[str, Any],
        *,
        refresh: bool = True,
    ) -> dict:
        """Patch a record, then refresh the cached id lists."""
        record = await self.client.update_record(table, record_id, fields)
        if refresh:
            await self.broker.refresh()
        return record
