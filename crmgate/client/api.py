"""Async HTTP client for the CRM API."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Self

import httpx

from crmgate.auth import SECRET_KEY_HEADER
from crmgate.common import UserDataBundle

if TYPE_CHECKING:
    from collections.abc import Iterable
    from types import TracebackType

    from crmgate.config import ClientConfig

    from .session import SessionStore

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)

RECORD_TABLES = frozenset({"accounts", "projects", "tasks", "updates"})


class CRMClientError(Exception):
    """Raised when the API answers with an error or cannot be reached.

    :param status_code: HTTP status, None when no response was received
    :param message: The server's ``error`` text or the transport error
    """

    def __init__(self, status_code: int | None, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict) and "error" in body:
        return str(body["error"])
    return response.reason_phrase


def _table(table: str) -> str:
    table = table.lower()
    if table not in RECORD_TABLES:
        msg = f"Unknown record table: {table}"
        raise ValueError(msg)
    return table


class CRMClient:
    """Thin wrapper around ``httpx.AsyncClient``.

    The credential is read from the session store on every request, so a
    login or logout takes effect on the next call.
    """

    def __init__(
        self,
        config: ClientConfig,
        store: SessionStore,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.store = store
        self._client = httpx.AsyncClient(
            base_url=config.base_url.rstrip("/") + "/",
            timeout=config.request_timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying connection pool."""
        await self._client.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Send a request with the stored credential and return the JSON body.

        :raises CRMClientError: On transport errors and non-2xx responses
        """
        headers = {}
        credential = self.store.get().credential
        if credential:
            headers[SECRET_KEY_HEADER] = credential

        try:
            response = await self._client.request(
                method,
                path.lstrip("/"),
                json=json,
                params=params,
                headers=headers,
            )
        except httpx.HTTPError as e:
            LOGGER.error("Request %s /%s failed: %s", method, path, e)
            raise CRMClientError(None, str(e)) from e

        if response.is_error:
            message = _error_message(response)
            LOGGER.error(
                "Request %s /%s returned %s: %s",
                method,
                path,
                response.status_code,
                message,
            )
            raise CRMClientError(response.status_code, message)

        return response.json()

    async def fetch_user_bundle(self, secret_key: str) -> UserDataBundle:
        """Fetch the User Data Bundle for a secret key."""
        data = await self.request("POST", "auth/login", json={"secretKey": secret_key})
        return UserDataBundle.model_validate(data)

    async def fetch_by_ids(self, table: str, ids: Iterable[int | str]) -> list[dict]:
        """Fetch records of one table by id. No ids means no request."""
        id_list = [str(record_id) for record_id in ids]
        if not id_list:
            return []
        return await self.request(
            "GET",
            _table(table),
            params={"ids": ",".join(id_list)},
        )

    async def create_record(self, table: str, fields: dict[str, Any]) -> dict:
        """Create a record and return it as stored."""
        return await self.request("POST", _table(table), json=fields)

    async def update_record(
        self,
        table: str,
        record_id: int | str,
        fields: dict[str, Any],
    ) -> dict:
        """Patch a record and return it as stored."""
        return await self.request(
            "PATCH",
            f"{_table(table)}/{record_id}",
            json=fields,
        )
