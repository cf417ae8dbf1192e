"""Tests for the CRM HTTP client."""

import json

import httpx
import pytest

from crmgate.auth import SECRET_KEY_HEADER
from crmgate.client import CRMClient, CRMClientError, MemorySessionStore, SessionState
from crmgate.common import Role
from crmgate.config import ClientConfig

CONFIG = ClientConfig(
    base_url="http://crm.test/api",
    session_path="unused.json",
    request_timeout=5.0,
)


class Recorder:
    """httpx handler that records requests and replays a canned response."""

    def __init__(self, response: httpx.Response) -> None:
        self.response = response
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.response


def make_client(
    handler: Recorder,
    credential: str | None = None,
) -> CRMClient:
    """Create a client over a mock transport."""
    store = MemorySessionStore(SessionState(credential=credential))
    return CRMClient(CONFIG, store, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
class TestRequest:
    """Credential injection and error mapping."""

    async def test_sends_stored_credential(self) -> None:
        """Test the stored key goes out in the secret key header."""
        handler = Recorder(httpx.Response(200, json=[]))

        async with make_client(handler, credential="222222") as client:
            await client.request("GET", "users")

        request = handler.requests[0]
        assert request.headers[SECRET_KEY_HEADER] == "222222"
        assert str(request.url) == "http://crm.test/api/users"

    async def test_no_credential_no_header(self) -> None:
        """Test logged out requests carry no key."""
        handler = Recorder(httpx.Response(200, json=[]))

        async with make_client(handler) as client:
            await client.request("GET", "/users")

        assert SECRET_KEY_HEADER not in handler.requests[0].headers

    async def test_error_body_becomes_client_error(self) -> None:
        """Test the server's error text and status are surfaced."""
        handler = Recorder(
            httpx.Response(403, json={"error": "Forbidden: admin access required."}),
        )

        async with make_client(handler, credential="k") as client:
            with pytest.raises(CRMClientError) as exc_info:
                await client.request("GET", "admin/users")

        assert exc_info.value.status_code == 403  # noqa: PLR2004
        assert exc_info.value.message == "Forbidden: admin access required."

    async def test_non_json_error(self) -> None:
        """Test an error without a JSON body still maps to CRMClientError."""
        handler = Recorder(httpx.Response(502, text="Bad Gateway"))

        async with make_client(handler, credential="k") as client:
            with pytest.raises(CRMClientError) as exc_info:
                await client.request("GET", "users")

        assert exc_info.value.status_code == 502  # noqa: PLR2004
        assert exc_info.value.message == "Bad Gateway"

    async def test_transport_error(self) -> None:
        """Test connection failures have no status code."""

        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        store = MemorySessionStore(SessionState(credential="k"))
        async with CRMClient(CONFIG, store, transport=httpx.MockTransport(refuse)) as client:
            with pytest.raises(CRMClientError) as exc_info:
                await client.request("GET", "users")

        assert exc_info.value.status_code is None


@pytest.mark.asyncio
class TestOperations:
    """The typed helpers."""

    async def test_fetch_user_bundle(self) -> None:
        """Test login posts the key and parses the bundle."""
        handler = Recorder(
            httpx.Response(
                200,
                json={"id": 2, "user_name": "Sam", "role": "sales_executive"},
            ),
        )

        async with make_client(handler) as client:
            bundle = await client.fetch_user_bundle("222222")

        request = handler.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/api/auth/login"
        assert json.loads(request.content) == {"secretKey": "222222"}
        assert bundle.role is Role.SALES_EXECUTIVE
        assert bundle.accounts == []

    async def test_fetch_by_ids(self) -> None:
        """Test ids are sent comma separated."""
        handler = Recorder(httpx.Response(200, json=[{"id": 1}, {"id": 4}]))

        async with make_client(handler, credential="k") as client:
            records = await client.fetch_by_ids("Accounts", [1, 4])

        assert records == [{"id": 1}, {"id": 4}]
        assert handler.requests[0].url.params["ids"] == "1,4"
        assert handler.requests[0].url.path == "/api/accounts"

    async def test_fetch_by_no_ids_skips_request(self) -> None:
        """Test an empty id list makes no network call."""
        handler = Recorder(httpx.Response(200, json=[]))

        async with make_client(handler, credential="k") as client:
            assert await client.fetch_by_ids("projects", []) == []

        assert handler.requests == []

    async def test_unknown_table(self) -> None:
        """Test only record tables are accepted."""
        handler = Recorder(httpx.Response(200, json=[]))

        async with make_client(handler, credential="k") as client:
            with pytest.raises(ValueError, match="Unknown record table"):
                await client.create_record("users", {})

        assert handler.requests == []

    async def test_update_record(self) -> None:
        """Test patches go to the record's own path."""
        handler = Recorder(httpx.Response(200, json={"id": 3, "status": "Done"}))

        async with make_client(handler, credential="k") as client:
            record = await client.update_record("tasks", 3, {"Status": "Done"})

        assert record["status"] == "Done"
        assert handler.requests[0].method == "PATCH"
        assert handler.requests[0].url.path == "/api/tasks/3"
