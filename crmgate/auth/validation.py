"""FastAPI dependency validators for authentication and authorization."""

import logging
from collections.abc import Awaitable, Callable
from typing import Annotated

from fastapi import Request, Security
from fastapi.security import APIKeyHeader

from crmgate.common import AuthContext, Role
from crmgate.errors import Forbidden, Unauthenticated, UpstreamFailure

from .queries import UserQueries

SECRET_KEY_HEADER = "x-secret-key"

MISSING_KEY_MESSAGE = "Unauthorized: No secret key provided."
UNKNOWN_KEY_MESSAGE = "Unauthorized: Invalid secret key."
LOOKUP_FAILED_MESSAGE = "Authentication failed."

secret_key_header = APIKeyHeader(name=SECRET_KEY_HEADER, auto_error=False)

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)


def _log_decision(path: str, role: Role | None, outcome: str) -> None:
    LOGGER.info(
        "auth path=%s role=%s outcome=%s",
        path,
        role.value if role else "-",
        outcome,
    )


class Validate:
    """Holds the secret-key gate dependencies for FastAPI routes."""

    def __init__(self, user_queries: UserQueries) -> None:
        """Create a new validator instance.

        :param user_queries: Repository used to resolve secret keys
        """
        self.user_queries = user_queries

    async def authorize(
        self,
        request: Request,
        secret_key: str | None,
        required_role: Role | None,
    ) -> AuthContext:
        """Resolve a secret key and check it against a required role.

        :param request: The incoming request, tagged on success
        :param secret_key: Credential from the request header
        :param required_role: Role the route requires, None for any user
        :return: The resolved identity
        :raises Unauthenticated: If the key is missing or unknown
        :raises Forbidden: If the user's role is not the required role
        :raises UpstreamFailure: If the lookup itself fails
        """
        path = request.url.path

        if not secret_key:
            _log_decision(path, None, "missing")
            raise Unauthenticated(MISSING_KEY_MESSAGE)

        try:
            user = await self.user_queries.get_user_by_secret_key(secret_key)
        except Exception as e:
            LOGGER.error(
                "auth path=%s role=- outcome=error error=%s",
                path,
                type(e).__name__,
            )
            raise UpstreamFailure(LOOKUP_FAILED_MESSAGE, e) from e

        if user is None:
            _log_decision(path, None, "unknown")
            raise Unauthenticated(UNKNOWN_KEY_MESSAGE)

        if required_role is not None and not user.role.check_permission(required_role):
            _log_decision(path, user.role, "forbidden")
            raise Forbidden(required_role.value)

        context = AuthContext(id=user.id, role=user.role)
        request.state.auth = context
        _log_decision(path, user.role, "allowed")
        return context

    async def user(
        self,
        request: Request,
        secret_key: Annotated[str | None, Security(secret_key_header)],
    ) -> AuthContext:
        """Gate a route behind any provisioned user."""
        return await self.authorize(request, secret_key, None)

    def role(self, required_role: Role) -> Callable[..., Awaitable[AuthContext]]:
        """Return a dependency that gates a route behind one role."""

        async def validator(
            request: Request,
            secret_key: Annotated[str | None, Security(secret_key_header)],
        ) -> AuthContext:
            return await self.authorize(request, secret_key, required_role)

        return validator
