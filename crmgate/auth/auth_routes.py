"""Login route returning the User Data Bundle."""

import logging

from fastapi import APIRouter

from crmgate.common import UserDataBundle
from crmgate.errors import BadRequest, NotFound, UpstreamFailure

from .models import LoginRequest
from .queries import UserQueries

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)


async def _login(user_queries: UserQueries, body: LoginRequest) -> UserDataBundle:
    if not body.secret_key:
        raise BadRequest("Secret key is required.")

    try:
        user = await user_queries.get_user_by_secret_key(body.secret_key)
        if user is None:
            LOGGER.info("Login rejected: unknown secret key")
            raise NotFound("User not found.")
        bundle = await user_queries.get_user_data_bundle(user)
    except NotFound:
        raise
    except Exception as e:
        LOGGER.error("Login failed: %s", type(e).__name__)
        raise UpstreamFailure("Login failed.", e) from e

    LOGGER.info("User %s logged in as %s", user.id, user.role)
    return bundle


def configure_auth_router(router: APIRouter, user_queries: UserQueries) -> APIRouter:
    """Configure the authentication router.

    :param router: The APIRouter to configure
    :param user_queries: The UserQueries instance for credential lookups
    :return: The configured APIRouter
    """

    @router.post("/login", response_model=UserDataBundle)
    async def login(body: LoginRequest) -> UserDataBundle:
        return await _login(user_queries, body)

    return router
