"""Admin-only listing and detail routes."""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends

from crmgate.auth import UserQueries, Validate
from crmgate.common import AuthContext, Role
from crmgate.errors import NotFound

from .helpers import upstream_errors
from .queries import RecordQueries

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)


def configure_admin_router(
    router: APIRouter,
    user_queries: UserQueries,
    record_queries: RecordQueries,
    validate: Validate,
) -> APIRouter:
    """Configure the admin router. Every route requires the admin role.

    :param router: The APIRouter to configure
    :param user_queries: Repository for user lookups
    :param record_queries: Repository for CRM records
    :param validate: The Validate instance gating the routes
    :return: The configured APIRouter
    """
    admin = Annotated[AuthContext, Depends(validate.role(Role.ADMIN))]

    @router.get("/users")
    async def list_users(_: admin) -> list[dict[str, Any]]:
        with upstream_errors("Failed to fetch admin users."):
            return await user_queries.list_users(include_keys=True)

    @router.get("/users/{user_id}")
    async def get_user_detail(user_id: int, _: admin) -> dict[str, Any]:
        with upstream_errors("Failed to fetch user details."):
            user = await user_queries.get_user(user_id)
            if user is None:
                raise NotFound("User not found.")
            accounts = await record_queries.list_accounts(owner_id=user_id)
        return {"user": user, "accounts": accounts}

    @router.get("/accounts")
    async def list_accounts(
        _: admin,
        ownerId: int | None = None,  # noqa: N803
    ) -> list[dict[str, Any]]:
        with upstream_errors("Failed to fetch admin accounts."):
            return await record_queries.list_accounts(owner_id=ownerId)

    @router.get("/accounts/{account_id}")
    async def get_account_detail(account_id: int, _: admin) -> dict[str, Any]:
        with upstream_errors("Failed to fetch account details."):
            account = await record_queries.get_account(account_id)
            if account is None:
                raise NotFound("Account not found.")
            projects = await record_queries.list_projects(account_id=account_id)
        return {"account": account, "projects": projects}

    @router.get("/projects")
    async def list_projects(  # noqa: PLR0913
        _: admin,
        search: str | None = None,
        status: str | None = None,
        ownerId: int | None = None,  # noqa: N803
        accountId: int | None = None,  # noqa: N803
    ) -> list[dict[str, Any]]:
        with upstream_errors("Failed to fetch admin projects."):
            return await record_queries.list_projects(
                search=search,
                status=status,
                owner_id=ownerId,
                account_id=accountId,
            )

    @router.get("/projects/{project_id}")
    async def get_project_detail(project_id: int, _: admin) -> dict[str, Any]:
        with upstream_errors("Failed to fetch project details."):
            project = await record_queries.get_project(project_id)
            if project is None:
                raise NotFound("Project not found.")
            tasks = await record_queries.list_tasks(project_id=project_id)
            updates = await record_queries.list_updates(project_id=project_id)
        return {"project": project, "tasks": tasks, "updates": updates}

    @router.get("/tasks")
    async def list_tasks(_: admin) -> list[dict[str, Any]]:
        with upstream_errors("Failed to fetch admin tasks."):
            return await record_queries.list_tasks()

    @router.get("/updates")
    async def list_updates(  # noqa: PLR0913
        _: admin,
        ownerId: int | None = None,  # noqa: N803
        projectId: int | None = None,  # noqa: N803
        startDate: str | None = None,  # noqa: N803
        endDate: str | None = None,  # noqa: N803
    ) -> list[dict[str, Any]]:
        with upstream_errors("Failed to fetch admin updates."):
            return await record_queries.list_updates(
                owner_id=ownerId,
                project_id=projectId,
                start_date=startDate,
                end_date=endDate,
            )

    return router
