"""Record routes shared by every provisioned user.

Creation routes check the referenced users and projects up front so a bad
reference is a 400 rather than a constraint failure.
"""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends

from crmgate.auth import UserQueries, Validate
from crmgate.common import AuthContext
from crmgate.errors import BadRequest, NotFound

from .helpers import parse_ids, upstream_errors
from .models import AccountCreate, ProjectCreate, TaskCreate, UpdateCreate
from .queries import InvalidPatchError, RecordQueries

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)


async def _patch_record(
    record_queries: RecordQueries,
    table: str,
    record_id: int,
    fields: dict[str, Any],
) -> dict[str, Any]:
    if not fields:
        raise BadRequest("No fields provided to update.")

    label = table.rstrip("s")
    with upstream_errors(f"Failed to update {label}."):
        try:
            if table == "projects":
                updated = await record_queries.update_project(record_id, fields)
            else:
                updated = await record_queries.update_task(record_id, fields)
        except InvalidPatchError as e:
            raise BadRequest(str(e)) from e

    if updated is None:
        raise NotFound(f"{label.capitalize()} not found or no update was made.")
    return updated


def configure_record_router(  # noqa: C901
    router: APIRouter,
    user_queries: UserQueries,
    record_queries: RecordQueries,
    validate: Validate,
) -> APIRouter:
    """Configure the shared record routes.

    :param router: The APIRouter to configure
    :param user_queries: Repository for user lookups
    :param record_queries: Repository for CRM records
    :param validate: The Validate instance gating the routes
    :return: The configured APIRouter
    """
    any_user = Annotated[AuthContext, Depends(validate.user)]

    @router.get("/users")
    async def list_users(_: any_user) -> list[dict[str, Any]]:
        with upstream_errors("Failed to fetch all users."):
            return await user_queries.list_users()

    @router.get("/accounts")
    async def get_accounts(
        _: any_user,
        ids: str | None = None,
    ) -> list[dict[str, Any]]:
        id_list = parse_ids(ids)
        with upstream_errors("Failed to fetch accounts"):
            return await record_queries.get_accounts_by_ids(id_list)

    @router.get("/projects")
    async def get_projects(
        _: any_user,
        ids: str | None = None,
    ) -> list[dict[str, Any]]:
        id_list = parse_ids(ids)
        with upstream_errors("Failed to fetch projects"):
            return await record_queries.get_projects_by_ids(id_list)

    @router.get("/tasks")
    async def get_tasks(
        _: any_user,
        ids: str | None = None,
    ) -> list[dict[str, Any]]:
        id_list = parse_ids(ids)
        with upstream_errors("Failed to fetch tasks"):
            return await record_queries.get_tasks_by_ids(id_list)

    @router.get("/tasks/by-creator/{creator_id}")
    async def get_tasks_by_creator(
        creator_id: int,
        _: any_user,
    ) -> list[dict[str, Any]]:
        with upstream_errors("Failed to fetch tasks by creator"):
            if not await record_queries.user_exists(creator_id):
                raise NotFound("Creator not found.")
            return await record_queries.list_tasks(created_by_id=creator_id)

    @router.get("/updates")
    async def get_updates(
        _: any_user,
        ids: str | None = None,
    ) -> list[dict[str, Any]]:
        id_list = parse_ids(ids) if ids else None
        with upstream_errors("Failed to fetch updates"):
            return await record_queries.list_updates(ids=id_list)

    @router.post("/accounts", status_code=201)
    async def create_account(body: AccountCreate, _: any_user) -> dict[str, Any]:
        with upstream_errors("Failed to create account."):
            if not await record_queries.user_exists(body.account_owner_id):
                raise BadRequest("Invalid account owner ID")
            return await record_queries.create_account(body.model_dump())

    @router.post("/projects", status_code=201)
    async def create_project(body: ProjectCreate, _: any_user) -> dict[str, Any]:
        with upstream_errors("Failed to create project."):
            if not (
                await record_queries.get_account(body.account_id)
                and await record_queries.user_exists(body.project_owner_id)
            ):
                raise BadRequest("Invalid account or owner ID")
            return await record_queries.create_project(body.model_dump())

    @router.post("/tasks", status_code=201)
    async def create_task(body: TaskCreate, _: any_user) -> dict[str, Any]:
        with upstream_errors("Failed to create task."):
            if not (
                await record_queries.project_exists(body.project_id)
                and await record_queries.user_exists(body.assigned_to_id)
                and await record_queries.user_exists(body.created_by_id)
            ):
                raise BadRequest("Invalid project, assigned to, or created by ID")
            return await record_queries.create_task(body.model_dump())

    @router.post("/updates", status_code=201)
    async def create_update(body: UpdateCreate, _: any_user) -> dict[str, Any]:
        with upstream_errors("Failed to create update."):
            if not (
                await record_queries.project_exists(body.project_id)
                and await record_queries.user_exists(body.update_owner_id)
            ):
                raise BadRequest("Invalid project or update owner ID")
            return await record_queries.create_update(body.model_dump())

    @router.patch("/projects/{project_id}")
    async def update_project(
        project_id: int,
        fields: Annotated[dict[str, Any], Body()],
        _: any_user,
    ) -> dict[str, Any]:
        return await _patch_record(record_queries, "projects", project_id, fields)

    @router.patch("/tasks/{task_id}")
    async def update_task(
        task_id: int,
        fields: Annotated[dict[str, Any], Body()],
        _: any_user,
    ) -> dict[str, Any]:
        return await _patch_record(record_queries, "tasks", task_id, fields)

    return router
