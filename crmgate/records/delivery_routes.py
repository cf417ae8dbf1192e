"""Delivery status routes.

Sales executives report delivery status for their projects and delivery heads
review them.
"""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends

from crmgate.auth import Validate
from crmgate.common import AuthContext, Role
from crmgate.errors import BadRequest, NotFound, NotOwner

from .helpers import upstream_errors
from .models import DeliveryStatusCreate
from .queries import InvalidPatchError, RecordQueries

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)

NOT_OWNER_MESSAGE = "Forbidden: only the reporting user may edit this delivery status."


async def _create_delivery_status(
    record_queries: RecordQueries,
    body: DeliveryStatusCreate,
    auth: AuthContext,
) -> dict[str, Any]:
    with upstream_errors("Failed to create delivery status."):
        if not await record_queries.project_exists(body.project_id):
            raise BadRequest("Invalid project ID")
        return await record_queries.create_delivery_status(
            {**body.model_dump(), "owner_id": auth.id},
        )


async def _update_delivery_status(
    record_queries: RecordQueries,
    status_id: int,
    fields: dict[str, Any],
    auth: AuthContext,
) -> dict[str, Any]:
    if not fields:
        raise BadRequest("No fields provided to update.")

    with upstream_errors("Failed to update delivery status."):
        existing = await record_queries.get_delivery_status(status_id)
        if existing is None:
            raise NotFound("Delivery status not found.")
        if existing["owner_id"] != auth.id:
            raise NotOwner(NOT_OWNER_MESSAGE)
        try:
            updated = await record_queries.update_delivery_status(status_id, fields)
        except InvalidPatchError as e:
            raise BadRequest(str(e)) from e
    if updated is None:
        raise NotFound("Delivery status not found.")
    return updated


def configure_delivery_router(
    router: APIRouter,
    record_queries: RecordQueries,
    validate: Validate,
) -> APIRouter:
    """Configure the delivery status routes.

    :param router: The APIRouter to configure
    :param record_queries: Repository for CRM records
    :param validate: The Validate instance gating the routes
    :return: The configured APIRouter
    """
    delivery_head = Annotated[AuthContext, Depends(validate.role(Role.DELIVERY_HEAD))]
    sales_executive = Annotated[
        AuthContext,
        Depends(validate.role(Role.SALES_EXECUTIVE)),
    ]

    @router.get("/delivery-head/projects")
    async def list_delivery_projects(_: delivery_head) -> list[dict[str, Any]]:
        with upstream_errors("Failed to fetch projects."):
            return await record_queries.list_projects()

    @router.get("/delivery-head/delivery-statuses")
    async def list_delivery_statuses(
        _: delivery_head,
        projectId: int | None = None,  # noqa: N803
    ) -> list[dict[str, Any]]:
        with upstream_errors("Failed to fetch delivery statuses."):
            return await record_queries.list_delivery_statuses(project_id=projectId)

    @router.post("/delivery-statuses", status_code=201)
    async def create_delivery_status(
        body: DeliveryStatusCreate,
        auth: sales_executive,
    ) -> dict[str, Any]:
        return await _create_delivery_status(record_queries, body, auth)

    @router.patch("/delivery-statuses/{status_id}")
    async def update_delivery_status(
        status_id: int,
        fields: Annotated[dict[str, Any], Body()],
        auth: sales_executive,
    ) -> dict[str, Any]:
        return await _update_delivery_status(record_queries, status_id, fields, auth)

    return router
