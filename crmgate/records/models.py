"""Request bodies for record creation routes."""

from pydantic import BaseModel


class AccountCreate(BaseModel):
    account_name: str
    account_type: str | None = None
    account_description: str | None = None
    account_owner_id: int


class ProjectCreate(BaseModel):
    project_name: str
    project_status: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    account_id: int
    project_value: float | None = None
    project_description: str | None = None
    project_owner_id: int


class TaskCreate(BaseModel):
    task_name: str
    project_id: int
    assigned_to_id: int
    created_by_id: int
    due_date: str | None = None
    status: str | None = None
    description: str | None = None


class UpdateCreate(BaseModel):
    notes: str | None = None
    date: str
    update_type: str | None = None
    project_id: int
    task_id: int | None = None
    update_owner_id: int


class DeliveryStatusCreate(BaseModel):
    """A sales executive's delivery report for one project.

    The owner is always the authenticated user, so it is not part of the body.
    """

    project_id: int
    status: str
    notes: str | None = None
