"""The User Data Bundle shared by the login endpoint and the client."""

from pydantic import BaseModel, ConfigDict, Field

from .user import Role


class EntityRef(BaseModel):
    """Reference to one owned or assigned record."""

    model_config = ConfigDict(extra="allow")

    id: int | str


class UserDataBundle(BaseModel):
    """A user plus the ids of everything it owns or is assigned to.

    Always built as one snapshot, never patched list by list.

    :param id: Internal user id
    :param user_name: Display name
    :param role: The user's role
    :param accounts: Accounts owned by the user
    :param projects: Projects owned by the user
    :param tasks_assigned_to: Tasks assigned to the user
    :param tasks_created_by: Tasks created by the user
    :param updates: Updates owned by the user
    :param delivery_statuses: Delivery statuses submitted by the user
    """

    id: int | str
    user_name: str = ""
    role: Role
    accounts: list[EntityRef] = Field(default_factory=list)
    projects: list[EntityRef] = Field(default_factory=list)
    tasks_assigned_to: list[EntityRef] = Field(default_factory=list)
    tasks_created_by: list[EntityRef] = Field(default_factory=list)
    updates: list[EntityRef] = Field(default_factory=list)
    delivery_statuses: list[EntityRef] = Field(default_factory=list)
