"""Fundamental user data model for app."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import assert_never


class Role(StrEnum):
    """Closed set of user roles. Roles are flat, none implies another."""

    SALES_EXECUTIVE = "sales_executive"
    ADMIN = "admin"
    DELIVERY_HEAD = "delivery_head"

    def check_permission(self, required_role: Role) -> bool:
        """Check if the current role satisfies the required role.

        :param required_role: The single role a route requires
        :return: True only when both roles are the same
        """
        return self is required_role

    @property
    def dashboard_path(self) -> str:
        """Landing page for users of this role."""
        match self:
            case Role.SALES_EXECUTIVE:
                return "/home"
            case Role.ADMIN:
                return "/admin/dashboard"
            case Role.DELIVERY_HEAD:
                return "/delivery-head/dashboard"
            case _:
                assert_never(self)


@dataclass
class User:
    """A provisioned user as stored in the users table."""

    id: int
    user_name: str
    role: Role


@dataclass(frozen=True)
class AuthContext:
    """Identity attached to a request once the gate lets it through."""

    id: int
    role: Role
