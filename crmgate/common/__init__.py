"""Common data models and utilities for the application."""

from .bundle import EntityRef, UserDataBundle
from .user import AuthContext, Role, User

__all__ = ["AuthContext", "EntityRef", "Role", "User", "UserDataBundle"]
