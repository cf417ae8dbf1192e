"""Persisted client session state and its storage backends.

The state holds the credential, the profile and six id-list caches. The caches
are derived from a User Data Bundle and are always replaced together.
"""

from __future__ import annotations

import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field, ValidationError

from crmgate.common import Role

if TYPE_CHECKING:
    from crmgate.common import EntityRef, UserDataBundle

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)


def _ids(refs: list[EntityRef]) -> list[int | str]:
    return [ref.id for ref in refs]


class SessionState(BaseModel):
    """Everything the client keeps between runs.

    :param credential: The secret key, None when logged out
    :param user_id: Internal id of the logged in user
    :param user_name: Display name of the logged in user
    :param role: Role of the logged in user
    """

    credential: str | None = None
    user_id: int | str | None = None
    user_name: str | None = None
    role: Role | None = None

    account_ids: list[int | str] = Field(default_factory=list)
    project_ids: list[int | str] = Field(default_factory=list)
    tasks_assigned_ids: list[int | str] = Field(default_factory=list)
    tasks_created_ids: list[int | str] = Field(default_factory=list)
    update_ids: list[int | str] = Field(default_factory=list)
    delivery_status_ids: list[int | str] = Field(default_factory=list)

    def with_bundle(self, bundle: UserDataBundle) -> SessionState:
        """Return a copy with profile and every id list taken from the bundle.

        :param bundle: A freshly fetched User Data Bundle
        :return: The new state; the credential is kept
        """
        return self.model_copy(
            update={
                "user_id": bundle.id,
                "user_name": bundle.user_name,
                "role": bundle.role,
                "account_ids": _ids(bundle.accounts),
                "project_ids": _ids(bundle.projects),
                "tasks_assigned_ids": _ids(bundle.tasks_assigned_to),
                "tasks_created_ids": _ids(bundle.tasks_created_by),
                "update_ids": _ids(bundle.updates),
                "delivery_status_ids": _ids(bundle.delivery_statuses),
            },
        )


class SessionStore(ABC):
    """Key-value persistence for the client session."""

    @abstractmethod
    def get(self) -> SessionState:
        """Return the stored state, an empty state if nothing is stored."""

    @abstractmethod
    def set(self, state: SessionState) -> None:
        """Replace the stored state wholesale."""

    @abstractmethod
    def clear(self) -> None:
        """Forget everything, as on logout."""


class MemorySessionStore(SessionStore):
    """Session store living only as long as the process."""

    def __init__(self, state: SessionState | None = None) -> None:
        self._state = state or SessionState()

    def get(self) -> SessionState:
        return self._state.model_copy(deep=True)

    def set(self, state: SessionState) -> None:
        self._state = state.model_copy(deep=True)

    def clear(self) -> None:
        self._state = SessionState()


class FileSessionStore(SessionStore):
    """Session store backed by a JSON file.

    Writes go to a temporary file in the same directory which then replaces
    the target, so readers never see a half written state.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def get(self) -> SessionState:
        if not self.path.exists():
            return SessionState()
        try:
            return SessionState.model_validate_json(self.path.read_text("utf-8"))
        except (ValidationError, OSError, UnicodeDecodeError) as e:
            LOGGER.warning(
                "Ignoring unreadable session file at %s (%s)",
                self.path,
                type(e).__name__,
            )
            return SessionState()

    def set(self, state: SessionState) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=self.path.parent,
            prefix=f".{self.path.name}.",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as tmp_file:
                tmp_file.write(state.model_dump_json())
            os.replace(tmp_path, self.path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
