"""Queries for CRM records: accounts, projects, tasks, updates, delivery statuses.

Rows come back as plain dicts. Aggregated id columns built with
``json_group_array`` are decoded into lists before returning.
"""

from __future__ import annotations

import json
import logging
import re
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from aiosqlite import Connection

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)


class InvalidPatchError(ValueError):
    """Raised when a patch cannot be applied as given."""


class UnknownColumnError(InvalidPatchError):
    """Raised when a patch names a column that may not be updated."""


SCALAR_TYPES = (str, int, float, bool, type(None))


def normalize_column(name: str) -> str:
    """Turn a display field name such as ``Project Status`` into a column name."""
    return re.sub(r"\s+", "_", name.strip()).lower()


def _placeholders(count: int) -> str:
    return ", ".join("?" for _ in range(count))


class RecordQueries:
    """Repository for CRM record queries."""

    CREATE_TABLES = (
        """
        CREATE TABLE IF NOT EXISTS accounts (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            account_name TEXT NOT NULL,
            account_type TEXT,
            account_description TEXT,
            account_owner_id INTEGER NOT NULL REFERENCES users (id),
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );
        """,
        """
        CREATE TABLE IF NOT EXISTS projects (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            project_name TEXT NOT NULL,
            project_status TEXT,
            start_date TEXT,
            end_date TEXT,
            account_id INTEGER NOT NULL REFERENCES accounts (id),
            project_value REAL,
            project_description TEXT,
            project_owner_id INTEGER NOT NULL REFERENCES users (id),
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );
        """,
        """
        CREATE TABLE IF NOT EXISTS tasks (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            task_name TEXT NOT NULL,
            project_id INTEGER NOT NULL REFERENCES projects (id),
            assigned_to_id INTEGER NOT NULL REFERENCES users (id),
            created_by_id INTEGER NOT NULL REFERENCES users (id),
            due_date TEXT,
            status TEXT,
            description TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );
        """,
        """
        CREATE TABLE IF NOT EXISTS updates (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            notes TEXT,
            date TEXT NOT NULL,
            update_type TEXT,
            project_id INTEGER NOT NULL REFERENCES projects (id),
            task_id INTEGER REFERENCES tasks (id),
            update_owner_id INTEGER NOT NULL REFERENCES users (id),
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );
        """,
        """
        CREATE TABLE IF NOT EXISTS delivery_statuses (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            project_id INTEGER NOT NULL REFERENCES projects (id),
            owner_id INTEGER NOT NULL REFERENCES users (id),
            status TEXT NOT NULL,
            notes TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );
        """,
    )

    SELECT_ACCOUNTS = """
        SELECT a.*, u.user_name AS account_owner_name,
            (SELECT json_group_array(p.id) FROM projects p WHERE p.account_id = a.id)
                AS projects
        FROM accounts a
        LEFT JOIN users u ON a.account_owner_id = u.id
        """

    SELECT_PROJECTS = """
        SELECT p.*, a.account_name, u.user_name AS project_owner_name,
            (SELECT json_group_array(id) FROM (
                SELECT upd.id FROM updates upd WHERE upd.project_id = p.id
                ORDER BY upd.date DESC, upd.created_at DESC
            )) AS updates
        FROM projects p
        LEFT JOIN accounts a ON p.account_id = a.id
        LEFT JOIN users u ON p.project_owner_id = u.id
        """

    SELECT_TASKS = """
        SELECT t.*, p.project_name,
            u_assigned.user_name AS assigned_to_name,
            u_creator.user_name AS created_by_name
        FROM tasks t
        LEFT JOIN projects p ON t.project_id = p.id
        LEFT JOIN users u_assigned ON t.assigned_to_id = u_assigned.id
        LEFT JOIN users u_creator ON t.created_by_id = u_creator.id
        """

    SELECT_UPDATES = """
        SELECT u.*, owner.user_name AS update_owner_name, p.project_name,
            t.task_name, a.account_name AS update_account
        FROM updates u
        LEFT JOIN users owner ON u.update_owner_id = owner.id
        LEFT JOIN projects p ON u.project_id = p.id
        LEFT JOIN tasks t ON u.task_id = t.id
        LEFT JOIN accounts a ON p.account_id = a.id
        """

    SELECT_DELIVERY_STATUSES = """
        SELECT d.*, p.project_name, owner.user_name AS owner_name
        FROM delivery_statuses d
        LEFT JOIN projects p ON d.project_id = p.id
        LEFT JOIN users owner ON d.owner_id = owner.id
        """

    PATCHABLE_COLUMNS: Mapping[str, frozenset[str]] = {
        "projects": frozenset(
            {
                "project_name",
                "project_status",
                "start_date",
                "end_date",
                "account_id",
                "project_value",
                "project_description",
                "project_owner_id",
            },
        ),
        "tasks": frozenset(
            {
                "task_name",
                "project_id",
                "assigned_to_id",
                "due_date",
                "status",
                "description",
            },
        ),
        "delivery_statuses": frozenset({"status", "notes"}),
    }

    def __init__(self, connection: Connection) -> None:
        self.connection = connection

    async def initialize_tables(self) -> None:
        """Create all record tables if they do not exist."""
        for statement in RecordQueries.CREATE_TABLES:
            await self.connection.execute(statement)
        await self.connection.commit()

    async def _fetch_all(
        self,
        query: str,
        params: Iterable[Any] = (),
        arrays: tuple[str, ...] = (),
    ) -> list[dict[str, Any]]:
        async with self.connection.execute(query, tuple(params)) as cursor:
            rows = await cursor.fetchall()
        results = []
        for row in rows:
            record = dict(row)
            for column in arrays:
                record[column] = json.loads(record[column] or "[]")
            results.append(record)
        return results

    async def _fetch_one(
        self,
        query: str,
        params: Iterable[Any] = (),
        arrays: tuple[str, ...] = (),
    ) -> dict[str, Any] | None:
        rows = await self._fetch_all(query, params, arrays)
        return rows[0] if rows else None

    async def _insert(self, table: str, values: Mapping[str, Any]) -> dict[str, Any]:
        columns = ", ".join(values)
        query = (
            f"INSERT INTO {table} ({columns}) "  # noqa: S608
            f"VALUES ({_placeholders(len(values))}) RETURNING *"
        )
        async with self.connection.execute(query, tuple(values.values())) as cursor:
            row = await cursor.fetchone()
        await self.connection.commit()
        LOGGER.debug("Inserted %s row %s", table, row["id"] if row else None)
        return dict(row)

    async def _patch(
        self,
        table: str,
        record_id: int,
        fields: Mapping[str, Any],
    ) -> dict[str, Any] | None:
        """Update whitelisted columns of one row.

        :raises UnknownColumnError: If a field is not patchable
        :raises InvalidPatchError: If a value is not a scalar
        """
        allowed = RecordQueries.PATCHABLE_COLUMNS[table]
        values = {normalize_column(key): value for key, value in fields.items()}
        unknown = sorted(set(values) - allowed)
        if unknown:
            msg = f"Cannot update column(s): {', '.join(unknown)}"
            raise UnknownColumnError(msg)
        nested = sorted(
            column
            for column, value in values.items()
            if not isinstance(value, SCALAR_TYPES)
        )
        if nested:
            msg = f"Invalid value for column(s): {', '.join(nested)}"
            raise InvalidPatchError(msg)

        set_clause = ", ".join(f'"{column}" = ?' for column in values)
        query = f"UPDATE {table} SET {set_clause} WHERE id = ? RETURNING *"  # noqa: S608
        async with self.connection.execute(
            query,
            (*values.values(), record_id),
        ) as cursor:
            row = await cursor.fetchone()
        await self.connection.commit()
        return dict(row) if row else None

    # Accounts

    async def list_accounts(self, owner_id: int | None = None) -> list[dict[str, Any]]:
        """List accounts, newest first, optionally for one owner."""
        query = RecordQueries.SELECT_ACCOUNTS
        params: list[Any] = []
        if owner_id is not None:
            query += " WHERE a.account_owner_id = ?"
            params.append(owner_id)
        query += " ORDER BY a.created_at DESC, a.id DESC"
        return await self._fetch_all(query, params, ("projects",))

    async def get_account(self, account_id: int) -> dict[str, Any] | None:
        """Get one account by id."""
        return await self._fetch_one(
            RecordQueries.SELECT_ACCOUNTS + " WHERE a.id = ?",
            (account_id,),
            ("projects",),
        )

    async def get_accounts_by_ids(self, ids: list[int]) -> list[dict[str, Any]]:
        """Get the accounts with the given ids."""
        return await self._fetch_all(
            RecordQueries.SELECT_ACCOUNTS + f" WHERE a.id IN ({_placeholders(len(ids))})",
            ids,
            ("projects",),
        )

    async def create_account(self, values: Mapping[str, Any]) -> dict[str, Any]:
        """Insert an account."""
        return await self._insert("accounts", values)

    # Projects

    async def list_projects(
        self,
        search: str | None = None,
        status: str | None = None,
        owner_id: int | None = None,
        account_id: int | None = None,
    ) -> list[dict[str, Any]]:
        """List projects, newest first, with optional filters.

        :param search: Case-insensitive substring of the project name
        :param status: Exact project status
        :param owner_id: Project owner id
        :param account_id: Parent account id
        """
        where_conditions = []
        params: list[Any] = []

        if search:
            where_conditions.append("p.project_name LIKE ?")
            params.append(f"%{search}%")
        if status:
            where_conditions.append("p.project_status = ?")
            params.append(status)
        if owner_id is not None:
            where_conditions.append("p.project_owner_id = ?")
            params.append(owner_id)
        if account_id is not None:
            where_conditions.append("p.account_id = ?")
            params.append(account_id)

        query = RecordQueries.SELECT_PROJECTS
        if where_conditions:
            query += " WHERE " + " AND ".join(where_conditions)
        query += " ORDER BY p.created_at DESC, p.id DESC"
        return await self._fetch_all(query, params, ("updates",))

    async def get_project(self, project_id: int) -> dict[str, Any] | None:
        """Get one project by id."""
        return await self._fetch_one(
            RecordQueries.SELECT_PROJECTS + " WHERE p.id = ?",
            (project_id,),
            ("updates",),
        )

    async def get_projects_by_ids(self, ids: list[int]) -> list[dict[str, Any]]:
        """Get the projects with the given ids."""
        return await self._fetch_all(
            RecordQueries.SELECT_PROJECTS + f" WHERE p.id IN ({_placeholders(len(ids))})",
            ids,
            ("updates",),
        )

    async def create_project(self, values: Mapping[str, Any]) -> dict[str, Any]:
        """Insert a project."""
        return await self._insert("projects", values)

    async def update_project(
        self,
        project_id: int,
        fields: Mapping[str, Any],
    ) -> dict[str, Any] | None:
        """Patch a project. Returns None if no row matched."""
        return await self._patch("projects", project_id, fields)

    # Tasks

    async def list_tasks(
        self,
        project_id: int | None = None,
        created_by_id: int | None = None,
    ) -> list[dict[str, Any]]:
        """List tasks, newest first."""
        where_conditions = []
        params: list[Any] = []
        if project_id is not None:
            where_conditions.append("t.project_id = ?")
            params.append(project_id)
        if created_by_id is not None:
            where_conditions.append("t.created_by_id = ?")
            params.append(created_by_id)

        query = RecordQueries.SELECT_TASKS
        if where_conditions:
            query += " WHERE " + " AND ".join(where_conditions)
        query += " ORDER BY t.created_at DESC, t.id DESC"
        return await self._fetch_all(query, params)

    async def get_tasks_by_ids(self, ids: list[int]) -> list[dict[str, Any]]:
        """Get the tasks with the given ids."""
        return await self._fetch_all(
            RecordQueries.SELECT_TASKS + f" WHERE t.id IN ({_placeholders(len(ids))})",
            ids,
        )

    async def create_task(self, values: Mapping[str, Any]) -> dict[str, Any]:
        """Insert a task."""
        return await self._insert("tasks", values)

    async def update_task(
        self,
        task_id: int,
        fields: Mapping[str, Any],
    ) -> dict[str, Any] | None:
        """Patch a task. Returns None if no row matched."""
        return await self._patch("tasks", task_id, fields)

    # Updates

    async def list_updates(  # noqa: PLR0913
        self,
        ids: list[int] | None = None,
        owner_id: int | None = None,
        project_id: int | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
    ) -> list[dict[str, Any]]:
        """List updates, latest date first, with optional filters."""
        where_conditions = []
        params: list[Any] = []

        if ids is not None:
            where_conditions.append(f"u.id IN ({_placeholders(len(ids))})")
            params.extend(ids)
        if owner_id is not None:
            where_conditions.append("u.update_owner_id = ?")
            params.append(owner_id)
        if project_id is not None:
            where_conditions.append("u.project_id = ?")
            params.append(project_id)
        if start_date:
            where_conditions.append("u.date >= ?")
            params.append(start_date)
        if end_date:
            where_conditions.append("u.date <= ?")
            params.append(end_date)

        query = RecordQueries.SELECT_UPDATES
        if where_conditions:
            query += " WHERE " + " AND ".join(where_conditions)
        query += " ORDER BY u.date DESC, u.created_at DESC, u.id DESC"
        return await self._fetch_all(query, params)

    async def create_update(self, values: Mapping[str, Any]) -> dict[str, Any]:
        """Insert an update."""
        return await self._insert("updates", values)

    # Delivery statuses

    async def list_delivery_statuses(
        self,
        project_id: int | None = None,
    ) -> list[dict[str, Any]]:
        """List delivery statuses, newest first."""
        query = RecordQueries.SELECT_DELIVERY_STATUSES
        params: list[Any] = []
        if project_id is not None:
            query += " WHERE d.project_id = ?"
            params.append(project_id)
        query += " ORDER BY d.created_at DESC, d.id DESC"
        return await self._fetch_all(query, params)

    async def get_delivery_status(self, status_id: int) -> dict[str, Any] | None:
        """Get one delivery status by id."""
        return await self._fetch_one(
            RecordQueries.SELECT_DELIVERY_STATUSES + " WHERE d.id = ?",
            (status_id,),
        )

    async def create_delivery_status(
        self,
        values: Mapping[str, Any],
    ) -> dict[str, Any]:
        """Insert a delivery status."""
        return await self._insert("delivery_statuses", values)

    async def update_delivery_status(
        self,
        status_id: int,
        fields: Mapping[str, Any],
    ) -> dict[str, Any] | None:
        """Patch a delivery status. Returns None if no row matched."""
        return await self._patch("delivery_statuses", status_id, fields)

    async def user_exists(self, user_id: int) -> bool:
        """Check that a user id refers to a provisioned user."""
        async with self.connection.execute(
            "SELECT 1 FROM users WHERE id = ?",
            (user_id,),
        ) as cursor:
            return await cursor.fetchone() is not None

    async def project_exists(self, project_id: int) -> bool:
        """Check that a project id refers to an existing project."""
        async with self.connection.execute(
            "SELECT 1 FROM projects WHERE id = ?",
            (project_id,),
        ) as cursor:
            return await cursor.fetchone() is not None
