"""All queries related to users and secret-key authentication.

Using the UserQueries class as a repository for user lookups and for
building the User Data Bundle.
"""

from __future__ import annotations

import logging
import secrets
import sqlite3
from typing import TYPE_CHECKING

from crmgate.common import EntityRef, Role, User, UserDataBundle

if TYPE_CHECKING:
    from aiosqlite import Connection

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)

DEFAULT_SECRET_KEY_LENGTH = 6
KEY_GENERATION_ATTEMPTS = 5


def generate_secret_key(length: int = DEFAULT_SECRET_KEY_LENGTH) -> str:
    """Generate a random numeric secret key.

    :param length: Number of digits
    :return: The secret key
    """
    return "".join(str(secrets.randbelow(10)) for _ in range(length))


class UserQueries:
    """Repository for user and credential queries."""

    CREATE_USERS_TABLE = """
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_name TEXT NOT NULL,
            role TEXT NOT NULL,
            secret_key TEXT NOT NULL UNIQUE,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );
        """

    GET_USER_BY_SECRET_KEY = """
        SELECT id, user_name, role FROM users WHERE secret_key = ?
        """

    GET_USER_BY_ID = """
        SELECT id, user_name, role, secret_key FROM users WHERE id = ?
        """

    LIST_USERS = """
        SELECT id, user_name, role, secret_key FROM users ORDER BY user_name
        """

    LIST_USER_NAMES = """
        SELECT id, user_name FROM users ORDER BY user_name
        """

    ADD_USER = """
        INSERT INTO users (user_name, role, secret_key) VALUES (?, ?, ?)
        """

    # One query per bundle list, all keyed by the internal user id.
    BUNDLE_QUERIES = {
        "accounts": "SELECT id FROM accounts WHERE account_owner_id = ? ORDER BY id",
        "projects": "SELECT id FROM projects WHERE project_owner_id = ? ORDER BY id",
        "tasks_assigned_to": "SELECT id FROM tasks WHERE assigned_to_id = ? ORDER BY id",
        "tasks_created_by": "SELECT id FROM tasks WHERE created_by_id = ? ORDER BY id",
        "updates": "SELECT id FROM updates WHERE update_owner_id = ? ORDER BY id",
        "delivery_statuses": (
            "SELECT id FROM delivery_statuses WHERE owner_id = ? ORDER BY id"
        ),
    }

    def __init__(self, connection: Connection) -> None:
        self.connection = connection

    async def initialize_tables(self) -> None:
        """Create the users table if it does not exist."""
        await self.connection.execute(UserQueries.CREATE_USERS_TABLE)
        await self.connection.commit()

    async def get_user_by_secret_key(self, secret_key: str) -> User | None:
        """Get the user owning a secret key.

        :param secret_key: The presented credential
        :return: The User if the key is known, None otherwise
        :raises ValueError: If the stored role is not a known Role
        """
        async with self.connection.execute(
            UserQueries.GET_USER_BY_SECRET_KEY,
            (secret_key,),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        user_id, user_name, role = row
        return User(id=int(user_id), user_name=user_name, role=Role(role))

    async def add_user(
        self,
        user_name: str,
        role: Role,
        secret_key: str | None = None,
        key_length: int = DEFAULT_SECRET_KEY_LENGTH,
    ) -> tuple[User, str]:
        """Provision a new user.

        :param user_name: Display name
        :param role: Role of the new user
        :param secret_key: Credential to use, generated when omitted
        :param key_length: Length of a generated credential
        :return: The created User and its secret key
        :raises sqlite3.IntegrityError: If a given key is taken, or every
            generated key collided
        """
        generated = secret_key is None
        attempts = KEY_GENERATION_ATTEMPTS if generated else 1
        for attempt in range(1, attempts + 1):
            if generated:
                secret_key = generate_secret_key(key_length)
            try:
                cursor = await self.connection.execute(
                    UserQueries.ADD_USER,
                    (user_name, str(role), secret_key),
                )
            except sqlite3.IntegrityError:
                if attempt == attempts:
                    raise
                LOGGER.warning("Generated secret key already in use, retrying")
                continue
            break
        await self.connection.commit()
        LOGGER.info("Provisioned user %s with role %s", user_name, role)
        return User(id=int(cursor.lastrowid), user_name=user_name, role=role), secret_key

    async def list_users(self, *, include_keys: bool = False) -> list[dict]:
        """List users ordered by name.

        :param include_keys: Include role and secret key (admin view)
        :return: One dict per user
        """
        query = UserQueries.LIST_USERS if include_keys else UserQueries.LIST_USER_NAMES
        async with self.connection.execute(query) as cursor:
            rows = await cursor.fetchall()
        return [dict(row) for row in rows]

    async def get_user(self, user_id: int) -> dict | None:
        """Get a single user by internal id."""
        async with self.connection.execute(
            UserQueries.GET_USER_BY_ID,
            (user_id,),
        ) as cursor:
            row = await cursor.fetchone()
        return dict(row) if row else None

    async def get_user_data_bundle(self, user: User) -> UserDataBundle:
        """Build the full User Data Bundle for a user.

        :param user: The user to build the bundle for
        :return: The bundle with every id list filled in
        """
        lists: dict[str, list[EntityRef]] = {}
        for name, query in UserQueries.BUNDLE_QUERIES.items():
            async with self.connection.execute(query, (user.id,)) as cursor:
                rows = await cursor.fetchall()
            lists[name] = [EntityRef(id=row[0]) for row in rows]

        return UserDataBundle(
            id=user.id,
            user_name=user.user_name,
            role=user.role,
            **lists,
        )
