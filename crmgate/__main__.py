"""Command line entry point: run the API or provision users."""

import argparse
import asyncio
import os

import uvicorn
from aiosqlite import connect as aiosqlite_connect

from crmgate.auth import UserQueries
from crmgate.common import Role
from crmgate.config import configure_logging, load_config_from_env
from crmgate.records import RecordQueries


async def _create_user(
    db_path: str,
    user_name: str,
    role: Role,
    key_length: int,
) -> str:
    """Provision a user and return its secret key."""
    async with aiosqlite_connect(db_path) as db_connection:
        user_queries = UserQueries(db_connection)
        await user_queries.initialize_tables()
        await RecordQueries(db_connection).initialize_tables()
        _, secret_key = await user_queries.add_user(
            user_name,
            role,
            key_length=key_length,
        )
    return secret_key


def _serve(args: argparse.Namespace) -> None:
    """Run the FastAPI application using Uvicorn."""
    # The factory reads ENV_FILE so reloaded and worker processes see it too.
    os.environ["ENV_FILE"] = args.env_file
    uvicorn.run(
        "crmgate.app:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
        workers=args.workers,
    )


def _create_user_command(args: argparse.Namespace) -> None:
    config = load_config_from_env(args.env_file)
    configure_logging(config.logging_level)
    secret_key = asyncio.run(
        _create_user(
            config.db_path,
            args.name,
            Role(args.role),
            config.secret_key_length,
        ),
    )
    print(f"Created {args.role} user {args.name!r} with secret key: {secret_key}")


def main() -> None:
    """Parse arguments and dispatch to a subcommand."""
    parser = argparse.ArgumentParser(description="CRM API server.")
    parser.add_argument(
        "--env-file",
        type=str,
        default=".env",
        help="Path to the environment configuration file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the API server.")
    serve.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to run the FastAPI application on.",
    )
    serve.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Host to run the FastAPI application on.",
    )
    serve.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development.",
    )
    serve.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Number of worker processes to run.",
    )
    serve.set_defaults(handler=_serve)

    create_user = subparsers.add_parser(
        "create-user",
        help="Provision a user and print its secret key.",
    )
    create_user.add_argument("--name", required=True, help="Display name.")
    create_user.add_argument(
        "--role",
        required=True,
        choices=[role.value for role in Role],
        help="Role of the new user.",
    )
    create_user.set_defaults(handler=_create_user_command)

    args = parser.parse_args()
    args.handler(args)


if __name__ == "__main__":
    main()
