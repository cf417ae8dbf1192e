"""Tests for the command line entry point."""

import sqlite3
import sys
from pathlib import Path
from unittest.mock import Mock

import pytest

import crmgate.__main__ as cli
from crmgate.common import Role


@pytest.mark.asyncio
async def test_create_user_returns_working_key(tmp_path: Path) -> None:
    """Test provisioning writes the user with a numeric key of the given length."""
    db_path = tmp_path / "crm.db"

    secret_key = await cli._create_user(str(db_path), "Ada", Role.ADMIN, 8)  # noqa: SLF001

    assert len(secret_key) == 8  # noqa: PLR2004
    assert secret_key.isdigit()
    connection = sqlite3.connect(db_path)
    try:
        row = connection.execute(
            "SELECT user_name, role FROM users WHERE secret_key = ?",
            (secret_key,),
        ).fetchone()
        tables = {
            name
            for (name,) in connection.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table'",
            )
        }
    finally:
        connection.close()
    assert row == ("Ada", "admin")
    assert {"accounts", "projects", "tasks", "updates", "delivery_statuses"} <= tables


def test_create_user_command(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Test the create-user subcommand prints the new key."""
    monkeypatch.setenv("DB_PATH", str(tmp_path / "crm.db"))
    monkeypatch.setenv("SECRET_KEY_LENGTH", "6")
    monkeypatch.setattr(
        sys,
        "argv",
        [
            "crmgate",
            "--env-file",
            str(tmp_path / "missing.env"),
            "create-user",
            "--name",
            "Sam",
            "--role",
            "sales_executive",
        ],
    )

    cli.main()

    out = capsys.readouterr().out
    assert "Created sales_executive user 'Sam' with secret key: " in out


def test_create_user_rejects_unknown_role(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Test argparse refuses roles outside the enum."""
    monkeypatch.setattr(
        sys,
        "argv",
        ["crmgate", "create-user", "--name", "X", "--role", "owner"],
    )

    with pytest.raises(SystemExit):
        cli.main()


def test_serve_runs_uvicorn_factory(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test serve hands the app factory and flags to uvicorn."""
    monkeypatch.setenv("ENV_FILE", ".env")
    run = Mock()
    monkeypatch.setattr(cli.uvicorn, "run", run)
    monkeypatch.setattr(
        sys,
        "argv",
        ["crmgate", "--env-file", "prod.env", "serve", "--port", "9000"],
    )

    cli.main()

    run.assert_called_once_with(
        "crmgate.app:create_app",
        factory=True,
        host="127.0.0.1",
        port=9000,
        reload=False,
        workers=1,
    )
    assert cli.os.environ["ENV_FILE"] == "prod.env"
