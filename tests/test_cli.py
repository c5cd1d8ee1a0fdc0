from __future__ import annotations

import re
from pathlib import Path

import allure
import pytest
from click.testing import CliRunner

from cloudbox.main import cloudbox

pytestmark = [
    allure.epic("Worker"),
    allure.feature("CLI Ops"),
]


@pytest.fixture()
def cli_env(monkeypatch, tmp_path: Path) -> Path:
    monkeypatch.setenv("CLOUDBOX_BLOB_BACKEND", "local")
    monkeypatch.setenv("CLOUDBOX_BLOB_LOCAL_ROOT", str(tmp_path / "blobs"))
    monkeypatch.setenv("CLOUDBOX_QUEUE_BACKEND", "sqlite")
    monkeypatch.setenv("CLOUDBOX_QUEUE_WAIT_SECONDS", "1")
    monkeypatch.setenv("CLOUDBOX_WORKSPACE_ROOT", str(tmp_path / "workspaces"))
    monkeypatch.setenv("CLOUDBOX_IMAGES_ROOT", str(tmp_path / "images"))
    monkeypatch.setenv("CLOUDBOX_NOTIFY_USER_ID", "default_user")
    return tmp_path / "cli.db"


def _entry_id(output: str) -> str:
    match = re.search(r"entry_id=([0-9a-f-]+)", output)
    assert match is not None, output
    return match.group(1)


def test_db_init_creates_schema(cli_env: Path) -> None:
    result = CliRunner().invoke(cloudbox, ["db", "init", "--db-path", str(cli_env)])

    assert result.exit_code == 0, result.output
    assert "Database ready" in result.output
    assert cli_env.exists()


def test_catalog_commands_manage_folders_and_files(cli_env: Path, tmp_path: Path) -> None:
    runner = CliRunner()
    db = ["--db-path", str(cli_env)]

    mkdir = runner.invoke(cloudbox, ["catalog", "mkdir", *db, "results"])
    assert mkdir.exit_code == 0, mkdir.output
    folder_id = _entry_id(mkdir.output)

    source = tmp_path / "notes.txt"
    source.write_text("hello catalog")
    put = runner.invoke(cloudbox, ["catalog", "put", *db, "--folder", folder_id, str(source)])
    assert put.exit_code == 0, put.output
    file_id = _entry_id(put.output)
    assert (tmp_path / "blobs" / "ccstore" / file_id).read_text() == "hello catalog"
    assert f"ccstore/{file_id}" in put.output

    listing = runner.invoke(cloudbox, ["catalog", "ls", *db, "--parent", folder_id])
    assert listing.exit_code == 0, listing.output
    assert "Entries under" in listing.output and ": 1" in listing.output
    assert file_id in listing.output

    show = runner.invoke(cloudbox, ["catalog", "show", *db, file_id])
    assert show.exit_code == 0, show.output
    assert "Kind: file" in show.output
    assert "Size: 13" in show.output
    assert "MIME type: text/plain" in show.output

    remove = runner.invoke(cloudbox, ["catalog", "rm", *db, "--kind", "file", file_id])
    assert remove.exit_code == 0, remove.output
    assert "Entry deleted" in remove.output

    missing = runner.invoke(cloudbox, ["catalog", "show", *db, file_id])
    assert f"Entry not found: {file_id}" in missing.output


def test_worker_once_settles_job_with_missing_input(cli_env: Path) -> None:
    runner = CliRunner()
    db = ["--db-path", str(cli_env)]

    sent = runner.invoke(
        cloudbox,
        [
            "queue",
            "send",
            *db,
            "--image",
            "tools",
            "--cmd",
            "ls",
            "--src",
            "missing-input",
            "--dst",
            "missing-folder",
            "--user",
            "alice",
        ],
    )
    assert sent.exit_code == 0, sent.output
    assert "Job enqueued" in sent.output

    worker = runner.invoke(cloudbox, ["worker", *db, "--once"])
    assert worker.exit_code == 0, worker.output
    assert "processed=1" in worker.output
    assert "failed=1" in worker.output

    notifications = runner.invoke(cloudbox, ["notifications", "list", *db, "--user", "alice"])
    assert notifications.exit_code == 0, notifications.output
    assert "Notifications for alice: 2" in notifications.output
    assert "Running `ls` in image tools" in notifications.output
    assert "Failed `ls` in image tools at fetch_input" in notifications.output

    idle = runner.invoke(cloudbox, ["worker", *db, "--loop", "--max-idle-polls", "1"])
    assert idle.exit_code == 0, idle.output
    assert "idle_polls=1" in idle.output


def test_worker_rejects_invalid_configuration(cli_env: Path, monkeypatch) -> None:
    monkeypatch.setenv("CLOUDBOX_QUEUE_BACKEND", "sqs")
    monkeypatch.delenv("CLOUDBOX_QUEUE_URL", raising=False)

    result = CliRunner().invoke(cloudbox, ["worker", "--db-path", str(cli_env), "--once"])

    assert result.exit_code != 0
    assert "CLOUDBOX_QUEUE_URL" in result.output
