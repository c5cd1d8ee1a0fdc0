"""CLI entrypoint for cloudbox."""

import os
from pathlib import Path

import rich_click as click

from cloudbox import __version__
from cloudbox.catalog.controllers import (
    CatalogCliController,
    CatalogListCommand,
    CatalogMkdirCommand,
    CatalogPutCommand,
    CatalogRemoveCommand,
    CatalogShowCommand,
    NotificationsListCommand,
)
from cloudbox.logging_config import configure_logging
from cloudbox.worker.controllers import (
    DbInitCommand,
    QueueSendCommand,
    WorkerCliController,
    WorkerCommand,
)

click.rich_click.USE_MARKDOWN = True
CATALOG_CONTROLLER = CatalogCliController()
WORKER_CONTROLLER = WorkerCliController()


@click.group()
@click.version_option(version=__version__, prog_name="cloudbox")
def cloudbox() -> None:
    """Container job worker and artifact catalog CLI."""

    configure_logging(os.getenv("CLOUDBOX_LOG_LEVEL", "INFO"))


@cloudbox.group()
def db() -> None:
    """Metadata database commands."""


@db.command("init")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
def db_init(db_path: Path | None) -> None:
    """Create or upgrade the metadata schema."""

    _emit_lines(WORKER_CONTROLLER.init_db(DbInitCommand(db_path=db_path)))


@cloudbox.command("worker")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option(
    "--once/--loop",
    default=False,
    show_default=True,
    help="Handle a single receive or keep polling the queue.",
)
@click.option(
    "--max-jobs",
    type=click.IntRange(min=1),
    default=None,
    help="Optional cap for processed jobs in loop mode.",
)
@click.option(
    "--max-idle-polls",
    type=click.IntRange(min=1),
    default=None,
    help="Stop after this many consecutive empty receives in loop mode.",
)
def worker(
    db_path: Path | None,
    once: bool,
    max_jobs: int | None,
    max_idle_polls: int | None,
) -> None:
    """Consume job messages and run each job in a container."""

    try:
        lines = WORKER_CONTROLLER.run_worker(
            WorkerCommand(
                db_path=db_path,
                once=once,
                max_jobs=max_jobs,
                max_idle_polls=max_idle_polls,
            ),
        )
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


@cloudbox.group()
def queue() -> None:
    """Job queue commands."""


@queue.command("send")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--image", required=True, help="Image name; its build context is images/<name>.")
@click.option("--cmd", required=True, help="Shell command line run inside the container.")
@click.option("--src", required=True, help="Entry id of the input file.")
@click.option("--dst", required=True, help="Entry id of the folder receiving outputs.")
@click.option("--user", default=None, help="Notification recipient (defaults to worker setting).")
def queue_send(  # noqa: PLR0913
    db_path: Path | None,
    image: str,
    cmd: str,
    src: str,
    dst: str,
    user: str | None,
) -> None:
    """Enqueue one job message."""

    _emit_lines(
        WORKER_CONTROLLER.send_job(
            QueueSendCommand(
                db_path=db_path,
                image=image,
                cmd=cmd,
                src=src,
                dst=dst,
                user=user,
            ),
        ),
    )


@cloudbox.group()
def catalog() -> None:
    """Artifact catalog commands."""


@catalog.command("mkdir")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--parent", "parent_id", default=None, help="Parent folder id (root if omitted).")
@click.argument("title")
def catalog_mkdir(db_path: Path | None, parent_id: str | None, title: str) -> None:
    """Create a folder."""

    _emit_lines(
        CATALOG_CONTROLLER.make_folder(
            CatalogMkdirCommand(db_path=db_path, title=title, parent_id=parent_id),
        ),
    )


@catalog.command("put")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--folder", "folder_id", default=None, help="Destination folder id.")
@click.argument(
    "path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
def catalog_put(db_path: Path | None, folder_id: str | None, path: Path) -> None:
    """Upload a local file into a folder."""

    _emit_lines(
        CATALOG_CONTROLLER.put_file(
            CatalogPutCommand(db_path=db_path, path=path, folder_id=folder_id),
        ),
    )


@catalog.command("ls")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--parent", "parent_id", default=None, help="Folder id (root if omitted).")
def catalog_ls(db_path: Path | None, parent_id: str | None) -> None:
    """List entries directly under a folder."""

    _emit_lines(
        CATALOG_CONTROLLER.list_entries(CatalogListCommand(db_path=db_path, parent_id=parent_id)),
    )


@catalog.command("show")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.argument("entry_id")
def catalog_show(db_path: Path | None, entry_id: str) -> None:
    """Show one entry."""

    _emit_lines(
        CATALOG_CONTROLLER.show_entry(CatalogShowCommand(db_path=db_path, entry_id=entry_id)),
    )


@catalog.command("rm")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option(
    "--kind",
    type=click.Choice(["file", "folder"]),
    default="file",
    show_default=True,
    help="Entry kind.",
)
@click.argument("entry_id")
def catalog_rm(db_path: Path | None, kind: str, entry_id: str) -> None:
    """Delete an entry record (blobs are kept)."""

    _emit_lines(
        CATALOG_CONTROLLER.remove_entry(
            CatalogRemoveCommand(db_path=db_path, entry_id=entry_id, kind=kind),
        ),
    )


@cloudbox.group()
def notifications() -> None:
    """Notification log commands."""


@notifications.command("list")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--user", "user_id", default=None, help="Recipient id (defaults to worker setting).")
def notifications_list(db_path: Path | None, user_id: str | None) -> None:
    """List notifications for a recipient."""

    _emit_lines(
        CATALOG_CONTROLLER.list_notifications(
            NotificationsListCommand(db_path=db_path, user_id=user_id),
        ),
    )


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    cloudbox()
