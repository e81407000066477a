"""Typer CLI for volindex: volume registration and indexing sessions."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, TypeVar

import typer
from result import Err, Ok, Result

from volindex.config import Config
from volindex.models.volumes import RecordKind

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from pydantic import BaseModel

    from volindex.models.errors import IndexingError
    from volindex.models.sessions import FinishReport
    from volindex.services.container import ServiceContainer

app = typer.Typer(
    name="volindex",
    help="Reconcile storage volumes against their file and folder records.",
    no_args_is_help=True,
)
volumes_app = typer.Typer(help="Manage the volumes available for indexing.", no_args_is_help=True)
app.add_typer(volumes_app, name="volumes")

SessionId = Annotated[int, typer.Argument(help="Indexing session id")]

T = TypeVar("T")


@app.callback()
def main(
    ctx: typer.Context,
    data_dir: Annotated[
        Path | None,
        typer.Option("--data-dir", help="Directory holding the volindex database"),
    ] = None,
    batch_size: Annotated[
        int, typer.Option("--batch-size", min=1, help="Entries listed per step")
    ] = 100,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
) -> None:
    """Reconcile storage volumes against their file and folder records."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = Config(
        data_dir=data_dir or Path.home() / ".cache" / "volindex",
        batch_size=batch_size,
    )


def _config(ctx: typer.Context) -> Config:
    return ctx.obj if isinstance(ctx.obj, Config) else Config()


def _run(config: Config, action: Callable[[ServiceContainer], Awaitable[T]]) -> T:
    return asyncio.run(_with_container(config, action))


async def _with_container(
    config: Config, action: Callable[[ServiceContainer], Awaitable[T]]
) -> T:
    from volindex.services.container import ServiceContainer

    container = await ServiceContainer.create(config)
    try:
        return await action(container)
    finally:
        await container.close()


def _unwrap(result: Result[T, IndexingError]) -> T:
    if isinstance(result, Err):
        typer.echo(f"Error: {result.err_value}", err=True)
        raise typer.Exit(code=1)
    return result.ok_value


def _echo_model(model: BaseModel) -> None:
    typer.echo(model.model_dump_json(indent=2))


@volumes_app.command("add")
def volumes_add(
    ctx: typer.Context,
    volume_id: Annotated[str, typer.Argument(help="Volume handle")],
    root: Annotated[
        Path,
        typer.Argument(exists=True, file_okay=False, resolve_path=True, help="Volume root"),
    ],
    name: Annotated[str, typer.Option("--name", help="Display name")] = "",
) -> None:
    """Register a local directory as a volume."""
    info = _run(_config(ctx), lambda c: c.volumes.add_volume(volume_id, str(root), name))
    _echo_model(info)


@volumes_app.command("list")
def volumes_list(ctx: typer.Context) -> None:
    """List registered volumes."""
    for info in _run(_config(ctx), lambda c: c.volumes.list_volumes()):
        typer.echo(f"{info.volume_id}\t{info.root_path}\t{info.name}")


@volumes_app.command("remove")
def volumes_remove(
    ctx: typer.Context,
    volume_id: Annotated[str, typer.Argument(help="Volume handle")],
) -> None:
    """Unregister a volume. Its records are left untouched."""
    if not _run(_config(ctx), lambda c: c.volumes.remove_volume(volume_id)):
        typer.echo(f"Error: unknown volume {volume_id}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Removed {volume_id}")


@app.command()
def start(
    ctx: typer.Context,
    volumes: Annotated[list[str], typer.Argument(help="Volumes to index, in order")],
    cache_images: Annotated[
        bool, typer.Option("--cache-images", help="Refresh image records on every match")
    ] = False,
    use_queue: Annotated[
        bool, typer.Option("--use-queue", help="Run each step as its own task")
    ] = False,
) -> None:
    """Start an indexing session."""
    session = _unwrap(
        _run(
            _config(ctx),
            lambda c: c.indexing_service.start_session(volumes, cache_images, use_queue),
        )
    )
    _echo_model(session)


@app.command()
def step(
    ctx: typer.Context,
    session_id: SessionId,
    expected_version: Annotated[
        int | None,
        typer.Option("--expected-version", help="Fail unless the session is at this version"),
    ] = None,
) -> None:
    """Advance a session by one listing page."""
    outcome = _unwrap(
        _run(
            _config(ctx),
            lambda c: c.indexing_service.process_step(session_id, expected_version),
        )
    )
    _echo_model(outcome)


@app.command()
def run(ctx: typer.Context, session_id: SessionId) -> None:
    """Advance a session until it needs review or stops."""
    from volindex.services.runner import drive_session

    def progress(current: int, total: int, message: str) -> None:
        typer.echo(f"  [{current}/{total}] {message}", err=True)

    async def _do_run(c: ServiceContainer) -> Result[object, IndexingError]:
        found = await c.indexing_service.get_session(session_id)
        if isinstance(found, Err):
            return found
        return await drive_session(c.indexing_service, found.ok_value, progress_callback=progress)

    outcome = _unwrap(_run(_config(ctx), _do_run))
    _echo_model(outcome)  # type: ignore[arg-type]


@app.command()
def review(ctx: typer.Context, session_id: SessionId) -> None:
    """Show the skipped and missing entries of a session."""
    data = _unwrap(_run(_config(ctx), lambda c: c.indexing_service.review_session(session_id)))
    _echo_model(data)


@app.command()
def finish(
    ctx: typer.Context,
    session_id: SessionId,
    delete_folder: Annotated[
        list[int] | None, typer.Option("--delete-folder", help="Missing folder record to delete")
    ] = None,
    delete_asset: Annotated[
        list[int] | None, typer.Option("--delete-asset", help="Missing file record to delete")
    ] = None,
    all_missing: Annotated[
        bool, typer.Option("--all-missing", help="Delete every record reported missing")
    ] = False,
) -> None:
    """Finish a session, deleting the approved missing records.

    Only records the session reported missing are deleted. Any other id is
    left in place and listed under ``rejected`` in the report.
    """

    async def _do_finish(c: ServiceContainer) -> Result[FinishReport, IndexingError]:
        folders = list(delete_folder or [])
        assets = list(delete_asset or [])
        if all_missing:
            found = await c.indexing_service.get_session(session_id)
            if isinstance(found, Ok):
                for missing in found.ok_value.missing_entries:
                    target = folders if missing.kind == RecordKind.FOLDER else assets
                    target.append(missing.record_id)
        return await c.indexing_service.finish_session(session_id, folders, assets)

    report = _unwrap(_run(_config(ctx), _do_finish))
    if report.rejected:
        rejected = ", ".join(str(i) for i in report.rejected)
        typer.echo(f"Not reported missing, left in place: {rejected}", err=True)
    _echo_model(report)


@app.command()
def stop(ctx: typer.Context, session_id: SessionId) -> None:
    """Stop a session without deleting anything."""
    stopped = _unwrap(_run(_config(ctx), lambda c: c.indexing_service.stop_session(session_id)))
    typer.echo(f"Stopped {stopped}")


@app.command()
def sessions(
    ctx: typer.Context,
    include_all: Annotated[bool, typer.Option("--all", help="Include terminal sessions")] = False,
) -> None:
    """List indexing sessions."""
    listed = _unwrap(
        _run(_config(ctx), lambda c: c.indexing_service.list_sessions(include_all))
    )
    for s in listed:
        flag = "review" if s.action_required and not s.is_terminal else s.status.value
        typer.echo(
            f"{s.id}\t{flag}\t{s.processed_entries}/{s.total_entries}\t"
            f"{','.join(s.indexed_volumes)}\t{s.date_updated}"
        )
