from __future__ import annotations

import logging
import random
from pathlib import Path
from typing import Any, List, Optional

import requests
import typer

from readyaimshoot.aim import DatasetParseError, generate_qa, write_qa_file
from readyaimshoot.config import Settings, load_settings
from readyaimshoot.logging_utils import (
    JsonlLogger,
    RunContext,
    StatusCounter,
    default_log_path,
    new_run_context,
    run_summary_event,
)
from readyaimshoot.ready import create_version_zips, sample_versions
from readyaimshoot.shoot import (
    CanvasApiError,
    CanvasClient,
    QaValidationError,
    assign_students,
    create_quizzes,
    load_file_urls,
    load_qa_file,
    merge_file_urls,
    quiz_ids_file_name,
    validate_qa,
    write_quiz_ids,
)
from readyaimshoot.versions import generate_hashes, resolve_versions, save_versions

app = typer.Typer(add_completion=False, help="Ready / Aim / Shoot: personalised assessment versions for Canvas")


def _ensure_dirs(settings: Settings) -> None:
    settings.paths.data_dir.mkdir(parents=True, exist_ok=True)
    settings.paths.logs_dir.mkdir(parents=True, exist_ok=True)


def _start(ctx: typer.Context, command: str, **fields: Any) -> tuple[RunContext, JsonlLogger]:
    settings: Settings = ctx.obj["settings"]
    run_ctx = new_run_context(command)
    events = JsonlLogger(default_log_path(settings.paths.logs_dir, now_utc=run_ctx.started_at_utc), run_ctx)
    events.log("command_start", **fields)
    return run_ctx, events


def _finish(events: JsonlLogger, run_ctx: RunContext, counter: StatusCounter, **fields: Any) -> None:
    summary = run_summary_event(ctx=run_ctx, status_counts=counter.counts)
    summary.update(fields)
    events.log("run_summary", **summary)


def _versions_or_exit(settings: Settings, events: JsonlLogger) -> List[str]:
    try:
        return resolve_versions(settings)
    except (FileNotFoundError, ValueError) as exc:
        events.log_error("versions_unavailable", exc, path=str(settings.paths.versions_file))
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=2)


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        exists=True,
        dir_okay=False,
        file_okay=True,
        readable=True,
        help="Path to YAML config (optional)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log progress details"),
) -> None:
    """Load settings and store them in Typer context."""

    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = load_settings(config)
    _ensure_dirs(settings)
    ctx.obj = {"settings": settings}


@app.command()
def versions(
    ctx: typer.Context,
    count: Optional[int] = typer.Option(None, "--count", help="Number of versions (default: ready.num_versions)"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing versions file"),
) -> None:
    """Generate version hashes and save them to the versions file."""

    settings: Settings = ctx.obj["settings"]
    run_ctx, events = _start(ctx, "versions", count=count, force=force)
    path = settings.paths.versions_file

    if path.exists() and not force:
        typer.echo(f"Versions file already exists: {path} (use --force to replace it)", err=True)
        events.log("versions_exist", path=str(path))
        raise typer.Exit(code=3)

    n = count if count is not None else settings.ready.num_versions
    rng = random.Random(settings.ready.seed)
    hashes = generate_hashes(n, rng, settings.ready.hash_length)
    save_versions(path, hashes)

    for h in hashes:
        typer.echo(h)
    events.log("versions_saved", path=str(path), hashes=hashes)

    counter = StatusCounter()
    counter.add("ok", len(hashes))
    _finish(events, run_ctx, counter)


@app.command()
def sample(ctx: typer.Context) -> None:
    """Ready: write a randomly sampled copy of the master CSV for every version."""

    settings: Settings = ctx.obj["settings"]
    ready = settings.ready
    run_ctx, events = _start(
        ctx,
        "sample",
        master_dir=str(settings.paths.master_dir),
        dataset_file_name=ready.dataset_file_name,
        num_to_pick_min=ready.num_to_pick_min,
        num_to_pick_max=ready.num_to_pick_max,
    )
    rng = random.Random(ready.seed)

    if settings.versions or settings.paths.versions_file.exists():
        hashes = _versions_or_exit(settings, events)
    else:
        hashes = generate_hashes(ready.num_versions, rng, ready.hash_length)
        save_versions(settings.paths.versions_file, hashes)
        events.log("versions_saved", path=str(settings.paths.versions_file), hashes=hashes)

    typer.echo(f"All {len(hashes)} files ready")

    master_path = settings.paths.master_dir / ready.dataset_file_name
    try:
        results = sample_versions(
            master_path=master_path,
            out_dir=settings.paths.versions_dir,
            versions=hashes,
            dataset_file_name=ready.dataset_file_name,
            num_to_pick_min=ready.num_to_pick_min,
            num_to_pick_max=ready.num_to_pick_max,
            rng=rng,
        )
    except (FileNotFoundError, UnicodeDecodeError) as exc:
        events.log_error("sample_failed", exc, path=str(master_path))
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)

    counter = StatusCounter()
    for r in results:
        typer.echo(f"{r.version}: {r.rows_written} rows -> {r.path}")
        events.log("version_sampled", version=r.version, path=str(r.path), rows_written=r.rows_written)
        counter.add("ok")

    typer.echo("All versions processed:")
    typer.echo(", ".join(hashes))
    _finish(events, run_ctx, counter)


@app.command("zip")
def zip_versions(
    ctx: typer.Context,
    input_dir: Optional[Path] = typer.Option(
        None, "--input", help="Directory holding the version files/folders (default: paths.versions_dir)"
    ),
) -> None:
    """Ready: create one zip archive per version."""

    settings: Settings = ctx.obj["settings"]
    in_dir = input_dir or settings.paths.versions_dir
    run_ctx, events = _start(
        ctx, "zip", input_dir=str(in_dir), grouping=settings.archive.grouping, suffix=settings.archive.suffix
    )
    hashes = _versions_or_exit(settings, events)

    try:
        results = create_version_zips(
            in_dir=in_dir,
            out_dir=settings.paths.zips_dir,
            versions=hashes,
            suffix=settings.archive.suffix,
            grouping=settings.archive.grouping,
            exclude_patterns=settings.archive.exclude_patterns,
            rng=random.Random(),
        )
    except (FileNotFoundError, ValueError) as exc:
        events.log_error("zip_failed", exc)
        typer.echo(f"An error occurred during zipping: {exc}", err=True)
        raise typer.Exit(code=1)

    counter = StatusCounter()
    for r in results:
        status = "ok" if r.files else "warn"
        counter.add(status)
        events.log("version_zipped", version=r.version, path=str(r.path), files=len(r.files), status=status)
        typer.echo(f"Created zip file: {r.path.name} ({len(r.files)} files)")

    typer.echo("All files zipped successfully.")
    _finish(events, run_ctx, counter)


@app.command()
def qa(ctx: typer.Context) -> None:
    """Aim: generate personalised questions and answers for every version."""

    settings: Settings = ctx.obj["settings"]
    run_ctx, events = _start(ctx, "qa", versions_dir=str(settings.paths.versions_dir))
    hashes = _versions_or_exit(settings, events)

    try:
        qa_map = generate_qa(
            versions=hashes,
            versions_dir=settings.paths.versions_dir,
            dataset_file_name=settings.ready.dataset_file_name,
            rng=random.Random(settings.aim.seed),
        )
    except (DatasetParseError, FileNotFoundError) as exc:
        events.log_error("qa_failed", exc)
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)

    counter = StatusCounter()
    for version in qa_map:
        typer.echo(f"FINISHED {version}")
        counter.add("ok")

    path = write_qa_file(qa_map, settings.paths.qa_dir, settings.aim.qa_file_prefix)
    events.log("qa_file_written", path=str(path), versions=len(qa_map))
    typer.echo(f"All done. Answer file written to {path}")
    _finish(events, run_ctx, counter, qa_file=str(path))


@app.command()
def shoot(
    ctx: typer.Context,
    qa_file: Path = typer.Option(..., "--qa-file", exists=True, dir_okay=False, help="QA JSON file from `qa`"),
    url_file: Path = typer.Option(..., "--url-file", exists=True, dir_okay=False, help="CSV of fileid,fileName"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Fetch students and show assignments only"),
) -> None:
    """Shoot: create one Canvas quiz per version and assign students to it."""

    settings: Settings = ctx.obj["settings"]
    canvas = settings.canvas
    run_ctx, events = _start(
        ctx,
        "shoot",
        qa_file=str(qa_file),
        url_file=str(url_file),
        domain=canvas.domain,
        course_id=canvas.course_id,
        dry_run=dry_run,
    )
    hashes = _versions_or_exit(settings, events)

    try:
        qa_map = load_qa_file(qa_file)
        links = load_file_urls(url_file, canvas.platform, canvas.onedrive_base_url)
        qa_map = merge_file_urls(qa_map, links)
        validate_qa(qa_map)
    except QaValidationError as exc:
        events.log("qa_invalid", errors=exc.errors)
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)
    except ValueError as exc:
        events.log_error("qa_load_failed", exc)
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)

    unknown = sorted(set(qa_map) - set(hashes))
    if unknown:
        events.log("qa_versions_unknown", versions=unknown)
        typer.echo(f"Error: QA file has versions not in the versions list: {unknown}", err=True)
        raise typer.Exit(code=1)

    if not dry_run and (canvas.start_date is None or canvas.lock_and_due_date is None):
        typer.echo("Error: canvas.start_date and canvas.lock_and_due_date must be configured", err=True)
        raise typer.Exit(code=2)

    token = canvas.token.get_secret_value() if canvas.token is not None else ""
    try:
        client = CanvasClient(
            domain=canvas.domain,
            token=token,
            course_id=canvas.course_id,
            timeout_s=canvas.timeout_s,
            max_attempts=canvas.max_attempts,
        )
        students = client.list_students(per_page=canvas.per_page)
    except ValueError as exc:
        events.log_error("canvas_setup_failed", exc)
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=2)
    except (CanvasApiError, requests.RequestException) as exc:
        events.log_error("students_fetch_failed", exc)
        typer.echo(f"Error: could not fetch students: {exc}", err=True)
        raise typer.Exit(code=1)

    assignments = assign_students(students, hashes)
    events.log(
        "students_assigned",
        students=len(students),
        per_version={v: len(a.canvas_ids) for v, a in assignments.items()},
    )

    # students assigned to a version without QA would get no quiz
    missing = {v: a.canvas_ids for v, a in assignments.items() if a.canvas_ids and v not in qa_map}
    if missing:
        events.log("qa_versions_missing", versions=sorted(missing), student_ids=missing)
        typer.echo(f"Error: QA file has no entry for versions with students: {sorted(missing)}", err=True)
        raise typer.Exit(code=1)

    if dry_run:
        for version, a in assignments.items():
            typer.echo(f"{version}: {len(a.canvas_ids)} students")
        _finish(events, run_ctx, StatusCounter(), dry_run=True)
        return

    results = create_quizzes(client, qa=qa_map, assignments=assignments, canvas=canvas, events=events)

    counter = StatusCounter()
    for r in results:
        counter.add(r.status)
        typer.echo(f"{r.version}: {r.status} ({r.message})")

    ids_path = write_quiz_ids(
        settings.paths.data_dir / quiz_ids_file_name(qa_file.name, canvas.assignment_title), results
    )
    typer.echo(f"All quizzes created. Quiz ids written to {ids_path}")
    _finish(events, run_ctx, counter, quiz_ids_file=str(ids_path))

    if counter.failed:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
