"""hanzi-session CLI: terminal study sessions, health checks, config and server."""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Annotated, Any

import typer

from hanzi_session.application.config import AppConfig, resolve_config

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="hanzi-session: spaced-repetition study sessions in your terminal.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(help="Manage hanzi-session configuration.")
app.add_typer(config_app, name="config")

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)


def _apply_verbosity(verbose: int) -> None:
    if verbose <= 0:
        level = logging.WARNING
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG
    logging.getLogger().setLevel(level)


def _resolve_with_overrides(**overrides: Any) -> AppConfig:
    return resolve_config({k: v for k, v in overrides.items() if v is not None})


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 0,
):
    """Global settings for hanzi-session."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    if verbose:
        _apply_verbosity(verbose + 1)


# ---------------------------------------------------------------------------
# Study
# ---------------------------------------------------------------------------


def _card_faces(item, study_mode: str) -> tuple[str, str]:
    entry = item.entry
    meanings = "; ".join(entry.meanings)
    if study_mode == "EnglishToChinese":
        front = entry.meanings[0] if entry.meanings else item.display_form
        return front, f"{item.display_form}  {entry.pinyin}"
    return item.display_form, f"{entry.pinyin}  {meanings}"


def _print_capabilities(capabilities) -> None:
    if not capabilities.scheduling_available:
        typer.secho("Review service unavailable. Progress tracking is limited.", fg="yellow")
    if not capabilities.audio_available:
        typer.secho("Audio service unavailable. Pronunciation features are disabled.", fg="yellow")
    if not capabilities.image_available:
        typer.secho("Image service unavailable. Visual learning features are disabled.", fg="yellow")
    if not capabilities.progress_available:
        typer.secho("Progress service unavailable. This session will not be saved.", fg="yellow")


def _print_summary(stats) -> None:
    typer.echo("")
    typer.secho("Session complete", bold=True)
    typer.echo(f"Reviewed: {stats.cards_reviewed}/{stats.total_cards}")
    typer.echo(f"Correct: {stats.correct_count}  Incorrect: {stats.incorrect_count}")
    typer.echo(f"New: {stats.new_cards_studied}  Review: {stats.review_cards_studied}")
    if stats.accuracy is not None:
        typer.echo(f"Accuracy: {round(stats.accuracy * 100)}%")


async def _prompt(text: str) -> str:
    # Prompt in a worker thread so background prefetch keeps running.
    answer = await asyncio.to_thread(typer.prompt, text, default="", show_default=False)
    return answer.strip().lower()


async def _study_loop(config: AppConfig, vocabulary) -> None:
    from hanzi_session.application.factory import (
        build_session,
        get_media_cache,
        get_services,
        preferences_from_config,
    )
    from hanzi_session.application.orchestrator import Direction

    prefs = preferences_from_config(config)
    services = get_services(config)
    session = build_session(config, services, get_media_cache(config))

    try:
        queue = await session.start_session(prefs, vocabulary)
        _print_capabilities(session.capabilities)

        if queue.is_empty:
            typer.secho(
                f"No flashcards found for level {prefs.level}. Please try a different level.",
                fg="yellow",
            )
            return

        typer.echo(f"Studying {len(queue)} cards ({queue.due_count} due, {queue.new_count} new)")

        while True:
            item = session.current_item
            front, back = _card_faces(item, prefs.study_mode)
            typer.echo(f"\nCard {session.position + 1} of {len(queue)}")
            typer.secho(front, bold=True)
            await _prompt("Press Enter to reveal")
            typer.echo(back)

            choice = await _prompt("[y] correct  [n] incorrect  [p] previous  [s] skip  [q] quit")
            if choice == "q":
                break
            if choice == "p":
                session.navigate(Direction.PREVIOUS)
                continue
            if choice in ("y", "n"):
                result = await session.grade(item.card_id, choice == "y")
                if result.error:
                    typer.secho(result.error, fg="yellow")

            if session.navigate(Direction.NEXT).finished:
                break

        _print_summary(await session.end_session())
    finally:
        await session.close()
        await services.close()


@app.command()
def study(
    ctx: typer.Context,
    level: Annotated[str | None, typer.Option(help="Level to study, e.g. new-1 or hsk-3.")] = None,
    character_set: Annotated[
        str | None, typer.Option(help="Character set: simplified or traditional.")
    ] = None,
    count: Annotated[int | None, typer.Option(help="Cards per session (5-100).")] = None,
    mode: Annotated[
        str | None, typer.Option(help="ChineseToEnglish or EnglishToChinese.")
    ] = None,
    vocabulary: Annotated[
        Path | None, typer.Option(help="Path to the vocabulary index (JSON or YAML).")
    ] = None,
    prefetch: Annotated[
        bool | None, typer.Option("--prefetch/--no-prefetch", help="Prefetch audio and images.")
    ] = None,
):
    """[bold green]Study[/bold green] a session of flashcards."""
    from hanzi_session.infrastructure.vocabulary import load_vocabulary

    config = _resolve_with_overrides(
        level=level,
        character_set=character_set,
        card_count=count,
        study_mode=mode,
        vocabulary_path=vocabulary,
        prefetch_enabled=prefetch,
    )
    if config.vocabulary_path is None:
        typer.secho("No vocabulary index configured. Pass --vocabulary.", fg="red")
        raise typer.Exit(2)

    entries = load_vocabulary(config.vocabulary_path)
    asyncio.run(_study_loop(config, entries))


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@app.command()
def health(
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Probe the collaborator services and report which features are available."""
    from dataclasses import asdict

    from hanzi_session.application.factory import get_services
    from hanzi_session.application.health_monitor import ServiceHealthMonitor

    config = resolve_config()

    async def run():
        services = get_services(config)
        try:
            monitor = ServiceHealthMonitor(
                services.scheduling,
                services.audio,
                services.image,
                services.progress,
                timeout=config.health_timeout,
            )
            return await monitor.check_all()
        finally:
            await services.close()

    flags = asyncio.run(run())
    status = asdict(flags)

    if json_output:
        typer.echo(json.dumps(status, indent=2))
    else:
        for name, ok in status.items():
            label = name.removesuffix("_available")
            typer.secho(f"{label:<12} {'up' if ok else 'down'}", fg="green" if ok else "red")

    if not all(status.values()):
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show():
    """Display final resolved configuration."""
    config = resolve_config()
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    typer.echo(json.dumps(d, indent=2))


# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------


@app.command()
def serve(
    port: Annotated[int, typer.Option(help="Port to bind the server to.")] = 8777,
    host: Annotated[str, typer.Option(help="Host to bind the server to.")] = "127.0.0.1",
    reload: Annotated[bool, typer.Option(help="Enable auto-reload.")] = False,
):
    """Run the session HTTP API."""
    import uvicorn

    uvicorn.run("hanzi_session.server:app", host=host, port=port, reload=reload)
