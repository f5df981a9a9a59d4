"""Command-line interface for Historian."""

from __future__ import annotations

import argparse
import asyncio
import base64
from collections.abc import Awaitable, Callable
import logging
from pathlib import Path
import sys

from rich.console import Console
from rich.table import Table

from historian.core.config.loader import configure_logging
from historian.core.errors import (
    AudioDecodeError,
    CredentialRequiredError,
    GenerationError,
    IrrelevantNoteError,
    MissingCredentialError,
    ResearchRejectedError,
)
from historian.core.models.status import EntityStatus, GenerationStatus
from historian.core.pipeline.request import JourneyRequest
from historian.core.session import HistorianSession

console = Console()
logger = logging.getLogger(__name__)

_STATUS_STYLE = {
    EntityStatus.READY: "green",
    EntityStatus.LOADING: "yellow",
    EntityStatus.IDLE: "dim",
}


def _print_status(status: GenerationStatus) -> None:
    console.print(f"[cyan]{status.progress:>3}%[/cyan] {status.stage.value:<12} {status.message}")


def _read_b64(path: Path) -> str:
    return base64.b64encode(path.read_bytes()).decode("ascii")


async def cmd_pregenerate(session: HistorianSession, args: argparse.Namespace) -> int:
    scheduler = session.scheduler
    await scheduler.bootstrap()
    pending = scheduler.pending()
    console.print(f"[bold]Pregenerating {len(pending)} of {len(scheduler.catalog)} journeys...[/bold]")

    statuses = await scheduler.run_pending()

    table = Table(title="Catalog")
    table.add_column("Id")
    table.add_column("Name")
    table.add_column("Status")
    for entity_id, status in statuses.items():
        entry = scheduler.catalog[entity_id]
        style = _STATUS_STYLE[status]
        table.add_row(entity_id, entry.name, f"[{style}]{status.value}[/{style}]")
    console.print(table)

    return 0 if all(s is EntityStatus.READY for s in statuses.values()) else 1


async def cmd_journey(session: HistorianSession, args: argparse.Namespace) -> int:
    if args.preset:
        entries = {entry.id: entry for entry in session.app_config.catalog}
        if args.preset not in entries:
            console.print(f"[red]ERROR: Unknown preset: {args.preset}[/red]")
            console.print(f"   Available: {', '.join(entries)}")
            return 1
        request = JourneyRequest.from_preset(entries[args.preset])
    else:
        image_path = Path(args.image)
        if not image_path.exists():
            console.print(f"[red]ERROR: Image not found: {image_path}[/red]")
            return 1
        request = JourneyRequest.from_image(_read_b64(image_path))

    artifact = await session.pipeline.run(request, _print_status, force=args.refresh)
    console.print(
        f"\n[bold green]✅ {artifact.subject_name}[/bold green] ({artifact.subject_location}) "
        f"→ [bold]{artifact.id}[/bold]"
    )

    if args.resolve_all:
        resolver = session.resolver_for(artifact, panoramic=args.panoramic)
        for index in range(len(artifact.timeline)):
            resolver.update_position(float(index))
            await resolver.drain()
        artifact = resolver.artifact

    for event in artifact.timeline:
        marker = "[green]●[/green]" if event.generated else "[dim]○[/dim]"
        hotspots = f" ({len(event.hotspots)} hotspots)" if event.hotspots else ""
        console.print(f"   {marker} {event.year}: {event.title}{hotspots}")

    if not artifact.narration_audio:
        console.print("   [yellow]No narration audio[/yellow]")
    return 0


async def cmd_refresh(session: HistorianSession, args: argparse.Namespace) -> int:
    status = await session.scheduler.refresh(args.id)
    style = _STATUS_STYLE[status]
    console.print(f"{args.id}: [{style}]{status.value}[/{style}]")
    return 0 if status is EntityStatus.READY else 1


async def cmd_list(session: HistorianSession, args: argparse.Namespace) -> int:
    artifacts = await session.timeline_cache.list_all()
    if not artifacts:
        console.print("[dim]No journeys saved yet.[/dim]")
        return 0

    table = Table(title="Saved journeys")
    table.add_column("Id")
    table.add_column("Subject")
    table.add_column("Location")
    table.add_column("Eras", justify="right")
    table.add_column("Notes", justify="right")
    table.add_column("Source")
    for artifact in sorted(artifacts, key=lambda a: a.created_at):
        generated = len(artifact.generated_indices)
        table.add_row(
            artifact.id,
            artifact.subject_name,
            artifact.subject_location,
            f"{generated}/{len(artifact.timeline)}",
            str(len(artifact.user_notes)),
            "discovery" if artifact.is_user_submitted else "catalog",
        )
    console.print(table)
    return 0


async def cmd_delete(session: HistorianSession, args: argparse.Namespace) -> int:
    await session.timeline_cache.delete(args.id)
    console.print(f"[green]Removed {args.id}[/green]")
    return 0


async def cmd_research(session: HistorianSession, args: argparse.Namespace) -> int:
    desk = session.research_desk

    if args.audio:
        audio_path = Path(args.audio)
        if not audio_path.exists():
            console.print(f"[red]ERROR: Recording not found: {audio_path}[/red]")
            return 1
        paper = await desk.conduct(_read_b64(audio_path))
        console.print(f"[green]📜 {paper.title}[/green] ({paper.id}, {len(paper.images)} images)")
        for source in paper.sources:
            console.print(f"   {source.title}: {source.url}")
        if not args.launch:
            return 0
        papers = [paper]
    else:
        papers = await desk.papers()
        if not papers:
            console.print("[dim]No research papers archived.[/dim]")
            return 0
        for p in papers:
            console.print(f"   {p.id}: {p.title} ({p.topic})")
        if not args.launch:
            return 0

    artifact = await desk.launch_journey(papers[0], session.pipeline, _print_status)
    console.print(f"\n[bold green]✅ Journey ready:[/bold green] {artifact.id}")
    return 0


async def cmd_note(session: HistorianSession, args: argparse.Namespace) -> int:
    artifact = await session.timeline_cache.get(args.id)
    if artifact is None:
        console.print(f"[red]ERROR: No saved journey {args.id}[/red]")
        return 1

    if args.audio:
        content, is_audio = _read_b64(Path(args.audio)), True
    else:
        content, is_audio = args.text, False

    updated = await session.notes.add_note(
        artifact, content, is_audio=is_audio, year_context=args.year
    )
    console.print(f"[green]Note saved[/green] ({len(updated.user_notes)} notes on {args.id})")
    return 0


async def cmd_narration(session: HistorianSession, args: argparse.Namespace) -> int:
    artifact = await session.timeline_cache.get(args.id)
    if artifact is None or not artifact.narration_audio:
        console.print(f"[red]ERROR: No narration for {args.id}[/red]")
        return 1

    buffer = session.audio_decoder.decode(artifact.narration_audio)
    console.print(
        f"{args.id}: {buffer.duration_s:.1f}s, {buffer.sample_rate} Hz, "
        f"{buffer.num_channels} channel(s)"
    )
    return 0


_COMMANDS: dict[str, Callable[[HistorianSession, argparse.Namespace], Awaitable[int]]] = {
    "pregenerate": cmd_pregenerate,
    "journey": cmd_journey,
    "refresh": cmd_refresh,
    "list": cmd_list,
    "delete": cmd_delete,
    "research": cmd_research,
    "note": cmd_note,
    "narration": cmd_narration,
}


async def run_command(args: argparse.Namespace) -> int:
    """Run one CLI command.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    try:
        session = HistorianSession(app_config=args.config)
    except Exception as e:
        console.print(f"[red]ERROR: Could not load config: {e}[/red]")
        return 1

    if args.log_level:
        session.app_config.logging.level = args.log_level.upper()
    configure_logging(session.app_config)

    try:
        return await _COMMANDS[args.cmd](session, args)
    except MissingCredentialError as e:
        console.print(f"[red]ERROR: {e}[/red]")
        console.print("  export GEMINI_API_KEY='your-key-here'")
        return 2
    except CredentialRequiredError as e:
        console.print(f"[red]ERROR: The API key was rejected: {e}[/red]")
        console.print("  export GEMINI_API_KEY='your-key-here'")
        return 2
    except (GenerationError, ResearchRejectedError, IrrelevantNoteError, AudioDecodeError) as e:
        logger.debug(f"{args.cmd} failed", exc_info=True)
        console.print(f"[red]ERROR: {e}[/red]")
        return 1
    except (KeyError, ValueError) as e:
        console.print(f"[red]ERROR: {e}[/red]")
        return 1


def build_arg_parser() -> argparse.ArgumentParser:
    """Build argument parser for CLI."""
    p = argparse.ArgumentParser(
        prog="historian",
        description="Historian - generated historical journeys through landmarks",
    )
    p.add_argument(
        "--config",
        default=None,
        help="Path to app config (.yaml/.json, default: historian.yaml)",
    )
    p.add_argument("--log-level", default=None, help="Override logging level")
    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser("pregenerate", help="Generate every catalog journey not cached yet")

    journey = sub.add_parser("journey", help="Generate (or load) one journey")
    source = journey.add_mutually_exclusive_group(required=True)
    source.add_argument("--preset", help="Catalog id (e.g. eiffel)")
    source.add_argument("--image", help="Photo of a landmark")
    journey.add_argument("--refresh", action="store_true", help="Ignore the cached journey")
    journey.add_argument(
        "--resolve-all", action="store_true", help="Render every era, not only the first"
    )
    journey.add_argument("--panoramic", action="store_true", help="Use panoramic trigger distance")

    refresh = sub.add_parser("refresh", help="Regenerate a catalog journey")
    refresh.add_argument("id", help="Catalog id")

    sub.add_parser("list", help="List saved journeys")

    delete = sub.add_parser("delete", help="Remove a saved journey")
    delete.add_argument("id", help="Journey id")

    research = sub.add_parser("research", help="Research a spoken request / list dossiers")
    research.add_argument("--audio", help="Recorded research request")
    research.add_argument(
        "--launch", action="store_true", help="Turn the (newest) dossier into a journey"
    )

    note = sub.add_parser("note", help="Attach a note to a saved journey")
    note.add_argument("id", help="Journey id")
    content = note.add_mutually_exclusive_group(required=True)
    content.add_argument("--text", help="Note text")
    content.add_argument("--audio", help="Recorded note")
    note.add_argument("--year", type=int, default=None, help="Era the note refers to")

    narration = sub.add_parser("narration", help="Decode and describe a journey's narration")
    narration.add_argument("id", help="Journey id")

    return p


def main(argv: list[str] | None = None) -> None:
    """Main entry point for CLI."""
    args = build_arg_parser().parse_args(argv)
    sys.exit(asyncio.run(run_command(args)))


if __name__ == "__main__":
    main()
