"""Typer CLI for the pdfcast podcast pipeline."""

import asyncio
import re
import sys
from pathlib import Path
from typing import Annotated, Optional

import typer
from loguru import logger

from pdfcast.config import (
    init_config,
    load_config,
    resolve_voice_id,
    voices_for,
)
from pdfcast.errors import InputValidationError
from pdfcast.models import (
    Language,
    PersonalVoiceRole,
    PipelineState,
    SponsorshipKind,
    SponsorshipPosition,
    StageStatus,
    WizardStep,
)
from pdfcast.pipeline import PipelineExecutor
from pdfcast.services import ProductionServices
from pdfcast.wizard import STEPS, PodcastWizard

app = typer.Typer(
    name="pdfcast",
    help="PDF to Podcast: turn a document into a narrated podcast episode.",
    no_args_is_help=True,
)

_PLACEMENT_RE = re.compile(r"^(?P<position>beginning|middle|end|custom@(?P<percent>-?\d+))$")


def _slugify(text: str) -> str:
    return re.sub(r"[^a-z0-9-]", "", text.lower().replace(" ", "-").replace("_", "-"))


def _configure_logging(verbose: bool) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if verbose else "WARNING",
        format="{time:HH:mm:ss} | {level: <7} | {message}",
    )


def parse_placement(value: str) -> tuple[SponsorshipPosition, int | None, str]:
    """Parse POSITION:CONTENT, where POSITION is beginning|middle|end|custom@N."""
    head, sep, content = value.partition(":")
    match = _PLACEMENT_RE.match(head.strip().lower())
    if not sep or not content.strip() or not match:
        raise typer.BadParameter(
            f"'{value}' is not POSITION:CONTENT (POSITION is beginning, middle, end or custom@N)"
        )
    if match.group("percent") is not None:
        return SponsorshipPosition.CUSTOM, int(match.group("percent")), content.strip()
    return SponsorshipPosition(match.group("position")), None, content.strip()


def _step_banner(step: WizardStep) -> str:
    return f"[{STEPS.index(step) + 1}/{len(STEPS)}] {step.heading}"


def _render_changes(seen: dict[str, StageStatus], snapshot: PipelineState) -> None:
    """Echo stage status transitions since the last snapshot."""
    for stage in snapshot.stages:
        if seen.get(stage.id) is stage.status:
            continue
        seen[stage.id] = stage.status
        if not stage.applicable:
            typer.echo(f"  - {stage.title}: skipped")
        elif stage.status is StageStatus.RUNNING:
            typer.echo(f"  > {stage.title}... ({snapshot.overall_progress:.0f}%)")
        elif stage.status is StageStatus.COMPLETED:
            typer.echo(f"  + {stage.title} ({snapshot.overall_progress:.0f}%)")
        elif stage.status is StageStatus.FAILED:
            typer.echo(f"  x {stage.title}")


@app.command()
def generate(
    document: Annotated[Path, typer.Argument(help="PDF (or plain text) document to convert")],
    language: Annotated[Language, typer.Option("--language", "-L", help="Narration language")] = Language.ENGLISH,
    voice: Annotated[Optional[str], typer.Option("--voice", "-v", help="Narrator voice ID (see `pdfcast voices`)")] = None,
    sponsor: Annotated[Optional[list[str]], typer.Option("--sponsor", "-s", help="Text sponsorship as POSITION:TEXT")] = None,
    sponsor_audio: Annotated[Optional[list[str]], typer.Option("--sponsor-audio", help="Audio sponsorship as POSITION:FILE")] = None,
    personal_voice: Annotated[Optional[Path], typer.Option("--personal-voice", "-p", help="Sample of your own voice")] = None,
    role: Annotated[PersonalVoiceRole, typer.Option("--role", "-r", help="Part your voice plays")] = PersonalVoiceRole.INTERVIEWER,
    output: Annotated[Optional[Path], typer.Option("--output", "-o", help="Custom output directory")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", help="Show debug logs")] = False,
) -> None:
    """Generate a podcast episode from a document."""
    _configure_logging(verbose)
    settings = load_config()
    slug = _slugify(document.stem) or "podcast"

    sponsorships = [(SponsorshipKind.TEXT, *parse_placement(v)) for v in sponsor or []]
    sponsorships += [(SponsorshipKind.AUDIO, *parse_placement(v)) for v in sponsor_audio or []]

    run_dir = output or settings.data_dir / slug
    run_dir.mkdir(parents=True, exist_ok=True)

    typer.echo(f"pdfcast: {document.name} | {language.value}")
    typer.echo(f"Output: {run_dir}")
    typer.echo("")

    services = ProductionServices(settings, run_dir, output_name=f"{slug}.mp3")
    wizard = PodcastWizard(PipelineExecutor(services, settings), settings)
    code = asyncio.run(_run_wizard(
        wizard=wizard,
        document=document,
        language=language,
        voice=voice,
        sponsorships=sponsorships,
        personal_voice=personal_voice,
        role=role,
    ))
    if code:
        raise typer.Exit(code=code)


async def _run_wizard(
    wizard: PodcastWizard,
    document: Path,
    language: Language,
    voice: str | None,
    sponsorships: list[tuple[SponsorshipKind, SponsorshipPosition, int | None, str]],
    personal_voice: Path | None,
    role: PersonalVoiceRole,
) -> int:
    try:
        typer.echo(_step_banner(WizardStep.UPLOAD))
        config = wizard.load_document(document)
        typer.echo(f"  {len(config.script)} characters extracted")
        wizard.next()

        typer.echo(_step_banner(WizardStep.CONFIGURE))
        wizard.select_language(language)
        wizard.select_voice(voice or voices_for(language)[0].id)
        typer.echo(f"  Narrator: {wizard.config.narrator_voice_id}")
        wizard.next()

        typer.echo(_step_banner(WizardStep.SPONSORSHIP))
        for kind, position, percent, content in sponsorships:
            added = wizard.add_sponsorship(content, kind=kind, position=position, custom_percent=percent)
            typer.echo(f"  {kind.value} sponsorship at {added.label}")
        wizard.next()

        typer.echo(_step_banner(WizardStep.VOICE))
        if personal_voice:
            added_voice = await wizard.set_personal_voice(personal_voice, role)
            typer.echo(f"  Personal voice as {added_voice.role.value}")
            for question in added_voice.generated_questions:
                typer.echo(f"    ? {question}")
        else:
            typer.echo("  Skipped")
        wizard.next()
    except InputValidationError as exc:
        for problem in exc.problems:
            typer.echo(f"Error: {problem}", err=True)
        return 1

    typer.echo(_step_banner(WizardStep.PROCESSING))
    seen: dict[str, StageStatus] = {}
    async for snapshot in wizard.process():
        _render_changes(seen, snapshot)

    if wizard.step is not WizardStep.COMPLETE:
        for error in wizard.state.errors:
            typer.echo(f"Error: {error}", err=True)
        return 1

    artifact = wizard.artifact
    typer.echo(_step_banner(WizardStep.COMPLETE))
    typer.echo(f"  Duration: {artifact.duration_label} | Size: {artifact.size_label}")
    for seg in artifact.segments:
        typer.echo(f"  {seg.start:7.1f}s  {seg.kind.value:<12} {seg.key}")
    typer.echo(f"\nDone: {artifact.path}")
    # Machine-readable line for wrapper scripts
    typer.echo(f"MEDIA: {artifact.path}")
    return 0


@app.command()
def voices(
    language: Annotated[Optional[Language], typer.Option("--language", "-L", help="Only this language")] = None,
) -> None:
    """Show the narrator voice catalog."""
    settings = load_config()
    typer.echo("Narrator Voices")
    typer.echo("=" * 40)
    for lang in [language] if language else list(Language):
        typer.echo(f"\n{lang.value.upper()}:")
        for option in voices_for(lang):
            provider = resolve_voice_id(option.id, settings)
            typer.echo(f"  {option.id:<12} {option.name:<8} {option.gender:<7} {provider}")


@app.command()
def config() -> None:
    """Show or initialize the config file."""
    path = init_config()
    typer.echo(f"Config: {path}")
    typer.echo("")
    typer.echo(path.read_text())
