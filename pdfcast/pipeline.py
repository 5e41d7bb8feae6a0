"""Podcast assembly pipeline.

`PipelineExecutor.run` walks the stage catalog in order, one stage at a time,
and yields a `PipelineState` snapshot after every state change. The first
failing stage ends the run: it is marked failed, one error naming it is
recorded, and no artifact is produced.
"""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import aclosing, suppress
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from pdfcast.config import PodcastSettings, is_voice_for
from pdfcast.errors import InputValidationError, PipelineBusyError, StageExecutionError
from pdfcast.models import (
    AudioAsset,
    MixTrack,
    OutputArtifact,
    PersonalVoiceRole,
    PipelineState,
    PodcastConfig,
    Speaker,
    SponsorshipKind,
    SponsorshipPosition,
    TimelineSegment,
)
from pdfcast.placement import (
    INTRO_KEY,
    OUTRO_KEY,
    ContentPart,
    content_breakpoints,
    estimate_seconds,
    host_key,
    host_text,
    intro_text,
    outro_text,
    plan_content,
    question_count,
    question_key,
    rescale_timeline,
    resolve_timeline,
    section_fractions,
    sponsorship_key,
)
from pdfcast.services import PodcastServices
from pdfcast.stages import (
    ARTIFACT_ENCODING,
    AUDIO_MIXING,
    PERSONAL_VOICE_PROCESSING,
    SCRIPT_ANALYSIS,
    SPEECH_SYNTHESIS,
    SPONSORSHIP_INTEGRATION,
    StageSpec,
    applicable_stages,
    initial_stages,
)
from pdfcast.status import StatusTracker

ProgressReporter = Callable[[float], None]


def validate_config(config: PodcastConfig, settings: PodcastSettings) -> None:
    """Check a configuration before any stage runs.

    Raises InputValidationError listing every problem found.
    """
    problems: list[str] = []

    script = config.script.strip()
    if not script:
        problems.append("Script is empty; upload a document first")
    elif len(script) < settings.min_script_chars:
        problems.append(f"Script must contain at least {settings.min_script_chars} characters")
    else:
        # Every content part between insertions needs at least one word
        parts = len(content_breakpoints(config, settings, question_count(config, settings))) + 1
        words = len(script.split())
        if words < parts:
            problems.append(
                f"Script has {words} words but the episode splits it into {parts} parts"
            )

    if not config.narrator_voice_id:
        problems.append("Select a narrator voice")
    elif not is_voice_for(config.narrator_voice_id, config.language):
        problems.append(
            f"Voice {config.narrator_voice_id} is not available for {config.language.value}"
        )

    seen: set[str] = set()
    for sponsorship in config.sponsorships:
        if sponsorship.id in seen:
            problems.append(f"Duplicate sponsorship id {sponsorship.id}")
        seen.add(sponsorship.id)
        if not sponsorship.content.strip():
            problems.append(f"Sponsorship {sponsorship.id} has no content")
        if sponsorship.position is SponsorshipPosition.CUSTOM:
            if sponsorship.custom_percent is None:
                problems.append(f"Sponsorship {sponsorship.id} needs a custom percentage")
        elif sponsorship.custom_percent is not None:
            problems.append(
                f"Sponsorship {sponsorship.id} sets a percentage without a custom position"
            )
        if sponsorship.voice_id and not is_voice_for(sponsorship.voice_id, config.language):
            problems.append(
                f"Sponsorship voice {sponsorship.voice_id} is not available for {config.language.value}"
            )

    voice = config.personal_voice
    if voice is not None:
        if not voice.audio_sample:
            problems.append("Personal voice needs an audio sample")
        if voice.generated_questions and voice.role is not PersonalVoiceRole.INTERVIEWER:
            problems.append("Generated questions are only valid for the interviewer role")

    if problems:
        raise InputValidationError(problems)


@dataclass
class RunContext:
    """Working data handed from one stage to the next."""
    config: PodcastConfig
    settings: PodcastSettings
    services: PodcastServices
    question_count: int = 0
    parts: list[ContentPart] = field(default_factory=list)
    assets: dict[str, AudioAsset] = field(default_factory=dict)
    personal_voice_id: str = ""
    questions: list[str] = field(default_factory=list)
    timeline: list[TimelineSegment] = field(default_factory=list)
    tracks: list[MixTrack] = field(default_factory=list)
    artifact: OutputArtifact | None = None


async def _synthesize_all(
    ctx: RunContext,
    jobs: list[tuple[str, str]],
    voice_id: str,
    report: ProgressReporter,
    start: float = 0.0,
) -> None:
    """Voice each (segment key, text) job, spreading progress from `start` to 100."""
    for i, (key, text) in enumerate(jobs):
        ctx.assets[key] = await ctx.services.synthesize_speech(text, voice_id, ctx.config.language)
        report(start + (100.0 - start) * (i + 1) / len(jobs))


async def analyze_script(ctx: RunContext, report: ProgressReporter) -> None:
    config = ctx.config
    ctx.question_count = question_count(config, ctx.settings)
    report(30)
    ctx.parts = plan_content(config, ctx.settings, ctx.question_count)
    report(70)
    empty = [part.key for part in ctx.parts if not part.text]
    if empty:
        raise StageExecutionError(
            stage=SCRIPT_ANALYSIS,
            detail=f"Script is too short to split into {len(ctx.parts)} parts",
        )
    logger.info(
        "Script: {} words, ~{:.0f}s of content in {} parts",
        len(config.script.split()),
        estimate_seconds(config.script, ctx.settings.words_per_minute),
        len(ctx.parts),
    )
    report(100)


async def synthesize_narration(ctx: RunContext, report: ProgressReporter) -> None:
    config = ctx.config
    jobs = [(INTRO_KEY, intro_text(config))]
    jobs += [(p.key, p.text) for p in ctx.parts if p.speaker is Speaker.NARRATOR]
    jobs.append((OUTRO_KEY, outro_text(config)))
    await _synthesize_all(ctx, jobs, config.narrator_voice_id, report)


async def integrate_sponsorships(ctx: RunContext, report: ProgressReporter) -> None:
    config = ctx.config
    total = len(config.sponsorships)
    for i, sponsorship in enumerate(config.sponsorships):
        key = sponsorship_key(sponsorship)
        if sponsorship.kind is SponsorshipKind.AUDIO:
            ctx.assets[key] = AudioAsset(path=Path(sponsorship.content))
        else:
            voice_id = sponsorship.voice_id or config.narrator_voice_id
            ctx.assets[key] = await ctx.services.synthesize_speech(
                sponsorship.content, voice_id, config.language,
            )
        report(100.0 * (i + 1) / total)


async def process_personal_voice(ctx: RunContext, report: ProgressReporter) -> None:
    config = ctx.config
    voice = config.personal_voice
    ctx.personal_voice_id = await ctx.services.clone_voice(voice.audio_sample)
    report(20)

    if voice.role is PersonalVoiceRole.INTERVIEWER:
        questions = list(voice.generated_questions)
        if not questions:
            questions = await ctx.services.generate_interview_questions(config.script)
        questions = questions[:ctx.question_count]
        if len(questions) < ctx.question_count:
            raise StageExecutionError(
                stage=PERSONAL_VOICE_PROCESSING,
                detail=f"Expected {ctx.question_count} interview questions, got {len(questions)}",
            )
        ctx.questions = questions
        report(40)
        jobs = [(question_key(j), q) for j, q in enumerate(questions)]
        start = 40.0
    elif voice.role is PersonalVoiceRole.HOST:
        boundaries = section_fractions(ctx.settings)
        jobs = [(host_key(k), host_text(config)) for k in range(len(boundaries))]
        start = 20.0
    else:
        jobs = [(p.key, p.text) for p in ctx.parts if p.speaker is Speaker.PERSONAL]
        start = 20.0

    if jobs:
        await _synthesize_all(ctx, jobs, ctx.personal_voice_id, report, start)
    report(100)


async def mix_audio(ctx: RunContext, report: ProgressReporter) -> None:
    ctx.timeline = resolve_timeline(ctx.config, ctx.settings, ctx.questions)
    report(50)
    missing = [seg.key for seg in ctx.timeline if seg.key not in ctx.assets]
    if missing:
        raise StageExecutionError(
            stage=AUDIO_MIXING,
            detail=f"No audio for segments: {', '.join(missing)}",
        )
    ctx.tracks = [MixTrack(segment=seg, asset=ctx.assets[seg.key]) for seg in ctx.timeline]
    report(100)


async def encode_artifact(ctx: RunContext, report: ProgressReporter) -> None:
    encoded = await ctx.services.mix_and_encode(ctx.tracks)
    if encoded.duration <= 0 or encoded.file_size <= 0:
        raise StageExecutionError(stage=ARTIFACT_ENCODING, detail="Encoder produced an empty file")
    ctx.artifact = OutputArtifact(
        path=encoded.asset.path,
        duration=encoded.duration,
        file_size=encoded.file_size,
        segments=rescale_timeline(ctx.timeline, encoded.duration),
        questions=ctx.questions,
    )
    report(100)


STAGE_HANDLERS: dict[str, Callable[[RunContext, ProgressReporter], Awaitable[None]]] = {
    SCRIPT_ANALYSIS: analyze_script,
    SPEECH_SYNTHESIS: synthesize_narration,
    SPONSORSHIP_INTEGRATION: integrate_sponsorships,
    PERSONAL_VOICE_PROCESSING: process_personal_voice,
    AUDIO_MIXING: mix_audio,
    ARTIFACT_ENCODING: encode_artifact,
}

_DONE = object()


class PipelineExecutor:
    """Runs the stage catalog for one session.

    A single executor never runs two pipelines at once; a second `run`
    while one is in flight raises PipelineBusyError.
    """

    def __init__(self, services: PodcastServices, settings: PodcastSettings | None = None) -> None:
        self.services = services
        self.settings = settings or PodcastSettings()
        self.status = StatusTracker()
        self.artifact: OutputArtifact | None = None
        self.failure: StageExecutionError | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def state(self) -> PipelineState:
        return self.status.snapshot()

    def reset(self) -> None:
        """Drop all state from previous runs."""
        if self._running:
            raise PipelineBusyError("Cannot reset while a pipeline run is in progress")
        self.status.reset([])
        self.artifact = None
        self.failure = None

    async def run(self, config: PodcastConfig) -> AsyncIterator[PipelineState]:
        """Run every applicable stage, yielding a snapshot after each change."""
        if self._running:
            raise PipelineBusyError("A pipeline run is already in progress for this session")
        validate_config(config, self.settings)

        self._running = True
        try:
            self.artifact = None
            self.failure = None
            self.status.reset(initial_stages(config))
            for stage in self.status.snapshot().stages:
                if not stage.applicable:
                    logger.info("Skipping stage {}", stage.id)
            yield self.status.snapshot()

            ctx = RunContext(config=config, settings=self.settings, services=self.services)
            for spec in applicable_stages(config):
                async with aclosing(self._run_stage(spec, ctx)) as stage_run:
                    async for snapshot in stage_run:
                        yield snapshot
                if self.failure is not None:
                    return

            self.status.finish()
            self.artifact = ctx.artifact
            logger.info("Pipeline finished: {}", self.artifact.path)
            yield self.status.snapshot()
        finally:
            self._running = False

    async def _run_stage(self, spec: StageSpec, ctx: RunContext) -> AsyncIterator[PipelineState]:
        logger.info("Stage {} started", spec.id)
        self.status.start_stage(spec.id)
        yield self.status.snapshot()

        queue: asyncio.Queue = asyncio.Queue()

        def report(progress: float) -> None:
            self.status.report(spec.id, progress)
            queue.put_nowait(self.status.snapshot())

        task = asyncio.create_task(STAGE_HANDLERS[spec.id](ctx, report))
        task.add_done_callback(lambda _: queue.put_nowait(_DONE))
        try:
            while True:
                item = await queue.get()
                if item is _DONE:
                    break
                yield item
        finally:
            # A closed run must not leave its stage writing into the next one
            if not task.done():
                logger.warning("Stage {} abandoned, cancelling", spec.id)
                task.cancel()
                with suppress(asyncio.CancelledError):
                    await task

        try:
            task.result()
        except StageExecutionError as exc:
            self.failure = exc
        except Exception as exc:
            self.failure = StageExecutionError(stage=spec.id, detail=str(exc) or type(exc).__name__)

        if self.failure is not None:
            self.status.fail_stage(
                spec.id, f"Failed at stage: {spec.title} ({spec.id}): {self.failure.detail}",
            )
            yield self.status.snapshot()
            return

        self.status.complete_stage(spec.id)
        logger.info("Stage {} completed", spec.id)
        yield self.status.snapshot()

    async def execute(self, config: PodcastConfig) -> OutputArtifact:
        """Run to the end, returning the artifact or raising the stage failure."""
        async for _ in self.run(config):
            pass
        if self.failure is not None:
            raise self.failure
        return self.artifact
