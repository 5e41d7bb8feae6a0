"""Step-by-step wizard that collects a configuration and drives the pipeline.

Steps run strictly in order: upload -> configure -> sponsorship -> voice ->
processing -> complete. Each step edits the configuration by handing a delta
to `apply`, which swaps in a new validated config in one go.
"""

from collections.abc import AsyncIterator
from contextlib import aclosing
from pathlib import Path

from loguru import logger

from pdfcast.config import PodcastSettings, is_voice_for
from pdfcast.errors import InputValidationError, WizardTransitionError
from pdfcast.models import (
    Language,
    OutputArtifact,
    PersonalVoice,
    PersonalVoiceRole,
    PipelineState,
    PodcastConfig,
    Sponsorship,
    SponsorshipKind,
    SponsorshipPosition,
    WizardStep,
)
from pdfcast.pipeline import PipelineExecutor, validate_config
from pdfcast.services import validate_voice_sample

STEPS: list[WizardStep] = list(WizardStep)

# Initial slider position for custom sponsorships
DEFAULT_CUSTOM_PERCENT = 50


class PodcastWizard:
    def __init__(self, executor: PipelineExecutor, settings: PodcastSettings | None = None) -> None:
        self.executor = executor
        self.settings = settings or executor.settings
        self.config = PodcastConfig()
        self.step = WizardStep.UPLOAD
        self.artifact: OutputArtifact | None = None

    @property
    def state(self) -> PipelineState:
        return self.executor.state

    @property
    def step_number(self) -> int:
        return STEPS.index(self.step) + 1

    @property
    def progress_percent(self) -> float:
        return self.step_number / len(STEPS) * 100

    # -- configuration deltas ------------------------------------------------

    def _ensure_editable(self) -> None:
        if self.executor.running:
            raise WizardTransitionError("Configuration is read-only while processing")

    def apply(self, **changes) -> PodcastConfig:
        """Apply a configuration delta atomically."""
        self._ensure_editable()
        if "language" in changes and "narrator_voice_id" not in changes:
            if Language(changes["language"]) is not self.config.language:
                changes["narrator_voice_id"] = ""
        data = self.config.model_dump()
        data.update(changes)
        self.config = PodcastConfig.model_validate(data)
        return self.config

    def load_document(self, document: Path) -> PodcastConfig:
        """Extract the script from an uploaded document."""
        text = self.executor.services.extract_script(document)
        logger.info("Extracted {} characters from {}", len(text), document.name)
        return self.apply(script=text, document_name=document.name)

    def set_script(self, text: str, document_name: str = "") -> PodcastConfig:
        return self.apply(script=text, document_name=document_name)

    def select_language(self, language: Language | str) -> PodcastConfig:
        return self.apply(language=Language(language))

    def select_voice(self, voice_id: str) -> PodcastConfig:
        if not is_voice_for(voice_id, self.config.language):
            raise InputValidationError(
                f"Voice {voice_id} is not available for {self.config.language.value}"
            )
        return self.apply(narrator_voice_id=voice_id)

    def add_sponsorship(
        self,
        content: str,
        kind: SponsorshipKind = SponsorshipKind.TEXT,
        position: SponsorshipPosition = SponsorshipPosition.BEGINNING,
        custom_percent: int | None = None,
        voice_id: str | None = None,
    ) -> Sponsorship:
        if not content.strip():
            raise InputValidationError("Sponsorship content is required")
        position = SponsorshipPosition(position)
        kind = SponsorshipKind(kind)
        if position is SponsorshipPosition.CUSTOM:
            if custom_percent is None:
                custom_percent = DEFAULT_CUSTOM_PERCENT
        else:
            custom_percent = None
        # Without an explicit voice a text read follows whatever narrator is
        # selected when the pipeline runs
        if kind is not SponsorshipKind.TEXT:
            voice_id = None

        sponsorship = Sponsorship(
            kind=kind,
            content=content,
            position=position,
            custom_percent=custom_percent,
            voice_id=voice_id,
        )
        self.apply(sponsorships=[*self.config.sponsorships, sponsorship])
        return sponsorship

    def remove_sponsorship(self, sponsorship_id: str) -> bool:
        remaining = [s for s in self.config.sponsorships if s.id != sponsorship_id]
        removed = len(remaining) != len(self.config.sponsorships)
        self.apply(sponsorships=remaining)
        return removed

    async def set_personal_voice(
        self,
        audio_sample: Path,
        role: PersonalVoiceRole = PersonalVoiceRole.INTERVIEWER,
        preview_questions: bool = True,
    ) -> PersonalVoice:
        """Attach the user's voice sample.

        For interviewers the questions are previewed right away; if that
        fails the pipeline generates them later.
        """
        self._ensure_editable()
        validate_voice_sample(audio_sample, self.settings)
        role = PersonalVoiceRole(role)

        questions: list[str] = []
        if role is PersonalVoiceRole.INTERVIEWER and preview_questions and self.config.script:
            try:
                generated = await self.executor.services.generate_interview_questions(self.config.script)
                questions = generated[:self.settings.interview_questions]
            except Exception as exc:
                logger.warning("Question preview failed ({}), generating during processing", exc)

        voice = PersonalVoice(
            audio_sample=str(audio_sample),
            role=role,
            generated_questions=questions,
        )
        self.apply(personal_voice=voice)
        return voice

    def clear_personal_voice(self) -> PodcastConfig:
        return self.apply(personal_voice=None)

    # -- navigation ------------------------------------------------------------

    def _check_gate(self) -> None:
        """Raise InputValidationError if the current step is not done."""
        if self.step is WizardStep.UPLOAD:
            if len(self.config.script.strip()) < self.settings.min_script_chars:
                raise InputValidationError("Upload a document with readable text first")
        elif self.step is WizardStep.CONFIGURE:
            voice_id = self.config.narrator_voice_id
            if not voice_id or not is_voice_for(voice_id, self.config.language):
                raise InputValidationError("Select a narrator voice for the chosen language")
        elif self.step is WizardStep.VOICE:
            validate_config(self.config, self.settings)

    def next(self) -> WizardStep:
        if self.step is WizardStep.COMPLETE:
            raise WizardTransitionError("Already at the last step; restart to create another podcast")
        if self.step is WizardStep.PROCESSING:
            if self.executor.running:
                raise WizardTransitionError("Processing is still running")
            if not self.executor.status.can_proceed:
                raise WizardTransitionError("Processing has not finished successfully")
        self._check_gate()
        return self._move(STEPS[STEPS.index(self.step) + 1])

    def previous(self) -> WizardStep:
        if self.step is WizardStep.PROCESSING and self.executor.running:
            raise WizardTransitionError("Cannot go back while processing is running")
        return self._move(STEPS[max(STEPS.index(self.step) - 1, 0)])

    def _move(self, step: WizardStep) -> WizardStep:
        if step is not self.step:
            logger.debug("Wizard step {} -> {}", self.step.value, step.value)
        self.step = step
        return step

    async def process(self) -> AsyncIterator[PipelineState]:
        """Run the pipeline, moving on to `complete` when it succeeds."""
        if self.step is not WizardStep.PROCESSING:
            raise WizardTransitionError("The pipeline can only run from the processing step")
        self.artifact = None
        async with aclosing(self.executor.run(self.config)) as run:
            async for snapshot in run:
                yield snapshot
        if self.executor.artifact is not None:
            self.artifact = self.executor.artifact
            self._move(WizardStep.COMPLETE)

    async def run_processing(self) -> PipelineState:
        """Drain `process` and return the final snapshot."""
        async for _ in self.process():
            pass
        return self.state

    def restart(self) -> None:
        """Start over with an empty configuration and pipeline state."""
        if self.step is not WizardStep.COMPLETE:
            raise WizardTransitionError("Restart is only available once the podcast is ready")
        self.executor.reset()
        self.config = PodcastConfig()
        self.artifact = None
        self.step = WizardStep.UPLOAD
