"""Fixed catalog of pipeline stages.

The catalog order is the only order stages may run in. Optional stages carry
an applicability predicate; when it is false the stage is reported as already
completed and drops out of progress weighting.
"""

from collections.abc import Callable
from dataclasses import dataclass

from pdfcast.models import PodcastConfig, Stage, StageStatus

SCRIPT_ANALYSIS = "script-analysis"
SPEECH_SYNTHESIS = "speech-synthesis"
SPONSORSHIP_INTEGRATION = "sponsorship-integration"
PERSONAL_VOICE_PROCESSING = "personal-voice-processing"
AUDIO_MIXING = "audio-mixing"
ARTIFACT_ENCODING = "artifact-encoding"


def _always(config: PodcastConfig) -> bool:
    return True


@dataclass(frozen=True)
class StageSpec:
    id: str
    title: str
    description: str
    weight: float
    applies: Callable[[PodcastConfig], bool] = _always
    # Validations field set when the stage completes, if any
    validation: str | None = None

    def build(self, config: PodcastConfig) -> Stage:
        applicable = self.applies(config)
        return Stage(
            id=self.id,
            title=self.title,
            description=self.description,
            weight=self.weight,
            applicable=applicable,
            status=StageStatus.PENDING if applicable else StageStatus.COMPLETED,
            progress=0.0 if applicable else 100.0,
        )


# Weights follow the relative durations of each stage.
STAGE_REGISTRY: tuple[StageSpec, ...] = (
    StageSpec(
        id=SCRIPT_ANALYSIS,
        title="Analyzing PDF Content",
        description="Processing and validating extracted text",
        weight=2.0,
        validation="script_ready",
    ),
    StageSpec(
        id=SPEECH_SYNTHESIS,
        title="Generating Speech",
        description="Converting text to speech with selected voice",
        weight=5.0,
        validation="speech_ready",
    ),
    StageSpec(
        id=SPONSORSHIP_INTEGRATION,
        title="Adding Sponsorships",
        description="Integrating sponsorship segments",
        weight=1.5,
        applies=lambda config: bool(config.sponsorships),
    ),
    StageSpec(
        id=PERSONAL_VOICE_PROCESSING,
        title="Processing Personal Voice",
        description="Cloning voice and generating questions",
        weight=4.0,
        applies=lambda config: config.personal_voice is not None,
    ),
    StageSpec(
        id=AUDIO_MIXING,
        title="Mixing Audio Segments",
        description="Combining all audio elements",
        weight=3.0,
        validation="audio_assembled",
    ),
    StageSpec(
        id=ARTIFACT_ENCODING,
        title="Generating Final MP3",
        description="Creating downloadable podcast file",
        weight=2.5,
        validation="artifact_encoded",
    ),
)


def get_stage(stage_id: str) -> StageSpec:
    for spec in STAGE_REGISTRY:
        if spec.id == stage_id:
            return spec
    raise KeyError(f"Unknown stage: {stage_id}")


def applicable_stages(config: PodcastConfig) -> list[StageSpec]:
    """Stages that will run for this configuration, in catalog order."""
    return [spec for spec in STAGE_REGISTRY if spec.applies(config)]


def initial_stages(config: PodcastConfig) -> list[Stage]:
    """Fresh stage list for a run, optional stages pre-marked completed."""
    return [spec.build(config) for spec in STAGE_REGISTRY]
