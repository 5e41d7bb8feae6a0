"""Shared data models for the pdfcast pipeline."""

import uuid
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class Language(str, Enum):
    ENGLISH = "english"
    HEBREW = "hebrew"

    @property
    def code(self) -> str:
        return {Language.ENGLISH: "en", Language.HEBREW: "he"}[self]


class VoiceOption(BaseModel):
    """A narrator voice offered for a language."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    gender: str
    language: Language
    description: str = ""


class SponsorshipKind(str, Enum):
    TEXT = "text"
    AUDIO = "audio"


class SponsorshipPosition(str, Enum):
    BEGINNING = "beginning"
    MIDDLE = "middle"
    END = "end"
    CUSTOM = "custom"


class Sponsorship(BaseModel):
    """A sponsor read or pre-recorded spot.

    `content` is the text to voice for text sponsorships, or a path to an
    audio file for audio ones. Position is only meaningful together with
    `custom_percent` when `position` is custom.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    kind: SponsorshipKind = SponsorshipKind.TEXT
    content: str
    voice_id: str | None = None
    position: SponsorshipPosition = SponsorshipPosition.BEGINNING
    custom_percent: int | None = None

    @property
    def label(self) -> str:
        if self.position is SponsorshipPosition.CUSTOM:
            return f"{self.custom_percent}% through"
        return self.position.value.capitalize()


class PersonalVoiceRole(str, Enum):
    INTERVIEWER = "interviewer"
    CO_NARRATOR = "co-narrator"
    HOST = "host"


class PersonalVoice(BaseModel):
    """The user's own voice sample and the part it plays in the episode."""
    model_config = ConfigDict(frozen=True)

    audio_sample: str
    role: PersonalVoiceRole = PersonalVoiceRole.INTERVIEWER
    generated_questions: list[str] = Field(default_factory=list)
    sample_duration: float | None = None


class PodcastConfig(BaseModel):
    """Everything the wizard collects before processing starts."""
    model_config = ConfigDict(frozen=True)

    language: Language = Language.ENGLISH
    narrator_voice_id: str = ""
    sponsorships: list[Sponsorship] = Field(default_factory=list)
    personal_voice: PersonalVoice | None = None
    script: str = ""
    document_name: str = ""


class StageStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class Stage(BaseModel):
    """Live status of one pipeline stage."""
    id: str
    title: str
    description: str = ""
    weight: float
    applicable: bool = True
    status: StageStatus = StageStatus.PENDING
    progress: float = 0.0


class Validations(BaseModel):
    script_ready: bool = False
    speech_ready: bool = False
    audio_assembled: bool = False
    artifact_encoded: bool = False

    @property
    def all_passed(self) -> bool:
        return all((
            self.script_ready,
            self.speech_ready,
            self.audio_assembled,
            self.artifact_encoded,
        ))


class PipelineState(BaseModel):
    """Progress feed exposed to the wizard."""
    stages: list[Stage] = Field(default_factory=list)
    current_stage_index: int = 0
    overall_progress: float = 0.0
    validations: Validations = Field(default_factory=Validations)
    errors: list[str] = Field(default_factory=list)

    @property
    def current_stage(self) -> Stage | None:
        if 0 <= self.current_stage_index < len(self.stages):
            return self.stages[self.current_stage_index]
        return None

    @property
    def failed(self) -> bool:
        return any(s.status is StageStatus.FAILED for s in self.stages)


class SegmentKind(str, Enum):
    INTRO = "intro"
    CONTENT = "content"
    SPONSORSHIP = "sponsorship"
    PERSONAL = "personal"
    OUTRO = "outro"


class Speaker(str, Enum):
    NARRATOR = "narrator"
    PERSONAL = "personal"
    SPONSOR = "sponsor"


class TimelineSegment(BaseModel):
    """A time-bounded slot in the final episode, `[start, end)` in seconds."""
    model_config = ConfigDict(frozen=True)

    key: str
    kind: SegmentKind
    speaker: Speaker = Speaker.NARRATOR
    start: float
    end: float
    text: str = ""
    source_id: str = ""

    @property
    def duration(self) -> float:
        return self.end - self.start


class AudioAsset(BaseModel):
    """Reference to an audio file produced or supplied for a segment."""
    path: Path
    voice_id: str = ""


class MixTrack(BaseModel):
    segment: TimelineSegment
    asset: AudioAsset


class EncodedAudio(BaseModel):
    """What the mixer hands back for the finished episode."""
    asset: AudioAsset
    duration: float
    file_size: int


class OutputArtifact(BaseModel):
    """Metadata for the finished podcast, shown on the download step."""
    path: Path
    duration: float
    file_size: int
    segments: list[TimelineSegment] = Field(default_factory=list)
    questions: list[str] = Field(default_factory=list)

    @property
    def duration_label(self) -> str:
        minutes, seconds = divmod(int(round(self.duration)), 60)
        return f"{minutes}:{seconds:02d}"

    @property
    def size_label(self) -> str:
        return f"{self.file_size / (1024 * 1024):.1f} MB"


class WizardStep(str, Enum):
    UPLOAD = "upload"
    CONFIGURE = "configure"
    SPONSORSHIP = "sponsorship"
    VOICE = "voice"
    PROCESSING = "processing"
    COMPLETE = "complete"

    @property
    def heading(self) -> str:
        return {
            WizardStep.UPLOAD: "Upload PDF",
            WizardStep.CONFIGURE: "Voice & Language",
            WizardStep.SPONSORSHIP: "Sponsorships",
            WizardStep.VOICE: "Personal Voice",
            WizardStep.PROCESSING: "Processing",
            WizardStep.COMPLETE: "Download",
        }[self]

    @property
    def description(self) -> str:
        return {
            WizardStep.UPLOAD: "Upload and validate your PDF document",
            WizardStep.CONFIGURE: "Select language and narrator voice",
            WizardStep.SPONSORSHIP: "Add sponsorship segments (optional)",
            WizardStep.VOICE: "Upload your voice sample (optional)",
            WizardStep.PROCESSING: "Generate your podcast",
            WizardStep.COMPLETE: "Download your MP3 podcast",
        }[self]
