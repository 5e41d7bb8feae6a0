"""Configuration loading with YAML + Pydantic defaults, and the voice catalog."""

from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from pdfcast.models import Language, VoiceOption

CONFIG_PATH = Path.home() / ".config" / "pdfcast" / "config.yaml"
DATA_DIR = Path.home() / ".local" / "share" / "pdfcast"


VOICE_CATALOG: list[VoiceOption] = [
    VoiceOption(id="en-male-1", name="David", gender="male", language=Language.ENGLISH,
                description="Professional, warm tone"),
    VoiceOption(id="en-male-2", name="Michael", gender="male", language=Language.ENGLISH,
                description="Deep, authoritative voice"),
    VoiceOption(id="en-male-3", name="James", gender="male", language=Language.ENGLISH,
                description="Friendly, conversational"),
    VoiceOption(id="en-female-1", name="Sarah", gender="female", language=Language.ENGLISH,
                description="Clear, engaging tone"),
    VoiceOption(id="en-female-2", name="Emma", gender="female", language=Language.ENGLISH,
                description="Sophisticated, professional"),
    VoiceOption(id="en-female-3", name="Lisa", gender="female", language=Language.ENGLISH,
                description="Warm, storytelling voice"),
    VoiceOption(id="he-male-1", name="אבי", gender="male", language=Language.HEBREW,
                description="קול מקצועי וחם"),
    VoiceOption(id="he-male-2", name="דני", gender="male", language=Language.HEBREW,
                description="קול עמוק וסמכותי"),
    VoiceOption(id="he-male-3", name="יוסי", gender="male", language=Language.HEBREW,
                description="קול ידידותי ושיחתי"),
    VoiceOption(id="he-female-1", name="מיכל", gender="female", language=Language.HEBREW,
                description="קול ברור ומעניין"),
    VoiceOption(id="he-female-2", name="רונית", gender="female", language=Language.HEBREW,
                description="קול מתוחכם ומקצועי"),
    VoiceOption(id="he-female-3", name="שירה", gender="female", language=Language.HEBREW,
                description="קול חם לסיפור"),
]

# Catalog voice -> ElevenLabs voice ID. The multilingual model speaks Hebrew
# with the same premade voices.
DEFAULT_VOICE_IDS: dict[str, str] = {
    "en-male-1": "cjVigY5qzO86Huf0OWal",     # Eric
    "en-male-2": "nPczCjz82KWdKScP46A1",     # Brian
    "en-male-3": "TX3LPaxmHKxFdv7VOQHJ",     # Liam
    "en-female-1": "EXAVITQu4vr4xnSAxGW1",   # Sarah
    "en-female-2": "XrExE9yKIg1WjnnlVkGX",   # Matilda
    "en-female-3": "21m00Tcm4TlvDq8ikWAM",   # Rachel
    "he-male-1": "cjVigY5qzO86Huf0OWal",
    "he-male-2": "nPczCjz82KWdKScP46A1",
    "he-male-3": "TX3LPaxmHKxFdv7VOQHJ",
    "he-female-1": "EXAVITQu4vr4xnSAxGW1",
    "he-female-2": "XrExE9yKIg1WjnnlVkGX",
    "he-female-3": "21m00Tcm4TlvDq8ikWAM",
}

INTRO_LINES: dict[Language, str] = {
    Language.ENGLISH: "Welcome to this episode. Today we're diving into {title}.",
    Language.HEBREW: "ברוכים הבאים לפרק. היום נצלול אל {title}.",
}

OUTRO_LINES: dict[Language, str] = {
    Language.ENGLISH: "That's all for this episode. Thanks for listening.",
    Language.HEBREW: "זה הכל לפרק הזה. תודה שהאזנתם.",
}

HOST_LINES: dict[Language, str] = {
    Language.ENGLISH: "Let's move on to the next part.",
    Language.HEBREW: "בואו נעבור לחלק הבא.",
}

DEFAULT_TITLE: dict[Language, str] = {
    Language.ENGLISH: "today's document",
    Language.HEBREW: "המסמך של היום",
}


class PodcastSettings(BaseModel):
    """Top-level pdfcast configuration."""
    voices: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_VOICE_IDS))
    model: str = "eleven_multilingual_v2"
    output_format: str = "mp3_44100_128"
    openai_model: str = "gpt-5-mini"
    data_dir: Path = DATA_DIR
    words_per_minute: int = 150
    min_script_chars: int = 50
    interview_questions: int = 3
    content_sections: int = 2
    audio_sponsorship_seconds: float = 30.0
    bitrate: str = "192k"
    max_sample_bytes: int = 10 * 1024 * 1024


def load_config() -> PodcastSettings:
    """Load config from YAML file, falling back to defaults."""
    if CONFIG_PATH.exists():
        raw = yaml.safe_load(CONFIG_PATH.read_text()) or {}
        return PodcastSettings(**raw)
    return PodcastSettings()


def init_config() -> Path:
    """Generate a default config.yaml if one doesn't exist."""
    if CONFIG_PATH.exists():
        return CONFIG_PATH
    CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
    defaults = PodcastSettings()
    data = defaults.model_dump(mode="json", exclude={"data_dir"})
    CONFIG_PATH.write_text(yaml.dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True))
    return CONFIG_PATH


def voices_for(language: Language) -> list[VoiceOption]:
    """Catalog voices available for a language, in display order."""
    return [v for v in VOICE_CATALOG if v.language is language]


def find_voice(voice_id: str) -> VoiceOption | None:
    for voice in VOICE_CATALOG:
        if voice.id == voice_id:
            return voice
    return None


def is_voice_for(voice_id: str, language: Language) -> bool:
    voice = find_voice(voice_id)
    return voice is not None and voice.language is language


def resolve_voice_id(voice_id: str, settings: PodcastSettings) -> str:
    """Get the ElevenLabs voice ID for a catalog voice.

    IDs that are not in the catalog (e.g. a cloned personal voice) pass
    through unchanged.
    """
    return settings.voices.get(voice_id, voice_id)
