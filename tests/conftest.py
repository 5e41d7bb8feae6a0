"""Shared fixtures for pdfcast tests."""

import asyncio
from pathlib import Path

import pytest

from pdfcast.config import PodcastSettings
from pdfcast.errors import ExtractionError
from pdfcast.models import AudioAsset, EncodedAudio, Language, MixTrack, PodcastConfig
from pdfcast.pipeline import PipelineExecutor


SAMPLE_SCRIPT = """\
Quantum computers store information in qubits, which can represent zero and one at the same time.
This property, called superposition, lets certain algorithms explore many possibilities at once.
Entanglement links qubits so that measuring one instantly tells you about the other.
The hard part is keeping qubits stable long enough to finish a calculation.
Researchers are now testing error correction schemes that could make practical machines possible.
"""

SAMPLE_QUESTIONS = [
    "What makes a qubit different from a regular bit?",
    "Why is entanglement so useful?",
    "How close are we to practical quantum computers?",
]

# Long enough in characters, too few words to split around interview questions
FEW_WORDS_SCRIPT = "Photosynthesis quietly converts-sunlight-carbon-dioxide-and-water-into-sugar"


class FakeServices:
    """In-memory stand-in for the ElevenLabs/OpenAI/ffmpeg services.

    `fail_on` names the calls that should raise: extract, synthesize, clone,
    questions, mix.
    """

    def __init__(self, fail_on=(), questions=None, duration=120.0, file_size=2_000_000):
        self.fail_on = set(fail_on)
        self.questions = list(SAMPLE_QUESTIONS if questions is None else questions)
        self.duration = duration
        self.file_size = file_size
        self.calls: list[tuple] = []
        self.mixed: list[MixTrack] = []

    def calls_to(self, name: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == name]

    def extract_script(self, document: Path) -> str:
        self.calls.append(("extract", document))
        if "extract" in self.fail_on:
            raise ExtractionError("PDF appears to contain very little text content.")
        return document.read_text()

    async def synthesize_speech(self, text, voice_id, language):
        self.calls.append(("synthesize", text, voice_id, language))
        if "synthesize" in self.fail_on:
            raise RuntimeError("TTS service unavailable")
        return AudioAsset(path=Path(f"/fake/audio/{len(self.calls):03d}.mp3"), voice_id=voice_id)

    async def clone_voice(self, audio_sample):
        self.calls.append(("clone", audio_sample))
        if "clone" in self.fail_on:
            raise RuntimeError("Voice cloning rejected the sample")
        return "cloned-voice"

    async def generate_interview_questions(self, text):
        self.calls.append(("questions", text))
        if "questions" in self.fail_on:
            raise RuntimeError("Question generation failed")
        return list(self.questions)

    async def mix_and_encode(self, tracks):
        self.calls.append(("mix", len(tracks)))
        self.mixed = list(tracks)
        if "mix" in self.fail_on:
            raise RuntimeError("ffmpeg exited with status 1")
        return EncodedAudio(
            asset=AudioAsset(path=Path("/fake/podcast.mp3")),
            duration=self.duration,
            file_size=self.file_size,
        )


def collect(executor: PipelineExecutor, config: PodcastConfig) -> list:
    """Run the pipeline to the end and return every snapshot."""
    async def _run():
        return [snapshot async for snapshot in executor.run(config)]
    return asyncio.run(_run())


@pytest.fixture
def settings(tmp_path) -> PodcastSettings:
    return PodcastSettings(data_dir=tmp_path)


@pytest.fixture
def services() -> FakeServices:
    return FakeServices()


@pytest.fixture
def executor(services, settings) -> PipelineExecutor:
    return PipelineExecutor(services, settings)


@pytest.fixture
def base_config() -> PodcastConfig:
    return PodcastConfig(
        language=Language.ENGLISH,
        narrator_voice_id="en-male-1",
        script=SAMPLE_SCRIPT,
        document_name="quantum_basics.pdf",
    )


@pytest.fixture
def voice_sample(tmp_path) -> Path:
    sample = tmp_path / "my_voice.wav"
    sample.write_bytes(b"RIFF" + b"\x00" * 64)
    return sample
