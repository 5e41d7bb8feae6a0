"""External services the pipeline stages call into.

Document text comes from pypdf, speech and voice cloning from ElevenLabs,
interview questions from OpenAI, and the final mix from ffmpeg. The pipeline
only sees the `PodcastServices` protocol, so any of these can be swapped.
"""

import asyncio
import hashlib
import re
import subprocess
from pathlib import Path
from typing import Protocol

from elevenlabs.client import ElevenLabs
from loguru import logger
from openai import AsyncOpenAI
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from pdfcast.config import PodcastSettings, resolve_voice_id
from pdfcast.errors import ExtractionError, InputValidationError
from pdfcast.models import AudioAsset, EncodedAudio, Language, MixTrack

# Character limit per ElevenLabs request (leaving margin from 5000 hard limit)
CHUNK_LIMIT = 4000

# Models that accept an explicit language_code
LANGUAGE_CODE_MODELS = {"eleven_turbo_v2_5", "eleven_flash_v2_5"}

AUDIO_SUFFIXES = {".mp3", ".wav", ".m4a", ".ogg", ".flac", ".webm"}

QUESTION_PROMPT = (
    "You are preparing an interviewer for a podcast episode about the document below. "
    "Write {count} short, open questions the interviewer can ask the narrator. "
    "Answer in {language}. Output ONLY a numbered list, one question per line."
)

_LIST_ITEM_RE = re.compile(r"^\s*(?:\d+[.)]|[-*•])\s*(?P<text>.+?)\s*$")


class PodcastServices(Protocol):
    def extract_script(self, document: Path) -> str: ...

    async def synthesize_speech(self, text: str, voice_id: str, language: Language) -> AudioAsset: ...

    async def clone_voice(self, audio_sample: str) -> str: ...

    async def generate_interview_questions(self, text: str) -> list[str]: ...

    async def mix_and_encode(self, tracks: list[MixTrack]) -> EncodedAudio: ...


def extract_script(document: Path, min_chars: int = 50) -> str:
    """Extract plain text from a PDF (or a text file) and check it is usable."""
    if not document.exists():
        raise ExtractionError(f"Document not found: {document}")

    if document.suffix.lower() == ".pdf":
        try:
            reader = PdfReader(str(document))
            pages = [(page.extract_text() or "").replace("\f", "\n").strip() for page in reader.pages]
        except PdfReadError as exc:
            raise ExtractionError(
                "Failed to extract text from PDF. The file may be corrupted or password-protected."
            ) from exc
        text = "\n\n".join(p for p in pages if p)
    else:
        text = document.read_text(encoding="utf-8")

    text = text.strip()
    if len(text) < min_chars:
        raise ExtractionError(
            "PDF appears to contain very little text content. "
            "Please ensure your PDF has readable text."
        )
    return text


def validate_voice_sample(sample: Path, settings: PodcastSettings) -> None:
    """Reject personal-voice samples that cannot be cloned."""
    if not sample.exists():
        raise InputValidationError(f"Voice sample not found: {sample}")
    if sample.suffix.lower() not in AUDIO_SUFFIXES:
        raise InputValidationError("Please upload an audio file")
    if sample.stat().st_size > settings.max_sample_bytes:
        limit_mb = settings.max_sample_bytes // (1024 * 1024)
        raise InputValidationError(f"File size must be less than {limit_mb}MB")


def split_into_chunks(text: str, limit: int = CHUNK_LIMIT) -> list[str]:
    """Split text at sentence boundaries to stay under the character limit."""
    if len(text) <= limit:
        return [text]

    chunks: list[str] = []
    current = ""

    for sentence in _split_sentences(text):
        if current and len(current) + len(sentence) > limit:
            chunks.append(current.strip())
            current = sentence
        else:
            current += sentence

    if current.strip():
        chunks.append(current.strip())

    return chunks or [text[:limit]]


def _split_sentences(text: str) -> list[str]:
    """Split text into sentence-like chunks preserving delimiters."""
    parts: list[str] = []
    current = ""
    for char in text:
        current += char
        if char in ".!?" and len(current) > 1:
            parts.append(current)
            current = ""
    if current:
        parts.append(current)
    return parts


def parse_questions(raw: str, limit: int) -> list[str]:
    """Pull list items out of a model reply, ignoring any preamble."""
    questions: list[str] = []
    for line in raw.splitlines():
        match = _LIST_ITEM_RE.match(line)
        if match:
            questions.append(match.group("text"))
    return questions[:limit]


def _concat_files(files: list[Path], output: Path) -> None:
    """Concatenate MP3 files using ffmpeg."""
    concat_txt = output.parent / f"{output.stem}_concat.txt"
    concat_txt.write_text("\n".join(f"file '{f}'" for f in files))
    try:
        subprocess.run(
            ["ffmpeg", "-y", "-f", "concat", "-safe", "0",
             "-i", str(concat_txt), "-c", "copy", str(output)],
            capture_output=True,
            check=True,
        )
    finally:
        concat_txt.unlink(missing_ok=True)


def build_mix_command(inputs: list[Path], output: Path, bitrate: str) -> list[str]:
    """ffmpeg command that resamples every input and concatenates them into one MP3."""
    cmd = ["ffmpeg", "-y"]
    for path in inputs:
        cmd += ["-i", str(path)]
    normalize = "".join(
        f"[{i}:a]aresample=44100,aformat=channel_layouts=stereo[a{i}];"
        for i in range(len(inputs))
    )
    labels = "".join(f"[a{i}]" for i in range(len(inputs)))
    graph = f"{normalize}{labels}concat=n={len(inputs)}:v=0:a=1[out]"
    cmd += [
        "-filter_complex", graph,
        "-map", "[out]",
        "-c:a", "libmp3lame", "-b:a", bitrate,
        str(output),
    ]
    return cmd


def probe_duration(path: Path) -> float:
    result = subprocess.run(
        ["ffprobe", "-v", "error", "-show_entries", "format=duration",
         "-of", "default=noprint_wrappers=1:nokey=1", str(path)],
        capture_output=True,
        check=True,
        text=True,
    )
    return float(result.stdout.strip())


class ProductionServices:
    """ElevenLabs + OpenAI + ffmpeg implementation of `PodcastServices`."""

    def __init__(self, settings: PodcastSettings, work_dir: Path, output_name: str = "podcast.mp3") -> None:
        self.settings = settings
        self.work_dir = work_dir
        self.audio_dir = work_dir / "audio"
        self.output_name = output_name
        self._client: ElevenLabs | None = None

    @property
    def client(self) -> ElevenLabs:
        if self._client is None:
            self._client = ElevenLabs()
        return self._client

    def extract_script(self, document: Path) -> str:
        return extract_script(document, self.settings.min_script_chars)

    async def synthesize_speech(self, text: str, voice_id: str, language: Language) -> AudioAsset:
        provider_voice = resolve_voice_id(voice_id, self.settings)
        return await asyncio.to_thread(self._synthesize, text, provider_voice, language)

    def _synthesize(self, text: str, voice_id: str, language: Language) -> AudioAsset:
        self.audio_dir.mkdir(parents=True, exist_ok=True)
        digest = hashlib.sha1(f"{voice_id}:{text}".encode()).hexdigest()[:12]
        final_path = self.audio_dir / f"{digest}.mp3"

        chunks = split_into_chunks(text)
        chunk_files: list[Path] = []
        for ci, chunk_text in enumerate(chunks):
            out_path = final_path if len(chunks) == 1 else self.audio_dir / f"{digest}_chunk{ci}.mp3"
            self._generate_chunk(chunk_text, voice_id, language, out_path)
            chunk_files.append(out_path)

        # If multiple chunks, concatenate them into a single segment file
        if len(chunk_files) > 1:
            _concat_files(chunk_files, final_path)
            for cf in chunk_files:
                cf.unlink(missing_ok=True)

        logger.debug("Synthesized {} chars with voice {} -> {}", len(text), voice_id, final_path.name)
        return AudioAsset(path=final_path, voice_id=voice_id)

    def _generate_chunk(self, text: str, voice_id: str, language: Language, out_path: Path) -> None:
        options = {}
        if self.settings.model in LANGUAGE_CODE_MODELS:
            options["language_code"] = language.code
        audio = self.client.text_to_speech.convert(
            text=text,
            voice_id=voice_id,
            model_id=self.settings.model,
            output_format=self.settings.output_format,
            **options,
        )
        out_path.write_bytes(b"".join(audio))

    async def clone_voice(self, audio_sample: str) -> str:
        sample = Path(audio_sample)
        validate_voice_sample(sample, self.settings)
        return await asyncio.to_thread(self._clone, sample)

    def _clone(self, sample: Path) -> str:
        with sample.open("rb") as fh:
            voice = self.client.voices.ivc.create(name=f"pdfcast-{sample.stem}", files=[fh])
        logger.info("Cloned personal voice from {} as {}", sample.name, voice.voice_id)
        return voice.voice_id

    async def generate_interview_questions(self, text: str) -> list[str]:
        count = self.settings.interview_questions
        hebrew = re.search(r"[\u0590-\u05FF]", text) is not None
        system = QUESTION_PROMPT.format(count=count, language="Hebrew" if hebrew else "English")

        client = AsyncOpenAI()
        resp = await client.chat.completions.create(
            model=self.settings.openai_model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": text},
            ],
        )
        raw = resp.choices[0].message.content or ""
        questions = parse_questions(raw, count)
        logger.info("Generated {} interview questions", len(questions))
        return questions

    async def mix_and_encode(self, tracks: list[MixTrack]) -> EncodedAudio:
        return await asyncio.to_thread(self._mix, tracks)

    def _mix(self, tracks: list[MixTrack]) -> EncodedAudio:
        if not tracks:
            raise RuntimeError("No audio segments to mix")
        self.work_dir.mkdir(parents=True, exist_ok=True)
        output = self.work_dir / self.output_name
        subprocess.run(
            build_mix_command([t.asset.path for t in tracks], output, self.settings.bitrate),
            capture_output=True,
            check=True,
        )
        duration = probe_duration(output)
        logger.info("Encoded {} segments into {} ({:.1f}s)", len(tracks), output.name, duration)
        return EncodedAudio(
            asset=AudioAsset(path=output),
            duration=duration,
            file_size=output.stat().st_size,
        )
