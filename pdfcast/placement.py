"""Segment placement: where sponsorships and personal-voice lines land.

The script is one long content region framed by an intro and an outro.
Everything else is an insertion at a fraction of the content region:

- beginning / end sponsorships sit at 0 and 1, pinned to the outer edge
- middle sits at 0.5, custom at ``custom_percent / 100`` (clamped)
- interviewer questions are spread evenly at ``(j + 1) / (n + 1)``
- host lines mark each internal section boundary ``k / sections``

Inserts at the same fraction keep their insertion order. The content region
is cut at every internal insertion fraction (and, for a co-narrator, at every
section boundary), so the resulting timeline is contiguous and identical for
identical input.
"""

from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from pdfcast.config import DEFAULT_TITLE, HOST_LINES, INTRO_LINES, OUTRO_LINES, PodcastSettings
from pdfcast.models import (
    PersonalVoiceRole,
    PodcastConfig,
    SegmentKind,
    Speaker,
    Sponsorship,
    SponsorshipKind,
    SponsorshipPosition,
    TimelineSegment,
)

MIN_SEGMENT_SECONDS = 1.0

INTRO_KEY = "intro"
OUTRO_KEY = "outro"


def estimate_seconds(text: str, words_per_minute: int) -> float:
    """Rough spoken duration of a piece of text."""
    words = len(text.split())
    return max(words * 60.0 / words_per_minute, MIN_SEGMENT_SECONDS)


def episode_title(config: PodcastConfig) -> str:
    if config.document_name:
        return Path(config.document_name).stem.replace("_", " ").replace("-", " ").strip()
    return DEFAULT_TITLE[config.language]


def intro_text(config: PodcastConfig) -> str:
    return INTRO_LINES[config.language].format(title=episode_title(config))


def outro_text(config: PodcastConfig) -> str:
    return OUTRO_LINES[config.language]


def host_text(config: PodcastConfig) -> str:
    return HOST_LINES[config.language]


def sponsorship_key(sponsorship: Sponsorship) -> str:
    return f"sponsorship-{sponsorship.id}"


def host_key(index: int) -> str:
    return f"host-{index}"


def question_key(index: int) -> str:
    return f"question-{index}"


def sponsorship_fraction(sponsorship: Sponsorship) -> float:
    if sponsorship.position is SponsorshipPosition.BEGINNING:
        return 0.0
    if sponsorship.position is SponsorshipPosition.END:
        return 1.0
    if sponsorship.position is SponsorshipPosition.MIDDLE:
        return 0.5
    percent = sponsorship.custom_percent or 0
    return min(max(percent, 0), 100) / 100


def section_fractions(settings: PodcastSettings) -> list[float]:
    """Internal boundaries between the content sections."""
    sections = max(settings.content_sections, 1)
    return [k / sections for k in range(1, sections)]


def question_count(config: PodcastConfig, settings: PodcastSettings) -> int:
    """How many interview questions the episode will carry."""
    voice = config.personal_voice
    if voice is None or voice.role is not PersonalVoiceRole.INTERVIEWER:
        return 0
    return len(voice.generated_questions) or settings.interview_questions


@dataclass(frozen=True)
class Insertion:
    key: str
    kind: SegmentKind
    speaker: Speaker
    fraction: float
    # -1 pinned before anything else at the content start, 1 after anything
    # else at the content end
    rank: int = 0
    # host lines open a break, questions follow it
    priority: int = 0
    order: int = 0
    source_id: str = ""

    @property
    def sort_key(self) -> tuple[float, int, int, int]:
        return (self.fraction, self.rank, self.priority, self.order)


@dataclass(frozen=True)
class ContentPart:
    index: int
    start: float
    end: float
    text: str
    speaker: Speaker

    @property
    def key(self) -> str:
        return f"content-{self.index}"


def insertion_points(
    config: PodcastConfig, settings: PodcastSettings, questions: int = 0,
) -> list[Insertion]:
    """All non-content segments with their content fraction, in playback order."""
    points: list[Insertion] = []
    voice = config.personal_voice

    if voice is not None and voice.role is PersonalVoiceRole.HOST:
        for k, fraction in enumerate(section_fractions(settings)):
            points.append(Insertion(
                key=host_key(k),
                kind=SegmentKind.PERSONAL,
                speaker=Speaker.PERSONAL,
                fraction=fraction,
                priority=0,
                order=k,
            ))

    for i, sponsorship in enumerate(config.sponsorships):
        rank = {
            SponsorshipPosition.BEGINNING: -1,
            SponsorshipPosition.END: 1,
        }.get(sponsorship.position, 0)
        points.append(Insertion(
            key=sponsorship_key(sponsorship),
            kind=SegmentKind.SPONSORSHIP,
            speaker=Speaker.SPONSOR,
            fraction=sponsorship_fraction(sponsorship),
            rank=rank,
            priority=1,
            order=i,
            source_id=sponsorship.id,
        ))

    if voice is not None and voice.role is PersonalVoiceRole.INTERVIEWER:
        for j in range(questions):
            points.append(Insertion(
                key=question_key(j),
                kind=SegmentKind.PERSONAL,
                speaker=Speaker.PERSONAL,
                fraction=(j + 1) / (questions + 1),
                priority=2,
                order=j,
            ))

    return sorted(points, key=lambda p: p.sort_key)


def content_breakpoints(
    config: PodcastConfig, settings: PodcastSettings, questions: int = 0,
) -> list[float]:
    """Fractions strictly inside the content region where it gets cut."""
    cuts = {p.fraction for p in insertion_points(config, settings, questions)}
    voice = config.personal_voice
    if voice is not None and voice.role is PersonalVoiceRole.CO_NARRATOR:
        cuts.update(section_fractions(settings))
    return sorted(f for f in cuts if 0.0 < f < 1.0)


def plan_content(
    config: PodcastConfig, settings: PodcastSettings, questions: int = 0,
) -> list[ContentPart]:
    """Split the script into the content parts of the timeline.

    Cuts fall on word boundaries nearest to each breakpoint. A co-narrator
    takes every second part.
    """
    bounds = [0.0, *content_breakpoints(config, settings, questions), 1.0]
    words = config.script.split()
    total = len(words)
    count = len(bounds) - 1

    cuts = [0]
    for i, fraction in enumerate(bounds[1:-1], start=1):
        cut = max(round(fraction * total), cuts[-1] + 1)
        cuts.append(min(cut, total - (count - i)))
    cuts.append(total)

    co_narrated = (
        config.personal_voice is not None
        and config.personal_voice.role is PersonalVoiceRole.CO_NARRATOR
    )
    parts: list[ContentPart] = []
    for i in range(count):
        speaker = Speaker.PERSONAL if co_narrated and i % 2 == 1 else Speaker.NARRATOR
        parts.append(ContentPart(
            index=i,
            start=bounds[i],
            end=bounds[i + 1],
            text=" ".join(words[cuts[i]:cuts[i + 1]]),
            speaker=speaker,
        ))
    return parts


def _insertion_slot(
    point: Insertion,
    config: PodcastConfig,
    settings: PodcastSettings,
    questions: Sequence[str],
) -> tuple[str, float]:
    """Spoken text and estimated duration of an insertion."""
    wpm = settings.words_per_minute
    if point.kind is SegmentKind.SPONSORSHIP:
        sponsorship = next(s for s in config.sponsorships if s.id == point.source_id)
        if sponsorship.kind is SponsorshipKind.AUDIO:
            return "", settings.audio_sponsorship_seconds
        return sponsorship.content, estimate_seconds(sponsorship.content, wpm)
    if point.key.startswith("question-"):
        text = questions[int(point.key.rsplit("-", 1)[1])]
        return text, estimate_seconds(text, wpm)
    text = host_text(config)
    return text, estimate_seconds(text, wpm)


def resolve_timeline(
    config: PodcastConfig,
    settings: PodcastSettings,
    questions: Sequence[str] | None = None,
) -> list[TimelineSegment]:
    """Ordered, contiguous segment timeline for a configuration.

    `questions` defaults to the questions previewed on the personal voice.
    """
    if questions is None:
        questions = config.personal_voice.generated_questions if config.personal_voice else []
    wpm = settings.words_per_minute
    content_seconds = estimate_seconds(config.script, wpm)

    slots: list[dict] = []

    def add(key, kind, speaker, duration, text="", source_id=""):
        slots.append(dict(
            key=key, kind=kind, speaker=speaker, duration=duration,
            text=text, source_id=source_id,
        ))

    def add_insertion(point: Insertion) -> None:
        text, duration = _insertion_slot(point, config, settings, questions)
        add(point.key, point.kind, point.speaker, duration, text, point.source_id)

    intro = intro_text(config)
    add(INTRO_KEY, SegmentKind.INTRO, Speaker.NARRATOR, estimate_seconds(intro, wpm), intro)

    pending = deque(insertion_points(config, settings, len(questions)))
    for part in plan_content(config, settings, len(questions)):
        while pending and pending[0].fraction <= part.start:
            add_insertion(pending.popleft())
        add(
            part.key, SegmentKind.CONTENT, part.speaker,
            content_seconds * (part.end - part.start), part.text,
        )
    while pending:
        add_insertion(pending.popleft())

    outro = outro_text(config)
    add(OUTRO_KEY, SegmentKind.OUTRO, Speaker.NARRATOR, estimate_seconds(outro, wpm), outro)

    timeline: list[TimelineSegment] = []
    cursor = 0.0
    for slot in slots:
        end = round(cursor + slot.pop("duration"), 3)
        timeline.append(TimelineSegment(start=cursor, end=end, **slot))
        cursor = end
    return timeline


def rescale_timeline(segments: list[TimelineSegment], duration: float) -> list[TimelineSegment]:
    """Stretch estimated offsets so the timeline ends exactly at `duration`."""
    if not segments or segments[-1].end <= 0:
        return list(segments)
    factor = duration / segments[-1].end
    scaled: list[TimelineSegment] = []
    cursor = 0.0
    for i, seg in enumerate(segments):
        end = duration if i == len(segments) - 1 else round(seg.end * factor, 3)
        scaled.append(seg.model_copy(update={"start": cursor, "end": end}))
        cursor = end
    return scaled
