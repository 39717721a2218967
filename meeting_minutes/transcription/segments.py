"""Speaker segment reconstruction from a provider's recognition results.

The provider returns a flat, time-ordered list of recognition events (words,
punctuation, entities and speaker changes). ``build_segments`` folds it into
speaker-attributed runs of text; the render helpers turn segments into the
plain text, prompt and SRT renderings used downstream.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from meeting_minutes.transcription.schemas import SpeakerSegment

UNKNOWN_SPEAKER = "unknown"

WORD_TYPES = {"word", "entity"}


@dataclass(frozen=True)
class RecognitionEvent:
    """One entry of the recognition stream."""

    type: str  # word, punctuation, entity, speaker_change
    start: float = 0.0
    end: float = 0.0
    content: str = ""
    speaker: str | None = None

    @classmethod
    def from_result(cls, result: dict[str, Any]) -> "RecognitionEvent":
        """Parse one ``results[]`` item of a json-v2 transcript."""
        alternatives = result.get("alternatives") or []
        top = alternatives[0] if alternatives else {}
        return cls(
            type=result.get("type", ""),
            start=float(result.get("start_time") or 0.0),
            end=float(result.get("end_time") or 0.0),
            content=top.get("content", ""),
            speaker=top.get("speaker"),
        )


def parse_events(transcript: dict[str, Any]) -> list[RecognitionEvent]:
    """Recognition events of a json-v2 transcript, in provider order.

    Results without an alternative carry no text and are skipped, except
    speaker changes which are boundaries on their own.
    """
    events = []
    for result in transcript.get("results") or []:
        if result.get("type") != "speaker_change" and not result.get("alternatives"):
            continue
        events.append(RecognitionEvent.from_result(result))
    return events


def build_segments(events: Iterable[RecognitionEvent]) -> list[SpeakerSegment]:
    """Group recognition events into chronological speaker segments.

    Labels (``Speaker 1``, ``Speaker 2``, ...) are assigned in order of first
    appearance and stay stable for the whole call. A speaker change always
    closes the current segment, even when the same speaker resumes.
    """
    segments: list[SpeakerSegment] = []
    labels: dict[str, str] = {}
    current: SpeakerSegment | None = None

    def label_for(speaker_id: str) -> str:
        if speaker_id not in labels:
            labels[speaker_id] = f"Speaker {len(labels) + 1}"
        return labels[speaker_id]

    for event in events:
        if event.type == "speaker_change":
            current = None
            continue

        if event.type in WORD_TYPES:
            speaker_id = event.speaker or (current.speaker_id if current else UNKNOWN_SPEAKER)
            label = label_for(speaker_id)

            if current is None or current.speaker_id != speaker_id:
                current = SpeakerSegment(
                    speaker_id=speaker_id,
                    speaker_label=label,
                    start=event.start,
                    end=event.end,
                    text=event.content,
                )
                segments.append(current)
            else:
                current.text = f"{current.text} {event.content}" if current.text else event.content
                current.end = event.end

        elif event.type == "punctuation":
            if current is None:
                continue
            current.text = current.text.rstrip() + event.content
            current.end = max(current.end, event.end)

    return segments


def format_timestamp(seconds: float) -> str:
    """``HH:MM:SS`` for a non-negative offset in seconds."""
    total = max(int(seconds), 0)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def render_transcript_text(segments: list[SpeakerSegment]) -> str:
    """``"{label}: {text}"`` per segment, newline-joined. Empty for no segments."""
    return "\n".join(f"{s.speaker_label}: {s.text}" for s in segments)


def render_prompt_transcript(segments: list[SpeakerSegment]) -> str:
    if not segments:
        return "No transcript content was returned."
    return "\n".join(
        f"[{format_timestamp(s.start)}] {s.speaker_label}: {s.text}" for s in segments
    )


def _srt_time(seconds: float) -> str:
    millis = max(int(round(seconds * 1000)), 0)
    hours, millis = divmod(millis, 3_600_000)
    minutes, millis = divmod(millis, 60_000)
    secs, millis = divmod(millis, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{millis:03d}"


def render_srt(segments: list[SpeakerSegment]) -> str:
    """SubRip rendering with one cue per segment."""
    cues = []
    for index, segment in enumerate(segments, start=1):
        cues.append(
            f"{index}\n"
            f"{_srt_time(segment.start)} --> {_srt_time(segment.end)}\n"
            f"{segment.speaker_label}: {segment.text}\n"
        )
    return "\n".join(cues)
