"""Caption and transcript generation for episode audio.

The script is split into sentence-based blocks of at most
``max_lines_per_block`` lines of ``max_chars_per_line`` characters. Block
times are distributed over the audio duration in proportion to each block's
word count, and each block's words share its time span equally.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List

from newscast.errors import ValidationError
from newscast.schemas import Transcript, TranscriptSegment, TranscriptWord

logger = logging.getLogger(__name__)

_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")


@dataclass
class SubtitleBlock:
    index: int
    start: float
    end: float
    lines: List[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        return " ".join(self.lines)

    @property
    def words(self) -> List[str]:
        return self.text.split()


@dataclass
class SubtitleBundle:
    """Caption and transcript representations of one episode."""

    srt: str
    vtt: str
    transcript_json: str
    blocks: List[SubtitleBlock]

    @property
    def block_count(self) -> int:
        return len(self.blocks)


def format_timestamp(seconds: float, separator: str = ",") -> str:
    """Format seconds as HH:MM:SS<separator>mmm."""
    total_ms = max(0, int(round(seconds * 1000)))
    hours, rest = divmod(total_ms, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    secs, millis = divmod(rest, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}{separator}{millis:03d}"


def split_sentences(text: str) -> List[str]:
    return [s.strip() for s in _SENTENCE_BOUNDARY.split(text) if s.strip()]


def wrap_words(words: List[str], max_chars: int) -> List[str]:
    """Greedily pack words into lines of at most max_chars characters.

    A single word longer than max_chars gets a line of its own.
    """
    lines: List[str] = []
    current = ""
    for word in words:
        candidate = f"{current} {word}" if current else word
        if len(candidate) <= max_chars or not current:
            current = candidate
        else:
            lines.append(current)
            current = word
    if current:
        lines.append(current)
    return lines


class SubtitleGenerator:
    """Builds SRT, WebVTT and JSON transcript output from script text."""

    def __init__(self, max_chars_per_line: int = 80, max_lines_per_block: int = 2, language: str = "en"):
        self.max_chars_per_line = max_chars_per_line
        self.max_lines_per_block = max_lines_per_block
        self.language = language

    def segment(self, text: str) -> List[List[str]]:
        """Split text into blocks, each a list of display lines.

        Sentences are packed into a block while they fit; a sentence that is
        longer than one block on its own is broken across several blocks.
        """
        blocks: List[List[str]] = []
        current: List[str] = []

        for sentence in split_sentences(text):
            candidate = wrap_words((" ".join(current) + " " + sentence).split(), self.max_chars_per_line)
            if len(candidate) <= self.max_lines_per_block:
                current = candidate
                continue

            if current:
                blocks.append(current)
            lines = wrap_words(sentence.split(), self.max_chars_per_line)
            while len(lines) > self.max_lines_per_block:
                blocks.append(lines[: self.max_lines_per_block])
                lines = lines[self.max_lines_per_block:]
            current = lines

        if current:
            blocks.append(current)
        return blocks

    def assign_times(self, segments: List[List[str]], duration: float) -> List[SubtitleBlock]:
        word_counts = [len(" ".join(lines).split()) for lines in segments]
        total_words = sum(word_counts) or 1

        blocks = []
        elapsed_words = 0
        for index, (lines, count) in enumerate(zip(segments, word_counts), start=1):
            start = duration * elapsed_words / total_words
            elapsed_words += count
            end = duration * elapsed_words / total_words
            blocks.append(SubtitleBlock(index=index, start=round(start, 3), end=round(end, 3), lines=lines))
        return blocks

    def to_srt(self, blocks: List[SubtitleBlock]) -> str:
        entries = []
        for block in blocks:
            entries.append(
                f"{block.index}\n"
                f"{format_timestamp(block.start)} --> {format_timestamp(block.end)}\n"
                + "\n".join(block.lines)
            )
        return "\n\n".join(entries) + "\n"

    def to_vtt(self, blocks: List[SubtitleBlock]) -> str:
        entries = ["WEBVTT"]
        for block in blocks:
            entries.append(
                f"{format_timestamp(block.start, '.')} --> {format_timestamp(block.end, '.')}\n"
                + "\n".join(block.lines)
            )
        return "\n\n".join(entries) + "\n"

    def to_transcript(self, blocks: List[SubtitleBlock], duration: float) -> Transcript:
        segments = []
        for block in blocks:
            words = block.words
            span = (block.end - block.start) / len(words) if words else 0
            segments.append(
                TranscriptSegment(
                    id=block.index,
                    start=block.start,
                    end=block.end,
                    text=block.text,
                    words=[
                        TranscriptWord(
                            word=word,
                            start=round(block.start + i * span, 3),
                            end=round(block.start + (i + 1) * span, 3),
                        )
                        for i, word in enumerate(words)
                    ],
                )
            )
        return Transcript(language=self.language, duration=duration, segments=segments)

    def generate(self, text: str, duration_seconds: float) -> SubtitleBundle:
        """Generate all caption formats for a script.

        Raises:
            ValidationError: If the text is empty or the duration is not positive.
        """
        if not text or not text.strip():
            raise ValidationError("Cannot generate subtitles for empty text")
        if duration_seconds is None or duration_seconds <= 0:
            raise ValidationError(f"Audio duration must be positive, got {duration_seconds}")

        blocks = self.assign_times(self.segment(text), duration_seconds)
        transcript = self.to_transcript(blocks, duration_seconds)
        logger.info(f"Generated {len(blocks)} subtitle blocks for {duration_seconds:.1f}s of audio")
        return SubtitleBundle(
            srt=self.to_srt(blocks),
            vtt=self.to_vtt(blocks),
            transcript_json=transcript.model_dump_json(indent=2),
            blocks=blocks,
        )
