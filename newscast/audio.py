"""Audio helpers: reading and estimating episode durations."""

import io
import logging
import re
from typing import Optional

import mutagen
from mutagen import MutagenError

logger = logging.getLogger(__name__)

_CJK_CHAR = re.compile(r"[\u4e00-\u9fff]")

CONTENT_TYPES = {
    "wav": "audio/wav",
    "mp3": "audio/mpeg",
    "ogg": "audio/ogg",
    "m4a": "audio/mp4",
    "flac": "audio/flac",
}


def count_words(text: str) -> int:
    """Count words, treating each CJK character as one word."""
    cjk_count = len(_CJK_CHAR.findall(text))
    other = _CJK_CHAR.sub(" ", text)
    return cjk_count + len(other.split())


def estimate_duration(word_count: int, words_per_minute: int = 150) -> float:
    """Estimate spoken duration in seconds from a word count."""
    if words_per_minute <= 0:
        raise ValueError("words_per_minute must be positive")
    return round(word_count / words_per_minute * 60, 1)


def read_duration(data: bytes) -> Optional[float]:
    """Read the duration of encoded audio, or None if it cannot be parsed."""
    if not data:
        return None
    try:
        audio = mutagen.File(io.BytesIO(data))
    except (MutagenError, ValueError, OSError) as e:
        logger.debug(f"Could not parse audio ({len(data)} bytes): {e}")
        return None

    if audio is None or audio.info is None:
        return None
    length = getattr(audio.info, "length", None)
    return round(float(length), 2) if length else None


def content_type_for(file_extension: str) -> str:
    """MIME type for an audio file extension."""
    return CONTENT_TYPES.get(file_extension.lower().lstrip("."), "application/octet-stream")
