"""Episode styles.

A style selects the prompt template used to write the script and the voice
used to read it. The set of styles is closed: callers resolve a style tag
once with ``get_style`` and pass the resulting StyleProfile around.
"""

from dataclasses import dataclass, field
from typing import Dict, List

from newscast.errors import ValidationError

DEFAULT_STYLE = "news-anchor"


@dataclass(frozen=True)
class VoiceProfile:
    """Voice settings sent to the speech synthesizer.

    Attributes:
        speaker_reference: Reference audio the synthesizer clones the voice from.
        emotion_weight: Strength of the emotion vector (0.0 to 1.0).
        emotion_vector: Named emotion intensities, e.g. {"happy": 0.8}.
    """

    speaker_reference: str
    emotion_weight: float = 0.5
    emotion_vector: Dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class StyleProfile:
    """A supported episode style.

    Attributes:
        name: Style tag, also used as the episode ID prefix.
        display_title: Human-readable name used in episode titles.
        prompt_name: Name of the prompt template in the prompts directory.
        voice: Voice settings for speech synthesis.
    """

    name: str
    display_title: str
    prompt_name: str
    voice: VoiceProfile


STYLES: Dict[str, StyleProfile] = {
    "news-anchor": StyleProfile(
        name="news-anchor",
        display_title="News Briefing",
        prompt_name="news_anchor",
        voice=VoiceProfile(
            speaker_reference="voices/news-anchor.wav",
            emotion_weight=0.3,
            emotion_vector={"calm": 0.9},
        ),
    ),
    "emotional": StyleProfile(
        name="emotional",
        display_title="Stories Behind the News",
        prompt_name="emotional",
        voice=VoiceProfile(
            speaker_reference="voices/emotional.wav",
            emotion_weight=0.7,
            emotion_vector={"happy": 0.3, "melancholic": 0.4},
        ),
    ),
    "crosstalk": StyleProfile(
        name="crosstalk",
        display_title="News Crosstalk",
        prompt_name="crosstalk",
        voice=VoiceProfile(
            speaker_reference="voices/crosstalk.wav",
            emotion_weight=0.9,
            emotion_vector={"happy": 0.8, "surprised": 0.6},
        ),
    ),
    "topic-explainer": StyleProfile(
        name="topic-explainer",
        display_title="Topic Explainer",
        prompt_name="topic_explainer",
        voice=VoiceProfile(
            speaker_reference="voices/news-anchor.wav",
            emotion_weight=0.4,
            emotion_vector={"calm": 0.7},
        ),
    ),
}


def list_styles() -> List[str]:
    """Return the tags of all supported styles."""
    return list(STYLES.keys())


def get_style(name: str) -> StyleProfile:
    """Resolve a style tag.

    Raises:
        ValidationError: If the style is not supported.
    """
    try:
        return STYLES[name]
    except KeyError:
        raise ValidationError(
            f"Unsupported style: {name} (supported: {', '.join(list_styles())})"
        )
