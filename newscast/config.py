import os

from dotenv import load_dotenv

DEFAULT_RSS_FEED_URL = "https://feeds.bbci.co.uk/news/world/rss.xml"

_TTS_MODES = ("sync", "async")
_STORAGE_BACKENDS = ("r2", "local")
_SOURCE_KINDS = ("rss", "topic")


def _get_bool_env(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


class Config:
    def __init__(self, env_file=None):
        """
        Initialize configuration by loading environment variables and setting default attributes.

        Loads environment variables from the provided .env file path when `env_file` is given; otherwise loads from the default environment. After loading, sets configuration attributes (database, text generation, content source, speech synthesis and storage settings) using environment values with sensible defaults.

        Parameters:
            env_file (str | None): Optional path to a .env file to load environment variables from.

        Raises:
            ValueError: If an enumerated setting has an unknown value or a URL is malformed.
        """
        if env_file:
            load_dotenv(env_file)
        else:
            load_dotenv()

        # Database configuration
        self.DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./newscast.db")
        self.DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "5"))
        self.DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "10"))
        self.DB_ECHO = _get_bool_env("DB_ECHO")

        # Text generation (Gemini)
        self.GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "your_api_key_here")
        self.GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
        self.GEMINI_TEMPERATURE = float(os.getenv("GEMINI_TEMPERATURE", "0.8"))
        self.GEMINI_MAX_OUTPUT_TOKENS = int(os.getenv("GEMINI_MAX_OUTPUT_TOKENS", "4096"))

        # Prompts configuration
        base_dir = os.path.dirname(__file__)
        default_prompts_dir = os.path.join(base_dir, "../prompts")
        self.PROMPTS_DIR = os.getenv("PROMPTS_DIR", default_prompts_dir)

        # Content source
        self.SOURCE_KIND = os.getenv("SOURCE_KIND", "rss").lower()
        if self.SOURCE_KIND not in _SOURCE_KINDS:
            raise ValueError(
                f"SOURCE_KIND must be one of {', '.join(_SOURCE_KINDS)}, got: {self.SOURCE_KIND}"
            )
        self.RSS_FEED_URL = os.getenv("RSS_FEED_URL", DEFAULT_RSS_FEED_URL)
        self.RSS_MAX_ITEMS = int(os.getenv("RSS_MAX_ITEMS", "10"))
        self.SOURCE_TIMEOUT = int(os.getenv("SOURCE_TIMEOUT", "30"))
        self.TOPIC_TITLE = os.getenv("TOPIC_TITLE", "")
        self.TOPIC_DESCRIPTION = os.getenv("TOPIC_DESCRIPTION", "")

        # Speech synthesis
        tts_base_url = os.getenv("TTS_BASE_URL", "")
        if tts_base_url and not tts_base_url.lower().startswith(("http://", "https://")):
            raise ValueError(
                f"TTS_BASE_URL must start with http:// or https://, got: {tts_base_url}"
            )
        self.TTS_BASE_URL = tts_base_url.rstrip("/")
        self.TTS_API_NAME = os.getenv("TTS_API_NAME", "gen_single")
        self.TTS_TIMEOUT = int(os.getenv("TTS_TIMEOUT", "120"))
        self.TTS_AUDIO_FORMAT = os.getenv("TTS_AUDIO_FORMAT", "wav")
        self.TTS_MODE = os.getenv("TTS_MODE", "async").lower()
        if self.TTS_MODE not in _TTS_MODES:
            raise ValueError(
                f"TTS_MODE must be one of {', '.join(_TTS_MODES)}, got: {self.TTS_MODE}"
            )

        # Binary storage (Cloudflare R2 / S3-compatible, or local directory)
        self.STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "local").lower()
        if self.STORAGE_BACKEND not in _STORAGE_BACKENDS:
            raise ValueError(
                f"STORAGE_BACKEND must be one of {', '.join(_STORAGE_BACKENDS)}, "
                f"got: {self.STORAGE_BACKEND}"
            )
        self.S3_ENDPOINT_URL = os.getenv("S3_ENDPOINT_URL", "")
        self.AWS_ACCESS_KEY_ID = os.getenv("AWS_ACCESS_KEY_ID", "")
        self.AWS_SECRET_ACCESS_KEY = os.getenv("AWS_SECRET_ACCESS_KEY", "")
        self.S3_BUCKET_NAME = os.getenv("S3_BUCKET_NAME", "newscast")
        self.STORAGE_PUBLIC_BASE_URL = os.getenv("STORAGE_PUBLIC_BASE_URL", "").rstrip("/")
        self.LOCAL_STORAGE_DIRECTORY = os.getenv(
            "LOCAL_STORAGE_DIRECTORY", "./newscast_artifacts"
        )

        # Podcast feed
        self.FEED_TITLE = os.getenv("FEED_TITLE", "Newscast")
        self.FEED_DESCRIPTION = os.getenv(
            "FEED_DESCRIPTION", "Daily news briefings, scripted and voiced by AI"
        )
        self.FEED_LINK = os.getenv("FEED_LINK", "https://newscast.example.com").rstrip("/")
        self.FEED_LANGUAGE = os.getenv("FEED_LANGUAGE", "en")
        self.FEED_AUTHOR = os.getenv("FEED_AUTHOR", "Newscast")
        self.FEED_IMAGE_URL = os.getenv("FEED_IMAGE_URL", "")
        self.FEED_MAX_EPISODES = int(os.getenv("FEED_MAX_EPISODES", "20"))

    @property
    def use_async_tts(self) -> bool:
        """Whether speech synthesis runs as a submitted remote job."""
        return self.TTS_MODE == "async"
