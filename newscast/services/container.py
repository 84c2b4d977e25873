"""Service container: the collaborators and stores shared by pipeline runs.

``build_services`` wires the concrete implementations selected by Config.
Tests construct a ServiceContainer directly with fakes.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from newscast.config import Config
from newscast.db.factory import repository_from_config
from newscast.db.repository import EpisodeRepositoryInterface
from newscast.prompt_manager import PromptManager
from newscast.services.blocking_tts import BlockingSynthesizer
from newscast.services.downloader import ArtifactDownloader
from newscast.services.event_stream_tts import EventStreamSpeechClient
from newscast.services.gemini_text import GeminiTextGenerator
from newscast.services.interfaces import (
    ArtifactFetcher,
    AsyncSpeechSynthesizer,
    BinaryStorage,
    SourceFetcher,
    SpeechSynthesizer,
    TextGenerator,
)
from newscast.services.rss_source import RssSourceFetcher, TopicSourceFetcher
from newscast.services.storage import LocalFileStorage, R2Storage
from newscast.subtitles import SubtitleGenerator
from newscast.workflow.config import PipelineConfig
from newscast.workflow.job_store import JobHandleStore

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Everything a pipeline run or a completion poll needs.

    Attributes:
        pipeline_config: Retry, validation and polling settings.
        repository: Episode and job handle persistence.
        job_store: Async access to job handles.
        source: Content source for fetch-source.
        text_generator: Script writer for generate-script.
        storage: Binary storage for store-artifacts.
        downloader: Fetches finished audio of asynchronous jobs.
        prompts: Prompt templates per style.
        subtitles: Subtitle generator.
        synthesizer: Blocking speech synthesizer, if configured.
        async_synthesizer: Job-based speech synthesizer, if configured.
        use_async_tts: Default synthesis mode of new runs.
        audio_format: File extension of audio produced by the synthesizer.
    """

    pipeline_config: PipelineConfig
    repository: EpisodeRepositoryInterface
    job_store: JobHandleStore
    source: SourceFetcher
    text_generator: TextGenerator
    storage: BinaryStorage
    downloader: ArtifactFetcher
    prompts: PromptManager
    subtitles: SubtitleGenerator
    synthesizer: Optional[SpeechSynthesizer] = None
    async_synthesizer: Optional[AsyncSpeechSynthesizer] = None
    use_async_tts: bool = True
    audio_format: str = "wav"

    def close(self) -> None:
        self.repository.close()


def _build_source(config: Config) -> SourceFetcher:
    if config.SOURCE_KIND == "topic":
        return TopicSourceFetcher(config.TOPIC_TITLE, config.TOPIC_DESCRIPTION)
    return RssSourceFetcher(
        config.RSS_FEED_URL,
        max_items=config.RSS_MAX_ITEMS,
        timeout=config.SOURCE_TIMEOUT,
    )


def _build_storage(config: Config) -> BinaryStorage:
    if config.STORAGE_BACKEND == "r2":
        return R2Storage(
            bucket_name=config.S3_BUCKET_NAME,
            endpoint_url=config.S3_ENDPOINT_URL,
            aws_access_key_id=config.AWS_ACCESS_KEY_ID,
            aws_secret_access_key=config.AWS_SECRET_ACCESS_KEY,
            public_base_url=config.STORAGE_PUBLIC_BASE_URL,
        )
    return LocalFileStorage(
        config.LOCAL_STORAGE_DIRECTORY,
        public_base_url=config.STORAGE_PUBLIC_BASE_URL,
    )


def build_services(
    config: Config,
    pipeline_config: Optional[PipelineConfig] = None,
    repository: Optional[EpisodeRepositoryInterface] = None,
) -> ServiceContainer:
    """Create the production collaborators described by the configuration.

    Args:
        config: Application configuration.
        pipeline_config: Pipeline settings; read from the environment when omitted.
        repository: Repository to use instead of one built from DATABASE_URL.

    Raises:
        ValueError: If a selected backend is missing required settings.
    """
    pipeline_config = pipeline_config or PipelineConfig.from_env()
    if repository is None:
        repository = repository_from_config(config)

    downloader = ArtifactDownloader()
    synthesizer = None
    async_synthesizer = None
    if config.TTS_BASE_URL:
        async_synthesizer = EventStreamSpeechClient(
            config.TTS_BASE_URL,
            api_name=config.TTS_API_NAME,
            timeout=config.TTS_TIMEOUT,
        )
        synthesizer = BlockingSynthesizer(
            async_synthesizer,
            downloader,
            poll_interval=pipeline_config.poll_interval_seconds,
            timeout=pipeline_config.poll_timeout_seconds,
            audio_format=config.TTS_AUDIO_FORMAT,
        )
    else:
        logger.warning("TTS_BASE_URL is not set; speech synthesis is unavailable")

    services = ServiceContainer(
        pipeline_config=pipeline_config,
        repository=repository,
        job_store=JobHandleStore(repository),
        source=_build_source(config),
        text_generator=GeminiTextGenerator(
            api_key=config.GEMINI_API_KEY,
            model=config.GEMINI_MODEL,
            temperature=config.GEMINI_TEMPERATURE,
            max_output_tokens=config.GEMINI_MAX_OUTPUT_TOKENS,
        ),
        storage=_build_storage(config),
        downloader=downloader,
        prompts=PromptManager(config),
        subtitles=SubtitleGenerator(),
        synthesizer=synthesizer,
        async_synthesizer=async_synthesizer,
        use_async_tts=config.use_async_tts,
        audio_format=config.TTS_AUDIO_FORMAT,
    )
    logger.info(
        f"Services ready: source={config.SOURCE_KIND}, storage={config.STORAGE_BACKEND}, "
        f"speech={'async' if config.use_async_tts else 'sync'}"
    )
    return services
