"""
Pytest configuration and fixtures for newscast tests.

This module runs before any test imports, setting up the test environment.
Environment variables are explicitly set to ensure deterministic test behavior
regardless of external environment configuration.
"""

import asyncio
import os
from datetime import UTC, datetime
from pathlib import Path
from types import SimpleNamespace

import pytest

# Keep collaborators offline and defaults predictable
os.environ["GEMINI_API_KEY"] = "test-gemini-key"
os.environ["TTS_BASE_URL"] = "https://tts.example.com"
os.environ["STORAGE_BACKEND"] = "local"
os.environ["SOURCE_KIND"] = "rss"
for _name in [name for name in os.environ if name.startswith("PIPELINE_")]:
    del os.environ[_name]

from newscast.db.factory import create_repository  # noqa: E402
from newscast.errors import TransientError  # noqa: E402
from newscast.prompt_manager import PromptManager  # noqa: E402
from newscast.schemas import RemoteJobStatus  # noqa: E402
from newscast.services.container import ServiceContainer  # noqa: E402
from newscast.services.interfaces import (  # noqa: E402
    DownloadedArtifact,
    SourceItem,
    SynthesizedAudio,
)
from newscast.subtitles import SubtitleGenerator  # noqa: E402
from newscast.workflow.config import PipelineConfig  # noqa: E402
from newscast.workflow.job_store import JobHandleStore  # noqa: E402
from newscast.workflow.pipeline import create_executor  # noqa: E402
from newscast.workflow.retry import RetryExecutor  # noqa: E402

PROMPTS_DIR = str(Path(__file__).resolve().parent.parent / "prompts")

SCRIPT_SENTENCE = "Markets moved sharply today."


def make_script(words: int = 600) -> str:
    """A script of the given number of words (a multiple of four)."""
    return " ".join([SCRIPT_SENTENCE] * (words // 4))


async def no_sleep(seconds):
    return None


class FakeSource:
    def __init__(self, items=None, error=None):
        self.items = items if items is not None else [
            SourceItem(
                title=f"Story {i}",
                body=f"Body of story {i}.",
                timestamp=datetime(2025, 1, 1, 8, i, tzinfo=UTC),
                source_url=f"https://news.example.com/{i}",
            )
            for i in range(1, 4)
        ]
        self.error = error
        self.calls = 0

    async def fetch(self, limit=None):
        self.calls += 1
        if self.error:
            raise self.error
        return list(self.items)


class SlowSource(FakeSource):
    """A source that takes `delay` seconds to answer."""

    def __init__(self, delay):
        super().__init__()
        self.delay = delay

    async def fetch(self, limit=None):
        await asyncio.sleep(self.delay)
        return await super().fetch(limit)


class FakeTextGenerator:
    """Returns queued results in order; exceptions in the queue are raised."""

    def __init__(self, *results):
        self.results = list(results) or [make_script()]
        self.prompts = []

    async def generate(self, prompt, style):
        self.prompts.append(prompt)
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result


class FakeSynthesizer:
    def __init__(self, audio_bytes=b"fake-audio-bytes", duration_seconds=120.0):
        self.audio_bytes = audio_bytes
        self.duration_seconds = duration_seconds
        self.calls = []

    async def synthesize(self, text, style):
        self.calls.append((text, style.name))
        return SynthesizedAudio(
            audio_bytes=self.audio_bytes,
            duration_seconds=self.duration_seconds,
        )


class FakeAsyncSynthesizer:
    """Submits as "evt-1", "evt-2", ... and answers checks from a queue.

    Queue entries are RemoteJobStatus objects or exceptions to raise. The
    last entry repeats once the queue is drained.
    """

    def __init__(self, *statuses, submit_error=None):
        self.statuses = list(statuses) or [RemoteJobStatus(state="pending")]
        self.submit_error = submit_error
        self.submitted = []
        self.checked = []

    async def submit(self, text, style):
        if self.submit_error:
            raise self.submit_error
        self.submitted.append(text)
        return f"evt-{len(self.submitted)}"

    async def check_status(self, job_id):
        self.checked.append(job_id)
        status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        if isinstance(status, Exception):
            raise status
        return status


class FakeStorage:
    def __init__(self, failures=0):
        self.objects = {}
        self.failures = failures

    async def put(self, key, data, content_type):
        if self.failures:
            self.failures -= 1
            raise TransientError(f"Upload of {key} failed: simulated", status=503)
        self.objects[key] = (data, content_type)
        return f"https://media.example.com/{key}"


class FakeDownloader:
    def __init__(self, data=b"downloaded-audio", error=None):
        self.data = data
        self.error = error
        self.urls = []

    async def download(self, url):
        self.urls.append(url)
        if self.error:
            raise self.error
        return DownloadedArtifact(data=self.data, content_type="audio/wav")


@pytest.fixture
def repository(tmp_path):
    """Create a temporary SQLite-backed repository for tests."""
    db_path = tmp_path / "test.db"
    repo = create_repository(f"sqlite:///{db_path}", create_tables=True)
    yield repo
    repo.close()


@pytest.fixture
def pipeline_config():
    return PipelineConfig(
        step_max_attempts=3,
        step_initial_delay=0.0,
        step_max_delay=0.0,
        poll_interval_seconds=0.0,
        poll_timeout_seconds=1.0,
    )


@pytest.fixture
def prompts():
    return PromptManager(SimpleNamespace(PROMPTS_DIR=PROMPTS_DIR))


@pytest.fixture
def services(repository, pipeline_config, prompts):
    """Service container wired with in-memory fakes and a real SQLite repository."""
    return ServiceContainer(
        pipeline_config=pipeline_config,
        repository=repository,
        job_store=JobHandleStore(repository),
        source=FakeSource(),
        text_generator=FakeTextGenerator(),
        storage=FakeStorage(),
        downloader=FakeDownloader(),
        prompts=prompts,
        subtitles=SubtitleGenerator(),
        synthesizer=FakeSynthesizer(),
        async_synthesizer=FakeAsyncSynthesizer(),
        use_async_tts=False,
    )


@pytest.fixture
def executor(services):
    """Workflow executor that never actually sleeps between attempts."""
    return create_executor(services, RetryExecutor(sleep=no_sleep))
