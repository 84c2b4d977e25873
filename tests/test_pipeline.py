"""Tests for the episode pipeline and its steps."""

import asyncio
import re
from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest

from conftest import FakeAsyncSynthesizer, FakeSource, FakeStorage, FakeTextGenerator, SlowSource, make_script
from newscast.errors import CollaboratorError, DeadlineExceededError, TransientError, ValidationError
from newscast.services.interfaces import SourceItem
from newscast.styles import get_style
from newscast.workflow.pipeline import EpisodePipeline, new_episode_id
from newscast.workflow.results import (
    GENERATE_SCRIPT,
    STEP_ORDER,
    SYNTHESIZE_AUDIO,
    AudioResult,
    AudioSubmission,
    GenerationContext,
    ScriptResult,
)
from newscast.workflow.steps import GenerateSubtitlesStep
from newscast.workflow.steps.generate_script import build_description, build_title, clean_script


@pytest.fixture
def pipeline(services, executor):
    return EpisodePipeline(services, executor=executor)


class TestHelpers:
    """Tests for pipeline helper functions."""

    def test_new_episode_id_format(self):
        """Test IDs are "{style}-{timestamp}-{suffix}"."""
        episode_id = new_episode_id("news-anchor", datetime(2025, 3, 4, 5, 6, 7, tzinfo=UTC))

        assert re.fullmatch(r"news-anchor-20250304T050607Z-[0-9a-f]{6}", episode_id)

    def test_new_episode_ids_are_unique(self):
        """Test two IDs in the same second differ."""
        now = datetime(2025, 1, 1, tzinfo=UTC)
        assert new_episode_id("emotional", now) != new_episode_id("emotional", now)

    def test_clean_script(self):
        """Test blank lines and stray whitespace are normalized."""
        assert clean_script("  First line. \n\n\n  Second line.  \n") == "First line.\n\nSecond line."
        assert clean_script("   \n  ") == ""
        assert clean_script(None) == ""

    def test_build_title(self):
        """Test titles combine the style name and the date."""
        title = build_title(get_style("emotional"), datetime(2025, 1, 2, tzinfo=UTC))
        assert title == "Stories Behind the News - 2025-01-02"

    def test_build_description(self):
        """Test descriptions list the first three titles without publisher suffixes."""
        items = [SourceItem(title=f"Story {i} - Publisher", body="") for i in range(1, 5)]

        assert build_description(items) == "Covering: Story 1; Story 2; Story 3; and more"
        assert build_description(items[:2]) == "Covering: Story 1; Story 2"


    def test_step_order(self, pipeline):
        """Test the synchronous run has all six steps in order and submission stops at synthesis."""
        assert [step.name for step in pipeline.synchronous_steps()] == STEP_ORDER
        assert [step.name for step in pipeline.submission_steps()] == STEP_ORDER[:3]


class TestSynchronousPipeline:
    """End-to-end tests of the synchronous six-step pipeline."""

    def test_news_anchor_episode_completes(self, pipeline, services):
        """Test 3 sources, a 600-word script and 120s of audio yield a completed episode."""
        episode = asyncio.run(pipeline.generate("news-anchor", use_async=False))

        assert episode.status == "completed"
        assert episode.style == "news-anchor"
        assert episode.word_count == 600
        assert episode.duration_seconds == 120.0
        assert episode.source_count == 3
        assert episode.error is None
        assert episode.completed_at is not None
        assert episode.title.startswith("News Briefing - ")
        assert episode.description == "Covering: Story 1; Story 2; Story 3"
        for url in (episode.script_url, episode.audio_url, episode.srt_url, episode.vtt_url, episode.transcript_url):
            assert url and url.startswith("https://media.example.com/episodes/")
        assert episode.metadata_json["duration_estimated"] is False
        assert episode.metadata_json["source_titles"] == ["Story 1", "Story 2", "Story 3"]

    def test_artifacts_are_stored_under_episode_key(self, pipeline, services):
        """Test every artifact is written once under the episode's prefix."""
        episode = asyncio.run(pipeline.generate("news-anchor", use_async=False))

        prefix = f"episodes/{episode.id}/"
        assert sorted(services.storage.objects) == sorted(
            prefix + name
            for name in ("script.txt", "audio.wav", "subtitles.srt", "subtitles.vtt", "transcript.json")
        )
        srt = services.storage.objects[prefix + "subtitles.srt"][0].decode("utf-8")
        assert srt.startswith("1\n00:00:00,000 --> ")

    def test_prompt_uses_style_template_and_sources(self, pipeline, services):
        """Test the prompt is built from the style's template and the fetched items."""
        asyncio.run(pipeline.generate("emotional", use_async=False))

        prompt = services.text_generator.prompts[0]
        assert "1. Story 1" in prompt
        assert "Source: https://news.example.com/3" in prompt

    def test_empty_script_fails_without_storage_writes(self, pipeline, services):
        """Test an empty generated script fails the run at generate-script."""
        services.text_generator = FakeTextGenerator("")

        episode = asyncio.run(pipeline.generate("news-anchor", use_async=False))

        assert episode.status == "failed"
        assert "generate-script" in episode.error
        assert services.storage.objects == {}
        assert services.synthesizer.calls == []
        assert episode.script_text is None

    def test_short_script_is_rejected(self, pipeline, services):
        """Test a script under the minimum word count fails validation without retry."""
        services.text_generator = FakeTextGenerator("Too short to broadcast.")

        episode = asyncio.run(pipeline.generate("news-anchor", use_async=False))

        assert episode.status == "failed"
        assert "too short" in episode.error
        assert len(services.text_generator.prompts) == 1

    def test_transient_text_failure_is_retried(self, pipeline, services):
        """Test the text generator is retried after a transient error."""
        services.text_generator = FakeTextGenerator(TransientError("503 from model"), make_script())

        episode = asyncio.run(pipeline.generate("crosstalk", use_async=False))

        assert episode.status == "completed"
        assert len(services.text_generator.prompts) == 2

    def test_source_failure_fails_at_first_step(self, pipeline, services):
        """Test a failing source fails the run at fetch-source."""
        services.source = FakeSource(error=CollaboratorError("feed gone", status=404))

        episode = asyncio.run(pipeline.generate("news-anchor", use_async=False))

        assert episode.status == "failed"
        assert episode.error.startswith("Workflow failed at step fetch-source")
        assert services.source.calls == 1

    def test_empty_source_fails(self, pipeline, services):
        """Test a source with no items fails the run."""
        services.source = FakeSource(items=[])

        episode = asyncio.run(pipeline.generate("news-anchor", use_async=False))

        assert episode.status == "failed"
        assert "no items" in episode.error

    def test_storage_retry_recovers(self, pipeline, services):
        """Test a transient storage failure is retried within store-artifacts."""
        services.storage = FakeStorage(failures=1)

        episode = asyncio.run(pipeline.generate("news-anchor", use_async=False))

        assert episode.status == "completed"

    def test_unknown_style_rejected(self, pipeline):
        """Test an unknown style is rejected before any work."""
        with pytest.raises(ValidationError):
            asyncio.run(pipeline.generate("sports-desk", use_async=False))

    def test_missing_synthesizer_rejected(self, pipeline, services):
        """Test sync generation needs a blocking synthesizer."""
        services.synthesizer = None

        with pytest.raises(ValueError):
            asyncio.run(pipeline.generate("news-anchor", use_async=False))

    def test_duration_estimated_when_unknown(self, pipeline, services):
        """Test duration falls back to words-per-minute when the audio can't be read."""
        services.synthesizer.duration_seconds = None

        episode = asyncio.run(pipeline.generate("news-anchor", use_async=False))

        assert episode.status == "completed"
        assert episode.duration_seconds == 240.0
        assert episode.metadata_json["duration_estimated"] is True


class TestAsynchronousPipeline:
    """Tests of the submitting pipeline variant."""

    def test_submission_leaves_episode_processing(self, pipeline, services):
        """Test steps 1-3 run and the handle is registered as submitted."""
        episode = asyncio.run(pipeline.generate("news-anchor", use_async=True))

        assert episode.status == "processing"
        assert episode.is_async is True
        assert episode.tts_job_id == "evt-1"
        assert episode.word_count == 600
        assert services.storage.objects == {}

        job = services.repository.get_job_handle(episode.id)
        assert job.external_job_id == "evt-1"
        assert job.status == "submitted"

    def test_failed_submission_creates_no_handle(self, pipeline, services):
        """Test a rejected submission fails the run without a handle."""
        services.async_synthesizer = FakeAsyncSynthesizer(
            submit_error=CollaboratorError("bad voice reference", status=400)
        )

        episode = asyncio.run(pipeline.generate("news-anchor", use_async=True))

        assert episode.status == "failed"
        assert "synthesize-audio" in episode.error
        assert services.repository.get_job_handle(episode.id) is None

    def test_default_mode_comes_from_services(self, pipeline, services):
        """Test use_async defaults to the container's setting."""
        services.use_async_tts = True

        episode = asyncio.run(pipeline.generate())

        assert episode.style == "news-anchor"
        assert episode.status == "processing"


class TestDeadline:
    """Tests for the overall run deadline."""

    def test_deadline_exceeded(self, pipeline, services):
        """Test a run slower than its deadline raises DeadlineExceededError."""
        services.source = SlowSource(0.5)

        with pytest.raises(DeadlineExceededError):
            asyncio.run(pipeline.generate("news-anchor", use_async=False, deadline_seconds=0.05))

    def test_run_within_deadline(self, pipeline):
        """Test a fast run returns normally under a deadline."""
        episode = asyncio.run(pipeline.generate("news-anchor", use_async=False, deadline_seconds=30))

        assert episode.status == "completed"
        assert pipeline.pending_runs == []

    def test_abandoned_run_can_still_finish(self, pipeline, services):
        """Test an abandoned run is tracked and completes its episode when awaited."""
        services.source = SlowSource(0.2)

        async def abandon_then_drain():
            with pytest.raises(DeadlineExceededError):
                await pipeline.generate("news-anchor", use_async=False, deadline_seconds=0.05)
            pending = pipeline.pending_runs
            await pipeline.drain()
            return pending

        pending = asyncio.run(abandon_then_drain())

        assert len(pending) == 1
        assert services.repository.get_episode(pending[0]).status == "completed"
        assert pipeline.pending_runs == []

    def test_drain_fails_unfinished_run(self, pipeline, services):
        """Test a run still going when drained is stopped and its episode failed."""
        services.source = SlowSource(5.0)

        async def abandon_then_drain():
            with pytest.raises(DeadlineExceededError):
                await pipeline.generate("news-anchor", use_async=False, deadline_seconds=0.05)
            pending = pipeline.pending_runs
            await pipeline.drain(timeout=0)
            return pending

        pending = asyncio.run(abandon_then_drain())

        episode = services.repository.get_episode(pending[0])
        assert episode.status == "failed"
        assert "abandoned" in episode.error
        assert services.source.calls == 0

    def test_drain_without_abandoned_runs(self, pipeline):
        """Test draining with nothing abandoned returns at once."""
        asyncio.run(pipeline.drain(timeout=0))


class TestUnexpectedErrors:
    """Tests for failures raised outside any step."""

    def test_unexpected_error_fails_episode(self, pipeline, services, monkeypatch):
        """Test an error escaping the executor still leaves the episode failed."""
        monkeypatch.setattr(pipeline.executor, "execute", AsyncMock(side_effect=RuntimeError("engine gone")))

        with pytest.raises(RuntimeError, match="engine gone"):
            asyncio.run(pipeline.generate("news-anchor", use_async=False, episode_id="ep-broken"))

        episode = services.repository.get_episode("ep-broken")
        assert episode.status == "failed"
        assert "RuntimeError: engine gone" in episode.error


class TestGenerateSubtitlesStep:
    """Tests for the generate-subtitles step on both pipeline halves."""

    def results_with(self, audio):
        script = ScriptResult(text=make_script(40), word_count=40, title="t", description="d")
        return {GENERATE_SCRIPT: script, SYNTHESIZE_AUDIO: audio}

    def context(self, services):
        return GenerationContext(episode_id="ep-1", style=get_style("news-anchor"), services=services)

    def test_audio_downloaded_after_a_job_gets_subtitles(self, services):
        """Test audio fetched from a finished remote job is subtitled."""
        audio = AudioResult(audio_bytes=b"audio", duration_seconds=16.0, is_async=True)

        bundle = asyncio.run(GenerateSubtitlesStep().run(self.context(services), self.results_with(audio)))

        assert bundle.block_count > 0
        assert bundle.srt.startswith("1\n00:00:00,000 --> ")
        assert bundle.vtt.startswith("WEBVTT")

    def test_pending_submission_is_rejected(self, services):
        """Test a submitted job has no audio to subtitle yet."""
        with pytest.raises(ValidationError, match="still pending"):
            asyncio.run(
                GenerateSubtitlesStep().run(self.context(services), self.results_with(AudioSubmission(job_id="evt-1")))
            )
