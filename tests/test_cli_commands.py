"""Tests for CLI episode_commands module."""

import asyncio
from argparse import Namespace
from unittest.mock import Mock, patch

import pytest

from conftest import FakeTextGenerator, SlowSource
from newscast.cli.episode_commands import (
    create_parser,
    generate_episode,
    list_episodes,
    main,
    poll_episode,
    show_episode,
    show_styles,
    sweep_jobs,
    write_feed,
)
from newscast.schemas import RemoteJobStatus
from newscast.workflow.pipeline import EpisodePipeline

DONE = RemoteJobStatus(state="done", result_ref="https://tts.example.com/gradio_api/file=out.wav")


@pytest.fixture
def mock_config():
    """Create a mock config for testing."""
    config = Mock()
    config.DATABASE_URL = "sqlite:///:memory:"
    config.DB_POOL_SIZE = 5
    config.DB_MAX_OVERFLOW = 10
    config.DB_ECHO = False
    return config


def generate_args(**overrides):
    values = dict(style="news-anchor", async_mode=None, deadline=None, wait=False, timeout=None)
    values.update(overrides)
    return Namespace(**values)


class TestCreateParser:
    """Tests for create_parser function."""

    def test_has_env_file_argument(self):
        """Test that parser has --env-file argument."""
        args = create_parser().parse_args(["--env-file", "/path/.env", "list"])
        assert args.env_file == "/path/.env"

    def test_generate_defaults(self):
        """Test generate subcommand defaults."""
        args = create_parser().parse_args(["generate"])

        assert args.command == "generate"
        assert args.style == "news-anchor"
        assert args.async_mode is None
        assert args.wait is False
        assert args.deadline is None

    def test_generate_options(self):
        """Test generate subcommand options."""
        args = create_parser().parse_args(
            ["generate", "--style", "crosstalk", "--async", "--wait", "--timeout", "60", "--deadline", "300"]
        )

        assert args.style == "crosstalk"
        assert args.async_mode is True
        assert args.wait is True
        assert args.timeout == 60.0
        assert args.deadline == 300.0

    def test_generate_sync(self):
        """Test --sync selects blocking synthesis."""
        args = create_parser().parse_args(["generate", "--sync"])
        assert args.async_mode is False

    def test_async_and_sync_are_exclusive(self):
        """Test --async and --sync cannot be combined."""
        with pytest.raises(SystemExit):
            create_parser().parse_args(["generate", "--async", "--sync"])

    def test_unknown_style_rejected(self):
        """Test the style must be one of the supported styles."""
        with pytest.raises(SystemExit):
            create_parser().parse_args(["generate", "--style", "sports-desk"])

    def test_poll_subcommand(self):
        """Test poll subcommand parsing."""
        args = create_parser().parse_args(["poll", "ep-1", "--wait"])

        assert args.command == "poll"
        assert args.episode_id == "ep-1"
        assert args.wait is True

    def test_sweep_subcommand(self):
        """Test sweep subcommand parsing."""
        args = create_parser().parse_args(["sweep", "--limit", "10", "--concurrent", "3"])

        assert args.limit == 10
        assert args.concurrent == 3

    def test_feed_subcommand(self):
        """Test feed subcommand parsing."""
        args = create_parser().parse_args(["feed", "-o", "feed.xml", "--limit", "5"])

        assert args.command == "feed"
        assert args.output == "feed.xml"
        assert args.limit == 5

    def test_list_subcommand(self):
        """Test list subcommand parsing."""
        args = create_parser().parse_args(["list", "--status", "failed", "--style", "emotional"])

        assert args.status == "failed"
        assert args.style == "emotional"
        assert args.limit is None


class TestMain:
    """Tests for main entry point."""

    def test_no_command_prints_help(self, capsys):
        """Test that no command prints help and exits."""
        with patch("sys.argv", ["newscast"]):
            with pytest.raises(SystemExit) as exc_info:
                main()

        assert exc_info.value.code == 1

    @patch("newscast.cli.episode_commands.Config")
    @patch("newscast.cli.episode_commands.generate_episode")
    def test_routes_to_generate(self, mock_generate, mock_config):
        """Test that generate command routes correctly."""
        with patch("sys.argv", ["newscast", "-e", "/tmp/.env", "generate", "--sync"]):
            main()

        mock_config.assert_called_once_with(env_file="/tmp/.env")
        mock_generate.assert_called_once()
        args, config = mock_generate.call_args.args
        assert args.async_mode is False
        assert config is mock_config.return_value

    @patch("newscast.cli.episode_commands.Config")
    @patch("newscast.cli.episode_commands.sweep_jobs")
    def test_routes_to_sweep(self, mock_sweep, mock_config):
        """Test that sweep command routes correctly."""
        with patch("sys.argv", ["newscast", "sweep"]):
            main()

        mock_sweep.assert_called_once()


class TestGenerateEpisode:
    """Tests for generate_episode function."""

    def test_sync_generation(self, services, mock_config, capsys):
        """Test a synchronous run prints the completed episode."""
        with patch("newscast.cli.episode_commands.build_services", return_value=services):
            generate_episode(generate_args(async_mode=False), mock_config)

        captured = capsys.readouterr()
        assert "Status: completed" in captured.out
        assert "Audio: https://media.example.com/episodes/" in captured.out

    def test_async_generation_prints_poll_hint(self, services, mock_config, capsys):
        """Test a submitted run tells the user how to poll."""
        with patch("newscast.cli.episode_commands.build_services", return_value=services):
            generate_episode(generate_args(async_mode=True), mock_config)

        captured = capsys.readouterr()
        assert "Status: processing" in captured.out
        assert "Speech job: evt-1" in captured.out
        assert "poll news-anchor-" in captured.out

    def test_async_generation_with_wait(self, services, mock_config, capsys):
        """Test --wait polls the job until the episode completes."""
        services.async_synthesizer.statuses = [RemoteJobStatus(state="pending"), DONE]

        with patch("newscast.cli.episode_commands.build_services", return_value=services):
            generate_episode(generate_args(async_mode=True, wait=True), mock_config)

        captured = capsys.readouterr()
        assert "Status: completed" in captured.out

    def test_failed_generation_exits(self, services, mock_config, capsys):
        """Test a failed run exits with status 1."""
        services.text_generator = FakeTextGenerator("")

        with patch("newscast.cli.episode_commands.build_services", return_value=services):
            with pytest.raises(SystemExit) as exc_info:
                generate_episode(generate_args(async_mode=False), mock_config)

        assert exc_info.value.code == 1
        assert "Status: failed" in capsys.readouterr().out


    def test_deadline_fails_abandoned_run(self, services, mock_config, capsys):
        """Test a run past its deadline is stopped and recorded failed before exit."""
        services.source = SlowSource(5.0)

        with patch("newscast.cli.episode_commands.build_services", return_value=services):
            with pytest.raises(SystemExit) as exc_info:
                generate_episode(generate_args(async_mode=False, deadline=0.05), mock_config)

        assert exc_info.value.code == 1
        assert "Deadline exceeded" in capsys.readouterr().out
        [episode] = services.repository.list_episodes()
        assert episode.status == "failed"
        assert "abandoned" in episode.error


class TestPollAndSweep:
    """Tests for poll_episode and sweep_jobs."""

    @pytest.fixture
    def submitted_episode(self, services, executor):
        pipeline = EpisodePipeline(services, executor=executor)
        return asyncio.run(pipeline.generate("news-anchor", use_async=True))

    def test_poll_completes(self, services, mock_config, submitted_episode, capsys):
        """Test a single poll of a finished job."""
        services.async_synthesizer.statuses = [DONE]

        with patch("newscast.cli.episode_commands.build_services", return_value=services):
            poll_episode(Namespace(episode_id=submitted_episode.id, wait=False, timeout=None), mock_config)

        captured = capsys.readouterr()
        assert "Job status: completed" in captured.out
        assert "Status: completed" in captured.out

    def test_poll_unknown_episode_exits(self, services, mock_config, capsys):
        """Test polling an unknown episode exits with status 1."""
        with patch("newscast.cli.episode_commands.build_services", return_value=services):
            with pytest.raises(SystemExit) as exc_info:
                poll_episode(Namespace(episode_id="missing", wait=False, timeout=None), mock_config)

        assert exc_info.value.code == 1
        assert "Error:" in capsys.readouterr().out

    def test_poll_failed_job_exits(self, services, mock_config, submitted_episode, capsys):
        """Test a failed job exits with status 1."""
        services.async_synthesizer.statuses = [RemoteJobStatus(state="error", error="boom")]

        with patch("newscast.cli.episode_commands.build_services", return_value=services):
            with pytest.raises(SystemExit) as exc_info:
                poll_episode(Namespace(episode_id=submitted_episode.id, wait=False, timeout=None), mock_config)

        assert exc_info.value.code == 1

    def test_sweep_summary(self, services, mock_config, submitted_episode, capsys):
        """Test the sweep summary is printed."""
        services.async_synthesizer.statuses = [RemoteJobStatus(state="pending")]

        with patch("newscast.cli.episode_commands.build_services", return_value=services):
            sweep_jobs(Namespace(limit=None, concurrent=None), mock_config)

        captured = capsys.readouterr()
        assert "Polled: 1" in captured.out
        assert "In progress: 1" in captured.out


class TestListAndShow:
    """Tests for list_episodes and show_episode."""

    def test_list_empty(self, repository, mock_config, capsys):
        """Test listing with no episodes."""
        with patch("newscast.cli.episode_commands.repository_from_config", return_value=repository):
            list_episodes(Namespace(status=None, style=None, limit=None), mock_config)

        assert "No episodes found" in capsys.readouterr().out

    def test_list_episodes(self, repository, mock_config, capsys):
        """Test the table contains matching episodes."""
        repository.create_episode("ep-1", "news-anchor", status="processing")
        repository.create_episode("ep-2", "emotional")

        with patch("newscast.cli.episode_commands.repository_from_config", return_value=repository):
            list_episodes(Namespace(status="processing", style=None, limit=None), mock_config)

        output = capsys.readouterr().out
        assert "ep-1" in output
        assert "ep-2" not in output

    def test_show_episode_with_job(self, repository, mock_config, capsys):
        """Test an episode is shown with its speech job."""
        repository.create_episode("ep-1", "news-anchor", status="processing", is_async=True, tts_job_id="evt-9")
        repository.put_job_handle("ep-1", "evt-9")

        with patch("newscast.cli.episode_commands.repository_from_config", return_value=repository):
            show_episode(Namespace(episode_id="ep-1"), mock_config)

        output = capsys.readouterr().out
        assert "Episode: ep-1" in output
        assert "Job evt-9: submitted (polled 0 times)" in output

    def test_show_missing_episode_exits(self, repository, mock_config, capsys):
        """Test a missing episode exits with status 1."""
        with patch("newscast.cli.episode_commands.repository_from_config", return_value=repository):
            with pytest.raises(SystemExit) as exc_info:
                show_episode(Namespace(episode_id="nope"), mock_config)

        assert exc_info.value.code == 1
        assert "Episode not found: nope" in capsys.readouterr().out

    def test_feed_written_to_file(self, repository, mock_config, tmp_path, capsys):
        """Test the feed of completed episodes is written to --output."""
        repository.create_episode("ep-1", "news-anchor", status="processing")
        repository.update_episode(
            "ep-1", status="completed", title="News Briefing", audio_url="https://media.example.com/ep-1.wav"
        )
        mock_config.FEED_TITLE = "Newscast"
        mock_config.FEED_DESCRIPTION = "Daily news briefings"
        mock_config.FEED_LINK = "https://newscast.example.com"
        mock_config.FEED_LANGUAGE = "en"
        mock_config.FEED_AUTHOR = "Newscast"
        mock_config.FEED_IMAGE_URL = ""
        mock_config.FEED_MAX_EPISODES = 20
        output = tmp_path / "feed.xml"

        with patch("newscast.cli.episode_commands.repository_from_config", return_value=repository):
            write_feed(Namespace(output=str(output), limit=None), mock_config)

        xml = output.read_text(encoding="utf-8")
        assert "<rss" in xml
        assert "https://media.example.com/ep-1.wav" in xml
        assert f"Feed written to {output}" in capsys.readouterr().out

    def test_show_styles(self, mock_config, capsys):
        """Test every style is printed."""
        show_styles(Namespace(), mock_config)

        output = capsys.readouterr().out
        for name in ("news-anchor", "emotional", "crosstalk", "topic-explainer"):
            assert name in output
