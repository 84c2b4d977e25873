"""CLI commands for episode generation.

Provides commands for:
- Generating an episode in any style
- Polling or waiting on an episode's speech synthesis job
- Sweeping all outstanding speech jobs
- Listing and inspecting episodes
- Writing the podcast RSS feed
"""

import argparse
import asyncio
import logging
import sys

from newscast.argparse_shared import (
    add_episode_id_argument,
    add_limit_argument,
    add_log_level_argument,
    add_style_argument,
    get_base_parser,
)
from newscast.config import Config
from newscast.db.factory import repository_from_config
from newscast.db.models import EPISODE_STATUSES, Episode
from newscast.errors import DeadlineExceededError, NewscastError
from newscast.feed import feed_from_repository
from newscast.services.container import build_services
from newscast.styles import STYLES, list_styles
from newscast.workflow.pipeline import EpisodePipeline
from newscast.workflow.tracker import CompletionTracker

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

NOISY_LOGGERS = ("aiohttp", "botocore", "boto3", "urllib3", "google_genai", "httpx")


def print_episode(episode: Episode) -> None:
    print(f"\nEpisode: {episode.id}")
    print(f"  Style: {episode.style}")
    print(f"  Status: {episode.status}")
    if episode.title:
        print(f"  Title: {episode.title}")
    if episode.word_count:
        print(f"  Words: {episode.word_count}")
    if episode.duration_seconds:
        print(f"  Duration: {episode.duration_seconds:.1f}s")
    if episode.is_async and episode.tts_job_id:
        print(f"  Speech job: {episode.tts_job_id}")
    if episode.audio_url:
        print(f"  Audio: {episode.audio_url}")
    if episode.srt_url:
        print(f"  Subtitles: {episode.srt_url}")
    if episode.error:
        print(f"  Error: {episode.error}")


async def _generate(args, config: Config) -> Episode:
    services = build_services(config)
    pipeline = EpisodePipeline(services)
    try:
        episode = await pipeline.generate(
            style_name=args.style,
            use_async=args.async_mode,
            deadline_seconds=args.deadline,
        )
        if args.wait and episode.status == "processing" and episode.is_async:
            tracker = CompletionTracker(services)
            await tracker.wait_for_completion(episode.id, timeout=args.timeout)
            episode = await asyncio.to_thread(services.repository.get_episode, episode.id)
        return episode
    finally:
        # Stop runs abandoned at their deadline before the engine is disposed
        await pipeline.drain(timeout=0)
        services.close()


def generate_episode(args, config: Config):
    """
    Generate one episode and print its record.

    With asynchronous speech synthesis the command returns once the job is
    submitted, unless --wait is given.

    Notes:
        Exits with status code 1 if the episode failed or the deadline elapsed.
    """
    logger.info(f"Generating {args.style} episode")
    try:
        episode = asyncio.run(_generate(args, config))
    except DeadlineExceededError as e:
        print(f"Deadline exceeded: {e}")
        sys.exit(1)

    print_episode(episode)
    if episode.status == "failed":
        sys.exit(1)
    if episode.status == "processing":
        print(f"\nSpeech job submitted. Check progress with: poll {episode.id}")


async def _poll(args, config: Config):
    services = build_services(config)
    try:
        tracker = CompletionTracker(services)
        if args.wait:
            result = await tracker.wait_for_completion(args.episode_id, timeout=args.timeout)
        else:
            result = await tracker.poll_once(args.episode_id)
        episode = await asyncio.to_thread(services.repository.get_episode, args.episode_id)
        return result, episode
    finally:
        services.close()


def poll_episode(args, config: Config):
    """Poll an episode's speech synthesis job once, or until it finishes with --wait."""
    try:
        result, episode = asyncio.run(_poll(args, config))
    except NewscastError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print(f"\nJob status: {result.status}")
    if episode is not None:
        print_episode(episode)
    if result.status == "failed":
        sys.exit(1)


async def _sweep(args, config: Config):
    services = build_services(config)
    try:
        tracker = CompletionTracker(services)
        return await tracker.sweep(limit=args.limit, max_concurrent=args.concurrent)
    finally:
        services.close()


def sweep_jobs(args, config: Config):
    """Poll every outstanding speech job once and print a summary."""
    result = asyncio.run(_sweep(args, config))

    print(f"\nSweep complete:")
    print(f"  Polled: {result.polled}")
    print(f"  Completed: {result.completed}")
    print(f"  Failed: {result.failed}")
    print(f"  In progress: {result.in_progress}")
    if result.errors:
        print(f"\nErrors:")
        for error in result.errors[:10]:
            print(f"  - {error}")


def list_episodes(args, config: Config):
    """Print a table of episodes, newest first."""
    repository = repository_from_config(config)

    try:
        episodes = repository.list_episodes(
            status=args.status,
            style=args.style,
            limit=args.limit,
        )

        if not episodes:
            print("No episodes found")
            return

        print(f"\n{'ID':<44}  {'Style':<16}  {'Status':<11}  {'Title'}")
        print("-" * 110)
        for episode in episodes:
            print(
                f"{episode.id:<44}  "
                f"{episode.style:<16}  "
                f"{episode.status:<11}  "
                f"{(episode.title or '')[:40]}"
            )

    finally:
        repository.close()


def show_episode(args, config: Config):
    """
    Print one episode with its speech job.

    Notes:
        Exits with status code 1 if the episode is not found.
    """
    repository = repository_from_config(config)

    try:
        episode = repository.get_episode(args.episode_id)
        if episode is None:
            print(f"Episode not found: {args.episode_id}")
            sys.exit(1)

        print_episode(episode)
        job = repository.get_job_handle(args.episode_id)
        if job is not None:
            print(f"\n  Job {job.external_job_id}: {job.status} (polled {job.poll_count} times)")
            if job.error:
                print(f"  Job error: {job.error}")

    finally:
        repository.close()


def write_feed(args, config: Config):
    """Write the podcast RSS feed of completed episodes to a file or stdout."""
    repository = repository_from_config(config)

    try:
        xml = feed_from_repository(repository, config, limit=args.limit)
    finally:
        repository.close()

    if args.output:
        with open(args.output, "wb") as f:
            f.write(xml)
        print(f"Feed written to {args.output}")
    else:
        sys.stdout.write(xml.decode("utf-8"))


def show_styles(args, config: Config):
    """Print the available episode styles."""
    for name in list_styles():
        print(f"  {name:<16}  {STYLES[name].display_title}")


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = get_base_parser("News podcast generation CLI")
    add_log_level_argument(parser)

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # generate command
    generate_parser = subparsers.add_parser(
        "generate",
        help="Generate a new episode",
    )
    add_style_argument(generate_parser)
    mode = generate_parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--async",
        dest="async_mode",
        action="store_const",
        const=True,
        default=None,
        help="Submit speech synthesis as a remote job",
    )
    mode.add_argument(
        "--sync",
        dest="async_mode",
        action="store_const",
        const=False,
        help="Wait for speech synthesis inline",
    )
    generate_parser.add_argument(
        "--deadline",
        type=float,
        help="Abandon the run after this many seconds",
    )
    generate_parser.add_argument(
        "--wait",
        action="store_true",
        help="Wait for an asynchronous speech job to finish",
    )
    generate_parser.add_argument(
        "--timeout",
        type=float,
        help="Maximum seconds to wait with --wait",
    )

    # poll command
    poll_parser = subparsers.add_parser(
        "poll",
        help="Poll an episode's speech job",
    )
    add_episode_id_argument(poll_parser)
    poll_parser.add_argument(
        "--wait",
        action="store_true",
        help="Keep polling until the job completes or fails",
    )
    poll_parser.add_argument(
        "--timeout",
        type=float,
        help="Maximum seconds to wait with --wait",
    )

    # sweep command
    sweep_parser = subparsers.add_parser(
        "sweep",
        help="Poll all outstanding speech jobs once",
    )
    add_limit_argument(sweep_parser, "Maximum number of jobs to poll")
    sweep_parser.add_argument(
        "--concurrent",
        type=int,
        help="Number of concurrent polls",
    )

    # list command
    list_parser = subparsers.add_parser(
        "list",
        help="List episodes",
    )
    list_parser.add_argument(
        "--status",
        choices=EPISODE_STATUSES,
        help="Only show episodes with this status",
    )
    list_parser.add_argument(
        "--style",
        choices=list_styles(),
        help="Only show episodes of this style",
    )
    add_limit_argument(list_parser, "Maximum number of episodes to show")

    # show command
    show_parser = subparsers.add_parser(
        "show",
        help="Show one episode",
    )
    add_episode_id_argument(show_parser)

    # feed command
    feed_parser = subparsers.add_parser(
        "feed",
        help="Write the podcast RSS feed of completed episodes",
    )
    feed_parser.add_argument(
        "-o",
        "--output",
        help="File to write the feed to (default: stdout)",
    )
    add_limit_argument(feed_parser, "Maximum number of episodes in the feed")

    # styles command
    subparsers.add_parser(
        "styles",
        help="List episode styles",
    )

    return parser


def main():
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    logging.getLogger().setLevel(args.log_level.upper())
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    # Load configuration
    config = Config(env_file=args.env_file)

    # Route to appropriate command
    commands = {
        "generate": generate_episode,
        "poll": poll_episode,
        "sweep": sweep_jobs,
        "list": list_episodes,
        "show": show_episode,
        "styles": show_styles,
        "feed": write_feed,
    }

    command_func = commands.get(args.command)
    if command_func:
        command_func(args, config)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
