import argparse

from newscast.styles import DEFAULT_STYLE, list_styles


def get_base_parser(description: str = "Generate news podcast episodes") -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=description)
    parser.add_argument("-e", "--env-file", help="Path to a custom .env file", default=None)
    return parser

def add_log_level_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-l", "--log-level", help="Set log level (DEBUG, INFO, WARNING, ERROR)", default="INFO")

def add_style_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-s", "--style", choices=list_styles(), default=DEFAULT_STYLE, help="Episode style")

def add_episode_id_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("episode_id", help="Episode ID")

def add_limit_argument(parser: argparse.ArgumentParser, help_text: str = "Maximum number of items") -> None:
    parser.add_argument("--limit", type=int, help=help_text)
