"""Configuration for the episode generation pipeline.

Provides environment-based configuration for step retry behavior, script
validation, duration estimation and job polling.
"""

import os
from dataclasses import dataclass
from typing import Optional


def _get_int_env(
    name: str,
    default: int,
    min_val: Optional[int] = None,
    max_val: Optional[int] = None,
) -> int:
    """Parse an integer from an environment variable with validation.

    Args:
        name: Environment variable name.
        default: Default value if env var is not set.
        min_val: Minimum allowed value (inclusive), or None for no minimum.
        max_val: Maximum allowed value (inclusive), or None for no maximum.

    Returns:
        The parsed and validated integer value.

    Raises:
        ValueError: If the value cannot be parsed as an integer or is out of range.
    """
    raw = os.getenv(name)
    if raw is None:
        return default

    try:
        value = int(raw)
    except ValueError:
        raise ValueError(
            f"Invalid value for {name}: '{raw}' is not a valid integer"
        )

    if min_val is not None and value < min_val:
        raise ValueError(
            f"Invalid value for {name}: {value} must be >= {min_val}"
        )

    if max_val is not None and value > max_val:
        raise ValueError(
            f"Invalid value for {name}: {value} must be <= {max_val}"
        )

    return value


def _get_float_env(
    name: str,
    default: float,
    min_val: Optional[float] = None,
    max_val: Optional[float] = None,
) -> float:
    """Parse a float from an environment variable with validation.

    Raises:
        ValueError: If the value cannot be parsed as a number or is out of range.
    """
    raw = os.getenv(name)
    if raw is None:
        return default

    try:
        value = float(raw)
    except ValueError:
        raise ValueError(
            f"Invalid value for {name}: '{raw}' is not a valid number"
        )

    if min_val is not None and value < min_val:
        raise ValueError(
            f"Invalid value for {name}: {value} must be >= {min_val}"
        )

    if max_val is not None and value > max_val:
        raise ValueError(
            f"Invalid value for {name}: {value} must be <= {max_val}"
        )

    return value


@dataclass
class PipelineConfig:
    """Configuration for the episode generation pipeline.

    All settings can be overridden via environment variables.
    """

    # Per-step retry policy
    step_max_attempts: int = 3
    step_initial_delay: float = 1.0  # seconds
    step_max_delay: float = 10.0  # seconds
    step_backoff_factor: float = 2.0

    # Script validation and duration estimation
    min_script_words: int = 50
    words_per_minute: int = 150

    # Job polling
    poll_interval_seconds: float = 5.0
    poll_timeout_seconds: float = 900.0  # 15 minutes
    sweep_batch_size: int = 20
    sweep_concurrency: int = 5

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        """Create configuration from environment variables.

        Returns:
            PipelineConfig instance with values from environment or defaults.

        Raises:
            ValueError: If any environment variable has an invalid value.
        """
        step_max_attempts = _get_int_env(
            "PIPELINE_STEP_MAX_ATTEMPTS", 3, min_val=1
        )
        step_initial_delay = _get_float_env(
            "PIPELINE_STEP_INITIAL_DELAY", 1.0, min_val=0.0
        )
        step_max_delay = _get_float_env(
            "PIPELINE_STEP_MAX_DELAY", 10.0, min_val=0.0
        )
        step_backoff_factor = _get_float_env(
            "PIPELINE_STEP_BACKOFF_FACTOR", 2.0, min_val=1.0
        )
        min_script_words = _get_int_env(
            "PIPELINE_MIN_SCRIPT_WORDS", 50, min_val=1
        )
        words_per_minute = _get_int_env(
            "PIPELINE_WORDS_PER_MINUTE", 150, min_val=1
        )
        poll_interval_seconds = _get_float_env(
            "PIPELINE_POLL_INTERVAL_SECONDS", 5.0, min_val=0.0
        )
        poll_timeout_seconds = _get_float_env(
            "PIPELINE_POLL_TIMEOUT_SECONDS", 900.0, min_val=0.0
        )
        sweep_batch_size = _get_int_env(
            "PIPELINE_SWEEP_BATCH_SIZE", 20, min_val=1
        )
        sweep_concurrency = _get_int_env(
            "PIPELINE_SWEEP_CONCURRENCY", 5, min_val=1
        )

        # Cross-field validation
        if step_initial_delay > step_max_delay:
            raise ValueError(
                f"Invalid configuration: PIPELINE_STEP_INITIAL_DELAY "
                f"({step_initial_delay}) must not exceed "
                f"PIPELINE_STEP_MAX_DELAY ({step_max_delay})"
            )

        return cls(
            step_max_attempts=step_max_attempts,
            step_initial_delay=step_initial_delay,
            step_max_delay=step_max_delay,
            step_backoff_factor=step_backoff_factor,
            min_script_words=min_script_words,
            words_per_minute=words_per_minute,
            poll_interval_seconds=poll_interval_seconds,
            poll_timeout_seconds=poll_timeout_seconds,
            sweep_batch_size=sweep_batch_size,
            sweep_concurrency=sweep_concurrency,
        )
