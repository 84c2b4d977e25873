"""Interpretation of one-shot server-sent event streams from a synthesis job.

A status request returns a stream that the server may close before the job
finishes. The whole stream is read and reduced to exactly one outcome:
completed (with the output), failed (with the error), or inconclusive when
the stream ended without a terminal event. Inconclusive never means done.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Tuple

from newscast.schemas import GradioFileData

logger = logging.getLogger(__name__)

COMPLETED = "completed"
FAILED = "failed"
INCONCLUSIVE = "inconclusive"

# Gradio >= 4 names the event; older queues put a "msg" field in the payload.
_COMPLETE_EVENTS = ("complete",)
_ERROR_EVENTS = ("error",)
_COMPLETE_MESSAGES = ("process_completed",)
_ERROR_MESSAGES = ("process_error",)

_LINE_BREAK = re.compile(r"\r\n|\r|\n")


@dataclass(frozen=True)
class StreamOutcome:
    """Result of reading one event stream to its end."""

    kind: str
    output: Any = None
    error: Optional[str] = None


def iter_events(text: str) -> Iterable[Tuple[Optional[str], str]]:
    """Split an event stream body into (event name, data) pairs.

    Multi-line data fields are joined with newlines. Comment lines and
    fields other than ``event`` and ``data`` are ignored.
    """
    event: Optional[str] = None
    data_lines: List[str] = []

    for line in _LINE_BREAK.split(text) + [""]:
        if not line:
            if event is not None or data_lines:
                yield event, "\n".join(data_lines)
            event = None
            data_lines = []
            continue
        if line.startswith(":"):
            continue

        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "event":
            event = value
        elif field == "data":
            data_lines.append(value)


def _decode(data: str) -> Any:
    if not data:
        return None
    try:
        return json.loads(data)
    except json.JSONDecodeError:
        logger.debug(f"Event data is not JSON: {data[:200]}")
        return data


def _error_text(payload: Any) -> str:
    if payload is None:
        return "Remote job reported an error"
    if isinstance(payload, dict):
        for key in ("error", "message", "output"):
            if payload.get(key):
                value = payload[key]
                return value if isinstance(value, str) else json.dumps(value)
    return payload if isinstance(payload, str) else json.dumps(payload)


def interpret_stream(text: str) -> StreamOutcome:
    """Reduce a complete event stream body to a single outcome.

    The first terminal event wins. Non-terminal events (heartbeats,
    progress updates) are skipped.
    """
    for event, data in iter_events(text):
        payload = _decode(data)

        if event in _COMPLETE_EVENTS:
            return StreamOutcome(COMPLETED, output=payload)
        if event in _ERROR_EVENTS:
            return StreamOutcome(FAILED, error=_error_text(payload))

        if isinstance(payload, dict):
            msg = payload.get("msg")
            if msg in _COMPLETE_MESSAGES:
                if payload.get("success") is False:
                    return StreamOutcome(FAILED, error=_error_text(payload.get("output")))
                return StreamOutcome(COMPLETED, output=payload.get("output"))
            if msg in _ERROR_MESSAGES:
                return StreamOutcome(FAILED, error=_error_text(payload.get("output")))

    return StreamOutcome(INCONCLUSIVE)


def extract_output_url(output: Any) -> Optional[str]:
    """Find the first file URL or path in a completed event's output.

    Handles ``[{"url": ...}]``, ``[{"value": {"url": ...}}]``,
    ``{"data": [...]}`` and bare string outputs.
    """
    if output is None:
        return None
    if isinstance(output, str):
        return output or None
    if isinstance(output, dict):
        if "data" in output:
            return extract_output_url(output["data"])
        if "value" in output:
            return extract_output_url(output["value"])
        file_data = GradioFileData.model_validate(output)
        return file_data.url or file_data.path
    if isinstance(output, list):
        for item in output:
            url = extract_output_url(item)
            if url:
                return url
    return None
