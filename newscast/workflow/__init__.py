"""Generation workflow for news podcast episodes.

This package provides retrying step execution, the episode pipeline
(fetch-source → generate-script → synthesize-audio → generate-subtitles →
store-artifacts → record-metadata) and the tracker that finishes episodes
whose speech synthesis runs as a remote job.
"""

from newscast.workflow.config import PipelineConfig
from newscast.workflow.executor import NamedStep, WorkflowExecutor
from newscast.workflow.job_store import JobHandle, JobHandleStore
from newscast.workflow.pipeline import EpisodePipeline
from newscast.workflow.retry import RetryExecutor, RetryPolicy
from newscast.workflow.tracker import CompletionTracker, SweepResult

__all__ = [
    "PipelineConfig",
    "NamedStep",
    "WorkflowExecutor",
    "JobHandle",
    "JobHandleStore",
    "EpisodePipeline",
    "RetryExecutor",
    "RetryPolicy",
    "CompletionTracker",
    "SweepResult",
]
