"""Pipeline steps, one module per step."""

from newscast.workflow.steps.base import PipelineStep
from newscast.workflow.steps.fetch_source import FetchSourceStep
from newscast.workflow.steps.generate_script import GenerateScriptStep
from newscast.workflow.steps.generate_subtitles import GenerateSubtitlesStep
from newscast.workflow.steps.record_metadata import RecordMetadataStep
from newscast.workflow.steps.store_artifacts import StoreArtifactsStep
from newscast.workflow.steps.synthesize_audio import SubmitAudioStep, SynthesizeAudioStep

__all__ = [
    "PipelineStep",
    "FetchSourceStep",
    "GenerateScriptStep",
    "SynthesizeAudioStep",
    "SubmitAudioStep",
    "GenerateSubtitlesStep",
    "StoreArtifactsStep",
    "RecordMetadataStep",
]
