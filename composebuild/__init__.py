"""Revision-tagged image builds and compose override generation for git submodules."""

from .catalog import MalformedManifest, ServiceCatalog
from .pipeline import AggregateFailure, ComposePipeline, PipelineContext, Stage

__all__ = [
    "AggregateFailure",
    "ComposePipeline",
    "MalformedManifest",
    "PipelineContext",
    "ServiceCatalog",
    "Stage",
]
