"""UI."""

from datasentinel.ui.reporter import PipelineReporter

__all__ = ["PipelineReporter"]
