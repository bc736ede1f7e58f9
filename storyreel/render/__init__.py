from storyreel.render.compiler import CompileContext, FilterGraph, compile_filter_graph
from storyreel.render.normalizer import NormalizedTimeline, normalize_timeline
from storyreel.render.pipeline import RenderGate, RenderJob, RenderPipeline, render_gate
from storyreel.render.supervisor import (
    CancellationToken,
    FFmpegRenderer,
    ProcessSupervisor,
    ProgressParser,
)

__all__ = [
    "RenderPipeline",
    "RenderJob",
    "RenderGate",
    "render_gate",
    "CompileContext",
    "FilterGraph",
    "compile_filter_graph",
    "NormalizedTimeline",
    "normalize_timeline",
    "CancellationToken",
    "FFmpegRenderer",
    "ProcessSupervisor",
    "ProgressParser",
]
