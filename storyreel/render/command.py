"""FFmpeg command assembly for a compiled filter graph.

The filter graph is passed through a script file (``-filter_complex_script``)
rather than on the command line, which keeps long timelines under the OS
argument length limit.
"""

import logging
import os
import tempfile
import time
import uuid
from typing import Optional

from storyreel.config import Settings, get_settings
from storyreel.exceptions import InputError, RenderIOError
from storyreel.render.compiler import FilterGraph
from storyreel.render.filters import format_number
from storyreel.render.geometry import FrameSize

logger = logging.getLogger(__name__)

# Tokens that indicate a missing value leaked into the filter text
_INVALID_TOKENS = ("undefined", "null")


def output_path_for(settings: Optional[Settings] = None) -> str:
    """Fresh output path: ``render_<epoch-ms>_<uuid8>.mp4`` in the render dir."""
    settings = settings or get_settings()
    os.makedirs(settings.render_output_dir, exist_ok=True)
    file_name = f"render_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}.mp4"
    return os.path.join(settings.render_output_dir, file_name)


def write_filter_script(graph: FilterGraph, settings: Optional[Settings] = None) -> str:
    """Write the graph to a new temp file and return its path.

    Raises:
        RenderIOError: if the file cannot be created or written.
    """
    settings = settings or get_settings()
    script = graph.script
    try:
        if settings.render_temp_dir:
            os.makedirs(settings.render_temp_dir, exist_ok=True)
        fd, path = tempfile.mkstemp(
            prefix="filters_", suffix=".txt", dir=settings.render_temp_dir
        )
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(script)
    except OSError as e:
        logger.error(f"[FFMPEG] Failed to write filter script file: {e}")
        raise RenderIOError("Failed to create filter script file") from e

    logger.info(f"[FFMPEG] Filter script written to {path} ({len(script)} characters)")
    return path


def remove_filter_script(path: Optional[str]) -> None:
    """Delete a filter script. Missing files are ignored; other errors are logged."""
    if not path:
        return
    try:
        os.remove(path)
        logger.debug(f"[FFMPEG] Removed filter script {path}")
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"[FFMPEG] Failed to remove filter script {path}: {e}")


def _video_codec_args(settings: Settings) -> list[str]:
    return [
        "-c:v", settings.render_video_codec,
        "-preset", settings.render_preset,
        "-crf", str(settings.render_crf),
        "-pix_fmt", settings.render_pix_fmt,
    ]


def silent_audio_source(settings: Optional[Settings] = None) -> str:
    settings = settings or get_settings()
    return f"anullsrc=channel_layout=stereo:sample_rate={settings.render_audio_sample_rate}"


def build_render_args(
    input_files: list[str],
    graph: FilterGraph,
    script_path: str,
    total_duration: float,
    output_path: str,
    settings: Optional[Settings] = None,
) -> list[str]:
    """Arguments (without the binary) for the full composite render.

    Input order matches the indices used in the filter graph. When the graph
    has no audio output, a silent lavfi source is appended as the last input
    and mapped by index.
    """
    settings = settings or get_settings()

    args: list[str] = []
    for path in input_files:
        args.extend(["-i", path])

    if not graph.has_audio:
        args.extend(["-f", "lavfi", "-i", silent_audio_source(settings)])

    args.extend([
        "-filter_complex_script", script_path,
        "-map", f"[{graph.video_output}]",
    ])

    if graph.has_audio:
        args.extend(["-map", f"[{graph.audio_output}]", "-c:a", settings.render_audio_codec])
    else:
        args.extend([
            "-map", f"{len(input_files)}:a",
            "-c:a", settings.render_audio_codec,
            "-shortest",
        ])

    args.extend(_video_codec_args(settings))
    args.extend(["-t", format_number(total_duration), "-y", output_path])
    return args


def build_fallback_args(
    frame: FrameSize,
    total_duration: float,
    output_path: str,
    settings: Optional[Settings] = None,
) -> list[str]:
    """Arguments for a plain black video of the same size and duration."""
    settings = settings or get_settings()
    source = (
        f"color=black:size={frame.width}x{frame.height}"
        f":duration={format_number(total_duration)}:rate={settings.render_fps}"
    )
    return [
        "-f", "lavfi",
        "-i", source,
        *_video_codec_args(settings),
        "-y", output_path,
    ]


def validate_render(input_files: list[str], graph: FilterGraph) -> None:
    """Reject invocations that cannot succeed before FFmpeg is started.

    Raises:
        InputError: on missing inputs, an empty graph or malformed filter text.
    """
    if not input_files:
        logger.error("[FFMPEG] No input files specified")
        raise InputError(
            "No input files found for rendering. Please add some media to your timeline."
        )

    statements = graph.statements
    if not statements:
        logger.error("[FFMPEG] Filter graph is empty")
        raise InputError(
            "No media processing filters were created. "
            "Check if media items and layers are properly configured."
        )

    script = graph.script
    if not script.strip():
        logger.error("[FFMPEG] No filter complex specified")
        raise InputError("No video filters specified. Please add some content to your timeline.")

    if any(token in script for token in _INVALID_TOKENS):
        logger.error("[FFMPEG] Filter complex contains undefined/null values")
        raise InputError(
            "Invalid filter parameters detected. Please check your timeline items."
        )


def format_command(binary: str, args: list[str]) -> str:
    """Human-readable command line for logs and error reports."""
    return " ".join([binary, *args])
