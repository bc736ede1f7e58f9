"""FFmpeg process supervision.

Runs the composite render, turns FFmpeg's stderr into progress events and
falls back to a plain black video once if the composite render fails.
"""

import asyncio
import codecs
import logging
import re
from contextlib import aclosing
from dataclasses import dataclass
from typing import AsyncIterator, Optional, Protocol, Union

from storyreel.exceptions import ProcessError, RenderCancelledError
from storyreel.render.command import format_command, remove_filter_script
from storyreel.schemas.render import RenderEvent

logger = logging.getLogger(__name__)

_DURATION_RE = re.compile(r"Duration: (\d{2}):(\d{2}):(\d{2})\.(\d{2})")
_TIME_RE = re.compile(r"time=(\d{2}):(\d{2}):(\d{2})\.(\d{2})")

# Characters kept between chunks so a token split across reads still matches
_TAIL_SIZE = 64
_READ_SIZE = 4096


# ============================================================================
# Renderer abstraction
# ============================================================================


class RenderProcess(Protocol):
    """A running external render."""

    def stderr_chunks(self) -> AsyncIterator[str]:
        """Decoded stderr text as it arrives; ends when the stream closes."""
        ...

    async def wait(self) -> int:
        ...

    def kill(self) -> None:
        ...


class ExternalRenderer(Protocol):
    """Starts external render processes from an argument list."""

    async def submit(self, args: list[str]) -> RenderProcess:
        ...


class FFmpegProcess:
    """RenderProcess backed by an asyncio subprocess."""

    def __init__(self, proc: asyncio.subprocess.Process):
        self._proc = proc

    async def stderr_chunks(self) -> AsyncIterator[str]:
        assert self._proc.stderr is not None
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            data = await self._proc.stderr.read(_READ_SIZE)
            if not data:
                tail = decoder.decode(b"", final=True)
                if tail:
                    yield tail
                return
            text = decoder.decode(data)
            if text:
                yield text

    async def wait(self) -> int:
        return await self._proc.wait()

    def kill(self) -> None:
        if self._proc.returncode is not None:
            return
        try:
            self._proc.kill()
        except ProcessLookupError:
            pass


class FFmpegRenderer:
    """Spawns the FFmpeg binary."""

    def __init__(self, binary: str = "ffmpeg"):
        self.binary = binary

    async def submit(self, args: list[str]) -> FFmpegProcess:
        logger.info(f"[FFMPEG] Starting: {format_command(self.binary, args)}")
        proc = await asyncio.create_subprocess_exec(
            self.binary,
            *args,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
        return FFmpegProcess(proc)


# ============================================================================
# Progress parsing
# ============================================================================


def _to_seconds(match: re.Match) -> float:
    hours, minutes, seconds, centis = (int(g) for g in match.groups())
    return hours * 3600 + minutes * 60 + seconds + centis / 100


class ProgressParser:
    """Incremental parser for FFmpeg's stderr progress lines.

    The first ``Duration:`` token fixes the total; each later ``time=`` token
    gives the current position. ``feed`` returns a new percentage only when
    it is strictly greater than the last one returned.
    """

    def __init__(self, fallback_duration: Optional[float] = None):
        self.duration: Optional[float] = None
        self.last_progress = 0.0
        self._fallback_duration = fallback_duration
        self._tail = ""

    @property
    def effective_duration(self) -> Optional[float]:
        return self.duration or self._fallback_duration

    def feed(self, chunk: str) -> Optional[float]:
        text = self._tail + chunk
        self._tail = text[-_TAIL_SIZE:]

        if self.duration is None:
            match = _DURATION_RE.search(text)
            if match:
                self.duration = _to_seconds(match)
                logger.info(f"[FFMPEG] Total duration detected: {self.duration}s")

        duration = self.effective_duration
        if not duration:
            return None

        matches = list(_TIME_RE.finditer(text))
        if not matches:
            return None

        current = _to_seconds(matches[-1])
        progress = min(current / duration * 100, 100.0)
        if progress <= self.last_progress:
            return None
        self.last_progress = progress
        return progress


# ============================================================================
# Cancellation
# ============================================================================


class CancellationToken:
    """Cooperative cancel signal for a running render."""

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


# ============================================================================
# Supervisor
# ============================================================================


@dataclass
class AttemptResult:
    args: list[str]
    returncode: int
    stderr: str

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0


class ProcessSupervisor:
    """Runs the primary render and, on failure, the fallback render."""

    def __init__(self, renderer: ExternalRenderer, binary_name: str = "ffmpeg"):
        self.renderer = renderer
        self.binary_name = binary_name

    async def _kill_on_cancel(self, process: RenderProcess, cancel: CancellationToken) -> None:
        await cancel.wait()
        logger.info("[FFMPEG] Cancellation requested, killing process")
        process.kill()

    async def _attempt(
        self,
        args: list[str],
        parser: Optional[ProgressParser],
        cancel: Optional[CancellationToken],
    ) -> AsyncIterator[Union[float, AttemptResult]]:
        """Run one process; yields progress values, then the AttemptResult."""
        process = await self.renderer.submit(args)
        watcher = (
            asyncio.create_task(self._kill_on_cancel(process, cancel)) if cancel else None
        )
        chunks: list[str] = []
        returncode: Optional[int] = None
        try:
            async for chunk in process.stderr_chunks():
                chunks.append(chunk)
                logger.debug(f"[FFMPEG STDERR] {chunk.rstrip()}")
                if parser is None:
                    continue
                progress = parser.feed(chunk)
                if progress is not None:
                    yield progress
            returncode = await process.wait()
        finally:
            if watcher is not None:
                watcher.cancel()
            if returncode is None:
                # Consumer stopped early
                process.kill()

        yield AttemptResult(args=args, returncode=returncode, stderr="".join(chunks))

    def _failure_message(self, primary: AttemptResult, fallback: AttemptResult) -> str:
        return (
            f"FFmpeg complex render failed with code {primary.returncode}\n\n"
            f"Complex command: {format_command(self.binary_name, primary.args)}\n\n"
            f"Complex error details:\n{primary.stderr}\n\n"
            f"Fallback render also failed with code {fallback.returncode}\n\n"
            f"Fallback command: {format_command(self.binary_name, fallback.args)}\n\n"
            f"Fallback error details:\n{fallback.stderr}"
        )

    async def run(
        self,
        primary_args: list[str],
        fallback_args: list[str],
        output_path: str,
        script_path: Optional[str] = None,
        cancel: Optional[CancellationToken] = None,
        fallback_duration: Optional[float] = None,
    ) -> AsyncIterator[RenderEvent]:
        """Run the render and yield events until exactly one terminal event.

        The filter script is removed after the primary attempt, after the
        fallback attempt, and on every exit path.
        """
        try:
            parser = ProgressParser(fallback_duration)
            primary: Optional[AttemptResult] = None
            async with aclosing(self._attempt(primary_args, parser, cancel)) as attempt:
                async for item in attempt:
                    if isinstance(item, AttemptResult):
                        primary = item
                    else:
                        yield RenderEvent(progress=item)
            assert primary is not None

            remove_filter_script(script_path)

            if cancel is not None and cancel.cancelled:
                logger.info("[FFMPEG] Render cancelled")
                yield RenderEvent(error=RenderCancelledError().message)
                return

            if primary.succeeded:
                logger.info(f"[FFMPEG] Render completed successfully. Output: {output_path}")
                yield RenderEvent(file_path=output_path)
                return

            failure = ProcessError(
                primary.returncode,
                command=[self.binary_name, *primary.args],
                stderr=primary.stderr,
            )
            logger.error(f"[FFMPEG] Complex render failed: {failure.message}")
            logger.error(f"[FFMPEG] Complex render error output: {failure.stderr}")
            yield RenderEvent(
                message=f"Complex render failed with code {primary.returncode}. "
                "Trying fallback render (black video)..."
            )

            # No progress from the fallback: it would restart from zero
            fallback: Optional[AttemptResult] = None
            async with aclosing(self._attempt(fallback_args, None, cancel)) as attempt:
                async for item in attempt:
                    if isinstance(item, AttemptResult):
                        fallback = item
            assert fallback is not None

            remove_filter_script(script_path)

            if cancel is not None and cancel.cancelled:
                logger.info("[FFMPEG] Render cancelled during fallback")
                yield RenderEvent(error=RenderCancelledError().message)
                return

            if fallback.succeeded:
                logger.info(f"[FFMPEG] Fallback render completed successfully. Output: {output_path}")
                yield RenderEvent(file_path=output_path)
                return

            logger.error(f"[FFMPEG] Fallback render also failed with code {fallback.returncode}")
            yield RenderEvent(error=self._failure_message(primary, fallback))
        finally:
            remove_filter_script(script_path)
