"""
Pytest fixtures for storyreel tests.

Media files are empty placeholders created under a temp media root: the
normalizer only checks that they exist, and FFmpeg is replaced by
``FakeRenderer`` everywhere except where a test says otherwise.
"""

import asyncio
from pathlib import Path
from typing import Optional

import pytest

from storyreel.config import Settings
from storyreel.render.pipeline import RenderGate


class FakeProcess:
    """Scripted stand-in for a running FFmpeg process.

    ``hang=True`` keeps the stderr stream open after the scripted chunks
    until ``kill()`` is called.
    """

    def __init__(self, chunks: Optional[list[str]] = None, returncode: int = 0, hang: bool = False):
        self.chunks = chunks or []
        self.returncode = returncode
        self.hang = hang
        self.killed = False
        self._killed_event = asyncio.Event()

    async def stderr_chunks(self):
        for chunk in self.chunks:
            yield chunk
            await asyncio.sleep(0)
        if self.hang:
            await self._killed_event.wait()

    async def wait(self) -> int:
        if self.killed:
            return -9
        return self.returncode

    def kill(self) -> None:
        self.killed = True
        self._killed_event.set()


class FakeRenderer:
    """ExternalRenderer that hands out FakeProcess instances in order."""

    def __init__(self, *processes: FakeProcess):
        self.processes = list(processes)
        self.submitted: list[list[str]] = []

    async def submit(self, args: list[str]) -> FakeProcess:
        self.submitted.append(list(args))
        return self.processes.pop(0)


FFMPEG_STDERR = [
    "Input #0, image2, from 'a.png':\n  Duration: 00:00:10.00, start: 0.000000, bitrate: N/A\n",
    "frame=   75 fps= 30 q=28.0 size=     256kB time=00:00:02.50 bitrate= 838.9kbits/s\n",
    "frame=  150 fps= 30 q=28.0 size=     512kB time=00:00:05.00 bitrate= 838.9kbits/s\n",
    "frame=  300 fps= 30 q=-1.0 Lsize=    1024kB time=00:00:10.00 bitrate= 838.9kbits/s\n",
]


@pytest.fixture
def media_root(tmp_path: Path) -> Path:
    """Directory that relative media paths resolve against."""
    path = tmp_path / "media"
    path.mkdir()
    return path


@pytest.fixture
def make_media_file(media_root: Path):
    """Create a placeholder media file and return its absolute path."""

    def _make(name: str) -> str:
        path = media_root / name
        path.write_bytes(b"\x00")
        return str(path)

    return _make


@pytest.fixture
def settings(tmp_path: Path, media_root: Path) -> Settings:
    """Settings pointing every directory into the test's temp dir."""
    return Settings(
        media_root=str(media_root),
        render_output_dir=str(tmp_path / "renders"),
        render_temp_dir=str(tmp_path / "scripts"),
        ffmpeg_path="ffmpeg",
    )


@pytest.fixture
def gate() -> RenderGate:
    """A render gate not shared with other tests."""
    return RenderGate()


@pytest.fixture
def ffmpeg_stderr() -> list[str]:
    return list(FFMPEG_STDERR)


@pytest.fixture
def fake_process():
    return FakeProcess


@pytest.fixture
def fake_renderer():
    return FakeRenderer
