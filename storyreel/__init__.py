"""Timeline compositing pipeline driving FFmpeg."""

__version__ = "0.1.0"
