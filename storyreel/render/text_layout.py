"""Text auto-fit and word wrap for drawtext overlays.

The editor preview sizes text on a canvas using measured glyph widths. FFmpeg
has no equivalent we can query ahead of time, so the same two-pass
algorithm is replayed here with character-count estimates:

1. Wrap the text using a provisional font size.
2. Derive the optimal size from the wrapped line count (width and height
   constraints, with a cap on how far the provisional size may grow).
3. Wrap again with the optimal size and clamp to a readable range.

Width estimates come from a ``TextMetrics`` strategy. The default
``HeuristicTextMetrics`` factors were fitted against one preview renderer,
so pixel parity with any particular preview is best-effort only.

Horizontal and vertical centering are left to FFmpeg expressions
(``text_w``/``text_h``) so the engine measures its own rendered extent.
"""

import logging
import math
import re
from dataclasses import dataclass
from typing import Optional, Protocol

from storyreel.render.fonts import resolve_font_file
from storyreel.render.geometry import PixelRect
from storyreel.schemas.timeline import MediaItem

logger = logging.getLogger(__name__)

MIN_FONT_SIZE = 24
MAX_FONT_SIZE = 150

# Provisional size when the user did not set one: share of min(box w, box h)
AUTO_FONT_RATIO = 0.2
# Share of the box width usable for a line when wrapping
WRAP_WIDTH_RATIO = 0.99

DEFAULT_FONT_COLOR = "#ffffff"
DEFAULT_BACKGROUND_COLOR = "#000000"

_STRIP_CHARS = re.compile(r"['\",:;]")
_RGB_PATTERN = re.compile(r"rgba?\((\d+),\s*(\d+),\s*(\d+)(?:,\s*[\d.]+)?\)")


class TextMetrics(Protocol):
    """Width estimation strategy used by the layout engine."""

    def estimate_width(self, text: str, font_size: float) -> float:
        """Estimated rendered width of ``text`` in pixels."""
        ...

    def chars_per_line(self, max_width: float, font_size: float) -> int:
        """How many characters fit on a line of ``max_width`` pixels."""
        ...


@dataclass(frozen=True)
class HeuristicTextMetrics:
    """Character-count width estimates (no glyph measurement)."""

    width_factor: float = 0.25
    wrap_factor: float = 0.6

    def estimate_width(self, text: str, font_size: float) -> float:
        return len(text) * font_size * self.width_factor

    def chars_per_line(self, max_width: float, font_size: float) -> int:
        if font_size <= 0:
            return 0
        return math.floor(max_width / (font_size * self.wrap_factor))


DEFAULT_METRICS = HeuristicTextMetrics()


@dataclass(frozen=True)
class TextLayout:
    """Result of fitting text into a box."""

    lines: tuple[str, ...]
    font_size: float
    provisional_font_size: float
    box_width: int
    box_height: int

    @property
    def line_count(self) -> int:
        return len(self.lines)

    @property
    def wrapped_text(self) -> str:
        return "\n".join(self.lines)

    @property
    def slot_height(self) -> float:
        """Height reserved for each line (the whole box for a single line)."""
        return self.box_height / max(self.line_count, 1)

    @property
    def line_spacing(self) -> int:
        """Extra pixels between lines so line pitch equals the slot height."""
        if self.line_count <= 1:
            return 0
        return int(round(self.slot_height - self.font_size))


@dataclass(frozen=True)
class TextOverlaySpec:
    """Everything the compiler needs to emit the drawbox/drawtext stages."""

    layout: TextLayout
    text: str  # escaped, wrapped
    font_color: str
    font_file: str
    x_expr: str
    y_expr: str
    background_color: Optional[str]
    box: PixelRect


def sanitize_text(text: str) -> str:
    """Drop characters that break the filter grammar and normalize line breaks."""
    cleaned = _STRIP_CHARS.sub("", text)
    cleaned = cleaned.replace("\r\n", "\n").replace("\r", "\n")
    return cleaned.strip()


def escape_drawtext(text: str) -> str:
    """Escape backslashes for the quoted drawtext ``text`` option.

    Quotes never reach this point because ``sanitize_text`` strips them, and
    ``%`` is left alone since the stage disables text expansion.
    """
    return text.replace("\\", "\\\\")


def _wrap_paragraph(paragraph: str, max_chars: int) -> list[str]:
    lines: list[str] = []
    current = ""
    for word in paragraph.split():
        if len(current) + len(word) <= max_chars:
            current = f"{current} {word}" if current else word
            continue
        if current:
            lines.append(current)
            current = ""
        # Split words that can never fit on one line
        while len(word) > max_chars:
            lines.append(word[:max_chars])
            word = word[max_chars:]
        current = word
    if current:
        lines.append(current)
    return lines


def wrap_text(text: str, max_chars: int) -> list[str]:
    """Greedy word wrap into lines of at most ``max_chars`` characters.

    A budget of zero or less disables wrapping. Explicit line breaks are
    kept. The existing-line length check ignores the joining space, matching
    the preview.
    """
    if max_chars <= 0:
        return text.split("\n")

    lines: list[str] = []
    for paragraph in text.split("\n"):
        wrapped = _wrap_paragraph(paragraph, max_chars)
        lines.extend(wrapped or [""])
    return lines


def _optimal_font_size(
    lines: list[str],
    font_size: float,
    box_width: float,
    box_height: float,
    metrics: TextMetrics,
) -> float:
    if len(lines) == 1:
        estimated_width = metrics.estimate_width(lines[0], font_size)
        height_limit = box_height * 0.8
        growth_limit = font_size * 2
    else:
        estimated_width = max(metrics.estimate_width(line, font_size) for line in lines)
        height_limit = (box_height / len(lines)) * 0.7
        growth_limit = font_size * 1.5

    if estimated_width <= 0:
        return min(height_limit, growth_limit)

    width_limit = box_width * 0.9 * (font_size / estimated_width)
    return min(width_limit, height_limit, growth_limit)


def compute_text_layout(
    text: str,
    box_width: int,
    box_height: int,
    base_font_size: Optional[float] = None,
    metrics: TextMetrics = DEFAULT_METRICS,
) -> TextLayout:
    """Fit already-sanitized ``text`` into a ``box_width`` x ``box_height`` box."""
    if base_font_size and base_font_size > 0:
        font_size = float(base_font_size)
    else:
        font_size = min(box_width, box_height) * AUTO_FONT_RATIO

    max_width = box_width * WRAP_WIDTH_RATIO

    # Pass 1: provisional wrap
    preliminary = wrap_text(text, metrics.chars_per_line(max_width, font_size))

    # Pass 2: optimal size from the provisional line count
    optimal = _optimal_font_size(preliminary, font_size, box_width, box_height, metrics)

    # Pass 3: final wrap with the optimal size
    lines = wrap_text(text, metrics.chars_per_line(max_width, optimal))

    area_limit = min(box_width / 10, box_height / max(len(lines), 1) * 0.8)
    final_size = min(optimal, area_limit)
    final_size = min(max(final_size, MIN_FONT_SIZE), MAX_FONT_SIZE)

    logger.debug(
        f"[TEXT] provisional={font_size:.2f}px lines={len(preliminary)} "
        f"optimal={optimal:.2f}px final={final_size:.2f}px lines={len(lines)}"
    )

    return TextLayout(
        lines=tuple(lines),
        font_size=final_size,
        provisional_font_size=font_size,
        box_width=box_width,
        box_height=box_height,
    )


def css_color_to_hex(color: str) -> str:
    """Convert ``rgb()``/``rgba()`` notation to ``#rrggbb``.

    drawbox/drawtext colors do not accept functional notation. Other values
    are returned unchanged. The alpha component is dropped.
    """
    match = _RGB_PATTERN.match(color.strip())
    if not match:
        return color
    r, g, b = (min(int(v), 255) for v in match.groups())
    return f"#{r:02x}{g:02x}{b:02x}"


def background_color_for(media: MediaItem) -> Optional[str]:
    """Box fill color for a text item, or None when the box is transparent."""
    if media.background_transparent or not media.background_color:
        return None
    color = css_color_to_hex(media.background_color)
    if not color.startswith("#"):
        logger.warning(
            f"[TEXT] Unsupported background color '{media.background_color}', using black"
        )
        color = DEFAULT_BACKGROUND_COLOR
    return color


def layout_text_item(
    media: MediaItem,
    box: PixelRect,
    metrics: TextMetrics = DEFAULT_METRICS,
    platform: Optional[str] = None,
) -> Optional[TextOverlaySpec]:
    """Build the drawtext parameters for a text media item placed in ``box``.

    Returns None for empty text.
    """
    text = sanitize_text(media.text or "")
    if not text:
        logger.info(f"[TEXT] Skipping empty text item: {media.id}")
        return None

    layout = compute_text_layout(
        text,
        box.width,
        box.height,
        base_font_size=media.font_size,
        metrics=metrics,
    )

    x_expr = f"{box.x}+({box.width}-text_w)/2"
    y_expr = f"{box.y}+({box.height}-text_h)/2"

    font_color = css_color_to_hex(media.font_color or DEFAULT_FONT_COLOR)

    logger.info(
        f"[TEXT] {media.id}: box=({box.x},{box.y},{box.width}x{box.height}) "
        f"font={layout.font_size:.2f}px lines={layout.line_count}"
    )

    return TextOverlaySpec(
        layout=layout,
        text=escape_drawtext(layout.wrapped_text),
        font_color=font_color,
        font_file=resolve_font_file(
            media.font_family, media.font_bold, media.font_italic, platform=platform
        ),
        x_expr=x_expr,
        y_expr=y_expr,
        background_color=background_color_for(media),
        box=box,
    )
