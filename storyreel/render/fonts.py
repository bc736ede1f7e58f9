"""Font file lookup for the drawtext filter.

FFmpeg's drawtext has no weight/style switches, so bold and italic are
selected by picking a different font file.
"""

import sys
from typing import Optional

WINDOWS_FONTS = "C:/Windows/Fonts"
MAC_FONTS = "/System/Library/Fonts"
LINUX_FONTS = "/usr/share/fonts/truetype/liberation"

_WINDOWS_FAMILIES = {
    "Arial": "arial.ttf",
    "Helvetica": "arial.ttf",
    "Times New Roman": "times.ttf",
    "Georgia": "georgia.ttf",
    "Verdana": "verdana.ttf",
}

_MAC_FAMILIES = {
    "Arial": "Arial.ttf",
    "Helvetica": "Helvetica.ttc",
    "Times New Roman": "Times.ttc",
    "Georgia": "Georgia.ttf",
    "Verdana": "Verdana.ttf",
}

# Liberation faces are metric-compatible with Arial / Times New Roman
_LINUX_FAMILIES = {
    "Arial": "LiberationSans",
    "Helvetica": "LiberationSans",
    "Verdana": "LiberationSans",
    "Times New Roman": "LiberationSerif",
    "Georgia": "LiberationSerif",
}

# (family, bold, italic) -> Windows file name
_WINDOWS_VARIANTS = {
    ("Arial", True, True): "arialbi.ttf",
    ("Arial", True, False): "arialbd.ttf",
    ("Arial", False, True): "ariali.ttf",
    ("Times New Roman", True, True): "timesbi.ttf",
    ("Times New Roman", True, False): "timesbd.ttf",
    ("Times New Roman", False, True): "timesi.ttf",
}


def _linux_font(family: Optional[str], bold: bool, italic: bool) -> str:
    base = _LINUX_FAMILIES.get(family or "", "LiberationSans")
    if bold and italic:
        face = "BoldItalic"
    elif bold:
        face = "Bold"
    elif italic:
        face = "Italic"
    else:
        face = "Regular"
    return f"{LINUX_FONTS}/{base}-{face}.ttf"


def resolve_font_file(
    family: Optional[str],
    bold: bool = False,
    italic: bool = False,
    platform: Optional[str] = None,
) -> str:
    """Return the font file path for a family and style on the given platform.

    Unknown families fall back to Arial (or its Liberation equivalent).
    On macOS only the regular face is used.
    """
    platform = platform or sys.platform

    if platform.startswith("win"):
        if family and (bold or italic):
            variant = _WINDOWS_VARIANTS.get((family, bold, italic))
            if variant:
                return f"{WINDOWS_FONTS}/{variant}"
        file_name = _WINDOWS_FAMILIES.get(family or "", "arial.ttf")
        return f"{WINDOWS_FONTS}/{file_name}"

    if platform.startswith("linux"):
        return _linux_font(family, bold, italic)

    file_name = _MAC_FAMILIES.get(family or "", "Arial.ttf")
    return f"{MAC_FONTS}/{file_name}"
