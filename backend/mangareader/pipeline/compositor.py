from __future__ import annotations

import io
from pathlib import Path
from typing import List, Optional, Sequence, Union

from PIL import Image, ImageDraw, ImageFont  # type: ignore

from mangareader.pipeline.model import TranslatedBlock

APPROX_CHAR_WIDTH = 8
TEXT_INSET_X = 10
FIRST_BASELINE_Y = 20
LINE_SPACING_EM = 1.2

FontType = Union[ImageFont.FreeTypeFont, ImageFont.ImageFont]


def wrap_text(text: str, max_width: float, char_width: int = APPROX_CHAR_WIDTH) -> List[str]:
    """Greedy word wrap using a fixed per-character width instead of font metrics."""
    words = text.split(" ")
    lines: List[str] = []
    current = words[0]
    for word in words[1:]:
        width = len(current) + len(word) + 1
        if width * char_width < max_width:
            current += " " + word
        else:
            lines.append(current)
            current = word
    lines.append(current)
    return lines


def load_font(font_path: Optional[Path], size: int = 14) -> FontType:
    """Bold sans TTF at ``size``; Pillow's built-in font when the file is unavailable."""
    if font_path is not None:
        try:
            return ImageFont.truetype(str(font_path), size)
        except OSError:
            pass
    try:
        return ImageFont.truetype("DejaVuSans-Bold.ttf", size)
    except OSError:
        return ImageFont.load_default(size=size)


def _ascent(font: FontType) -> int:
    if isinstance(font, ImageFont.FreeTypeFont):
        ascent, _ = font.getmetrics()
        return int(ascent)
    return int(font.getbbox("A")[3])


def _render_block(block: TranslatedBlock, font: FontType, font_size: int) -> Image.Image:
    width = max(1, int(block.width))
    height = max(1, int(block.height))
    # Opaque white patch hides the source text
    layer = Image.new("RGBA", (width, height), (255, 255, 255, 255))
    draw = ImageDraw.Draw(layer)
    ascent = _ascent(font)
    line_advance = font_size * LINE_SPACING_EM
    for idx, line in enumerate(wrap_text(block.translated_text, width - 2 * TEXT_INSET_X)):
        baseline = FIRST_BASELINE_Y + idx * line_advance
        draw.text((TEXT_INSET_X, int(round(baseline - ascent))), line, fill=(0, 0, 0, 255), font=font)
    return layer


def composite_translation(
    image_bytes: bytes,
    blocks: Sequence[TranslatedBlock],
    *,
    font: Optional[FontType] = None,
    font_size: int = 14,
) -> bytes:
    """Overlay each translated block on the page and encode the result as PNG.

    Text is clipped to its block. Overlapping blocks are painted in order,
    later ones on top.
    """
    font = font or load_font(None, font_size)
    with Image.open(io.BytesIO(image_bytes)) as src:
        base = src.convert("RGBA")

    for block in blocks:
        layer = _render_block(block, font, font_size)
        base.paste(layer, (int(block.x), int(block.y)), layer)

    out = io.BytesIO()
    base.save(out, format="PNG")
    return out.getvalue()
