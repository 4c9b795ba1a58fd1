from __future__ import annotations

import io

from PIL import Image

from mangareader.pipeline.compositor import composite_translation, load_font, wrap_text
from mangareader.pipeline.model import TranslatedBlock
from tests.conftest import png_bytes


def _block(text: str, x: int, y: int, w: int, h: int) -> TranslatedBlock:
    return TranslatedBlock(
        id=f"region_{x}_{y}", x=x, y=y, width=w, height=h, original_text="src", confidence=0.9, translated_text=text
    )


def _open(data: bytes) -> Image.Image:
    img = Image.open(io.BytesIO(data))
    img.load()
    return img


def test_wrap_text_uses_fixed_char_width():
    assert wrap_text("a bb ccc", 1000) == ["a bb ccc"]
    assert wrap_text("hello world foo", 100) == ["hello world", "foo"]
    assert wrap_text("supercalifragilistic", 20) == ["supercalifragilistic"]
    assert wrap_text("", 50) == [""]


def test_output_is_png_with_same_size():
    out = composite_translation(png_bytes(200, 120), [_block("Hi", 20, 20, 100, 40)])

    img = _open(out)
    assert img.format == "PNG"
    assert img.size == (200, 120)


def test_block_is_painted_white_and_rest_untouched():
    out = _open(composite_translation(png_bytes(200, 120, (200, 40, 40)), [_block("Hi", 20, 20, 100, 40)]))
    rgba = out.convert("RGBA")

    # Bottom-right corner of the block has no glyphs
    assert rgba.getpixel((115, 57)) == (255, 255, 255, 255)
    assert rgba.getpixel((150, 90)) == (200, 40, 40, 255)
    assert rgba.getpixel((5, 5)) == (200, 40, 40, 255)


def test_text_is_drawn_dark_inside_block():
    block = _block("HELLO WORLD", 0, 0, 200, 40)
    out = _open(composite_translation(png_bytes(300, 100, (255, 255, 255)), [block], font=load_font(None, 14)))
    gray = out.convert("L")

    dark = [gray.getpixel((x, y)) for x in range(10, 120) for y in range(0, 40) if gray.getpixel((x, y)) < 128]
    assert dark
    # Nothing leaks below the block
    assert all(gray.getpixel((x, y)) == 255 for x in range(0, 300, 7) for y in range(41, 100, 7))


def test_block_past_edge_is_clipped():
    out = _open(composite_translation(png_bytes(200, 120), [_block("edge text", 180, 100, 60, 40)]))

    assert out.size == (200, 120)
    assert out.convert("RGBA").getpixel((185, 119)) == (255, 255, 255, 255)


def test_later_blocks_paint_over_earlier():
    blocks = [_block("first", 10, 10, 80, 40), _block("", 10, 10, 80, 40)]
    out = _open(composite_translation(png_bytes(120, 80, (0, 0, 255)), blocks)).convert("RGBA")

    assert all(out.getpixel((x, y)) == (255, 255, 255, 255) for x in range(10, 90, 3) for y in range(10, 50, 3))


def test_no_blocks_keeps_pixels():
    out = _open(composite_translation(png_bytes(30, 20, (1, 2, 3)), [])).convert("RGB")

    assert out.getpixel((10, 10)) == (1, 2, 3)


def test_load_font_falls_back_for_missing_file(tmp_path):
    font = load_font(tmp_path / "missing.ttf", 18)

    assert font.getbbox("A")[3] > 0
