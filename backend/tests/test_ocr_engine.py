from __future__ import annotations

import io
from types import SimpleNamespace

import pytest
from PIL import Image

from mangareader.pipeline.ocr_engine import DEFAULT_LANGUAGES, TesseractOcrEngine, parse_word_data, tsv_to_columns
from tests.conftest import png_bytes


def _data(rows):
    keys = ("text", "conf", "left", "top", "width", "height")
    return {k: [row[i] for row in rows] for i, k in enumerate(keys)}


TSV_HEADER = "level\tpage_num\tblock_num\tpar_num\tline_num\tword_num\tleft\ttop\twidth\theight\tconf\ttext"


def _tsv(rows):
    """Tesseract TSV with word rows (left, top, width, height, conf, text)."""
    lines = [TSV_HEADER, "1\t1\t0\t0\t0\t0\t0\t0\t200\t120\t-1\t"]
    for left, top, width, height, conf, text in rows:
        lines.append(f"5\t1\t1\t1\t1\t1\t{left}\t{top}\t{width}\t{height}\t{conf}\t{text}")
    return "\n".join(lines) + "\n"


def test_parse_word_data_filters_and_scales_confidence():
    data = _data(
        [
            ("", "-1", 0, 0, 0, 0),
            ("hello", "95.5", 10, 5, 20, 10),
            ("low", "40", 20, 5, 20, 10),
            ("edge", "60", 40, 5, 20, 10),
            ("world", 61, 30, 5, 25, 12),
            ("   ", "-1", 0, 0, 0, 0),
            ("junk", None, 0, 0, 5, 5),
        ]
    )

    words = parse_word_data(data)

    assert [w.text for w in words] == ["hello", "world"]
    hello, world = words
    assert hello.confidence == 0.955
    assert (hello.x0, hello.y0, hello.x1, hello.y1) == (10, 5, 30, 15)
    assert world.confidence == 0.61
    assert (world.x1, world.y1) == (55, 17)


def test_parse_word_data_respects_custom_threshold():
    data = _data([("a", "50", 0, 0, 1, 1), ("b", "80", 0, 0, 1, 1)])

    assert [w.text for w in parse_word_data(data, min_confidence=0.2)] == ["a", "b"]
    assert [w.text for w in parse_word_data(data, min_confidence=0.9)] == []


def test_parse_word_data_empty_result():
    assert parse_word_data({}) == []


def test_run_passes_language_set_and_rgb_image():
    captured = {}

    def image_to_data(image, lang, output_type):
        captured["mode"] = image.mode
        captured["size"] = image.size
        captured["lang"] = lang
        captured["output_type"] = output_type
        return _tsv([(3, 4, 30, 12, "88.25", "konnichiwa")])

    engine = TesseractOcrEngine()
    engine._engine = SimpleNamespace(image_to_data=image_to_data, Output=SimpleNamespace(DICT="dict", STRING="string"))

    words = engine.run(png_bytes(64, 32))

    assert captured == {"mode": "RGB", "size": (64, 32), "lang": DEFAULT_LANGUAGES, "output_type": "string"}
    assert DEFAULT_LANGUAGES == "eng+jpn+kor+chi_sim+chi_tra"
    assert len(words) == 1
    assert words[0].text == "konnichiwa"
    assert words[0].confidence == 0.8825


def test_run_converts_palette_images():
    seen = []
    engine = TesseractOcrEngine(languages="eng", min_confidence=0.5)
    engine._image_to_data = lambda image: seen.append(image.mode) or ""  # type: ignore[method-assign]

    buf = io.BytesIO()
    Image.new("P", (10, 10)).save(buf, format="PNG")

    assert engine.run(buf.getvalue()) == []
    assert seen == ["RGB"]


def test_fractional_confidence_survives_threshold():
    engine = TesseractOcrEngine()
    engine._image_to_data = lambda image: _tsv(  # type: ignore[method-assign]
        [(0, 0, 10, 10, "60.9", "kept"), (20, 0, 10, 10, "60", "dropped"), (40, 0, 10, 10, "60.000001", "edge")]
    )

    words = engine.run(png_bytes(64, 32))

    assert [w.text for w in words] == ["kept", "edge"]
    assert words[0].confidence == pytest.approx(0.609)


def test_tsv_to_columns_pads_missing_text_cell():
    tsv = TSV_HEADER + "\n4\t1\t1\t1\t1\t0\t5\t6\t70\t20\t-1\n5\t1\t1\t1\t1\t1\t5\t6\t30\t20\t91.5\thello\n"

    columns = tsv_to_columns(tsv)

    assert columns["text"] == ["", "hello"]
    assert columns["conf"] == ["-1", "91.5"]
    assert [w.text for w in parse_word_data(columns)] == ["hello"]
    assert tsv_to_columns("") == {}
