from __future__ import annotations

import io
from typing import Any, Dict, List

from PIL import Image

from mangareader.pipeline.model import WordDetection

DEFAULT_LANGUAGES = "eng+jpn+kor+chi_sim+chi_tra"
DEFAULT_MIN_CONFIDENCE = 0.60


class TesseractOcrEngine:
    """Thin wrapper around pytesseract with lazy initialization.

    Returns word-level detections above ``min_confidence`` (0..1). Tesseract
    reports confidence on a 0..100 scale with -1 for non-word rows.
    """

    def __init__(self, languages: str = DEFAULT_LANGUAGES, min_confidence: float = DEFAULT_MIN_CONFIDENCE) -> None:
        self.languages = languages
        self.min_confidence = min_confidence
        self._engine = None

    def _ensure(self) -> None:
        if self._engine is None:
            try:
                import pytesseract  # type: ignore
            except Exception as exc:  # noqa: BLE001
                raise RuntimeError(
                    "pytesseract is required (and the tesseract binary with eng/jpn/kor/chi_sim/chi_tra data)"
                ) from exc
            self._engine = pytesseract

    def _image_to_data(self, image: Image.Image) -> str:
        self._ensure()
        # Raw TSV: the DICT output truncates confidences to whole numbers
        return self._engine.image_to_data(  # type: ignore[union-attr]
            image,
            lang=self.languages,
            output_type=self._engine.Output.STRING,  # type: ignore[union-attr]
        )

    def run(self, image_bytes: bytes) -> List[WordDetection]:
        with Image.open(io.BytesIO(image_bytes)) as img:
            tsv = self._image_to_data(img.convert("RGB"))
        return parse_word_data(tsv_to_columns(tsv), self.min_confidence)


def tsv_to_columns(tsv: str) -> Dict[str, List[str]]:
    """Split Tesseract TSV output into columns keyed by header name, values kept as text."""
    lines = [line for line in tsv.splitlines() if line.strip()]
    if len(lines) < 2:
        return {}
    header = lines[0].split("\t")
    columns: Dict[str, List[str]] = {name: [] for name in header}
    for line in lines[1:]:
        cells = line.split("\t")
        # Rows without text may omit the trailing cell
        cells += [""] * (len(header) - len(cells))
        for name, cell in zip(header, cells):
            columns[name].append(cell)
    return columns


def parse_word_data(data: Dict[str, List[Any]], min_confidence: float = DEFAULT_MIN_CONFIDENCE) -> List[WordDetection]:
    """Convert an ``image_to_data`` dict into filtered detections, in engine order."""
    words: List[WordDetection] = []
    texts = data.get("text") or []
    for i, raw_text in enumerate(texts):
        text = (raw_text or "").strip()
        if not text:
            continue
        try:
            conf = float(data["conf"][i]) / 100.0
        except (TypeError, ValueError):
            continue
        if conf <= min_confidence:
            continue
        left = int(data["left"][i])
        top = int(data["top"][i])
        words.append(
            WordDetection(
                text=text,
                confidence=min(conf, 1.0),
                x0=left,
                y0=top,
                x1=left + int(data["width"][i]),
                y1=top + int(data["height"][i]),
            )
        )
    return words
