# ruff: noqa: E402

from __future__ import annotations

import argparse
import json
import sys
import time
from dataclasses import asdict
from pathlib import Path
from dotenv import load_dotenv

# --- Path Setup ---
_BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(_BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(_BACKEND_DIR))

from mangareader.core.config import get_settings
from mangareader.pipeline.orchestrator import PageTranslator, build_page_translator

# Runs OCR, grouping, translation and compositing on local images, without a
# database or storage. Useful for tuning the grouping distance and checking
# the rendered output:
#
#   python ./backend/scripts/translate_page.py \
#     --input ./samples --out-dir ./test_output --lang en
#
# --passthrough skips the Gemini call and renders the OCR text itself.

SUPPORTED_EXTENSIONS = (".png", ".jpg", ".jpeg", ".webp")


class PassthroughTranslator:
    def ensure_ready(self) -> None:
        return None

    def translate(self, text: str, target_language: str) -> str:
        return text


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Translate manga page images locally",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--input", type=str, required=True, help="Path to input image or a folder of images")
    parser.add_argument("--out-dir", type=str, required=True, help="Directory to write translated pages")
    parser.add_argument("--lang", type=str, default="en", help="Target language code")
    parser.add_argument("--font", type=str, default=None, help="Path to TTF font (overrides FONT_PATH)")
    parser.add_argument("--passthrough", action="store_true", help="Skip translation, render OCR text")
    return parser.parse_args()


def process_image(translator: PageTranslator, image_path: Path, out_dir: Path, lang: str) -> None:
    result = translator.translate_image(image_path.read_bytes(), lang)
    if not result.regions or result.image_png is None:
        print(f"No text above the confidence threshold in '{image_path.name}'; skipped.")
        return

    out_dir.mkdir(parents=True, exist_ok=True)
    image_out = out_dir / f"{image_path.stem}_{lang}.png"
    json_out = out_dir / f"{image_path.stem}_{lang}.json"
    image_out.write_bytes(result.image_png)
    with open(json_out, "w", encoding="utf-8") as f:
        json.dump({"regions": [asdict(b) for b in result.translated]}, f, ensure_ascii=False, indent=2)
    print(f"{len(result.regions)} block(s) -> {image_out}")


def main():
    overall_start_time = time.time()
    args = parse_args()

    load_dotenv(override=False)

    input_path = Path(args.input)
    if not input_path.exists():
        raise FileNotFoundError(f"Input path not found: {input_path}")

    image_paths = []
    if input_path.is_file():
        image_paths.append(input_path)
    elif input_path.is_dir():
        image_paths = sorted([p for p in input_path.glob("*") if p.suffix.lower() in SUPPORTED_EXTENSIONS])

    if not image_paths:
        print(f"No supported images found in '{input_path}'.")
        return

    settings = get_settings()
    if args.font:
        settings = settings.model_copy(update={"font_path": args.font})
    translator = build_page_translator(settings, client=PassthroughTranslator() if args.passthrough else None)
    translator.ensure_ready()

    out_dir = Path(args.out_dir)
    for i, image_path in enumerate(image_paths):
        print(f"[{i + 1}/{len(image_paths)}] {image_path.name}")
        try:
            process_image(translator, image_path, out_dir, args.lang)
        except Exception as e:
            print(f"!!! FAILED for {image_path.name}: {e}")

    print(f"Finished {len(image_paths)} image(s) in {time.time() - overall_start_time:.2f} seconds.")


if __name__ == "__main__":
    main()
