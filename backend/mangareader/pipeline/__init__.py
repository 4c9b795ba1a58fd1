"""Page translation pipeline.

Stages, in order:
- `ocr_engine`: word detection with Tesseract
- `grouping`: merge nearby words into blocks
- `translator` / `translate`: per-block translation with retries
- `compositor`: paint translated blocks onto the page
- `orchestrator`: chapter-level runs, job tracking and persistence
"""
