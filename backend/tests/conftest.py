from __future__ import annotations

import os
import tempfile

# Keep the development /artifacts mount out of the source tree
os.environ.setdefault("ARTIFACTS_ROOT", tempfile.mkdtemp(prefix="mangareader-artifacts-"))
os.environ.setdefault("APP_ENV", "development")

import io
import threading
from typing import Callable, Dict, Iterable, List, Optional, Sequence

import pytest
from PIL import Image
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from mangareader.core.storage import LocalStorageService
from mangareader.db.models import Chapter, Page
from mangareader.pipeline.compositor import load_font
from mangareader.pipeline.model import WordDetection
from mangareader.pipeline.orchestrator import ChapterTranslationPipeline, PageTranslator
from mangareader.pipeline.translator import BlockTranslator, RetryPolicy


def png_bytes(width: int = 200, height: int = 120, color=(200, 40, 40)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


# Two words close together (one bubble) and one far away
PAGE_WORDS: List[WordDetection] = [
    WordDetection("word1", 0.90, 10, 10, 30, 20),
    WordDetection("word2", 0.80, 15, 12, 35, 22),
    WordDetection("far", 0.95, 150, 80, 180, 95),
]


class FakeOcr:
    """Returns canned detections per image payload."""

    def __init__(self, words_by_image: Dict[bytes, Sequence[WordDetection]], default: Sequence[WordDetection] = ()):
        self.words_by_image = words_by_image
        self.default = list(default)
        self.calls = 0

    def run(self, image_bytes: bytes) -> List[WordDetection]:
        self.calls += 1
        return list(self.words_by_image.get(image_bytes, self.default))


class FakeTextClient:
    def __init__(self, fail_on: Iterable[str] = (), ready_error: Optional[Exception] = None):
        self.fail_on = set(fail_on)
        self.ready_error = ready_error
        self.calls: List[str] = []
        self._lock = threading.Lock()

    def ensure_ready(self) -> None:
        if self.ready_error is not None:
            raise self.ready_error

    def translate(self, text: str, target_language: str) -> str:
        with self._lock:
            self.calls.append(text)
        if text in self.fail_on:
            raise ConnectionError("quota exceeded")
        return f"[{target_language}] {text}"


class FakeFetcher:
    def __init__(self, images: Dict[str, bytes], errors: Optional[Dict[str, Exception]] = None):
        self.images = images
        self.errors = errors or {}
        self.requested: List[str] = []

    def __call__(self, image_url: str) -> bytes:
        self.requested.append(image_url)
        if image_url in self.errors:
            raise self.errors[image_url]
        return self.images[image_url]


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def storage(tmp_path) -> LocalStorageService:
    return LocalStorageService(tmp_path / "artifacts")


def page_url(number: int) -> str:
    return f"https://cdn.example.com/ch/{number}.png"


def make_chapter(
    session: Session,
    num_pages: int = 2,
    *,
    translated_languages: Optional[List[str]] = None,
    pages: Optional[List[Page]] = None,
) -> Chapter:
    if pages is None:
        pages = [
            Page(page_number=n, image_url=page_url(n), width=200, height=120)
            for n in range(1, num_pages + 1)
        ]
    chapter = Chapter(
        manga_id="manga-1",
        title="Chapter 1",
        chapter_number=1,
        translated_languages=list(translated_languages or []),
        is_translated=bool(translated_languages),
    )
    chapter.set_pages(pages)
    session.add(chapter)
    session.commit()
    session.refresh(chapter)
    return chapter


def page_images(num_pages: int) -> Dict[str, bytes]:
    """Distinct PNG payload per page so the fake OCR can tell them apart."""
    return {page_url(n): png_bytes(color=(200, 10 * n, 40)) for n in range(1, num_pages + 1)}


def build_pipeline(
    session: Session,
    storage: LocalStorageService,
    *,
    ocr: FakeOcr,
    client: FakeTextClient,
    fetch: Callable[[str], bytes],
    job_stale_after_seconds: int = 900,
    max_partial_runs: int = 3,
) -> ChapterTranslationPipeline:
    translator = BlockTranslator(
        client,
        max_concurrency=2,
        retry=RetryPolicy(max_retries=1, backoff_ms=0, jitter_ms=0),
        sleep=lambda _s: None,
    )
    page_translator = PageTranslator(ocr, translator, font=load_font(None, 14))
    return ChapterTranslationPipeline(
        session,
        page_translator,
        storage,
        fetch,
        job_stale_after_seconds=job_stale_after_seconds,
        max_partial_runs=max_partial_runs,
    )
