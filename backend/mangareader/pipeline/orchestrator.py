from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, List, Literal, Optional, Protocol

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from mangareader.core.config import Settings, get_settings
from mangareader.core.paths import get_default_font_path
from mangareader.core.storage import StorageService, translated_page_key
from mangareader.db.models import (
    Chapter,
    Page,
    TextRegion,
    TranslatedPage,
    TranslatedTextRegion,
    TranslationJob,
    TranslationJobStatus,
    utcnow,
)
from mangareader.pipeline.compositor import FontType, composite_translation, load_font
from mangareader.pipeline.grouping import DEFAULT_DISTANCE_PX, group_regions
from mangareader.pipeline.io import PageImageFetcher
from mangareader.pipeline.model import RegionBlock, TranslatedBlock, WordDetection
from mangareader.pipeline.translate.gemini import GeminiTranslator, is_valid_language_code
from mangareader.pipeline.translator import BlockTranslator, RetryPolicy

logger = logging.getLogger(__name__)

ALREADY_TRANSLATED = "Çeviri zaten mevcut"
TRANSLATION_COMPLETED = "Çeviri tamamlandı"

PageStatus = Literal["done", "skipped", "failed"]


class OcrEngine(Protocol):
    def run(self, image_bytes: bytes) -> List[WordDetection]:
        ...


class TranslationInProgressError(RuntimeError):
    """Another run for the same chapter and language is still active."""


@dataclass
class PageTranslation:
    regions: List[RegionBlock] = field(default_factory=list)
    translated: List[TranslatedBlock] = field(default_factory=list)
    image_png: Optional[bytes] = None


@dataclass
class TranslationOutcome:
    chapter: Chapter
    job: Optional[TranslationJob]
    message: str
    already_translated: bool = False


class PageTranslator:
    """OCR, grouping, translation and compositing for a single page image."""

    def __init__(
        self,
        ocr_engine: OcrEngine,
        block_translator: BlockTranslator,
        *,
        group_distance_px: float = DEFAULT_DISTANCE_PX,
        font: Optional[FontType] = None,
        font_size: int = 14,
    ) -> None:
        self._ocr = ocr_engine
        self._translator = block_translator
        self._group_distance = group_distance_px
        self._font = font
        self._font_size = font_size

    def ensure_ready(self) -> None:
        self._translator.ensure_ready()

    def translate_image(self, image_bytes: bytes, target_language: str) -> PageTranslation:
        t0 = time.perf_counter()
        words = self._ocr.run(image_bytes)
        if not words:
            return PageTranslation()
        regions = group_regions(words, self._group_distance)
        t1 = time.perf_counter()
        translated = self._translator.translate_blocks(regions, target_language)
        t2 = time.perf_counter()
        if self._font is None:
            self._font = load_font(None, self._font_size)
        png = composite_translation(image_bytes, translated, font=self._font, font_size=self._font_size)
        t3 = time.perf_counter()
        logger.info(
            "stage_timing",
            extra={
                "num_words": len(words),
                "num_blocks": len(regions),
                "ocr_group_ms": int((t1 - t0) * 1000),
                "translate_ms": int((t2 - t1) * 1000),
                "composite_ms": int((t3 - t2) * 1000),
            },
        )
        return PageTranslation(regions=regions, translated=translated, image_png=png)


class ChapterTranslationPipeline:
    """Translates every page of a chapter and records the result.

    Progress is tracked in a ``TranslationJob`` row and committed page by
    page, so a crashed or partially failed run is resumed by the next request
    instead of being reported as complete.
    """

    def __init__(
        self,
        session: Session,
        page_translator: PageTranslator,
        storage: StorageService,
        fetch_image: Callable[[str], bytes],
        *,
        job_stale_after_seconds: int = 900,
        max_partial_runs: int = 3,
    ) -> None:
        self._session = session
        self._pages = page_translator
        self._storage = storage
        self._fetch_image = fetch_image
        self._stale_after = timedelta(seconds=job_stale_after_seconds)
        self._max_partial_runs = max(1, max_partial_runs)

    def latest_job(self, chapter_id: uuid.UUID, language: str) -> Optional[TranslationJob]:
        return self._session.exec(
            select(TranslationJob)
            .where(TranslationJob.chapter_id == chapter_id, TranslationJob.language == language)
            .order_by(TranslationJob.created_at.desc())
            .limit(1)
        ).first()

    def _partial_streak(self, chapter_id: uuid.UUID, language: str) -> int:
        """Number of most recent jobs, newest first, that ended PARTIAL."""
        statuses = self._session.exec(
            select(TranslationJob.status)
            .where(TranslationJob.chapter_id == chapter_id, TranslationJob.language == language)
            .order_by(TranslationJob.created_at.desc())
            .limit(self._max_partial_runs)
        ).all()
        streak = 0
        for job_status in statuses:
            if job_status != TranslationJobStatus.PARTIAL:
                break
            streak += 1
        return streak

    def _is_stale(self, job: TranslationJob) -> bool:
        updated = job.updated_at
        if updated.tzinfo is None:
            updated = updated.replace(tzinfo=timezone.utc)
        return datetime.now(timezone.utc) - updated > self._stale_after

    def run(self, chapter: Chapter, target_language: str) -> TranslationOutcome:
        if not is_valid_language_code(target_language):
            raise ValueError(f"invalid language code: {target_language!r}")

        latest = self.latest_job(chapter.id, target_language)
        resumable = latest is not None and latest.status == TranslationJobStatus.PARTIAL
        if resumable and self._partial_streak(chapter.id, target_language) >= self._max_partial_runs:
            # Pages that kept failing are left untranslated
            logger.warning(
                "translation_resume_exhausted",
                extra={"chapter_id": str(chapter.id), "language": target_language, "job_id": str(latest.id)},
            )
            resumable = False
        if target_language in (chapter.translated_languages or []) and not resumable:
            logger.info("translation_exists", extra={"chapter_id": str(chapter.id), "language": target_language})
            return TranslationOutcome(chapter=chapter, job=latest, message=ALREADY_TRANSLATED, already_translated=True)

        if latest is not None and latest.status == TranslationJobStatus.RUNNING:
            if not self._is_stale(latest):
                raise TranslationInProgressError(f"translation of {chapter.id} to {target_language} is running")
            latest.status = TranslationJobStatus.FAILED
            latest.failure_reason = "abandoned"
            latest.touch()
            self._session.add(latest)
            self._session.flush()

        # Configuration problems must surface before any page is touched
        self._pages.ensure_ready()

        pages = sorted(chapter.get_pages(), key=lambda p: p.page_number)
        job = TranslationJob(
            chapter_id=chapter.id,
            language=target_language,
            status=TranslationJobStatus.RUNNING,
            total_pages=len(pages),
        )
        self._session.add(job)
        try:
            self._session.commit()
        except IntegrityError as exc:
            # Lost the race for the running slot to a concurrent request
            self._session.rollback()
            raise TranslationInProgressError(f"translation of {chapter.id} to {target_language} is running") from exc

        try:
            self._process_pages(chapter, job, pages, target_language)

            chapter.add_translation(target_language)
            chapter.updated_at = utcnow()
            job.status = TranslationJobStatus.PARTIAL if job.pages_failed else TranslationJobStatus.COMPLETED
            job.touch()
            self._session.add(chapter)
            self._session.add(job)
            self._session.commit()
        except Exception as exc:
            self._mark_failed(job, exc)
            raise

        self._session.refresh(chapter)
        self._session.refresh(job)
        logger.info(
            "chapter_translated",
            extra={
                "chapter_id": str(chapter.id),
                "language": target_language,
                "job_id": str(job.id),
                "status": job.status.value,
                "pages_done": len(job.pages_done),
                "pages_skipped": len(job.pages_skipped),
                "pages_failed": len(job.pages_failed),
            },
        )
        return TranslationOutcome(chapter=chapter, job=job, message=TRANSLATION_COMPLETED)

    def _process_pages(self, chapter: Chapter, job: TranslationJob, pages: List[Page], language: str) -> None:
        chapter_id = str(chapter.id)
        for index, page in enumerate(pages, start=1):
            if page.has_language(language):
                # Left by an earlier run; never add a second version
                job.pages_done = [*job.pages_done, page.page_number]
                continue

            logger.info(
                "page_translate_start",
                extra={"chapter_id": chapter_id, "page": index, "total": len(pages), "language": language},
            )
            status = self._translate_page(chapter_id, index, page, language)
            if status == "done":
                job.pages_done = [*job.pages_done, page.page_number]
                chapter.set_pages(pages)
                self._session.add(chapter)
            elif status == "skipped":
                job.pages_skipped = [*job.pages_skipped, page.page_number]
            else:
                job.pages_failed = [*job.pages_failed, page.page_number]
            job.touch()
            self._session.add(job)
            self._session.commit()

    def _translate_page(self, chapter_id: str, page_index: int, page: Page, language: str) -> PageStatus:
        log_extra = {"chapter_id": chapter_id, "page": page_index, "language": language}
        try:
            image_bytes = self._fetch_image(page.image_url)
        except Exception:
            logger.exception("page_image_fetch_failed", extra={**log_extra, "image_url": page.image_url})
            return "failed"

        try:
            result = self._pages.translate_image(image_bytes, language)
        except Exception:
            logger.exception("page_translate_failed", extra=log_extra)
            return "failed"

        if not result.regions or result.image_png is None:
            logger.info("page_no_text", extra=log_extra)
            return "skipped"

        try:
            key = self._storage.save_artifact(translated_page_key(chapter_id, page_index, language), result.image_png)
            image_url = self._storage.get_public_url(key)
        except Exception:
            logger.exception("page_store_failed", extra=log_extra)
            return "failed"

        page.translated_versions.append(
            TranslatedPage(
                language=language,
                image_url=image_url,
                text_regions=[TranslatedTextRegion(**vars(block)) for block in result.translated],
            )
        )
        page.text_regions = [TextRegion(**vars(region)) for region in result.regions]
        return "done"

    def _mark_failed(self, job: TranslationJob, exc: Exception) -> None:
        logger.exception("chapter_translate_failed", extra={"job_id": str(job.id)})
        try:
            self._session.rollback()
            job.status = TranslationJobStatus.FAILED
            job.failure_reason = str(exc)[:2000]
            job.touch()
            self._session.add(job)
            self._session.commit()
        except Exception:
            # The original error is the one worth reporting
            logger.exception("job_status_update_failed", extra={"job_id": str(job.id)})
            self._session.rollback()


def remove_chapter_translation(session: Session, chapter: Chapter, language: str) -> Chapter:
    """Drop ``language`` from the chapter and from every page's translated versions."""
    pages = chapter.get_pages()
    for page in pages:
        page.translated_versions = [tv for tv in page.translated_versions if tv.language != language]
    chapter.set_pages(pages)
    chapter.remove_translation(language)
    chapter.updated_at = utcnow()
    session.add(chapter)
    session.commit()
    session.refresh(chapter)
    return chapter


def build_page_translator(settings: Settings, *, ocr_engine: OcrEngine | None = None, client=None) -> PageTranslator:
    from mangareader.pipeline.ocr_engine import TesseractOcrEngine

    ocr = ocr_engine or TesseractOcrEngine(settings.ocr_languages, settings.ocr_min_confidence)
    text_client = client or GeminiTranslator(settings.google_api_key, settings.gemini_model)
    block_translator = BlockTranslator(
        text_client,
        max_concurrency=settings.translate_max_concurrency,
        retry=RetryPolicy(
            max_retries=settings.translate_max_retries,
            backoff_ms=settings.translate_backoff_ms,
            jitter_ms=settings.translate_jitter_ms,
        ),
    )
    font_path = Path(settings.font_path) if settings.font_path else get_default_font_path()
    return PageTranslator(
        ocr,
        block_translator,
        group_distance_px=settings.group_distance_px,
        font=load_font(font_path, settings.font_size),
        font_size=settings.font_size,
    )


def build_chapter_pipeline(
    session: Session,
    storage: StorageService,
    settings: Settings | None = None,
) -> ChapterTranslationPipeline:
    settings = settings or get_settings()
    return ChapterTranslationPipeline(
        session,
        build_page_translator(settings),
        storage,
        PageImageFetcher(storage, timeout=settings.image_fetch_timeout_seconds),
        job_stale_after_seconds=settings.job_stale_after_seconds,
        max_partial_runs=settings.translate_max_partial_runs,
    )
