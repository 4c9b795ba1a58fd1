from typing import Any, Dict, Optional
import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlmodel import Session

from mangareader.api.v1.schemas import (
    AuthenticatedUser,
    ChapterOut,
    TranslateRequest,
    TranslationJobOut,
    dump,
)
from mangareader.core.cache import ViewCache
from mangareader.core.storage import StorageService, get_storage_service
from mangareader.db.deps import get_current_user, get_db_session, get_view_cache
from mangareader.db.models import Chapter, TranslationJob
from mangareader.db.session import check_database_connection
from mangareader.pipeline.orchestrator import (
    ChapterTranslationPipeline,
    TranslationInProgressError,
    build_chapter_pipeline,
    remove_chapter_translation,
)
from mangareader.pipeline.translate.gemini import is_valid_language_code

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

MISSING_FIELDS = "ChapterId ve targetLanguage gerekli"
CHAPTER_NOT_FOUND = "Chapter bulunamadı"
JOB_NOT_FOUND = "Çeviri işi bulunamadı"
TRANSLATION_NOT_FOUND = "Çeviri bulunamadı"
TRANSLATION_RUNNING = "Çeviri devam ediyor"
TRANSLATION_FAILED = "Çeviri yapılırken hata oluştu"
TRANSLATION_REMOVED = "Çeviri silindi"
INVALID_LANGUAGE = "Geçersiz dil kodu"


def get_chapter_pipeline(
    session: Session = Depends(get_db_session),
    storage: StorageService = Depends(get_storage_service),
) -> ChapterTranslationPipeline:
    return build_chapter_pipeline(session, storage)


def _parse_uuid(raw: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(raw))
    except ValueError:
        return None


def _load_chapter(session: Session, chapter_id: str) -> Chapter:
    parsed = _parse_uuid(chapter_id)
    chapter = session.get(Chapter, parsed) if parsed else None
    if not chapter:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=CHAPTER_NOT_FOUND)
    return chapter


@router.get("/healthz", summary="Liveness probe")
def healthz() -> Dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz", summary="Readiness probe")
def readyz(request: Request) -> Dict[str, str]:
    engine = getattr(request.app.state, "db_engine", None)
    if engine is None or not check_database_connection(engine):
        raise HTTPException(status_code=503, detail="database not reachable")
    return {"status": "ready"}


@router.post("/translate", summary="Translate every page of a chapter")
def translate_chapter(
    body: TranslateRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    session: Session = Depends(get_db_session),
    pipeline: ChapterTranslationPipeline = Depends(get_chapter_pipeline),
) -> Dict[str, Any]:
    """Run OCR, translation and compositing over the chapter's pages.

    Returns the existing chapter untouched when the language is already
    present. Pages that fail are skipped; the returned ``job`` lists them.
    """
    if not body.chapter_id or not body.target_language:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=MISSING_FIELDS)
    if not is_valid_language_code(body.target_language):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=INVALID_LANGUAGE)

    chapter = _load_chapter(session, body.chapter_id)

    try:
        outcome = pipeline.run(chapter, body.target_language)
    except TranslationInProgressError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=TRANSLATION_RUNNING)
    except Exception:
        logger.exception(
            "translate_request_failed",
            extra={"chapter_id": body.chapter_id, "language": body.target_language, "user_id": user.user_id},
        )
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=TRANSLATION_FAILED)

    payload: Dict[str, Any] = {
        "success": True,
        "data": dump(ChapterOut.from_chapter(outcome.chapter)),
        "message": outcome.message,
    }
    if outcome.job is not None:
        payload["job"] = dump(TranslationJobOut.from_job(outcome.job))
    return payload


@router.get("/translate/jobs/{job_id}", summary="Translation job status")
def get_translation_job(
    job_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    session: Session = Depends(get_db_session),
) -> Dict[str, Any]:
    parsed = _parse_uuid(job_id)
    job = session.get(TranslationJob, parsed) if parsed else None
    if not job:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=JOB_NOT_FOUND)
    return {"success": True, "data": dump(TranslationJobOut.from_job(job))}


@router.get("/chapters/{chapter_id}", summary="Chapter details")
def get_chapter(
    chapter_id: str,
    request: Request,
    session: Session = Depends(get_db_session),
    view_cache: ViewCache = Depends(get_view_cache),
) -> Dict[str, Any]:
    """Counts one view per visitor (ip + user agent) per cache TTL."""
    chapter = _load_chapter(session, chapter_id)

    client_ip = (
        request.headers.get("x-forwarded-for")
        or request.headers.get("x-real-ip")
        or (request.client.host if request.client else "unknown")
    )
    user_agent = request.headers.get("user-agent", "")
    if view_cache.should_count(f"{chapter.id}-{client_ip}-{user_agent}"):
        chapter.view_count = (chapter.view_count or 0) + 1
        session.add(chapter)
        session.commit()
        session.refresh(chapter)

    return {"success": True, "data": dump(ChapterOut.from_chapter(chapter))}


@router.delete("/chapters/{chapter_id}/translations/{language}", summary="Remove a translated language")
def delete_chapter_translation(
    chapter_id: str,
    language: str,
    user: AuthenticatedUser = Depends(get_current_user),
    session: Session = Depends(get_db_session),
) -> Dict[str, Any]:
    if not is_valid_language_code(language):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=INVALID_LANGUAGE)
    chapter = _load_chapter(session, chapter_id)
    on_pages = any(page.has_language(language) for page in chapter.get_pages())
    if language not in (chapter.translated_languages or []) and not on_pages:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=TRANSLATION_NOT_FOUND)

    chapter = remove_chapter_translation(session, chapter, language)
    logger.info(
        "translation_removed",
        extra={"chapter_id": chapter_id, "language": language, "user_id": user.user_id},
    )
    return {"success": True, "data": dump(ChapterOut.from_chapter(chapter)), "message": TRANSLATION_REMOVED}
