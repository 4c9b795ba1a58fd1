from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from mangareader.db.models import Chapter, Page, TranslationJob, TranslationJobStatus


class AuthenticatedUser(BaseModel):
    user_id: str
    email: Optional[str] = None


class TranslateRequest(BaseModel):
    """Body of ``POST /api/translate``. Both fields are checked by the route."""

    model_config = ConfigDict(populate_by_name=True)

    chapter_id: Optional[str] = Field(default=None, alias="chapterId")
    target_language: Optional[str] = Field(default=None, alias="targetLanguage")


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChapterOut(_CamelModel):
    id: str = Field(serialization_alias="_id")
    manga_id: str
    title: str
    chapter_number: float
    original_language: str
    pages: List[Page]
    view_count: int
    is_translated: bool
    translated_languages: List[str]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_chapter(cls, chapter: Chapter) -> "ChapterOut":
        return cls(
            id=str(chapter.id),
            manga_id=chapter.manga_id,
            title=chapter.title,
            chapter_number=chapter.chapter_number,
            original_language=chapter.original_language,
            pages=chapter.get_pages(),
            view_count=chapter.view_count or 0,
            is_translated=bool(chapter.is_translated),
            translated_languages=list(chapter.translated_languages or []),
            created_at=chapter.created_at,
            updated_at=chapter.updated_at,
        )


class TranslationJobOut(_CamelModel):
    id: str
    chapter_id: str
    language: str
    status: TranslationJobStatus
    total_pages: int
    pages_done: List[int]
    pages_skipped: List[int]
    pages_failed: List[int]
    failure_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_job(cls, job: TranslationJob) -> "TranslationJobOut":
        return cls(
            id=str(job.id),
            chapter_id=str(job.chapter_id),
            language=job.language,
            status=job.status,
            total_pages=job.total_pages,
            pages_done=list(job.pages_done or []),
            pages_skipped=list(job.pages_skipped or []),
            pages_failed=list(job.pages_failed or []),
            failure_reason=job.failure_reason,
            created_at=job.created_at,
            updated_at=job.updated_at,
        )


def dump(model: BaseModel) -> Dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)
