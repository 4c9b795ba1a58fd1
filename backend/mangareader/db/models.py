from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

import sqlalchemy as sa
from pydantic import BaseModel, ConfigDict
from pydantic import Field as PydanticField
from pydantic.alias_generators import to_camel
from sqlalchemy.dialects.postgresql import JSONB
from sqlmodel import Field, SQLModel


# JSONB on Postgres, plain JSON elsewhere (SQLite in tests)
JSONDocument = sa.JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _Document(BaseModel):
    """Embedded document stored inside a chapter row; camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TextRegion(_Document):
    id: str
    x: int
    y: int
    width: int
    height: int
    original_text: str
    confidence: float = PydanticField(default=0.0, ge=0.0, le=1.0)


class TranslatedTextRegion(TextRegion):
    translated_text: str


class TranslatedPage(_Document):
    language: str
    image_url: str
    text_regions: List[TranslatedTextRegion] = []


class Page(_Document):
    page_number: int = PydanticField(ge=1)
    image_url: str
    width: int = PydanticField(ge=1)
    height: int = PydanticField(ge=1)
    text_regions: List[TextRegion] = []
    translated_versions: List[TranslatedPage] = []

    def has_language(self, language: str) -> bool:
        return any(tv.language == language for tv in self.translated_versions)


class TranslationJobStatus(str, Enum):
    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    PARTIAL = "PARTIAL"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class Chapter(SQLModel, table=True):
    __tablename__ = "chapters"
    __table_args__ = (sa.UniqueConstraint("manga_id", "chapter_number", name="uq_chapters_manga_number"),)

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        sa_column=sa.Column(sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
    )
    manga_id: str = Field(sa_column=sa.Column(sa.String(length=64), index=True, nullable=False))
    title: str = Field(sa_column=sa.Column(sa.String(length=200), nullable=False))
    chapter_number: float = Field(sa_column=sa.Column(sa.Float, nullable=False))
    original_language: str = Field(default="ja", sa_column=sa.Column(sa.String(length=32), nullable=False, server_default="ja"))
    # Ordered list of Page documents
    pages: List[Dict[str, Any]] = Field(default_factory=list, sa_column=sa.Column(JSONDocument, nullable=False))
    view_count: int = Field(default=0, sa_column=sa.Column(sa.Integer, nullable=False, server_default="0"))
    is_translated: bool = Field(default=False, sa_column=sa.Column(sa.Boolean, nullable=False, index=True, server_default=sa.text("false")))
    translated_languages: List[str] = Field(default_factory=list, sa_column=sa.Column(JSONDocument, nullable=False))
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=sa.Column(sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now(), index=True),
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=sa.Column(sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now(), onupdate=sa.func.now()),
    )

    def get_pages(self) -> List[Page]:
        return [Page.model_validate(p) for p in (self.pages or [])]

    def set_pages(self, pages: List[Page]) -> None:
        # Assign a fresh list so the JSON column is marked dirty
        self.pages = [p.model_dump(mode="json", by_alias=True) for p in sorted(pages, key=lambda p: p.page_number)]

    def add_translation(self, language: str) -> bool:
        """Record ``language`` at chapter level; False if it was already present."""
        if language in (self.translated_languages or []):
            return False
        self.translated_languages = [*(self.translated_languages or []), language]
        self.is_translated = True
        return True

    def remove_translation(self, language: str) -> None:
        self.translated_languages = [lang for lang in (self.translated_languages or []) if lang != language]
        self.is_translated = len(self.translated_languages) > 0


class TranslationJob(SQLModel, table=True):
    __tablename__ = "translation_jobs"
    # One active run per chapter and language
    __table_args__ = (
        sa.Index(
            "uq_translation_jobs_running",
            "chapter_id",
            "language",
            unique=True,
            postgresql_where=sa.text("status = 'RUNNING'"),
            sqlite_where=sa.text("status = 'RUNNING'"),
        ),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        sa_column=sa.Column(sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
    )
    chapter_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid(as_uuid=True), sa.ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False, index=True)
    )
    language: str = Field(sa_column=sa.Column(sa.String(length=32), nullable=False, index=True))
    status: TranslationJobStatus = Field(
        default=TranslationJobStatus.QUEUED,
        sa_column=sa.Column(sa.Enum(TranslationJobStatus, name="translation_job_status_enum"), nullable=False, index=True),
    )
    total_pages: int = Field(default=0, sa_column=sa.Column(sa.Integer, nullable=False, server_default="0"))
    pages_done: List[int] = Field(default_factory=list, sa_column=sa.Column(JSONDocument, nullable=False))
    pages_skipped: List[int] = Field(default_factory=list, sa_column=sa.Column(JSONDocument, nullable=False))
    pages_failed: List[int] = Field(default_factory=list, sa_column=sa.Column(JSONDocument, nullable=False))
    failure_reason: Optional[str] = Field(default=None, sa_column=sa.Column(sa.Text, nullable=True))
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=sa.Column(sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now(), index=True),
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=sa.Column(sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    def touch(self) -> None:
        self.updated_at = utcnow()


__all__ = [
    "Chapter",
    "Page",
    "TextRegion",
    "TranslatedPage",
    "TranslatedTextRegion",
    "TranslationJob",
    "TranslationJobStatus",
    "utcnow",
]
