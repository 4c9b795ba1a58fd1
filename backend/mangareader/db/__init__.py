from .models import (
    Chapter,
    Page,
    TextRegion,
    TranslatedPage,
    TranslatedTextRegion,
    TranslationJob,
    TranslationJobStatus,
)

__all__ = [
    "Chapter",
    "Page",
    "TextRegion",
    "TranslatedPage",
    "TranslatedTextRegion",
    "TranslationJob",
    "TranslationJobStatus",
]
