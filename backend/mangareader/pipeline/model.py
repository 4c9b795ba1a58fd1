from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class WordDetection:
    text: str
    confidence: float
    x0: int
    y0: int
    x1: int
    y1: int


@dataclass
class RegionBlock:
    """A group of nearby words; one speech bubble in practice."""

    id: str
    x: int
    y: int
    width: int
    height: int
    original_text: str
    confidence: float


@dataclass
class TranslatedBlock:
    id: str
    x: int
    y: int
    width: int
    height: int
    original_text: str
    translated_text: str
    confidence: float

    @classmethod
    def from_block(cls, block: RegionBlock, translated_text: str) -> "TranslatedBlock":
        return cls(
            id=block.id,
            x=block.x,
            y=block.y,
            width=block.width,
            height=block.height,
            original_text=block.original_text,
            translated_text=translated_text,
            confidence=block.confidence,
        )
