from __future__ import annotations

import math
from typing import List, Sequence

from mangareader.pipeline.model import RegionBlock, WordDetection

DEFAULT_DISTANCE_PX = 50.0


def _word_to_block(word: WordDetection) -> RegionBlock:
    return RegionBlock(
        id=f"region_{word.x0}_{word.y0}",
        x=word.x0,
        y=word.y0,
        width=word.x1 - word.x0,
        height=word.y1 - word.y0,
        original_text=word.text,
        confidence=word.confidence,
    )


def group_regions(words: Sequence[WordDetection], max_distance: float = DEFAULT_DISTANCE_PX) -> List[RegionBlock]:
    """Greedily merge words whose top-left corners lie within ``max_distance``.

    Distance is always measured from the seed word of a group, not from the
    growing group box. When merging, width and height are recomputed from the
    already-updated origin, so a word left of the seed can leave the box
    narrower than the true union. Output follows seed order.
    """
    regions = [_word_to_block(w) for w in words]
    grouped: List[RegionBlock] = []
    used = [False] * len(regions)

    for i, seed in enumerate(regions):
        if used[i]:
            continue
        used[i] = True
        group = RegionBlock(**vars(seed))

        for j in range(i + 1, len(regions)):
            if used[j]:
                continue
            other = regions[j]
            distance = math.hypot(seed.x - other.x, seed.y - other.y)
            if distance >= max_distance:
                continue

            group.original_text = f"{group.original_text} {other.original_text}"
            group.x = min(group.x, other.x)
            group.y = min(group.y, other.y)
            group.width = max(group.x + group.width, other.x + other.width) - group.x
            group.height = max(group.y + group.height, other.y + other.height) - group.y
            group.confidence = max(group.confidence, other.confidence)
            used[j] = True

        grouped.append(group)

    return grouped
