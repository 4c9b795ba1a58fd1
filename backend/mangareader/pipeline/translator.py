from __future__ import annotations

import logging
import random
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, List, Protocol, Sequence

from mangareader.pipeline.model import RegionBlock, TranslatedBlock

logger = logging.getLogger(__name__)


class TextTranslator(Protocol):
    """Anything that turns one text into ``target_language``."""

    def ensure_ready(self) -> None:
        ...

    def translate(self, text: str, target_language: str) -> str:
        ...


@dataclass
class RetryPolicy:
    max_retries: int = 2
    backoff_ms: int = 500
    jitter_ms: int = 200

    def delay_seconds(self, attempt: int) -> float:
        """Delay after the ``attempt``-th failed try (1-based)."""
        sleep_ms = self.backoff_ms * (2 ** (attempt - 1))
        if self.jitter_ms:
            sleep_ms += random.randint(0, self.jitter_ms)
        return sleep_ms / 1000.0


class BlockTranslator:
    """Translates grouped blocks with bounded parallelism.

    Each block gets ``1 + max_retries`` attempts; when all fail the original
    text is used as the translation. Output order matches input order.
    """

    def __init__(
        self,
        client: TextTranslator,
        *,
        max_concurrency: int = 4,
        retry: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self._client = client
        self._max_concurrency = max_concurrency
        self._retry = retry or RetryPolicy()
        self._sleep = sleep

    def ensure_ready(self) -> None:
        self._client.ensure_ready()

    def _translate_one(self, block: RegionBlock, target_language: str) -> TranslatedBlock:
        attempt = 0
        while True:
            attempt += 1
            try:
                text = self._client.translate(block.original_text, target_language)
                return TranslatedBlock.from_block(block, text)
            except Exception as exc:  # noqa: BLE001
                if attempt > self._retry.max_retries:
                    logger.warning(
                        "block_translate_failed",
                        extra={"region_id": block.id, "attempts": attempt, "error": str(exc)},
                    )
                    return TranslatedBlock.from_block(block, block.original_text)
                self._sleep(self._retry.delay_seconds(attempt))

    def translate_blocks(self, blocks: Sequence[RegionBlock], target_language: str) -> List[TranslatedBlock]:
        if not blocks:
            return []
        if self._max_concurrency == 1 or len(blocks) == 1:
            return [self._translate_one(b, target_language) for b in blocks]
        workers = min(self._max_concurrency, len(blocks))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="translate") as pool:
            return list(pool.map(lambda b: self._translate_one(b, target_language), blocks))
