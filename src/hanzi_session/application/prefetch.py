"""
Prefetch scheduler.

Warms the media cache for the next few queue items in the background so that
advancing through the queue never waits on the Audio or Image services.
"""

import asyncio
import logging
from collections.abc import Awaitable, Sequence

from hanzi_session.application.utils.text import extract_audio_text, extract_image_search_term
from hanzi_session.domain.constants import (
    DEFAULT_AUDIO_LANGUAGE,
    DEFAULT_PREFETCH_WINDOW,
    MAX_PREFETCH_WINDOW,
    PRELOAD_INITIAL_COUNT,
)
from hanzi_session.domain.models import CapabilityFlags, CharacterSet, MediaEntry, StudyItem
from hanzi_session.domain.ports import AudioService, ImageService
from hanzi_session.infrastructure.media_cache import MediaCache, media_key

logger = logging.getLogger(__name__)


class PrefetchScheduler:
    def __init__(
        self,
        audio: AudioService,
        image: ImageService,
        cache: MediaCache,
        capabilities: CapabilityFlags,
        character_set: CharacterSet = "simplified",
        window: int = DEFAULT_PREFETCH_WINDOW,
        language: str = DEFAULT_AUDIO_LANGUAGE,
        enabled: bool = True,
    ):
        self.audio = audio
        self.image = image
        self.cache = cache
        self.capabilities = capabilities
        self.character_set = character_set
        self.window = max(1, min(window, MAX_PREFETCH_WINDOW))
        self.language = language
        self.enabled = enabled
        self._pending: set[str] = set()
        self._tasks: set[asyncio.Task] = set()

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = enabled
        logger.info(f"Media prefetch {'enabled' if enabled else 'disabled'}")

    def schedule(self, items: Sequence[StudyItem], start: int) -> asyncio.Task | None:
        """
        Start background fetches for ``items[start:start + window]``.

        Returns the background task, or None when there is nothing to fetch.
        Must be called from a running event loop; never awaits the fetches.
        """
        if not self.enabled:
            return None

        fetches: list[Awaitable[None]] = []
        for item in items[max(start, 0) : max(start, 0) + self.window]:
            fetches.extend(self._fetches_for(item))

        if not fetches:
            return None

        return self._track(self._run(fetches))

    def _track(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _fetches_for(self, item: StudyItem) -> list[Awaitable[None]]:
        fetches = []
        if self.capabilities.audio_available:
            text = extract_audio_text(item.entry, self.character_set)
            key = media_key("audio", text)
            if text and self._claim(key):
                fetches.append(self._fetch_audio(key, text))
        if self.capabilities.image_available:
            term = extract_image_search_term(item.entry, item.entry.meanings)
            key = media_key("image", term)
            if term and self._claim(key):
                fetches.append(self._fetch_image(key, term))
        return fetches

    def _claim(self, key: str) -> bool:
        # Skip keys already cached or already being fetched.
        if key in self.cache or key in self._pending:
            return False
        self._pending.add(key)
        return True

    async def _run(self, fetches: list[Awaitable[None]]) -> None:
        await asyncio.gather(*fetches)

    async def _fetch_audio(self, key: str, text: str) -> None:
        try:
            clip = await self.audio.resolve_audio(text, self.language)
            self.cache.put(MediaEntry(key=key, kind="audio", search_text=text, url=clip.url))
        except Exception as e:
            logger.warning(f"Audio prefetch failed for {text!r}: {e}")
        finally:
            self._pending.discard(key)

    async def _fetch_image(self, key: str, term: str) -> None:
        try:
            result = await self.image.fetch_image(term)
            self.cache.put(
                MediaEntry(
                    key=key,
                    kind="image",
                    search_text=term,
                    content=result.content,
                    content_type=result.content_type,
                )
            )
        except Exception as e:
            logger.warning(f"Image prefetch failed for {term!r}: {e}")
        finally:
            self._pending.discard(key)

    def cached_audio(self, item: StudyItem) -> MediaEntry | None:
        return self.cache.get(media_key("audio", extract_audio_text(item.entry, self.character_set)))

    def cached_image(self, item: StudyItem) -> MediaEntry | None:
        term = extract_image_search_term(item.entry, item.entry.meanings)
        return self.cache.get(media_key("image", term))

    def schedule_preload(self, items: Sequence[StudyItem]) -> asyncio.Task | None:
        """Ask the Audio Service to synthesize the opening cards ahead of time. Best-effort."""
        if not (self.enabled and self.capabilities.audio_available):
            return None
        opening = items[:PRELOAD_INITIAL_COUNT]
        texts = [t for t in (extract_audio_text(i.entry, self.character_set) for i in opening) if t]
        if len(texts) < 2:
            return None
        return self._track(self._preload(texts))

    async def _preload(self, texts: list[str]) -> None:
        try:
            job = await self.audio.preload(texts, self.language)
            logger.info(f"Audio preload job {job.preload_id} queued for {job.texts_count} texts")
        except Exception as e:
            logger.warning(f"Initial audio preload failed: {e}")

    async def drain(self) -> None:
        """Wait for outstanding prefetch tasks."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def close(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        self._pending.clear()
