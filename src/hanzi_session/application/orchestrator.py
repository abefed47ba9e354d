"""
Study session orchestrator.

Wires the health monitor, composer, grading coordinator, prefetch scheduler and
recorder into the consumer-facing session surface:

    start_session -> grade / navigate ... -> end_session
"""

import asyncio
import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from hanzi_session.application.grading import GradingCoordinator
from hanzi_session.application.health_monitor import ServiceHealthMonitor
from hanzi_session.application.prefetch import PrefetchScheduler
from hanzi_session.application.recorder import SessionRecorder
from hanzi_session.application.session_composer import SessionComposer
from hanzi_session.domain.constants import (
    DEFAULT_AUDIO_LANGUAGE,
    DEFAULT_PREFETCH_WINDOW,
    HEALTH_TIMEOUT,
    REQUEST_TIMEOUT,
)
from hanzi_session.domain.errors import ServiceCallError, SessionError
from hanzi_session.domain.models import (
    CapabilityFlags,
    CardProgress,
    GradeResult,
    MediaEntry,
    SessionPreferences,
    SessionQueue,
    SessionStatistics,
    StudyItem,
    VocabularyEntry,
)
from hanzi_session.domain.ports import (
    AudioService,
    ImageService,
    ProgressService,
    SchedulingService,
)
from hanzi_session.infrastructure.media_cache import MediaCache

logger = logging.getLogger(__name__)


class Direction(str, Enum):
    NEXT = "next"
    PREVIOUS = "previous"


@dataclass
class NavigationResult:
    position: int
    item: StudyItem | None
    moved: bool = False
    finished: bool = False  # NEXT was requested on the last card


@dataclass
class ServiceBundle:
    scheduling: SchedulingService
    audio: AudioService
    image: ImageService
    progress: ProgressService

    async def close(self) -> None:
        for service in (self.scheduling, self.audio, self.image, self.progress):
            close = getattr(service, "close", None)
            if close is not None:
                await close()


class StudySession:
    """
    One study session against the four collaborators.

    Capability flags are computed when the session starts and threaded into
    every component; they only change through ``recheck_health()``.
    """

    def __init__(
        self,
        services: ServiceBundle,
        cache: MediaCache,
        health_timeout: float = HEALTH_TIMEOUT,
        prefetch_enabled: bool = True,
        prefetch_window: int = DEFAULT_PREFETCH_WINDOW,
        audio_language: str = DEFAULT_AUDIO_LANGUAGE,
        lookup_prior_progress: bool = True,
        drain_timeout: float = REQUEST_TIMEOUT,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.services = services
        self.health = ServiceHealthMonitor(
            services.scheduling,
            services.audio,
            services.image,
            services.progress,
            timeout=health_timeout,
        )
        self.composer = SessionComposer(
            services.scheduling, rng=rng, lookup_prior_progress=lookup_prior_progress
        )
        self.prefetcher = PrefetchScheduler(
            services.audio,
            services.image,
            cache,
            CapabilityFlags.none(),
            window=prefetch_window,
            language=audio_language,
            enabled=prefetch_enabled,
        )
        self._clock = clock
        self._drain_timeout = drain_timeout

        self.queue: SessionQueue | None = None
        self.coordinator: GradingCoordinator | None = None
        self.recorder: SessionRecorder | None = None
        self.position = 0
        self._history: list[int] = []
        self._started_at: float | None = None
        self._ended = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def capabilities(self) -> CapabilityFlags:
        return self.health.capabilities

    @property
    def started(self) -> bool:
        return self.queue is not None

    @property
    def ended(self) -> bool:
        return self._ended

    async def start_session(
        self, prefs: SessionPreferences, vocabulary: list[VocabularyEntry]
    ) -> SessionQueue:
        if self.started:
            raise SessionError("Session already started")

        capabilities = await self.health.check_all(force=True)
        queue = await self.composer.compose(prefs, vocabulary, capabilities)

        self.queue = queue
        self.coordinator = GradingCoordinator(
            queue, self.services.scheduling, self.services.progress, capabilities
        )
        self.recorder = SessionRecorder(self.services.progress, capabilities)
        self.prefetcher.capabilities = capabilities
        self.prefetcher.character_set = prefs.character_set
        self.position = 0
        self._history = []
        self._started_at = self._clock()

        if queue.is_empty:
            logger.warning(f"No cards found for level {prefs.level!r}")
        else:
            self.prefetcher.schedule(queue.items, 0)
            self.prefetcher.schedule_preload(queue.items)
        return queue

    async def end_session(self) -> SessionStatistics:
        """
        Finish the session and return its statistics.

        Pending progress events get up to ``drain_timeout`` seconds to finish
        before the summary is submitted. The summary is submitted at most once;
        collaborator failures are logged and never raised.
        """
        coordinator, recorder = self._require_started()
        if not self._ended:
            self._ended = True
            ended_at = self._clock()
            try:
                await asyncio.wait_for(coordinator.drain(), self._drain_timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    f"Progress events still pending after {self._drain_timeout}s, dropping them"
                )
            await recorder.record(
                self.queue.level,
                coordinator.outcomes,
                started_at=self._started_at,
                ended_at=ended_at,
            )
        return coordinator.statistics

    async def close(self) -> None:
        """Cancel background work. Called after ``end_session`` or for abandoned sessions."""
        self.prefetcher.close()
        if self.coordinator is not None:
            self.coordinator.close()

    def _require_started(self) -> tuple[GradingCoordinator, SessionRecorder]:
        if self.coordinator is None or self.recorder is None:
            raise SessionError("No session in progress")
        return self.coordinator, self.recorder

    # ------------------------------------------------------------------
    # Per-card actions
    # ------------------------------------------------------------------

    @property
    def current_item(self) -> StudyItem | None:
        if not self.queue or self.queue.is_empty:
            return None
        return self.queue[self.position]

    @property
    def statistics(self) -> SessionStatistics:
        coordinator, _ = self._require_started()
        return coordinator.statistics

    async def grade(self, card_id: str, is_correct: bool) -> GradeResult:
        coordinator, _ = self._require_started()
        if self._ended:
            raise SessionError("Session already ended")
        return await coordinator.grade(card_id, is_correct)

    def navigate(self, direction: Direction) -> NavigationResult:
        """
        Move through the queue. Must be called from a running event loop.

        PREVIOUS walks back through the visited history; NEXT on the last card
        reports ``finished`` and stays put.
        """
        self._require_started()
        if self.queue.is_empty:
            return NavigationResult(position=0, item=None, finished=True)

        if direction == Direction.NEXT:
            if self.position >= len(self.queue) - 1:
                return NavigationResult(self.position, self.current_item, finished=True)
            self._history.append(self.position)
            self.position += 1
        else:
            if not self._history:
                return NavigationResult(self.position, self.current_item)
            self.position = self._history.pop()

        self.prefetcher.schedule(self.queue.items, self.position + 1)
        return NavigationResult(self.position, self.current_item, moved=True)

    def media_for(self, item: StudyItem) -> tuple[MediaEntry | None, MediaEntry | None]:
        """Cached (audio, image) for an item, if prefetch already warmed them."""
        return self.prefetcher.cached_audio(item), self.prefetcher.cached_image(item)

    async def reset_card(self, card_id: str) -> CardProgress | None:
        coordinator, _ = self._require_started()
        if not self.capabilities.scheduling_available:
            logger.warning("Cannot reset progress while scheduling is unavailable")
            return None
        try:
            return await coordinator.reset(card_id)
        except ServiceCallError as e:
            logger.error(f"Failed to reset card {card_id}: {e}")
            return None

    # ------------------------------------------------------------------
    # Policy toggles and explicit retries
    # ------------------------------------------------------------------

    def set_prefetch_enabled(self, enabled: bool) -> None:
        self.prefetcher.set_enabled(enabled)

    async def recheck_health(self) -> CapabilityFlags:
        """Probe every collaborator again and thread the new flags through."""
        capabilities = await self.health.check_all(force=True)
        self.prefetcher.capabilities = capabilities
        if self.coordinator is not None:
            self.coordinator.capabilities = capabilities
        if self.recorder is not None:
            self.recorder.capabilities = capabilities
        return capabilities

    async def retry_failed_writes(self) -> list[GradeResult]:
        coordinator, _ = self._require_started()
        return await coordinator.retry_unsynced()
