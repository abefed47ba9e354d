"""
Grading coordinator.

Turns a user's pass/fail judgment into local statistics, an idempotent write to
the Scheduling Service and a best-effort event for the Progress Service.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timezone

from hanzi_session.domain.errors import UnknownCardError
from hanzi_session.domain.models import (
    CapabilityFlags,
    CardGradedEvent,
    CardProgress,
    GradeOutcome,
    GradeResult,
    GradeStatus,
    SessionQueue,
    SessionStatistics,
)
from hanzi_session.domain.ports import ProgressService, SchedulingService

logger = logging.getLogger(__name__)

GRADE_FAILED_MESSAGE = "Failed to grade card. Scheduling service may be unavailable."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GradingCoordinator:
    """
    Records at most one active outcome per card id.

    State:
        graded: card_id -> latest GradeOutcome.
        sent: (card_id, is_correct) pairs acknowledged by the Scheduling Service.
        statistics: running SessionStatistics for the queue.
    """

    def __init__(
        self,
        queue: SessionQueue,
        scheduling: SchedulingService,
        progress: ProgressService,
        capabilities: CapabilityFlags,
        now: Callable[[], datetime] = _utcnow,
    ):
        self.queue = queue
        self.scheduling = scheduling
        self.progress = progress
        self.capabilities = capabilities
        self._now = now

        self.graded: dict[str, GradeOutcome] = {}
        self.sent: set[tuple[str, bool]] = set()
        self.statistics = SessionStatistics(total_cards=len(queue))
        self._in_flight: set[str] = set()
        self._items = {item.card_id: item for item in queue}
        self._background: set[asyncio.Task] = set()

    def is_in_flight(self, card_id: str) -> bool:
        return card_id in self._in_flight

    async def grade(self, card_id: str, is_correct: bool) -> GradeResult:
        if card_id in self._in_flight:
            logger.debug(f"Grading for {card_id} already in flight, ignoring")
            return GradeResult(card_id, is_correct, GradeStatus.IN_FLIGHT)

        previous = self.graded.get(card_id)
        if previous is not None and previous.is_correct == is_correct:
            return GradeResult(
                card_id, is_correct, GradeStatus.UNCHANGED, synced=(card_id, is_correct) in self.sent
            )

        item = self._items.get(card_id)
        if item is None:
            raise UnknownCardError(card_id)

        # The user's judgment stands locally whatever happens remotely.
        if previous is None:
            self.statistics.record_first(is_correct, item.is_new)
        else:
            self.statistics.record_change(is_correct)
        self.graded[card_id] = GradeOutcome(card_id, is_correct, self._now())
        logger.info(f"Card {card_id} graded as {'correct' if is_correct else 'incorrect'}")

        if not self.capabilities.scheduling_available:
            return GradeResult(card_id, is_correct, GradeStatus.APPLIED, synced=False)

        self._in_flight.add(card_id)
        try:
            return await self._submit(card_id, is_correct)
        finally:
            self._in_flight.discard(card_id)

    async def _submit(self, card_id: str, is_correct: bool) -> GradeResult:
        if (card_id, is_correct) in self.sent:
            return GradeResult(card_id, is_correct, GradeStatus.APPLIED, synced=True)

        try:
            receipt = await self.scheduling.grade(card_id, is_correct)
        except Exception as e:
            self.sent.discard((card_id, is_correct))
            logger.error(f"Error grading card {card_id}: {e}")
            return GradeResult(
                card_id, is_correct, GradeStatus.APPLIED, synced=False, error=GRADE_FAILED_MESSAGE
            )

        self.sent.add((card_id, is_correct))
        self.sent.discard((card_id, not is_correct))
        progress = receipt.progress
        logger.debug(
            f"New streak for {card_id}: {progress.streak}, next review: {progress.next_review_date}"
        )

        if self.capabilities.progress_available:
            self._spawn(self._forward(card_id, is_correct, progress))

        return GradeResult(card_id, is_correct, GradeStatus.APPLIED, synced=True, progress=progress)

    async def _forward(self, card_id: str, is_correct: bool, progress: CardProgress) -> None:
        event = CardGradedEvent(
            card_id=card_id,
            deck_id=self.queue.level,
            is_correct=is_correct,
            streak=progress.streak,
            total_reviews=progress.total_reviews,
            correct_reviews=progress.correct_reviews,
            next_review_date=progress.next_review_date,
            timestamp=self._now(),
        )
        try:
            await self.progress.record_card_graded(event)
        except Exception as e:
            logger.warning(f"Progress event for {card_id} not recorded: {e}")

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def retry_unsynced(self) -> list[GradeResult]:
        """Re-send every recorded outcome the Scheduling Service has not acknowledged."""
        if not self.capabilities.scheduling_available:
            return []

        results = []
        for card_id, outcome in list(self.graded.items()):
            if (card_id, outcome.is_correct) in self.sent or card_id in self._in_flight:
                continue
            self._in_flight.add(card_id)
            try:
                results.append(await self._submit(card_id, outcome.is_correct))
            finally:
                self._in_flight.discard(card_id)

        if results:
            synced = sum(1 for r in results if r.synced)
            logger.info(f"Retried {len(results)} unsynced grades, {synced} succeeded")
        return results

    async def reset(self, card_id: str) -> CardProgress:
        """
        Reset a card's scheduling progress.

        On success the card's local outcome and its statistics contribution are
        removed so it can be graded afresh. Raises ServiceCallError on failure.
        """
        item = self._items.get(card_id)
        if item is None:
            raise UnknownCardError(card_id)

        progress = await self.scheduling.reset(card_id)

        outcome = self.graded.pop(card_id, None)
        if outcome is not None:
            self.statistics.revert(outcome.is_correct, item.is_new)
        self.sent.discard((card_id, True))
        self.sent.discard((card_id, False))
        logger.info(f"Card {card_id} progress reset")
        return progress

    @property
    def outcomes(self) -> list[GradeOutcome]:
        return list(self.graded.values())

    async def drain(self) -> None:
        """Wait for outstanding best-effort progress events."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    def close(self) -> None:
        for task in list(self._background):
            task.cancel()
