"""Session recorder: submits one summary per session to the Progress Service."""

import logging

from hanzi_session.domain.models import CapabilityFlags, GradeOutcome, SessionSummary
from hanzi_session.domain.ports import ProgressService

logger = logging.getLogger(__name__)


class SessionRecorder:
    def __init__(self, progress: ProgressService, capabilities: CapabilityFlags):
        self.progress = progress
        self.capabilities = capabilities
        self.session_id: str | None = None

    @staticmethod
    def build_summary(
        deck_id: str, outcomes: list[GradeOutcome], started_at: float, ended_at: float
    ) -> SessionSummary:
        correct = sum(1 for o in outcomes if o.is_correct)
        return SessionSummary(
            deck_id=deck_id,
            cards_studied=len(outcomes),
            correct_answers=correct,
            incorrect_answers=len(outcomes) - correct,
            session_duration=max(0, round(ended_at - started_at)),
            card_results=list(outcomes),
        )

    async def record(
        self,
        deck_id: str,
        outcomes: list[GradeOutcome],
        started_at: float,
        ended_at: float,
    ) -> str | None:
        """
        Submit the session summary once.

        Nothing is sent when progress is unavailable, when no card was graded, or
        when this session was already recorded. Failures are logged and return
        None; they never propagate to the caller.
        """
        if self.session_id is not None:
            return self.session_id
        if not self.capabilities.progress_available:
            logger.info("Progress service unavailable, session not recorded")
            return None
        if not outcomes:
            logger.info("No cards graded, skipping session record")
            return None

        summary = self.build_summary(deck_id, outcomes, started_at, ended_at)
        try:
            self.session_id = await self.progress.record_session(summary)
        except Exception as e:
            logger.error(f"Error recording session: {e}")
            return None

        logger.info(
            f"Recorded session {self.session_id}: {summary.cards_studied} cards, "
            f"{summary.correct_answers} correct in {summary.session_duration}s"
        )
        return self.session_id
