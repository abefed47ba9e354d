"""
Ports (interfaces) for the external collaborators.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.

Every call may raise ``ServiceCallError`` (or ``ServiceTimeoutError``) except
``health()``, which always returns a boolean.
"""

from abc import ABC, abstractmethod

from .models import (
    AudioClip,
    CardGradedEvent,
    CardProgress,
    DueCard,
    GradeReceipt,
    ImageResult,
    PreloadJob,
    SessionSummary,
)


class HealthProbe(ABC):
    name: str = "service"

    @abstractmethod
    async def health(self) -> bool:
        """Return True if the service is reachable and reports itself healthy."""
        pass


class SchedulingService(HealthProbe):
    """
    Port for the spaced-repetition Scheduling Service.

    Owns the spacing algorithm; the session only reads due cards and writes grades.
    """

    name = "scheduling"

    @abstractmethod
    async def due_items(self) -> list[DueCard]:
        pass

    @abstractmethod
    async def grade(self, card_id: str, is_correct: bool) -> GradeReceipt:
        """
        Record a pass/fail outcome. Idempotent per (card_id, is_correct).

        Returns:
            The card's updated progress (streak, review counts, next review date).
        """
        pass

    @abstractmethod
    async def progress(self, card_id: str) -> CardProgress:
        pass

    @abstractmethod
    async def reset(self, card_id: str) -> CardProgress:
        pass


class AudioService(HealthProbe):
    name = "audio"

    @abstractmethod
    async def resolve_audio(self, text: str, language: str) -> AudioClip:
        pass

    @abstractmethod
    async def preload(self, texts: list[str], language: str) -> PreloadJob:
        pass


class ImageService(HealthProbe):
    name = "image"

    @abstractmethod
    async def fetch_image(self, search_term: str) -> ImageResult:
        pass


class ProgressService(HealthProbe):
    name = "progress"

    @abstractmethod
    async def record_session(self, summary: SessionSummary) -> str:
        """Submit one session summary. Returns the service-assigned session id."""
        pass

    @abstractmethod
    async def record_card_graded(self, event: CardGradedEvent) -> None:
        """Secondary per-card event. Callers treat this as best-effort."""
        pass
