"""
Domain models for study sessions.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Literal

CharacterSet = Literal["simplified", "traditional"]
StudyMode = Literal["ChineseToEnglish", "EnglishToChinese"]


# ---------- Vocabulary ----------


@dataclass(frozen=True)
class CharacterForm:
    traditional: str
    transcriptions: dict[str, str] = field(default_factory=dict)
    meanings: list[str] = field(default_factory=list)
    classifiers: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class VocabularyEntry:
    """
    One vocabulary entity from the static index.

    Attributes:
        simplified: Simplified-character spelling; the entity's natural key.
        radical: Radical of the first character.
        levels: Level tags the entity belongs to (e.g. "new-1", "hsk-3").
            The first tag is the primary level used for card identity.
        frequency: Corpus frequency rank.
        pos: Part-of-speech tags.
        forms: Traditional spellings with transcriptions and English glosses.
    """

    simplified: str
    levels: list[str]
    forms: list[CharacterForm]
    radical: str = ""
    frequency: int = 0
    pos: list[str] = field(default_factory=list)

    @property
    def primary_level(self) -> str:
        return self.levels[0] if self.levels else ""

    @property
    def meanings(self) -> list[str]:
        return self.forms[0].meanings if self.forms else []

    @property
    def pinyin(self) -> str:
        return self.forms[0].transcriptions.get("pinyin", "") if self.forms else ""

    def display_form(self, character_set: CharacterSet) -> str:
        if character_set == "traditional" and self.forms and self.forms[0].traditional:
            return self.forms[0].traditional
        return self.simplified

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VocabularyEntry":
        forms = [
            CharacterForm(
                traditional=f.get("traditional", ""),
                transcriptions=dict(f.get("transcriptions") or {}),
                meanings=list(f.get("meanings") or []),
                classifiers=list(f.get("classifiers") or []),
            )
            for f in data.get("forms") or []
        ]
        return cls(
            simplified=data["simplified"],
            levels=list(data.get("level") or data.get("levels") or []),
            forms=forms,
            radical=data.get("radical", ""),
            frequency=int(data.get("frequency", 0) or 0),
            pos=list(data.get("pos") or []),
        )


# ---------- Session queue ----------


@dataclass(frozen=True)
class DueMetadata:
    overdue_days: int
    streak: int


@dataclass(frozen=True)
class StudyItem:
    """
    A single position in the session queue. Immutable once queued.

    Attributes:
        card_id: Identity key shared with every collaborator.
        entry: The vocabulary entity being studied.
        display_form: Text shown under the active character set.
        is_new: True if the entity has never been graded before.
        is_due: True if the Scheduling Service reported it as due.
        due: Overdue/streak data for due items.
        prior_outcome: Pass/fail reconstructed from aggregate review counts,
            None when there is no history.
    """

    card_id: str
    entry: VocabularyEntry
    display_form: str
    is_new: bool
    is_due: bool
    due: DueMetadata | None = None
    prior_outcome: bool | None = None


@dataclass
class SessionQueue:
    level: str
    character_set: CharacterSet
    items: list[StudyItem] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self):
        return iter(self.items)

    def __getitem__(self, index: int) -> StudyItem:
        return self.items[index]

    @property
    def is_empty(self) -> bool:
        """True when the level had no vocabulary ("no cards found")."""
        return not self.items

    @property
    def due_count(self) -> int:
        return sum(1 for item in self.items if item.is_due)

    @property
    def new_count(self) -> int:
        return sum(1 for item in self.items if not item.is_due)

    def find(self, card_id: str) -> StudyItem | None:
        for item in self.items:
            if item.card_id == card_id:
                return item
        return None


@dataclass(frozen=True)
class SessionPreferences:
    level: str
    character_set: CharacterSet = "simplified"
    card_count: int = 20
    study_mode: StudyMode = "ChineseToEnglish"


# ---------- Grading ----------


@dataclass(frozen=True)
class GradeOutcome:
    card_id: str
    is_correct: bool
    timestamp: datetime


@dataclass
class SessionStatistics:
    """
    Running counters for one session.

    Invariant: correct_count + incorrect_count == cards_reviewed <= total_cards.
    """

    total_cards: int = 0
    cards_reviewed: int = 0
    correct_count: int = 0
    incorrect_count: int = 0
    new_cards_studied: int = 0
    review_cards_studied: int = 0

    @property
    def accuracy(self) -> float | None:
        if self.cards_reviewed == 0:
            return None
        return self.correct_count / self.cards_reviewed

    def record_first(self, is_correct: bool, is_new: bool) -> None:
        self.cards_reviewed += 1
        if is_correct:
            self.correct_count += 1
        else:
            self.incorrect_count += 1
        if is_new:
            self.new_cards_studied += 1
        else:
            self.review_cards_studied += 1

    def record_change(self, is_correct: bool) -> None:
        # Shift one unit between the counters; cards_reviewed is untouched.
        if is_correct:
            self.correct_count += 1
            self.incorrect_count -= 1
        else:
            self.correct_count -= 1
            self.incorrect_count += 1

    def revert(self, is_correct: bool, is_new: bool) -> None:
        self.cards_reviewed -= 1
        if is_correct:
            self.correct_count -= 1
        else:
            self.incorrect_count -= 1
        if is_new:
            self.new_cards_studied -= 1
        else:
            self.review_cards_studied -= 1


class GradeStatus(str, Enum):
    APPLIED = "applied"
    UNCHANGED = "unchanged"
    IN_FLIGHT = "in_flight"


@dataclass
class GradeResult:
    """
    Result of a grading call.

    ``error`` carries a recoverable message when the Scheduling Service write
    failed; the local statistics change has still been applied.
    """

    card_id: str
    is_correct: bool
    status: GradeStatus
    synced: bool = False
    progress: "CardProgress | None" = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


# ---------- Capabilities ----------


@dataclass(frozen=True)
class CapabilityFlags:
    scheduling_available: bool = False
    audio_available: bool = False
    image_available: bool = False
    progress_available: bool = False

    @classmethod
    def none(cls) -> "CapabilityFlags":
        return cls()


# ---------- Collaborator wire records ----------


@dataclass(frozen=True)
class CardProgress:
    card_id: str
    streak: int = 0
    total_reviews: int = 0
    correct_reviews: int = 0
    next_review_date: str | None = None
    last_reviewed: str | None = None


@dataclass(frozen=True)
class DueCard:
    progress: CardProgress
    overdue_days: int = 0

    @property
    def card_id(self) -> str:
        return self.progress.card_id


@dataclass(frozen=True)
class GradeReceipt:
    card_id: str
    progress: CardProgress


@dataclass(frozen=True)
class AudioClip:
    text: str
    language: str
    url: str
    cached: bool = False


@dataclass(frozen=True)
class PreloadJob:
    preload_id: str
    status: str
    texts_count: int


@dataclass(frozen=True)
class ImageResult:
    search_term: str
    content: bytes
    content_type: str = "image/jpeg"
    cached: bool = False


@dataclass(frozen=True)
class CardGradedEvent:
    """Secondary, best-effort event forwarded to the Progress Service."""

    card_id: str
    deck_id: str
    is_correct: bool
    streak: int
    total_reviews: int
    correct_reviews: int
    next_review_date: str | None
    timestamp: datetime

    def to_payload(self) -> dict[str, Any]:
        return {
            "cardId": self.card_id,
            "deckId": self.deck_id,
            "isCorrect": self.is_correct,
            "streak": self.streak,
            "totalReviews": self.total_reviews,
            "correctReviews": self.correct_reviews,
            "nextReviewDate": self.next_review_date,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class SessionSummary:
    deck_id: str
    cards_studied: int
    correct_answers: int
    incorrect_answers: int
    session_duration: int  # seconds
    card_results: list[GradeOutcome] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {
            "deckId": self.deck_id,
            "cardsStudied": self.cards_studied,
            "correctAnswers": self.correct_answers,
            "incorrectAnswers": self.incorrect_answers,
            "sessionDuration": self.session_duration,
            "cardResults": [
                {"cardId": o.card_id, "isCorrect": o.is_correct} for o in self.card_results
            ],
        }


# ---------- Media ----------


@dataclass(frozen=True)
class MediaEntry:
    """
    A cached media handle.

    Images own their fetched bytes; audio holds the resolved playback URL.
    """

    key: str
    kind: Literal["audio", "image"]
    search_text: str
    content: bytes | None = None
    url: str | None = None
    content_type: str | None = None
