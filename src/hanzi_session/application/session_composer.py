"""
Session composer for study queues.

Builds the ordered queue for one session by:
1. Taking due cards from the Scheduling Service for the requested level
2. Filling the remaining slots with random entries from the level's vocabulary
3. Falling back to pure random selection when scheduling is unavailable
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field

from hanzi_session.domain.identity import card_level, make_card_id
from hanzi_session.domain.models import (
    CapabilityFlags,
    CardProgress,
    DueCard,
    DueMetadata,
    SessionPreferences,
    SessionQueue,
    StudyItem,
    VocabularyEntry,
)
from hanzi_session.domain.ports import SchedulingService

logger = logging.getLogger(__name__)


@dataclass
class DueSelection:
    """Due cards resolved against the level's vocabulary."""

    items: list[StudyItem] = field(default_factory=list)
    other_level: list[str] = field(default_factory=list)  # Due ids for another level
    unresolved: list[str] = field(default_factory=list)  # Ids with no matching entry


class SessionComposer:
    def __init__(
        self,
        scheduling: SchedulingService,
        rng: random.Random | None = None,
        lookup_prior_progress: bool = True,
    ):
        self.scheduling = scheduling
        self.rng = rng or random.Random()
        self.lookup_prior_progress = lookup_prior_progress

    async def compose(
        self,
        prefs: SessionPreferences,
        vocabulary: list[VocabularyEntry],
        capabilities: CapabilityFlags,
    ) -> SessionQueue:
        """
        Build the study queue for one session.

        The result never holds the same card id twice and its length is
        min(prefs.card_count, entries available for the level). An empty queue
        means the level has no vocabulary.
        """
        queue = SessionQueue(level=prefs.level, character_set=prefs.character_set)

        by_id = self._index_level(vocabulary, prefs)
        if not by_id:
            logger.warning(f"No vocabulary found for level {prefs.level!r}")
            return queue

        target = min(prefs.card_count, len(by_id))

        due_items: list[StudyItem] = []
        if capabilities.scheduling_available:
            try:
                selection = await self.select_due(by_id, prefs)
                due_items = selection.items[:target]
            except Exception as e:
                logger.warning(f"Falling back to random selection: {e}")
                due_items = []
        else:
            logger.info("Scheduling unavailable, using random selection")

        selected = {item.card_id for item in due_items}
        remaining = [cid for cid in by_id if cid not in selected]
        fill_ids = self.rng.sample(remaining, target - len(due_items))

        new_items = [
            StudyItem(
                card_id=cid,
                entry=by_id[cid],
                display_form=by_id[cid].display_form(prefs.character_set),
                is_new=True,
                is_due=False,
            )
            for cid in fill_ids
        ]
        if capabilities.scheduling_available and self.lookup_prior_progress and new_items:
            new_items = await self._annotate_prior_progress(new_items)

        self.rng.shuffle(due_items)
        queue.items = due_items + new_items
        logger.info(
            f"Composed {len(queue)} cards for {prefs.level} "
            f"({len(due_items)} due, {len(new_items)} new)"
        )
        return queue

    def _index_level(
        self, vocabulary: list[VocabularyEntry], prefs: SessionPreferences
    ) -> dict[str, VocabularyEntry]:
        by_id: dict[str, VocabularyEntry] = {}
        for entry in vocabulary:
            if prefs.level not in entry.levels:
                continue
            cid = make_card_id(entry, prefs.character_set)
            if cid in by_id:
                logger.debug(f"Duplicate vocabulary identity {cid}, keeping the first")
                continue
            by_id[cid] = entry
        return by_id

    async def select_due(
        self, by_id: dict[str, VocabularyEntry], prefs: SessionPreferences
    ) -> DueSelection:
        """
        Resolve the Scheduling Service's due cards to level entries.

        Ids with no matching entry in the level are skipped; an entry tagged
        for several levels matches under its primary-level id.
        Items are ordered most overdue first so truncation keeps the oldest.
        """
        due_cards = await self.scheduling.due_items()
        selection = DueSelection()
        seen: set[str] = set()

        for due in sorted(due_cards, key=lambda d: d.overdue_days, reverse=True):
            cid = due.card_id
            if cid in seen:
                continue
            seen.add(cid)

            entry = by_id.get(cid)
            if entry is None:
                if card_level(cid) != prefs.level:
                    selection.other_level.append(cid)
                else:
                    selection.unresolved.append(cid)
                continue
            selection.items.append(self._due_item(cid, entry, due, prefs))

        if selection.unresolved:
            logger.info(
                f"Skipped {len(selection.unresolved)} due cards with no matching entry: "
                f"{selection.unresolved}"
            )
        logger.debug(
            f"Due cards: {len(due_cards)} total, {len(selection.items)} usable, "
            f"{len(selection.other_level)} for other levels"
        )
        return selection

    @staticmethod
    def _due_item(
        cid: str, entry: VocabularyEntry, due: DueCard, prefs: SessionPreferences
    ) -> StudyItem:
        return StudyItem(
            card_id=cid,
            entry=entry,
            display_form=entry.display_form(prefs.character_set),
            is_new=False,
            is_due=True,
            due=DueMetadata(overdue_days=due.overdue_days, streak=due.progress.streak),
        )

    async def _annotate_prior_progress(self, items: list[StudyItem]) -> list[StudyItem]:
        """
        Mark random-fill items that already have review history.

        The prior outcome is reconstructed as "correct on more than half of all
        reviews", which loses per-attempt history.
        """
        results = await asyncio.gather(
            *(self.scheduling.progress(item.card_id) for item in items),
            return_exceptions=True,
        )
        annotated: list[StudyItem] = []
        for item, result in zip(items, results):
            if isinstance(result, BaseException):
                logger.debug(f"No previous data for card {item.card_id}: {result}")
                annotated.append(item)
                continue
            annotated.append(self._with_history(item, result))

        seen_before = sum(1 for item in annotated if not item.is_new)
        if seen_before:
            logger.info(f"Loaded {seen_before} previously graded cards")
        return annotated

    @staticmethod
    def _with_history(item: StudyItem, progress: CardProgress) -> StudyItem:
        if progress.total_reviews <= 0:
            return item
        return StudyItem(
            card_id=item.card_id,
            entry=item.entry,
            display_form=item.display_form,
            is_new=False,
            is_due=False,
            prior_outcome=progress.correct_reviews > progress.total_reviews / 2,
        )
