from typing import Any
from urllib.parse import quote

import httpx

from hanzi_session.domain.constants import SCHEDULING_URL
from hanzi_session.domain.errors import ServiceCallError
from hanzi_session.domain.models import CardProgress, DueCard, GradeReceipt
from hanzi_session.domain.ports import SchedulingService

from ._http import HttpServiceClient


class HttpSchedulingService(HttpServiceClient, SchedulingService):
    """Adapter for the review/scheduling microservice."""

    name = "scheduling"

    def __init__(self, base_url: str = SCHEDULING_URL, **kwargs: Any):
        super().__init__(base_url, **kwargs)

    def _is_healthy(self, resp: httpx.Response) -> bool:
        # The scheduler answers /health with a bare 200.
        return resp.is_success

    async def due_items(self) -> list[DueCard]:
        data = await self._json("GET", "/due")
        return [
            DueCard(progress=_parse_progress(raw), overdue_days=int(raw.get("overdueDays", 0) or 0))
            for raw in data.get("dueCards") or []
            if raw.get("cardId")
        ]

    async def grade(self, card_id: str, is_correct: bool) -> GradeReceipt:
        data = await self._json("POST", "/grade", json={"cardId": card_id, "isCorrect": is_correct})
        if data.get("success") is False:
            raise ServiceCallError(self.name, f"grade rejected for {card_id}")
        progress = data.get("progress") or {"cardId": card_id}
        return GradeReceipt(card_id=data.get("cardId", card_id), progress=_parse_progress(progress, card_id))

    async def progress(self, card_id: str) -> CardProgress:
        data = await self._json("GET", f"/progress/{quote(card_id, safe='')}")
        return _parse_progress(data.get("progress") or {}, card_id)

    async def reset(self, card_id: str) -> CardProgress:
        data = await self._json("POST", "/reset", json={"cardId": card_id})
        if data.get("success") is False:
            raise ServiceCallError(self.name, data.get("message") or f"reset rejected for {card_id}")
        self.logger.info(f"Reset progress for {card_id}")
        return _parse_progress(data.get("progress") or {}, card_id)


def _parse_progress(raw: dict[str, Any], card_id: str | None = None) -> CardProgress:
    return CardProgress(
        card_id=raw.get("cardId") or card_id or "",
        streak=int(raw.get("streak", 0) or 0),
        total_reviews=int(raw.get("totalReviews", 0) or 0),
        correct_reviews=int(raw.get("correctReviews", 0) or 0),
        next_review_date=raw.get("nextReviewDate"),
        last_reviewed=raw.get("lastReviewed"),
    )
