from typing import Any

from hanzi_session.domain.constants import PROGRESS_URL
from hanzi_session.domain.errors import ServiceCallError
from hanzi_session.domain.models import CardGradedEvent, SessionSummary
from hanzi_session.domain.ports import ProgressService

from ._http import HttpServiceClient

_JSON_HEADERS = {"Accept": "application/json"}


class HttpProgressService(HttpServiceClient, ProgressService):
    """Adapter for the progress/statistics microservice."""

    name = "progress"

    def __init__(self, base_url: str = PROGRESS_URL, **kwargs: Any):
        super().__init__(base_url, **kwargs)

    async def record_session(self, summary: SessionSummary) -> str:
        data = await self._json(
            "POST", "/session", json=summary.to_payload(), headers=_JSON_HEADERS
        )
        session_id = data.get("sessionId")
        if not session_id:
            raise ServiceCallError(self.name, "session record returned no sessionId")
        return str(session_id)

    async def record_card_graded(self, event: CardGradedEvent) -> None:
        await self._request(
            "POST", "/card-graded", json=event.to_payload(), headers=_JSON_HEADERS
        )
