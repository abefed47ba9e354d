from typing import Any

from hanzi_session.infrastructure.utils.text import normalize_search_text
from hanzi_session.domain.constants import IMAGE_TIMEOUT, IMAGE_URL
from hanzi_session.domain.errors import ServiceCallError
from hanzi_session.domain.models import ImageResult
from hanzi_session.domain.ports import ImageService

from ._http import HttpServiceClient


class HttpImageService(HttpServiceClient, ImageService):
    """Adapter for the image proxy microservice.

    The proxy answers with raw image bytes on success and a JSON body carrying
    an ``error`` field otherwise, sometimes with a 200 status.
    """

    name = "image"

    def __init__(self, base_url: str = IMAGE_URL, **kwargs: Any):
        kwargs.setdefault("timeout", IMAGE_TIMEOUT)
        super().__init__(base_url, **kwargs)

    async def fetch_image(self, search_term: str) -> ImageResult:
        term = normalize_search_text(search_term)
        if not term:
            raise ServiceCallError(self.name, "Empty search term")

        resp = await self._request(
            "POST",
            "/image",
            json={"searchTerm": term},
            headers={"Accept": "image/jpeg, application/json"},
        )
        content_type = resp.headers.get("content-type", "")
        if "application/json" in content_type:
            try:
                error = resp.json().get("error") or "Unknown error"
            except ValueError:
                error = "Unknown error"
            raise ServiceCallError(self.name, f"{term!r}: {error}")

        cached = resp.headers.get("X-Cached") == "true"
        self.logger.debug(f"Image loaded for {term!r} ({len(resp.content)} bytes, cached={cached})")
        return ImageResult(
            search_term=term,
            content=resp.content,
            content_type=content_type or "image/jpeg",
            cached=cached,
        )
