from typing import Any

from hanzi_session.domain.constants import AUDIO_URL, DEFAULT_AUDIO_LANGUAGE
from hanzi_session.domain.errors import ServiceCallError
from hanzi_session.domain.models import AudioClip, PreloadJob
from hanzi_session.domain.ports import AudioService

from ._http import HttpServiceClient


class HttpAudioService(HttpServiceClient, AudioService):
    """Adapter for the text-to-speech audio microservice."""

    name = "audio"

    def __init__(self, base_url: str = AUDIO_URL, **kwargs: Any):
        super().__init__(base_url, **kwargs)

    async def resolve_audio(self, text: str, language: str = DEFAULT_AUDIO_LANGUAGE) -> AudioClip:
        self.logger.debug(f"Requesting audio for {text!r} in {language}")
        data = await self._json(
            "POST",
            "/audio",
            json={"text": text, "language": language},
            headers={"Accept": "application/json"},
        )
        url = data.get("audioUrl")
        if not url:
            raise ServiceCallError(self.name, f"no audio URL returned for {text!r}")
        # Proxy URLs come back relative to the service.
        if url.startswith("/play/"):
            url = self._url(url)
        return AudioClip(
            text=text,
            language=data.get("language", language),
            url=url,
            cached=bool(data.get("cached", False)),
        )

    async def preload(self, texts: list[str], language: str = DEFAULT_AUDIO_LANGUAGE) -> PreloadJob:
        data = await self._json("POST", "/preload", json={"texts": texts, "language": language})
        return PreloadJob(
            preload_id=str(data.get("preloadId", "")),
            status=data.get("status", "processing"),
            texts_count=int(data.get("textsCount", len(texts)) or 0),
        )
