"""
Service health monitor.

Probes every collaborator concurrently and turns the results into one
``CapabilityFlags`` value for the session.
"""

import asyncio
import logging

from hanzi_session.domain.constants import HEALTH_TIMEOUT
from hanzi_session.domain.models import CapabilityFlags
from hanzi_session.domain.ports import (
    AudioService,
    HealthProbe,
    ImageService,
    ProgressService,
    SchedulingService,
)

logger = logging.getLogger(__name__)

_DEGRADED_FEATURES = {
    "scheduling": "Grading will not be persisted and cards are picked at random.",
    "audio": "Pronunciation features are disabled.",
    "image": "Image features are disabled.",
    "progress": "Session history will not be recorded.",
}


class ServiceHealthMonitor:
    """
    Computes capability flags once per session.

    ``check_all()`` returns the cached flags after the first run; only an
    explicit ``check_all(force=True)`` probes again.
    """

    def __init__(
        self,
        scheduling: SchedulingService,
        audio: AudioService,
        image: ImageService,
        progress: ProgressService,
        timeout: float = HEALTH_TIMEOUT,
    ):
        self._probes: dict[str, HealthProbe] = {
            "scheduling": scheduling,
            "audio": audio,
            "image": image,
            "progress": progress,
        }
        self.timeout = timeout
        self._flags: CapabilityFlags | None = None

    @property
    def capabilities(self) -> CapabilityFlags:
        return self._flags or CapabilityFlags.none()

    async def check_all(self, force: bool = False) -> CapabilityFlags:
        if self._flags is not None and not force:
            return self._flags

        names = list(self._probes)
        results = await asyncio.gather(*(self._probe(n, self._probes[n]) for n in names))
        status = dict(zip(names, results))

        self._flags = CapabilityFlags(
            scheduling_available=status["scheduling"],
            audio_available=status["audio"],
            image_available=status["image"],
            progress_available=status["progress"],
        )
        logger.info(f"Capabilities: {self._flags}")
        return self._flags

    async def _probe(self, name: str, service: HealthProbe) -> bool:
        try:
            healthy = bool(await asyncio.wait_for(service.health(), timeout=self.timeout))
        except asyncio.TimeoutError:
            logger.warning(f"{name} health check timed out after {self.timeout}s")
            healthy = False
        except Exception as e:
            logger.warning(f"{name} health check failed: {e}")
            healthy = False

        if not healthy:
            logger.warning(f"{name} service is not available. {_DEGRADED_FEATURES[name]}")
        return healthy
