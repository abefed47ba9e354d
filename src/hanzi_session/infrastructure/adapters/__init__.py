# Collaborator Adapters
from .audio import HttpAudioService
from .image import HttpImageService
from .progress import HttpProgressService
from .scheduling import HttpSchedulingService

__all__ = [
    "HttpAudioService",
    "HttpImageService",
    "HttpProgressService",
    "HttpSchedulingService",
]
