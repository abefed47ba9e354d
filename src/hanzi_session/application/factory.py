"""
Session Factory
Centralizes building the collaborator adapters and sessions from configuration.
"""

import random

from hanzi_session.application.config import AppConfig
from hanzi_session.application.orchestrator import ServiceBundle, StudySession
from hanzi_session.domain.models import SessionPreferences
from hanzi_session.infrastructure.adapters import (
    HttpAudioService,
    HttpImageService,
    HttpProgressService,
    HttpSchedulingService,
)
from hanzi_session.infrastructure.media_cache import MediaCache


def get_services(config: AppConfig) -> ServiceBundle:
    """
    Returns HTTP adapters for the four collaborators.
    """
    common = {
        "timeout": config.request_timeout,
        "health_timeout": config.health_timeout,
    }
    return ServiceBundle(
        scheduling=HttpSchedulingService(config.scheduling_url, **common),
        audio=HttpAudioService(config.audio_url, **common),
        image=HttpImageService(
            config.image_url, timeout=config.image_timeout, health_timeout=config.health_timeout
        ),
        progress=HttpProgressService(config.progress_url, **common),
    )


def get_media_cache(config: AppConfig) -> MediaCache:
    return MediaCache(max_entries=config.media_cache_size)


def build_session(
    config: AppConfig,
    services: ServiceBundle,
    cache: MediaCache,
    rng: random.Random | None = None,
) -> StudySession:
    return StudySession(
        services,
        cache,
        health_timeout=config.health_timeout,
        prefetch_enabled=config.prefetch_enabled,
        prefetch_window=config.prefetch_window,
        audio_language=config.audio_language,
        lookup_prior_progress=config.lookup_prior_progress,
        drain_timeout=config.request_timeout,
        rng=rng,
    )


def preferences_from_config(config: AppConfig) -> SessionPreferences:
    return SessionPreferences(
        level=config.level,
        character_set=config.character_set,
        card_count=config.card_count,
        study_mode=config.study_mode,
    )
