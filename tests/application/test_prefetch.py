import pytest

from hanzi_session.application.prefetch import PrefetchScheduler
from hanzi_session.domain.models import CapabilityFlags, StudyItem
from hanzi_session.infrastructure.media_cache import MediaCache

MEDIA_UP = CapabilityFlags(audio_available=True, image_available=True)


@pytest.fixture
def items(vocabulary):
    return [
        StudyItem(
            card_id=f"new-1_{e.simplified}",
            entry=e,
            display_form=e.simplified,
            is_new=True,
            is_due=False,
        )
        for e in vocabulary[:6]
    ]


@pytest.fixture
def cache():
    return MediaCache(max_entries=50)


def _scheduler(audio, image, cache, caps=MEDIA_UP, **kwargs):
    return PrefetchScheduler(audio, image, cache, caps, **kwargs)


@pytest.mark.asyncio
async def test_fetches_only_the_window(audio, image, cache, items):
    prefetcher = _scheduler(audio, image, cache, window=3)

    await prefetcher.schedule(items, 1)

    assert audio.requests == ["二", "三", "人"]
    assert image.requests == ["two", "three", "person"]
    assert len(cache) == 6
    assert prefetcher.cached_audio(items[1]).url == "http://audio/play/二.mp3"
    assert prefetcher.cached_image(items[2]).content == b"\xff\xd8jpeg"
    assert prefetcher.cached_audio(items[0]) is None


@pytest.mark.asyncio
async def test_window_is_clamped(audio, image, cache, items):
    prefetcher = _scheduler(audio, image, cache, window=50)
    assert prefetcher.window == 5

    await prefetcher.schedule(items, 0)
    assert len(audio.requests) == 5


@pytest.mark.asyncio
async def test_cached_media_not_refetched(audio, image, cache, items):
    prefetcher = _scheduler(audio, image, cache, window=2)

    await prefetcher.schedule(items, 0)
    assert prefetcher.schedule(items, 0) is None

    await prefetcher.schedule(items, 1)
    assert audio.requests == ["一", "二", "三"]
    assert image.requests == ["one", "two", "three"]


@pytest.mark.asyncio
async def test_failures_are_isolated(audio, image, cache, items):
    image.fail = True
    prefetcher = _scheduler(audio, image, cache, window=2)

    await prefetcher.schedule(items, 0)

    assert prefetcher.cached_audio(items[0]) is not None
    assert prefetcher.cached_image(items[0]) is None
    assert len(cache) == 2

    # A failed key can be tried again later.
    image.fail = False
    await prefetcher.schedule(items, 0)
    assert prefetcher.cached_image(items[0]) is not None


@pytest.mark.asyncio
async def test_disabled_prefetch_does_nothing(audio, image, cache, items):
    prefetcher = _scheduler(audio, image, cache, enabled=False)

    assert prefetcher.schedule(items, 0) is None
    assert prefetcher.schedule_preload(items) is None

    prefetcher.set_enabled(True)
    await prefetcher.schedule(items, 0)
    assert audio.requests


@pytest.mark.asyncio
async def test_unavailable_services_are_skipped(audio, image, cache, items):
    prefetcher = _scheduler(audio, image, cache, caps=CapabilityFlags(audio_available=True))

    await prefetcher.schedule(items, 0)

    assert len(audio.requests) == 3
    assert image.requests == []

    none = _scheduler(audio, image, cache, caps=CapabilityFlags.none())
    assert none.schedule(items, 3) is None


@pytest.mark.asyncio
async def test_start_past_end(audio, image, cache, items):
    prefetcher = _scheduler(audio, image, cache)
    assert prefetcher.schedule(items, len(items)) is None


@pytest.mark.asyncio
async def test_traditional_audio_text(audio, image, cache, items, make_entry):
    entry = make_entry("猫", levels=["hsk-1"], meanings=["cat"], traditional="貓")
    item = StudyItem("hsk-1_貓", entry, "貓", is_new=True, is_due=False)
    prefetcher = _scheduler(audio, image, cache, character_set="traditional")

    await prefetcher.schedule([item], 0)

    assert audio.requests == ["貓"]


@pytest.mark.asyncio
async def test_preload_opening_cards(audio, image, cache, items):
    prefetcher = _scheduler(audio, image, cache)

    await prefetcher.schedule_preload(items)

    assert audio.preloads == [["一", "二", "三", "人", "大"]]
    assert prefetcher.schedule_preload(items[:1]) is None


@pytest.mark.asyncio
async def test_close_cancels_outstanding(audio, image, cache, items):
    prefetcher = _scheduler(audio, image, cache)

    task = prefetcher.schedule(items, 0)
    prefetcher.close()

    assert task.cancelling()
    await prefetcher.drain()
    assert task.cancelled()
    assert audio.requests == []
