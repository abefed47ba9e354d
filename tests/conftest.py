import asyncio

import pytest

from hanzi_session.application.orchestrator import ServiceBundle
from hanzi_session.domain.errors import ServiceCallError
from hanzi_session.domain.models import (
    AudioClip,
    CardProgress,
    CharacterForm,
    GradeReceipt,
    ImageResult,
    PreloadJob,
    VocabularyEntry,
)
from hanzi_session.domain.ports import (
    AudioService,
    ImageService,
    ProgressService,
    SchedulingService,
)

# ---------------------------------------------------------------------------
# In-memory collaborators
# ---------------------------------------------------------------------------


class _FakeHealth:
    def __init__(self, healthy=True):
        # healthy: bool, or an exception instance to raise from health()
        self.healthy = healthy
        self.health_delay = 0.0
        self.health_calls = 0

    async def health(self) -> bool:
        self.health_calls += 1
        if self.health_delay:
            await asyncio.sleep(self.health_delay)
        if isinstance(self.healthy, Exception):
            raise self.healthy
        return self.healthy


class FakeScheduling(_FakeHealth, SchedulingService):
    def __init__(self, healthy=True, due=None, progress=None):
        super().__init__(healthy)
        self.due = list(due or [])
        self.progress_by_id = dict(progress or {})
        self.due_error: Exception | None = None
        self.fail_grade = False
        self.fail_reset = False
        self.gate: asyncio.Event | None = None
        self.graded: list[tuple[str, bool]] = []
        self.progress_calls: list[str] = []
        self.resets: list[str] = []

    async def due_items(self):
        if self.due_error:
            raise self.due_error
        return list(self.due)

    async def grade(self, card_id, is_correct):
        self.graded.append((card_id, is_correct))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_grade:
            raise ServiceCallError("scheduling", "HTTP error! status: 500")
        progress = CardProgress(
            card_id=card_id,
            streak=1 if is_correct else 0,
            total_reviews=1,
            correct_reviews=int(is_correct),
            next_review_date="2026-10-20T00:00:00Z",
        )
        return GradeReceipt(card_id=card_id, progress=progress)

    async def progress(self, card_id):
        self.progress_calls.append(card_id)
        if card_id in self.progress_by_id:
            return self.progress_by_id[card_id]
        raise ServiceCallError("scheduling", "HTTP error! status: 404")

    async def reset(self, card_id):
        self.resets.append(card_id)
        if self.fail_reset:
            raise ServiceCallError("scheduling", "HTTP error! status: 500")
        return CardProgress(card_id=card_id)


class FakeAudio(_FakeHealth, AudioService):
    def __init__(self, healthy=True):
        super().__init__(healthy)
        self.fail = False
        self.requests: list[str] = []
        self.preloads: list[list[str]] = []

    async def resolve_audio(self, text, language):
        self.requests.append(text)
        if self.fail:
            raise ServiceCallError("audio", "HTTP error! status: 500")
        return AudioClip(text=text, language=language, url=f"http://audio/play/{text}.mp3")

    async def preload(self, texts, language):
        self.preloads.append(list(texts))
        return PreloadJob(preload_id="preload-1", status="processing", texts_count=len(texts))


class FakeImage(_FakeHealth, ImageService):
    def __init__(self, healthy=True):
        super().__init__(healthy)
        self.fail = False
        self.requests: list[str] = []

    async def fetch_image(self, search_term):
        self.requests.append(search_term)
        if self.fail:
            raise ServiceCallError("image", f"{search_term!r}: No image found")
        return ImageResult(search_term=search_term, content=b"\xff\xd8jpeg")


class FakeProgress(_FakeHealth, ProgressService):
    def __init__(self, healthy=True):
        super().__init__(healthy)
        self.session_error: Exception | None = None
        self.fail_events = False
        self.event_delay = 0.0
        self.sessions = []
        self.events = []

    async def record_session(self, summary):
        self.sessions.append(summary)
        if self.session_error:
            raise self.session_error
        return "sess-1"

    async def record_card_graded(self, event):
        if self.event_delay:
            await asyncio.sleep(self.event_delay)
        self.events.append(event)
        if self.fail_events:
            raise ServiceCallError("progress", "HTTP error! status: 503")


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def _make_entry(simplified, levels=("new-1",), meanings=None, traditional=None, pinyin=""):
    form = CharacterForm(
        traditional=traditional or simplified,
        transcriptions={"pinyin": pinyin} if pinyin else {},
        meanings=list(meanings if meanings is not None else [f"meaning of {simplified}"]),
    )
    return VocabularyEntry(simplified=simplified, levels=list(levels), forms=[form])


@pytest.fixture
def make_entry():
    """Factory for VocabularyEntry objects."""
    return _make_entry


@pytest.fixture
def vocabulary():
    """Ten new-1 entries plus two hsk-1 entries."""
    new_1 = [
        ("一", "yī", ["one"]),
        ("二", "èr", ["two"]),
        ("三", "sān", ["three"]),
        ("人", "rén", ["person"]),
        ("大", "dà", ["big"]),
        ("小", "xiǎo", ["small"]),
        ("中", "zhōng", ["middle"]),
        ("水", "shuǐ", ["water"]),
        ("火", "huǒ", ["fire"]),
        ("山", "shān", ["mountain"]),
    ]
    entries = [_make_entry(s, meanings=m, pinyin=p) for s, p, m in new_1]
    entries.append(_make_entry("猫", levels=["hsk-1"], meanings=["cat"], traditional="貓"))
    entries.append(_make_entry("狗", levels=["hsk-1"], meanings=["dog"]))
    return entries


@pytest.fixture
def scheduling():
    return FakeScheduling()


@pytest.fixture
def audio():
    return FakeAudio()


@pytest.fixture
def image():
    return FakeImage()


@pytest.fixture
def progress():
    return FakeProgress()


@pytest.fixture
def services(scheduling, audio, image, progress):
    return ServiceBundle(scheduling=scheduling, audio=audio, image=image, progress=progress)


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Mocking HOME to a temp directory to isolate config files
    monkeypatch.setenv("HOME", str(home))
    for var in ("HANZI_LEVEL", "HANZI_CARD_COUNT", "HANZI_VOCABULARY_PATH"):
        monkeypatch.delenv(var, raising=False)
    return home
