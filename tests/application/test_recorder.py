from datetime import datetime, timezone

import pytest

from hanzi_session.application.recorder import SessionRecorder
from hanzi_session.domain.errors import ServiceTimeoutError
from hanzi_session.domain.models import CapabilityFlags, GradeOutcome

TS = datetime(2026, 10, 18, 9, 30, tzinfo=timezone.utc)
OUTCOMES = [
    GradeOutcome("new-1_一", True, TS),
    GradeOutcome("new-1_二", False, TS),
    GradeOutcome("new-1_三", True, TS),
]
PROGRESS_UP = CapabilityFlags(progress_available=True)


def test_build_summary():
    summary = SessionRecorder.build_summary("new-1", OUTCOMES, started_at=10.0, ended_at=72.6)

    assert summary.deck_id == "new-1"
    assert summary.cards_studied == 3
    assert summary.correct_answers == 2
    assert summary.incorrect_answers == 1
    assert summary.session_duration == 63


def test_build_summary_never_negative():
    summary = SessionRecorder.build_summary("new-1", OUTCOMES, started_at=10.0, ended_at=5.0)
    assert summary.session_duration == 0


@pytest.mark.asyncio
async def test_records_once(progress):
    recorder = SessionRecorder(progress, PROGRESS_UP)

    first = await recorder.record("new-1", OUTCOMES, 0.0, 30.0)
    second = await recorder.record("new-1", OUTCOMES, 0.0, 60.0)

    assert first == second == "sess-1"
    assert len(progress.sessions) == 1
    assert progress.sessions[0].session_duration == 30


@pytest.mark.asyncio
async def test_skips_when_progress_unavailable(progress):
    recorder = SessionRecorder(progress, CapabilityFlags.none())

    assert await recorder.record("new-1", OUTCOMES, 0.0, 30.0) is None
    assert progress.sessions == []


@pytest.mark.asyncio
async def test_skips_when_nothing_graded(progress):
    recorder = SessionRecorder(progress, PROGRESS_UP)

    assert await recorder.record("new-1", [], 0.0, 30.0) is None
    assert progress.sessions == []


@pytest.mark.asyncio
async def test_failure_is_logged_not_raised(progress, caplog):
    progress.session_error = ServiceTimeoutError("progress", "POST /session timed out")
    recorder = SessionRecorder(progress, PROGRESS_UP)

    assert await recorder.record("new-1", OUTCOMES, 0.0, 30.0) is None
    assert recorder.session_id is None
    assert "Error recording session" in caplog.text
