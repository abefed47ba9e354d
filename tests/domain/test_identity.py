import pytest

from hanzi_session.domain.identity import card_level, make_card_id, parse_card_id
from hanzi_session.domain.models import VocabularyEntry


def test_card_id_uses_primary_level_and_display_form(make_entry):
    entry = make_entry("书", levels=["new-1", "hsk-1"], traditional="書")

    assert make_card_id(entry, "simplified") == "new-1_书"
    assert make_card_id(entry, "traditional") == "new-1_書"


def test_card_id_is_deterministic(make_entry):
    a = make_entry("水", meanings=["water"])
    b = make_entry("水", meanings=["water", "river"])
    assert make_card_id(a, "simplified") == make_card_id(b, "simplified")


def test_traditional_falls_back_to_simplified():
    entry = VocabularyEntry(simplified="水", levels=["new-1"], forms=[])
    assert make_card_id(entry, "traditional") == "new-1_水"


def test_parse_card_id():
    assert parse_card_id("new-1_书") == ("new-1", "书")
    assert parse_card_id("hsk-3_打_电话") == ("hsk-3", "打_电话")


@pytest.mark.parametrize("bad", ["nounderscore", "_书", "new-1_", ""])
def test_parse_card_id_rejects_malformed(bad):
    with pytest.raises(ValueError):
        parse_card_id(bad)


def test_card_level():
    assert card_level("hsk-2_猫") == "hsk-2"
    assert card_level("garbage") is None


def test_entry_from_dict_accepts_level_key():
    entry = VocabularyEntry.from_dict(
        {
            "simplified": "爱",
            "radical": "爫",
            "level": ["new-1", "old-1"],
            "frequency": 508,
            "pos": ["v"],
            "forms": [
                {
                    "traditional": "愛",
                    "transcriptions": {"pinyin": "ài"},
                    "meanings": ["to love", "affection"],
                    "classifiers": [],
                }
            ],
        }
    )

    assert entry.levels == ["new-1", "old-1"]
    assert entry.primary_level == "new-1"
    assert entry.pinyin == "ài"
    assert entry.meanings == ["to love", "affection"]
    assert entry.display_form("traditional") == "愛"
