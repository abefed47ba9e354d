"""Card identity keys.

A card id is ``"{primary_level}_{display_form}"``. The same entity under the same
character set always yields the same key, and that key is the only thing used to
correlate a card across the Scheduling, Progress and local session state.
"""

from .models import CharacterSet, VocabularyEntry


def make_card_id(entry: VocabularyEntry, character_set: CharacterSet) -> str:
    return f"{entry.primary_level}_{entry.display_form(character_set)}"


def parse_card_id(card_id: str) -> tuple[str, str]:
    """Split a card id into ``(level, display_form)``.

    Levels never contain an underscore, so the first one is the separator.
    Raises ValueError for malformed ids.
    """
    level, sep, display = card_id.partition("_")
    if not sep or not level or not display:
        raise ValueError(f"Malformed card id: {card_id!r}")
    return level, display


def card_level(card_id: str) -> str | None:
    try:
        return parse_card_id(card_id)[0]
    except ValueError:
        return None
