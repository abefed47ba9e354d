import logging
import re

from hanzi_session.domain.constants import (
    GENERIC_TERMS,
    MIN_SEARCH_TERM_LEN,
    SEARCH_TERM_QUALIFIER,
)
from hanzi_session.domain.models import CharacterSet, VocabularyEntry

logger = logging.getLogger(__name__)

# ---------- Gloss cleaning ----------

_PARENS = re.compile(r"\([^)]*\)")
_AFTER_SEPARATOR = re.compile(r"[;,].*$")
_WHITESPACE = re.compile(r"\s+")

_LABEL_WORDS = [
    r"\bmeasure word\b",
    r"\bclassifier\b",
]
_POS_WORDS = [
    r"\bparticle\b",
    r"\bprefix\b",
    r"\bsuffix\b",
    r"\bverb\b",
    r"\bnoun\b",
    r"\badjective\b",
    r"\badverb\b",
]


def _strip_gloss(text: str) -> str:
    """Drop parenthesized notes and everything after the first ';' or ','."""
    text = _PARENS.sub("", text)
    return _AFTER_SEPARATOR.sub("", text)


def _remove_words(text: str, patterns: list[str]) -> str:
    for pattern in patterns:
        text = re.sub(pattern, "", text, flags=re.IGNORECASE)
    return text


def clean_primary_gloss(gloss: str) -> str:
    text = _remove_words(_strip_gloss(gloss), _LABEL_WORDS + _POS_WORDS)
    return _WHITESPACE.sub(" ", text).strip().lower()


def clean_secondary_gloss(gloss: str) -> str:
    return _remove_words(_strip_gloss(gloss), _LABEL_WORDS).strip().lower()


def _is_usable(term: str) -> bool:
    return len(term) >= MIN_SEARCH_TERM_LEN and term not in GENERIC_TERMS


# ---------- Search terms ----------


def extract_image_search_term(entry: VocabularyEntry | None, meanings: list[str]) -> str:
    """
    Derive an image search term from English glosses.

    Tries the cleaned first gloss, then the second gloss, then the first usable
    gloss among the first three. A term that is still too short or generic gets
    qualified ("chinese a"). Without glosses the character itself is used.
    """
    if not meanings:
        if entry is not None and entry.simplified:
            return f"{SEARCH_TERM_QUALIFIER} character {entry.simplified}"
        return f"{SEARCH_TERM_QUALIFIER} character"

    term = clean_primary_gloss(meanings[0])

    if not _is_usable(term):
        if len(meanings) > 1:
            second = clean_secondary_gloss(meanings[1])
            if _is_usable(second):
                term = second

        if not _is_usable(term):
            candidates = [_strip_gloss(m).strip() for m in meanings[:3]]
            valid = [c for c in candidates if _is_usable(c.lower())]
            if valid:
                term = valid[0].lower()

    if not _is_usable(term):
        term = f"{SEARCH_TERM_QUALIFIER} {term}".strip()

    logger.debug(f"Image search term for {meanings[0]!r}: {term!r}")
    return term


def extract_audio_text(entry: VocabularyEntry, character_set: CharacterSet) -> str:
    """Text sent for pronunciation: the display form, falling back to simplified."""
    return entry.display_form(character_set) or entry.simplified
