"""Static vocabulary index loader.

The index is a list of entries in the ``complete.json`` layout (``simplified``,
``level``, ``forms`` ...). YAML files with the same structure are accepted too.
"""

import json
import logging
from pathlib import Path

import yaml

from hanzi_session.domain.models import VocabularyEntry

logger = logging.getLogger(__name__)


def load_vocabulary(path: Path) -> list[VocabularyEntry]:
    """
    Load the vocabulary index from disk.

    Malformed entries are skipped with a warning. A missing or unreadable file
    yields an empty list so the caller ends up with "no cards found" rather
    than a crash.
    """
    try:
        raw_text = path.read_text(encoding="utf-8")
    except OSError as e:
        logger.error(f"Error loading vocabulary data from {path}: {e}")
        return []

    try:
        if path.suffix.lower() in (".yaml", ".yml"):
            data = yaml.safe_load(raw_text)
        else:
            data = json.loads(raw_text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        logger.error(f"Could not parse vocabulary file {path}: {e}")
        return []

    if not isinstance(data, list):
        logger.error(f"Vocabulary file {path} does not contain a list")
        return []

    entries: list[VocabularyEntry] = []
    for i, raw in enumerate(data):
        try:
            entries.append(VocabularyEntry.from_dict(raw))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Skipping vocabulary entry #{i}: {e}")

    logger.debug(f"Loaded {len(entries)} vocabulary entries from {path}")
    return entries
