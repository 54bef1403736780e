"""Multi-keyword filtering over channel and favourite records."""
from __future__ import annotations

import re
import unicodedata
from typing import Iterable, Optional, Sequence, TypeVar

from rapidfuzz.distance import Levenshtein

from .logging_utils import get_logger

log = get_logger(__name__)

T = TypeVar("T")

CHANNEL_FIELDS: tuple[str, ...] = ("id", "title", "description", "genre", "dj")
FAVOURITE_FIELDS: tuple[str, ...] = ("title", "channel_title", "channel_id")

FUZZY_MAX_DISTANCE = 2
# Shorter terms are only fuzzy-matched against whole field values; against
# single words they would hit nearly everything.
FUZZY_WORD_MIN_LENGTH = 5


def normalize(text: str) -> str:
    """Lowercase ``text`` and strip diacritics."""

    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(char for char in decomposed if not unicodedata.combining(char)).lower()


def split_terms(search: Optional[str | Iterable[str]]) -> list[str]:
    """Normalize a raw search string or sequence into non-empty terms."""

    if search is None:
        return []
    if isinstance(search, str):
        raw = search.split()
    else:
        raw = [part for item in search for part in str(item).split()]
    return [term.lower() for term in raw if term.strip()]


def term_matches(term: str, values: Iterable[str]) -> bool:
    """Return True if ``term`` is a substring of, or close to, any value."""

    needle = normalize(term)
    for value in values:
        if not value:
            continue
        haystack = normalize(value)
        if needle in haystack:
            return True
        if Levenshtein.distance(needle, haystack, score_cutoff=FUZZY_MAX_DISTANCE + 1) <= FUZZY_MAX_DISTANCE:
            return True
        if len(needle) >= FUZZY_WORD_MIN_LENGTH:
            for word in re.findall(r"\w+", haystack):
                if Levenshtein.distance(needle, word, score_cutoff=FUZZY_MAX_DISTANCE + 1) <= FUZZY_MAX_DISTANCE:
                    return True
    return False


def record_values(record: object, fields: Sequence[str]) -> list[str]:
    values: list[str] = []
    for field in fields:
        value = getattr(record, field, None)
        if value is None and isinstance(record, dict):
            value = record.get(field)
        if value is not None:
            values.append(str(value))
    return values


def filter_records(
    records: Sequence[T],
    terms: Optional[Sequence[str]],
    fields: Sequence[str],
) -> list[T]:
    """Return the records matching every term in ``terms``.

    An empty term list returns the records unchanged.
    """

    if not terms:
        return list(records)
    if any(not term.strip() for term in terms):
        raise ValueError("Search terms must not be empty")
    results = [
        record
        for record in records
        if all(term_matches(term, record_values(record, fields)) for term in terms)
    ]
    log.debug("Search %s matched %d of %d record(s)", list(terms), len(results), len(records))
    return results


__all__ = [
    "CHANNEL_FIELDS",
    "FAVOURITE_FIELDS",
    "filter_records",
    "normalize",
    "record_values",
    "split_terms",
    "term_matches",
]
