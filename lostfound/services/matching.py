"""
Keyword/location matching of lost items against a found item.

Cheap substring overlap, not semantic matching: the claimant still submits
proof and the finder still decides, so false positives are tolerated.
"""

import re
from typing import Iterable, List, Set

from lostfound.models.item import Item

STOP_WORDS = frozenset(
    ["the", "and", "or", "a", "an", "is", "was", "for", "with", "this", "that", "from"]
)

MIN_KEYWORD_LENGTH = 3
MIN_LOCATION_LENGTH = 4
MAX_CANDIDATES = 10


def extract_keywords(text: str) -> Set[str]:
    words = (text or "").lower().split()
    return {w for w in words if len(w) >= MIN_KEYWORD_LENGTH and w not in STOP_WORDS}


def extract_location_keywords(location: str) -> Set[str]:
    if not location or len(location.strip()) < MIN_LOCATION_LENGTH:
        return set()

    words = re.split(r"[\s,]+", location.lower())
    return {w for w in words if len(w) >= MIN_KEYWORD_LENGTH}


def _contains_any(value: str, keywords: Iterable[str]) -> bool:
    haystack = (value or "").lower()
    return any(k in haystack for k in keywords)


def find_candidates(found_item: Item, lost_pool: Iterable[Item]) -> List[Item]:
    """
    Return up to 10 unclaimed lost items sharing a title/description keyword
    or a location keyword with ``found_item``, newest first.
    """
    if found_item.status != "found":
        return []

    keywords = extract_keywords(found_item.title) | extract_keywords(found_item.description)
    location_keywords = extract_location_keywords(found_item.location)

    # nothing to match on
    if not keywords and not location_keywords:
        return []

    def overlaps(candidate: Item) -> bool:
        if keywords and (
            _contains_any(candidate.title, keywords) or _contains_any(candidate.description, keywords)
        ):
            return True
        return bool(location_keywords) and _contains_any(candidate.location, location_keywords)

    candidates = [
        candidate
        for candidate in lost_pool
        if candidate.status == "lost"
        and candidate.id != found_item.id
        and not candidate.claimed
        and (not found_item.category or candidate.category == found_item.category)
        and overlaps(candidate)
    ]

    # id breaks ties so the result does not depend on pool order
    candidates.sort(key=lambda c: (c.created_at, str(c.id)), reverse=True)
    return candidates[:MAX_CANDIDATES]
