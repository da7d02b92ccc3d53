"""
Approximate model-name search over a catalog snapshot.

Matching approach:
    - Only ``model_name`` is searched; query and names are casefolded first
    - rapidfuzz ``partial_ratio_alignment`` finds the window of the name that
      best matches the query, giving a similarity (0-100) and where the window
      starts
    - Distance = mismatch + proximity
          mismatch  = 1 - similarity / 100      (0.0 exact ... 1.0 nothing alike)
          proximity = window_start / LOCATION_DISTANCE
      so "iph" at the start of "iPhone 11" costs nothing, while the same match
      40 characters into a long name costs 0.4 and drops out
    - When that window is too far in, the leading window (start 0) is scored
      too and the smaller distance kept, so "moto g8" still finds
      "Moto G9 ... Moto G8" by its near-match prefix
    - A query longer than the name is compared against the whole name
      (fuzz.ratio); otherwise "iphone 11 pro max" would match "iPhone 11"
      perfectly

Thresholds:
    - distance <= 0.2 is a match (roughly one character in five may differ)
    - queries shorter than 3 characters return nothing; 1-2 letters match
      half the catalog and the ranking is noise
    - an empty query returns the first ``limit`` records in catalog order

Results are sorted by distance, ties by catalog position, then cut to
``limit``. The index keeps no reference to storage: rebuild it from a fresh
snapshot whenever the catalog changes.
"""

import time
from typing import Callable, List, NamedTuple, Optional, Sequence

from rapidfuzz import fuzz

from records import CatalogRecord

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
THRESHOLD = 0.2            # max distance accepted (0.0 exact, 1.0 anything)
MIN_QUERY_LENGTH = 3       # shorter queries return no results
LOCATION_DISTANCE = 100    # chars into the name at which proximity alone costs 1.0
DEFAULT_LIMIT = 5

RecordPredicate = Callable[[CatalogRecord], bool]


class SearchHit(NamedTuple):
    record: CatalogRecord
    distance: float
    position: int  # catalog order, used as tie-breaker


def normalize_key(text: str) -> str:
    if not isinstance(text, str):
        return ""
    return text.strip().casefold()


def match_distance(query: str, field: str, threshold: float = THRESHOLD) -> Optional[float]:
    """
    Distance between an already-normalized query and field, or None if above threshold.

    Examples:
        match_distance('iph', 'iphone 11')        -> 0.0
        match_distance('iphome', 'iphone 11')     -> ~0.17
        match_distance('iphone 11 pro max', 'iphone 11') -> None
    """
    if not query or not field:
        return None

    if len(query) > len(field):
        distance = _distance(fuzz.ratio(query, field), 0)
    else:
        alignment = fuzz.partial_ratio_alignment(query, field)
        distance = _distance(alignment.score, alignment.dest_start) if alignment else 1.0
        if distance > threshold:
            # best-similarity window may sit late in the name; a close match
            # at the start can still be within tolerance
            leading = _distance(fuzz.ratio(query, field[:len(query)]), 0)
            distance = min(distance, leading)

    if distance > threshold:
        return None
    return round(distance, 6)


def _distance(similarity: float, start: int) -> float:
    return (1.0 - similarity / 100.0) + (start / LOCATION_DISTANCE)


class SearchIndex:
    """Casefolded model names of one catalog snapshot, in catalog order."""

    def __init__(self, records: Sequence[CatalogRecord], threshold: float = THRESHOLD):
        self.records = list(records)
        self.keys = [normalize_key(record.model_name) for record in self.records]
        self.threshold = threshold
        self.built_at = time.monotonic()

    def __len__(self) -> int:
        return len(self.records)

    def age_seconds(self) -> float:
        return time.monotonic() - self.built_at

    def search_hits(
        self,
        query: Optional[str],
        limit: int = DEFAULT_LIMIT,
        predicate: Optional[RecordPredicate] = None,
    ) -> List[SearchHit]:
        """
        Ranked hits for ``query``.

        Returns:
            - empty/whitespace query -> first ``limit`` records (distance 0.0), unranked
            - query under MIN_QUERY_LENGTH -> []
            - otherwise hits with distance <= threshold, best first
        """
        if limit is None or limit <= 0:
            limit = DEFAULT_LIMIT

        candidates = [
            (position, record, key)
            for position, (record, key) in enumerate(zip(self.records, self.keys))
            if predicate is None or predicate(record)
        ]

        normalized_query = normalize_key(query or '')
        if not normalized_query:
            return [SearchHit(record, 0.0, position) for position, record, _ in candidates[:limit]]

        if len(normalized_query) < MIN_QUERY_LENGTH:
            return []

        hits = []
        for position, record, key in candidates:
            distance = match_distance(normalized_query, key, self.threshold)
            if distance is not None:
                hits.append(SearchHit(record, distance, position))

        hits.sort(key=lambda hit: (hit.distance, hit.position))
        return hits[:limit]

    def search(
        self,
        query: Optional[str],
        limit: int = DEFAULT_LIMIT,
        predicate: Optional[RecordPredicate] = None,
    ) -> List[CatalogRecord]:
        return [hit.record for hit in self.search_hits(query, limit, predicate)]
