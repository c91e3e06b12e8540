"""Entity resolution: rank repository records against a text fragment.

Pure domain logic, no framework dependencies.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from hrflow.domain.models import FuzzyMatch, MatchType
from hrflow.domain.similarity import similarity

DEFAULT_THRESHOLD = 0.6
AUTO_SELECT_SCORE = 0.95
MAX_CANDIDATES = 3
PREFILTER_MIN_POOL = 500


class Outcome(str, Enum):
    AUTO = "auto_selected"
    AMBIGUOUS = "needs_confirmation"
    NOT_FOUND = "not_found"


@dataclass
class Resolution:
    outcome: Outcome
    matches: List[FuzzyMatch] = field(default_factory=list)

    @property
    def selected(self) -> Optional[Dict[str, Any]]:
        if self.outcome is Outcome.AUTO:
            return self.matches[0].record
        return None


def full_name(record: Dict[str, Any]) -> str:
    return f"{record.get('first_name', '')} {record.get('last_name', '')}".strip()


def _trigrams(text: str) -> Set[str]:
    padded = f"  {text.lower()} "
    return {padded[i:i + 3] for i in range(len(padded) - 2)}


class EntityResolver:
    """Scores records by first name, last name and full name.

    Ties keep the order the repository returned records in, unless a
    ``tie_break`` key is given (applied before the stable score sort).
    Pools larger than ``prefilter_min_pool`` are narrowed with a
    character-trigram overlap check before edit distance is computed.
    """

    def __init__(
        self,
        threshold: float = DEFAULT_THRESHOLD,
        auto_select: float = AUTO_SELECT_SCORE,
        max_candidates: int = MAX_CANDIDATES,
        prefilter_min_pool: int = PREFILTER_MIN_POOL,
        tie_break: Optional[Callable[[Dict[str, Any]], Any]] = None,
    ):
        self.threshold = threshold
        self.auto_select = auto_select
        self.max_candidates = max_candidates
        self.prefilter_min_pool = prefilter_min_pool
        self.tie_break = tie_break

    # -- ranking --

    def score_person(self, fragment: str, record: Dict[str, Any]) -> FuzzyMatch:
        # Order matters: on equal scores the earlier field wins
        fields = [
            (MatchType.FIRST_NAME, record.get("first_name", "")),
            (MatchType.LAST_NAME, record.get("last_name", "")),
            (MatchType.FULL_NAME, full_name(record)),
        ]
        best_type, best_score = MatchType.FIRST_NAME, -1.0
        for match_type, value in fields:
            score = similarity(fragment, value)
            if score > best_score:
                best_type, best_score = match_type, score
        return FuzzyMatch(record=record, score=best_score, match_type=best_type)

    def rank(self, fragment: str, records: Iterable[Dict[str, Any]]) -> List[FuzzyMatch]:
        fragment = fragment.strip()
        pool = self._prefilter(fragment, list(records), full_name)
        scored = [self.score_person(fragment, r) for r in pool]
        return self._sorted(m for m in scored if m.score >= self.threshold)

    def rank_by_name(
        self,
        fragment: str,
        records: Iterable[Dict[str, Any]],
        key: str = "name",
    ) -> List[FuzzyMatch]:
        fragment = fragment.strip()
        pool = self._prefilter(fragment, list(records), lambda r: str(r.get(key, "")))
        scored = [
            FuzzyMatch(record=r, score=similarity(fragment, str(r.get(key, ""))), match_type=MatchType.NAME)
            for r in pool
        ]
        return self._sorted(m for m in scored if m.score >= self.threshold)

    # -- resolution --

    def resolve(self, fragment: str, records: Iterable[Dict[str, Any]]) -> Resolution:
        return self._decide(self.rank(fragment, records))

    def resolve_by_name(
        self,
        fragment: str,
        records: Iterable[Dict[str, Any]],
        key: str = "name",
    ) -> Resolution:
        return self._decide(self.rank_by_name(fragment, records, key))

    def _decide(self, matches: List[FuzzyMatch]) -> Resolution:
        if not matches:
            return Resolution(Outcome.NOT_FOUND)
        if matches[0].score >= self.auto_select:
            return Resolution(Outcome.AUTO, matches[:1])
        return Resolution(Outcome.AMBIGUOUS, matches[: self.max_candidates])

    def _sorted(self, matches: Iterable[FuzzyMatch]) -> List[FuzzyMatch]:
        matches = list(matches)
        if self.tie_break is not None:
            matches.sort(key=lambda m: self.tie_break(m.record))
        matches.sort(key=lambda m: m.score, reverse=True)
        return matches

    def _prefilter(
        self,
        fragment: str,
        records: List[Dict[str, Any]],
        name_of: Callable[[Dict[str, Any]], str],
    ) -> List[Dict[str, Any]]:
        if len(records) <= self.prefilter_min_pool or not fragment:
            return records
        wanted = _trigrams(fragment)
        shortlist = [r for r in records if wanted & _trigrams(name_of(r))]
        # Nothing shares a trigram: fall back to the full pool
        return shortlist or records
