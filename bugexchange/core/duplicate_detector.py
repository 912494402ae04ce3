"""
Bug Exchange - Duplicate Detector

Ranks existing bugs by similarity to a new report with a bag-of-tokens
heuristic. Runs synchronously over a small, pre-filtered candidate set; a
human makes the final duplicate call.

Score terms (each only when both sides carry the field):
  title        40  whitespace tokens, case-insensitive
  tags         30  exact tag values
  description  20  whitespace tokens, case-insensitive
  stack trace  10  whole lines
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)


@dataclass
class DuplicateQuery:
    """Fields of a prospective bug report to compare against existing bugs."""
    title: Optional[str] = None
    description: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    stack_trace: Optional[str] = None

    def is_empty(self) -> bool:
        return not (self.title or self.description or self.tags or self.stack_trace)


class DuplicateDetector:
    """Scores candidate bugs against a query and keeps the relevant ones.

    Candidates are plain dicts with (some of) the keys `title`,
    `description`, `tags` and `stack_trace`; any other keys are carried
    through to the result unchanged.
    """

    TITLE_WEIGHT = 40
    TAG_WEIGHT = 30
    DESCRIPTION_WEIGHT = 20
    STACK_TRACE_WEIGHT = 10

    # Rounded scores at or below this are not returned
    SCORE_THRESHOLD = 20

    def __init__(self, candidates: Sequence[Dict], threshold: Optional[int] = None):
        self.candidates = list(candidates)
        self.threshold = self.SCORE_THRESHOLD if threshold is None else threshold

    def check_duplicates(self, query: DuplicateQuery) -> List[Dict]:
        """Return candidates scoring above the threshold, best first.

        Each returned dict is the candidate plus a `similarity_score` key.
        """
        scored = []
        for candidate in self.candidates:
            score = self.score(query, candidate)
            if score > self.threshold:
                scored.append({**candidate, "similarity_score": score})

        # sorted() is stable, so equal scores keep the candidate order
        scored = sorted(scored, key=lambda c: c["similarity_score"], reverse=True)
        logger.info(
            f"Duplicate check: {len(scored)} of {len(self.candidates)} candidates above {self.threshold}"
        )
        return scored

    def score(self, query: DuplicateQuery, candidate: Dict) -> int:
        """Weighted similarity in [0, 100], rounded half up."""
        total = 0.0

        if query.title and candidate.get("title"):
            total += self._overlap(
                self._words(query.title), self._words(candidate["title"])
            ) * self.TITLE_WEIGHT

        if query.tags and candidate.get("tags"):
            total += self._overlap(list(query.tags), list(candidate["tags"])) * self.TAG_WEIGHT

        if query.description and candidate.get("description"):
            total += self._overlap(
                self._words(query.description), self._words(candidate["description"])
            ) * self.DESCRIPTION_WEIGHT

        if query.stack_trace and candidate.get("stack_trace"):
            total += self._overlap(
                self._lines(query.stack_trace), self._lines(candidate["stack_trace"])
            ) * self.STACK_TRACE_WEIGHT

        total = min(100.0, max(0.0, total))
        return int(math.floor(total + 0.5))

    @staticmethod
    def _overlap(query_tokens: List[str], candidate_tokens: List[str]) -> float:
        """Share of query tokens found in the candidate, over the longer token list."""
        denominator = max(len(query_tokens), len(candidate_tokens))
        if denominator == 0:
            return 0.0
        candidate_set = set(candidate_tokens)
        common = sum(1 for token in query_tokens if token in candidate_set)
        return common / denominator

    @staticmethod
    def _words(text: str) -> List[str]:
        return text.lower().split()

    @staticmethod
    def _lines(text: str) -> List[str]:
        return text.split("\n")
