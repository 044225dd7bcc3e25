from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from .merge import SimilarityScorer, SimilaritySignals
from .models import CustomerRecord, DuplicateGroup, DuplicateReason

logger = logging.getLogger(__name__)

DEFAULT_DUPLICATE_THRESHOLD = 0.85
RUNNING_AVERAGE = "running_average"
MEAN = "mean"
CLUSTER_SCORE_MODES = (RUNNING_AVERAGE, MEAN)


@dataclass
class ClusterResult:
    survivors: List[CustomerRecord] = field(default_factory=list)
    groups: List[DuplicateGroup] = field(default_factory=list)

    @property
    def duplicates_dropped(self) -> int:
        return sum(len(group) - 1 for group in self.groups)


def _bucket_records(records: Sequence[CustomerRecord]) -> Dict[str, List[int]]:
    buckets: Dict[str, List[int]] = defaultdict(list)
    for idx, record in enumerate(records):
        buckets[record.normalized_name].append(idx)
    return buckets


def _choose_reason(matches: Sequence[SimilaritySignals]) -> DuplicateReason:
    if any(signals.address_match for signals in matches):
        return DuplicateReason.SAME_NAME_AND_ADDRESS
    if any(signals.phone_match for signals in matches):
        return DuplicateReason.SAME_NAME_AND_PHONE
    if any(signals.email_match for signals in matches):
        return DuplicateReason.SAME_NAME_AND_EMAIL
    return DuplicateReason.EXACT_NAME_MATCH


class DuplicateClusterer:
    """
    Two-phase duplicate detection.

    Records are first blocked on their normalized company key; inside a block
    each unassigned record seeds a cluster and pulls in every later unassigned
    record whose similarity to the seed reaches the threshold. Pairwise work is
    quadratic per block, which stays cheap because blocks share an exact key.
    """

    def __init__(
        self,
        scorer: Optional[SimilarityScorer] = None,
        threshold: float = DEFAULT_DUPLICATE_THRESHOLD,
        score_mode: str = RUNNING_AVERAGE,
    ):
        if score_mode not in CLUSTER_SCORE_MODES:
            raise ValueError(f"Unsupported cluster score mode: {score_mode!r}")
        self.scorer = scorer or SimilarityScorer()
        self.threshold = threshold
        self.score_mode = score_mode

    def cluster(self, records: Sequence[CustomerRecord]) -> ClusterResult:
        survivor_indices: List[int] = []
        grouped: List[Tuple[int, DuplicateGroup]] = []
        flagged: Dict[int, CustomerRecord] = {}

        for key, indices in _bucket_records(records).items():
            if len(indices) == 1:
                survivor_indices.append(indices[0])
                continue
            logger.debug("Refining block %r with %d candidates", key, len(indices))
            for members, matches in self._refine(records, indices):
                survivor_indices.append(members[0])
                if len(members) == 1:
                    continue
                for idx in members[1:]:
                    flagged[idx] = records[idx].flagged()
                group = DuplicateGroup(
                    records=[records[members[0]]] + [flagged[idx] for idx in members[1:]],
                    score=self._group_score([signals.score for signals in matches]),
                    reason=_choose_reason(matches),
                )
                grouped.append((members[0], group))

        survivor_indices.sort()
        grouped.sort(key=lambda item: item[0])
        result = ClusterResult(
            survivors=[records[idx] for idx in survivor_indices],
            groups=[group for _, group in grouped],
        )
        if len(result.survivors) + result.duplicates_dropped != len(records):
            raise ValueError(
                f"clustering lost records: {len(records)} in, {len(result.survivors)} kept, "
                f"{result.duplicates_dropped} dropped"
            )
        return result

    def _refine(
        self, records: Sequence[CustomerRecord], indices: List[int]
    ) -> List[Tuple[List[int], List[SimilaritySignals]]]:
        assigned = set()
        clusters: List[Tuple[List[int], List[SimilaritySignals]]] = []
        for position, seed_idx in enumerate(indices):
            if seed_idx in assigned:
                continue
            assigned.add(seed_idx)
            members = [seed_idx]
            matches: List[SimilaritySignals] = []
            seed = records[seed_idx]
            for other_idx in indices[position + 1 :]:
                if other_idx in assigned:
                    continue
                signals = self.scorer.compute(seed, records[other_idx])
                if signals.score >= self.threshold:
                    members.append(other_idx)
                    matches.append(signals)
                    assigned.add(other_idx)
            clusters.append((members, matches))
        return clusters

    def _group_score(self, match_scores: Sequence[float]) -> float:
        if not match_scores:
            return 1.0
        if self.score_mode == MEAN:
            return sum(match_scores) / len(match_scores)
        score = 1.0
        for value in match_scores:
            score = (score + value) / 2
        return score
