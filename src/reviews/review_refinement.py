"""
Cluster Refinement Stage
========================

Splits oversized clusters that blend unrelated complaints (oracle
imprecision, round-robin overflow) using the keyword lexicon as a
secondary signal. Small clusters are never fragmented.
"""

import logging
from collections import OrderedDict
from typing import Dict, List, Optional, Sequence

from .review_models import Cluster, ClusteredReview, SentimentedReview
from .review_signals import OTHER_THEME, THEME_LEXICON, best_theme

logger = logging.getLogger(__name__)

MIN_CLUSTER_SIZE_FOR_SPLIT = 10
MIN_SUBCLUSTER_SIZE = 5


def group_clusters(
    assignments: Sequence[ClusteredReview],
    theme_names: Optional[Dict[int, str]] = None,
) -> List[Cluster]:
    """Group assignments by cluster id (ascending), keeping original ids."""
    grouped: Dict[int, List[SentimentedReview]] = {}
    for item in assignments:
        grouped.setdefault(item.cluster_id, []).append(item.review)

    names = theme_names or {}
    return [
        Cluster(cluster_id=cid, reviews=tuple(grouped[cid]), label=names.get(cid))
        for cid in sorted(grouped)
    ]


class ClusterRefiner:
    """
    Splits a cluster of >= min_cluster_size members when at least two
    keyword sub-groups reach min_subcluster_size. Members outside every
    valid sub-group are dropped from a split cluster.
    """

    def __init__(
        self,
        min_cluster_size: int = MIN_CLUSTER_SIZE_FOR_SPLIT,
        min_subcluster_size: int = MIN_SUBCLUSTER_SIZE,
        lexicon: Optional[Dict[str, List[str]]] = None,
    ):
        self.min_cluster_size = min_cluster_size
        self.min_subcluster_size = min_subcluster_size
        self._families = list((lexicon or THEME_LEXICON).items())

    def _subgroups(self, cluster: Cluster) -> "OrderedDict[str, List[SentimentedReview]]":
        # Family order first, "other" last.
        groups: "OrderedDict[str, List[SentimentedReview]]" = OrderedDict(
            (name, []) for name, _ in self._families
        )
        groups[OTHER_THEME] = []
        for review in cluster.reviews:
            idx = best_theme(review.text, self._families)
            key = self._families[idx][0] if idx is not None else OTHER_THEME
            groups[key].append(review)
        return groups

    def _split(self, cluster: Cluster) -> List[Cluster]:
        if cluster.size < self.min_cluster_size:
            return [cluster]

        valid = [
            (name, members)
            for name, members in self._subgroups(cluster).items()
            if len(members) >= self.min_subcluster_size
        ]
        if len(valid) < 2:
            return [cluster]

        dropped = cluster.size - sum(len(m) for _, m in valid)
        logger.info(
            f"Splitting cluster {cluster.cluster_id} ({cluster.size} reviews) into "
            f"{[name for name, _ in valid]}, {dropped} unplaced"
        )
        return [
            Cluster(cluster_id=-1, reviews=tuple(members), label=name if name != OTHER_THEME else cluster.label)
            for name, members in valid
        ]

    def refine(
        self,
        assignments: Sequence[ClusteredReview],
        theme_names: Optional[Dict[int, str]] = None,
    ) -> List[Cluster]:
        """
        Refine clustered reviews.

        Returns:
            Clusters renumbered densely from 0, in original cluster order.
        """
        refined: List[Cluster] = []
        for cluster in group_clusters(assignments, theme_names):
            for part in self._split(cluster):
                refined.append(Cluster(cluster_id=len(refined), reviews=part.reviews, label=part.label))

        logger.info(
            f"Refinement: {len(assignments)} reviews -> {len(refined)} clusters "
            f"{[c.size for c in refined]}"
        )
        return refined
