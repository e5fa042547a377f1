# src/filters/matcher.py

"""Cross-store product matching by extracted model key and storage."""

import logging
from collections.abc import Sequence

from src.models.listing import Listing
from src.models.match_cluster import MatchCluster

logger = logging.getLogger("price_tracker.filters")


class ProductMatcher:
    """Group listings from different stores that describe the same product."""

    @staticmethod
    def _member_order(listing: Listing) -> tuple[object, ...]:
        """Ascending price, then store name, then id for full determinism."""
        return (listing.price, listing.store, listing.id)

    @staticmethod
    def match(
        listings: Sequence[Listing],
        min_stores: int = 2,
    ) -> list[MatchCluster]:
        """Cluster listings by ``modelKey + "_" + storageGb``.

        Match strategy:
        1. Listings without a model key are skipped entirely.
        2. Remaining listings are bucketed by match key in one pass.
        3. A bucket becomes a cluster only when it spans at least
           ``min_stores`` distinct stores.

        The input is never modified and nothing is cached between calls.
        """
        if not listings:
            return []

        groups: dict[str, list[Listing]] = {}
        for listing in listings:
            key = listing.match_key
            if key is None:
                continue
            groups.setdefault(key, []).append(listing)

        clusters: list[MatchCluster] = []
        for key in sorted(groups):
            members = groups[key]
            if len({m.store for m in members}) < min_stores:
                continue
            clusters.append(
                MatchCluster(
                    match_key=key,
                    members=tuple(
                        sorted(members, key=ProductMatcher._member_order)
                    ),
                )
            )

        logger.info(
            "Matched %d clusters from %d listings (%d keyed)",
            len(clusters),
            len(listings),
            sum(len(g) for g in groups.values()),
        )
        return clusters

    @staticmethod
    def unclustered_count(
        listings: Sequence[Listing],
        clusters: Sequence[MatchCluster],
    ) -> int:
        """Count listings that have a model key but joined no cluster."""
        clustered = {m.id for c in clusters for m in c.members}
        return sum(
            1
            for listing in listings
            if listing.model_key is not None and listing.id not in clustered
        )
