# src/models/match_cluster.py

"""Cross-store product cluster model."""

from dataclasses import dataclass
from decimal import Decimal

from src.models.listing import Listing


@dataclass(frozen=True)
class MatchCluster:
    """Listings from several stores believed to be the same product.

    Members are ordered by ascending price; the first one is the best
    offer.
    """

    match_key: str
    members: tuple[Listing, ...]

    @property
    def best(self) -> Listing:
        """Cheapest member of the cluster."""
        return self.members[0]

    @property
    def stores(self) -> list[str]:
        """Distinct stores in the cluster, in member order."""
        return list(dict.fromkeys(m.store for m in self.members))

    @property
    def price_spread(self) -> Decimal:
        """Difference between the most and least expensive offers."""
        return self.members[-1].price - self.members[0].price
