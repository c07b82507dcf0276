"""Named pricing tiers and the legacy verdict-count tiers.

Legacy clients send ``basic``/``standard``/``premium`` or a bare verdict
count. Those resolve through the verdict count to the named tier with the
same count, so both naming schemes always charge the same price. The
catalog checks that agreement when it is built rather than trusting it.
"""

from verdict.domain import RoutingStrategy, TierConfig
from verdict.errors import InvalidTier, TierCatalogInconsistent
from verdict.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_TIER = "community"

DEFAULT_TIERS: tuple[TierConfig, ...] = (
    TierConfig(
        tier_name="community",
        display_name="Community",
        credits_required=1,
        verdict_count=3,
        routing_strategy=RoutingStrategy.community,
    ),
    TierConfig(
        tier_name="standard",
        display_name="Standard",
        credits_required=2,
        verdict_count=5,
        routing_strategy=RoutingStrategy.expert_pool,
        min_reputation=6.5,
        pool_size=20,
    ),
    TierConfig(
        tier_name="pro",
        display_name="Pro",
        credits_required=3,
        verdict_count=7,
        routing_strategy=RoutingStrategy.expert_pool,
        expert_only=True,
        min_reputation=8.0,
        pool_size=50,
    ),
)

# Legacy tier name -> (credits, verdicts) as priced before the named catalog
LEGACY_TIER_PRICING: dict[str, tuple[int, int]] = {
    "basic": (1, 3),
    "standard": (2, 5),
    "premium": (3, 7),
}


class TierCatalog:
    """Read-only lookup from tier name (or legacy alias) to TierConfig."""

    def __init__(
        self,
        tiers: tuple[TierConfig, ...] | list[TierConfig] = DEFAULT_TIERS,
        legacy_pricing: dict[str, tuple[int, int]] | None = None,
    ) -> None:
        self._tiers: dict[str, TierConfig] = {t.tier_name: t for t in tiers}
        self._legacy = dict(LEGACY_TIER_PRICING if legacy_pricing is None else legacy_pricing)
        self._by_count: dict[int, TierConfig] = {}
        for tier in tiers:
            existing = self._by_count.get(tier.verdict_count)
            if existing is not None and existing.credits_required != tier.credits_required:
                raise TierCatalogInconsistent(
                    f"Tiers '{existing.tier_name}' and '{tier.tier_name}' share "
                    f"verdict_count={tier.verdict_count} but differ in price"
                )
            self._by_count.setdefault(tier.verdict_count, tier)
        self.check_consistency()

    def check_consistency(self) -> None:
        """Every legacy tier must match the named tier with the same verdict count."""
        for name, (credits, verdicts) in self._legacy.items():
            named = self._by_count.get(verdicts)
            if named is None:
                raise TierCatalogInconsistent(
                    f"Legacy tier '{name}' ({verdicts} verdicts) has no catalog entry"
                )
            if named.credits_required != credits:
                raise TierCatalogInconsistent(
                    f"Legacy tier '{name}' costs {credits} credits but catalog tier "
                    f"'{named.tier_name}' costs {named.credits_required}"
                )
        logger.debug("tier_catalog_consistent", tiers=sorted(self._tiers), legacy=sorted(self._legacy))

    def resolve(self, tier: str | int | None) -> TierConfig:
        """Resolve a tier name, legacy alias or verdict count.

        Raises InvalidTier for unknown or inactive tiers.
        """
        if tier is None or tier == "":
            tier = DEFAULT_TIER

        config: TierConfig | None = None
        if isinstance(tier, bool):
            raise InvalidTier(tier)
        if isinstance(tier, int):
            config = self._by_count.get(tier)
        else:
            key = tier.strip().lower()
            config = self._tiers.get(key)
            if config is None and key in self._legacy:
                config = self._by_count.get(self._legacy[key][1])
            if config is None and key.isdigit():
                config = self._by_count.get(int(key))

        if config is None or not config.active:
            raise InvalidTier(tier)
        return config

    def by_verdict_count(self, count: int) -> TierConfig:
        return self.resolve(count)

    def active_tiers(self) -> list[TierConfig]:
        return [t for t in self._tiers.values() if t.active]
