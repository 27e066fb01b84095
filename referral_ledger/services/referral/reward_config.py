"""
Referral reward configuration.

Fixed reward table keyed by (referrer class, tier). Rewards are flat amounts;
the qualifying event amount never scales them.
"""

from dataclasses import dataclass
from decimal import Decimal

from referral_ledger.config.settings import Settings, settings
from referral_ledger.models.enums import ReferrerClass, RewardKind
from referral_ledger.utils.exceptions import NoRewardConfig


@dataclass(frozen=True)
class RewardConfig:
    """Reward granted to one referrer at one tier."""

    referrer_class: ReferrerClass
    tier: int
    reward_kind: RewardKind
    amount: Decimal = Decimal("0")
    points: int = 0

    @property
    def is_zero(self) -> bool:
        """Check if reward grants nothing."""
        if self.reward_kind is RewardKind.MONEY:
            return self.amount <= 0
        return self.points <= 0


def build_reward_table(
    config: Settings = settings,
) -> dict[tuple[ReferrerClass, int], RewardConfig]:
    """
    Build the reward table from settings.

    Args:
        config: Settings to read amounts from

    Returns:
        Mapping (referrer class, tier) -> RewardConfig
    """
    agent = ReferrerClass.PROPERTY_AGENT
    customer = ReferrerClass.CUSTOMER
    return {
        (agent, 1): RewardConfig(
            agent, 1, RewardKind.MONEY, amount=config.agent_tier1_reward
        ),
        (agent, 2): RewardConfig(
            agent, 2, RewardKind.MONEY, amount=config.agent_tier2_reward
        ),
        (customer, 1): RewardConfig(
            customer, 1, RewardKind.POINTS, points=config.customer_tier1_points
        ),
        (customer, 2): RewardConfig(
            customer, 2, RewardKind.POINTS, points=config.customer_tier2_points
        ),
    }


def resolve_reward_config(
    referrer_class: ReferrerClass | str,
    tier: int,
    table: dict[tuple[ReferrerClass, int], RewardConfig] | None = None,
) -> RewardConfig:
    """
    Look up the reward for a referrer class at a tier.

    Args:
        referrer_class: Referrer class (enum or stored value)
        tier: Chain tier
        table: Reward table (defaults to one built from settings)

    Returns:
        RewardConfig

    Raises:
        NoRewardConfig: If class or tier has no configured reward
    """
    try:
        key = (ReferrerClass(referrer_class), tier)
    except ValueError:
        raise NoRewardConfig(str(referrer_class), tier) from None

    table = table if table is not None else build_reward_table()
    config = table.get(key)
    if config is None:
        raise NoRewardConfig(key[0].value, tier)
    return config
