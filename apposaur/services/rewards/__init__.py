"""
Reward Service Layer

Reward catalog and signed-offer redemption.
"""

from apposaur.services.rewards.service import (
    RewardService,
    Reward,
    RewardsResponse,
    SignedOffer,
    RedemptionResult,
)

__all__ = [
    "RewardService",
    "Reward",
    "RewardsResponse",
    "SignedOffer",
    "RedemptionResult",
]
