"""
Referral Service Layer

Referral link validation and registered user identity.
"""

from apposaur.services.referrals.service import ReferralService

__all__ = [
    "ReferralService",
]
