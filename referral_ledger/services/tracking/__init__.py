"""
Tracking services package.

Referral links, click attribution, daily analytics and fraud records.
"""

from referral_ledger.services.tracking.analytics_service import (
    AnalyticsService,
)
from referral_ledger.services.tracking.click_tracker import (
    ClickResult,
    ClickTracker,
)
from referral_ledger.services.tracking.device import (
    GeoResolver,
    NullGeoResolver,
    RequestContext,
)
from referral_ledger.services.tracking.fraud_scorer import (
    ClickSignals,
    FraudAssessment,
    score_click,
)
from referral_ledger.services.tracking.fraud_service import FraudService
from referral_ledger.services.tracking.link_service import (
    CampaignOptions,
    LinkService,
    ReferralLinkResult,
)


__all__ = [
    "AnalyticsService",
    "CampaignOptions",
    "ClickResult",
    "ClickSignals",
    "ClickTracker",
    "FraudAssessment",
    "FraudService",
    "GeoResolver",
    "LinkService",
    "NullGeoResolver",
    "ReferralLinkResult",
    "RequestContext",
    "score_click",
]
