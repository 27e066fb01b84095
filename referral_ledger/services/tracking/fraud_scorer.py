"""
Click fraud scoring.

Pure scoring of a click from its request signals and recent click history.
The score is advisory: it is stored on the click and may raise a fraud
record, but never blocks tracking.
"""

import re
from dataclasses import dataclass, field

from referral_ledger.config.referral_constants import (
    BOT_PATTERN_WEIGHT,
    BOT_USER_AGENT_PATTERNS,
    MAX_RISK_SCORE,
    MIN_USER_AGENT_LENGTH,
    SAME_IP_CLICK_LIMIT,
    SAME_IP_WEIGHT,
    SAME_IP_WINDOW_HOURS,
    SUSPICIOUS_USER_AGENT_WEIGHT,
    VELOCITY_CLICK_LIMIT,
    VELOCITY_WEIGHT,
    VELOCITY_WINDOW_HOURS,
)
from referral_ledger.config.settings import settings
from referral_ledger.models.enums import ClickFlag, FraudSeverity

BOT_PATTERN = re.compile("|".join(BOT_USER_AGENT_PATTERNS), re.IGNORECASE)


@dataclass(frozen=True)
class ClickSignals:
    """
    Inputs to click scoring.

    Attributes:
        user_agent: Raw User-Agent header, may be missing
        same_ip_clicks_24h: Earlier clicks from the same IP in the last 24h
        same_referrer_clicks_1h: Earlier clicks on the referrer's codes in the last hour
    """

    user_agent: str | None
    same_ip_clicks_24h: int = 0
    same_referrer_clicks_1h: int = 0


@dataclass(frozen=True)
class FraudFlag:
    """One triggered signal."""

    flag: ClickFlag
    reason: str
    severity: FraudSeverity
    weight: int

    def to_dict(self) -> dict[str, str | int]:
        """JSON form stored in click and fraud evidence."""
        return {
            "type": self.flag.value,
            "reason": self.reason,
            "severity": self.severity.value,
            "weight": self.weight,
        }


@dataclass(frozen=True)
class FraudAssessment:
    """Outcome of click scoring."""

    risk_score: int
    flags: list[FraudFlag] = field(default_factory=list)

    @property
    def flag_names(self) -> list[str]:
        """Triggered flag names in evaluation order."""
        return [flag.flag.value for flag in self.flags]

    def requires_record(self, threshold: int | None = None) -> bool:
        """Check if score is high enough for a fraud record."""
        if threshold is None:
            threshold = settings.fraud_detection_threshold
        return self.risk_score >= threshold

    def severity(self, critical_threshold: int | None = None) -> FraudSeverity:
        """Severity of the fraud record for this score."""
        if critical_threshold is None:
            critical_threshold = settings.fraud_critical_threshold
        if self.risk_score >= critical_threshold:
            return FraudSeverity.CRITICAL
        return FraudSeverity.HIGH


def is_bot_user_agent(user_agent: str | None) -> bool:
    """Check a user agent against known automation patterns."""
    return bool(user_agent) and BOT_PATTERN.search(user_agent) is not None


def score_click(signals: ClickSignals) -> FraudAssessment:
    """
    Score a click.

    Args:
        signals: Request signals and history counts

    Returns:
        FraudAssessment with score capped at MAX_RISK_SCORE
    """
    flags: list[FraudFlag] = []

    if signals.same_ip_clicks_24h > SAME_IP_CLICK_LIMIT:
        flags.append(
            FraudFlag(
                ClickFlag.MULTIPLE_CLICKS_SAME_IP,
                f"{signals.same_ip_clicks_24h} clicks from same IP "
                f"in {SAME_IP_WINDOW_HOURS} hours",
                FraudSeverity.MEDIUM,
                SAME_IP_WEIGHT,
            )
        )

    user_agent = signals.user_agent or ""
    if len(user_agent) < MIN_USER_AGENT_LENGTH:
        flags.append(
            FraudFlag(
                ClickFlag.SUSPICIOUS_USER_AGENT,
                "Suspicious or missing user agent",
                FraudSeverity.MEDIUM,
                SUSPICIOUS_USER_AGENT_WEIGHT,
            )
        )

    if is_bot_user_agent(user_agent):
        flags.append(
            FraudFlag(
                ClickFlag.BOT_DETECTION,
                "User agent matches bot patterns",
                FraudSeverity.HIGH,
                BOT_PATTERN_WEIGHT,
            )
        )

    if signals.same_referrer_clicks_1h > VELOCITY_CLICK_LIMIT:
        flags.append(
            FraudFlag(
                ClickFlag.VELOCITY_ABUSE,
                f"{signals.same_referrer_clicks_1h} clicks "
                f"in last {VELOCITY_WINDOW_HOURS} hour",
                FraudSeverity.MEDIUM,
                VELOCITY_WEIGHT,
            )
        )

    risk_score = min(sum(flag.weight for flag in flags), MAX_RISK_SCORE)
    return FraudAssessment(risk_score=risk_score, flags=flags)
