"""
Unit tests for click fraud scoring.

Tests cover:
- Individual signals and their weights
- Score cap
- Record threshold and severity
"""

import pytest

from referral_ledger.models.enums import ClickFlag, FraudSeverity
from referral_ledger.services.tracking.fraud_scorer import (
    ClickSignals,
    FraudAssessment,
    is_bot_user_agent,
    score_click,
)

BROWSER_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0 Safari/537.36"
)


class TestScoreClick:
    """Test additive click scoring."""

    def test_clean_click_scores_zero(self):
        """Regular browser without history has no flags."""
        assessment = score_click(ClickSignals(user_agent=BROWSER_UA))

        assert assessment.risk_score == 0
        assert assessment.flags == []

    def test_missing_user_agent(self):
        """Missing user agent adds 20."""
        assessment = score_click(ClickSignals(user_agent=None))

        assert assessment.risk_score == 20
        assert assessment.flag_names == [ClickFlag.SUSPICIOUS_USER_AGENT.value]

    def test_short_user_agent(self):
        """User agent under 20 characters is suspicious."""
        assessment = score_click(ClickSignals(user_agent="curl/8.0"))

        assert ClickFlag.SUSPICIOUS_USER_AGENT.value in assessment.flag_names

    def test_same_ip_limit_is_exclusive(self):
        """Exactly 10 earlier clicks from an IP is still allowed."""
        at_limit = score_click(
            ClickSignals(user_agent=BROWSER_UA, same_ip_clicks_24h=10)
        )
        over_limit = score_click(
            ClickSignals(user_agent=BROWSER_UA, same_ip_clicks_24h=11)
        )

        assert at_limit.risk_score == 0
        assert over_limit.risk_score == 30
        assert over_limit.flags[0].severity is FraudSeverity.MEDIUM

    def test_velocity_abuse(self):
        """More than 5 clicks per referrer in an hour adds 25."""
        assessment = score_click(
            ClickSignals(user_agent=BROWSER_UA, same_referrer_clicks_1h=6)
        )

        assert assessment.risk_score == 25
        assert assessment.flag_names == [ClickFlag.VELOCITY_ABUSE.value]

    def test_bot_user_agent(self):
        """Bot patterns add 40 with HIGH severity."""
        ua = "Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)"
        assessment = score_click(ClickSignals(user_agent=ua))

        assert assessment.risk_score == 40
        assert assessment.flags[0].flag is ClickFlag.BOT_DETECTION
        assert assessment.flags[0].severity is FraudSeverity.HIGH

    def test_short_bot_user_agent_counts_twice(self):
        """A short bot user agent is both suspicious and a bot."""
        assessment = score_click(ClickSignals(user_agent="spider"))

        assert assessment.risk_score == 60
        assert assessment.flag_names == [
            ClickFlag.SUSPICIOUS_USER_AGENT.value,
            ClickFlag.BOT_DETECTION.value,
        ]

    def test_score_is_capped(self):
        """All signals together cap at 100."""
        assessment = score_click(
            ClickSignals(
                user_agent="HeadlessBot",
                same_ip_clicks_24h=50,
                same_referrer_clicks_1h=50,
            )
        )

        assert assessment.risk_score == 100
        assert len(assessment.flags) == 4


class TestFraudAssessment:
    """Test record threshold and severity."""

    @pytest.mark.parametrize(
        "score,expected",
        [(0, False), (69, False), (70, True), (100, True)],
    )
    def test_requires_record(self, score, expected):
        """Records start at the detection threshold of 70."""
        assert FraudAssessment(risk_score=score).requires_record() is expected

    def test_severity_high_below_critical(self):
        """Scores from 70 to 89 are HIGH."""
        assert FraudAssessment(risk_score=85).severity() is FraudSeverity.HIGH

    def test_severity_critical(self):
        """Scores of 90 and above are CRITICAL."""
        assert FraudAssessment(risk_score=90).severity() is FraudSeverity.CRITICAL

    def test_custom_thresholds(self):
        """Thresholds can be overridden per call."""
        assessment = FraudAssessment(risk_score=50)

        assert assessment.requires_record(threshold=50)
        assert assessment.severity(critical_threshold=50) is FraudSeverity.CRITICAL

    def test_flag_serialization(self):
        """Flags serialize to plain JSON values."""
        assessment = score_click(ClickSignals(user_agent=None))

        assert assessment.flags[0].to_dict() == {
            "type": "SUSPICIOUS_USER_AGENT",
            "reason": "Suspicious or missing user agent",
            "severity": "MEDIUM",
            "weight": 20,
        }


class TestBotDetection:
    """Test bot user agent patterns."""

    @pytest.mark.parametrize(
        "user_agent",
        [
            "Mozilla/5.0 HeadlessChrome/120.0",
            "python-scraper/1.0",
            "Selenium WebDriver",
            "PhantomJS/2.1.1",
            "Baiduspider",
            "SomeCrawler/3.0",
        ],
    )
    def test_bot_patterns(self, user_agent):
        """Known automation tools are detected case-insensitively."""
        assert is_bot_user_agent(user_agent)

    def test_browser_is_not_bot(self):
        """Regular browsers pass."""
        assert not is_bot_user_agent(BROWSER_UA)

    def test_missing_user_agent_is_not_bot(self):
        """Missing user agent is handled by the length check only."""
        assert not is_bot_user_agent(None)
