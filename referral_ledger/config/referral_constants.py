"""
Referral program constants.

Central location for the fixed rules of the referral program that are not
environment-tunable.
"""

from decimal import Decimal

# Chains never go deeper than referrer-of-referrer
MAX_CHAIN_DEPTH = 2

# Referral code prefixes per referrer class
AGENT_CODE_PREFIX = "AGENT"
CUSTOMER_CODE_PREFIX = "INVITE"
CODE_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
NAME_PREFIX_FILLER = "X"

# Legacy profile tiers (kept for dashboards; rewards are fixed amounts now)
LEGACY_COMMISSION_TIERS = {
    1: {"name": "Bronze", "rate": Decimal("5.0"), "min_referrals": 0},
    2: {"name": "Silver", "rate": Decimal("7.5"), "min_referrals": 10},
    3: {"name": "Gold", "rate": Decimal("10.0"), "min_referrals": 25},
}

# Fraud scoring weights and windows
SAME_IP_WINDOW_HOURS = 24
SAME_IP_CLICK_LIMIT = 10
SAME_IP_WEIGHT = 30

VELOCITY_WINDOW_HOURS = 1
VELOCITY_CLICK_LIMIT = 5
VELOCITY_WEIGHT = 25

MIN_USER_AGENT_LENGTH = 20
SUSPICIOUS_USER_AGENT_WEIGHT = 20

BOT_PATTERN_WEIGHT = 40
BOT_USER_AGENT_PATTERNS = (
    r"bot",
    r"crawler",
    r"spider",
    r"scraper",
    r"headless",
    r"phantom",
    r"selenium",
)

MAX_RISK_SCORE = 100
SELF_REFERRAL_RISK_SCORE = 90

# Referer host fragments classified as social traffic
SOCIAL_PLATFORMS = (
    "facebook.com",
    "instagram.com",
    "twitter.com",
    "linkedin.com",
    "tiktok.com",
    "whatsapp.com",
    "telegram.org",
)

# Click attribution window for code-based conversions
CONVERSION_LOOKBACK_DAYS = 30

# Default campaign values for generated links
DEFAULT_CAMPAIGN_SOURCE = "referral"
DEFAULT_CAMPAIGN_MEDIUM = "direct"
DEFAULT_CAMPAIGN_NAME = "referral_program"
SHORT_CODE_LENGTH = 8

# Background job limits (milliseconds)
DRAMATIQ_TIME_LIMIT_STANDARD = 300_000
DRAMATIQ_TIME_LIMIT_LONG = 1_800_000
FRAUD_ALERT_BATCH_SIZE = 100
