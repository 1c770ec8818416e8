"""Constants and enums for the statement engine"""

from decimal import Decimal
from enum import Enum


class TransactionType(str, Enum):
    """Wallet transaction types"""
    RECEIVED = "received"
    SENT = "sent"
    WITHDRAW = "withdraw"
    DEPOSIT = "deposit"
    PAYBILL = "paybill"
    BUY_GOODS = "buy_goods"
    AIRTIME = "airtime"
    FULIZA = "fuliza"


class Network(str, Enum):
    """Wallet networks; mpesa is the home wallet"""
    MPESA = "mpesa"
    AIRTEL = "airtel"
    TKASH = "tkash"
    INTERNATIONAL = "international"


class Sensitivity(str, Enum):
    """Anomaly detection sensitivity"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RiskLevel(str, Enum):
    """Overall batch risk level"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ExtractionStrategy(str, Enum):
    """Extractor selection"""
    AI = "ai"
    PATTERN = "pattern"
    AUTO = "auto"


class InputFormat(str, Enum):
    """Statement payload formats"""
    SMS_TEXT = "sms_text"
    WHATSAPP_IMAGE = "whatsapp_image"
    SCREENSHOT = "screenshot"
    PDF = "pdf"


INCOME_TYPES = frozenset({TransactionType.RECEIVED})
EXPENSE_TYPES = frozenset({
    TransactionType.SENT,
    TransactionType.PAYBILL,
    TransactionType.BUY_GOODS,
    TransactionType.WITHDRAW,
})
IMAGE_FORMATS = frozenset({InputFormat.WHATSAPP_IMAGE, InputFormat.SCREENSHOT})

# Confidence defaults
AI_CONFIDENCE = 0.95
PATTERN_CONFIDENCE = 0.75
DEFAULT_CONFIDENCE = 0.8
UNCATEGORIZED_CONFIDENCE = 0.3
DEFAULT_LEARNED_CONFIDENCE_THRESHOLD = 0.8
HIGH_CONFIDENCE_THRESHOLD = 0.8

UNCATEGORIZED = "uncategorized"
VAT_RATE = Decimal("0.16")

# Anomaly detection defaults
SENSITIVITY_MULTIPLIERS = {
    Sensitivity.HIGH: 3,
    Sensitivity.MEDIUM: 5,
    Sensitivity.LOW: 10,
}
DEFAULT_PEAK_HOURS = ["09:00-17:00"]
DEFAULT_AVERAGE_TRANSACTION_SIZE = Decimal("1000")
RAPID_CONSECUTIVE_SECONDS = 300
PENNY_PROBE_AMOUNT = Decimal("1")
LARGE_SEND_AMOUNT = Decimal("50000")
LOW_CONFIDENCE_THRESHOLD = 0.7
ROUND_NUMBER_UNIT = Decimal("1000")
CROSS_NETWORK_AMOUNT = Decimal("10000")
FULIZA_MAX_TRANSACTIONS = 3
HIGH_RISK_SCORE = 0.7
CRITICAL_RISK_SCORE = 0.8
SUSPICIOUS_NAME_TOKENS = ["test", "unknown", "fraud", "scam", "fake"]
LEGITIMATE_ROUND_KEYWORDS = ["rent", "salary", "loan"]
DEFAULT_CHECK_WEIGHT = 0.2

# LLM defaults
DEFAULT_LLM_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_LLM_MODEL = "google/gemini-2.5-flash"
LLM_MAX_RETRIES = 3
LLM_BASE_DELAY_SECONDS = 1
LLM_TIMEOUT_SECONDS = 60
