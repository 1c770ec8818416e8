"""Utility modules"""

from .config_loader import load_config, save_config, get_section
from .errors import (
    MpesaEngineError,
    ConfigurationError,
    LLMError,
    RateLimitError,
    ExtractionError,
    CategoryStoreError,
    ReconciliationError
)

__all__ = [
    "load_config",
    "save_config",
    "get_section",
    "MpesaEngineError",
    "ConfigurationError",
    "LLMError",
    "RateLimitError",
    "ExtractionError",
    "CategoryStoreError",
    "ReconciliationError"
]
