"""Custom exceptions for the statement engine"""


class MpesaEngineError(Exception):
    """Base exception for statement engine errors"""
    pass


class ConfigurationError(MpesaEngineError):
    """Configuration loading errors"""
    pass


class LLMError(MpesaEngineError):
    """LLM API errors"""
    pass


class RateLimitError(LLMError):
    """LLM provider answered with a rate-limit response"""
    pass


class ExtractionError(MpesaEngineError):
    """Statement input could not be turned into text"""
    pass


class CategoryStoreError(MpesaEngineError):
    """Learned category store read/write errors"""
    pass


class ReconciliationError(MpesaEngineError):
    """Reconciliation input errors"""
    pass
