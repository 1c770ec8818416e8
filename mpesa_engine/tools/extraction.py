"""Extraction strategy selection"""

from typing import Any, Dict, List, Optional, Protocol
from mpesa_engine.constants import ExtractionStrategy
from mpesa_engine.tools.ai_extractor import AIExtractor
from mpesa_engine.tools.llm_client import LLMClient
from mpesa_engine.tools.pattern_extractor import PatternExtractor
from mpesa_engine.utils.config_loader import get_section
from mpesa_engine.utils.errors import ConfigurationError
from mpesa_engine.utils.logging import get_logger

logger = get_logger(__name__)


class Extractor(Protocol):
    """Anything that turns statement text into candidate dicts"""

    def extract(self, raw_text: str) -> List[Dict[str, Any]]:
        ...


def build_extractor(config: Optional[Dict[str, Any]] = None, llm_client: Optional[LLMClient] = None) -> Extractor:
    """
    Choose an extractor from the 'extraction.strategy' setting.

    'pattern' always uses the regex recognizers. 'ai' uses the LLM with
    pattern fallback. 'auto' picks 'ai' only when an LLM client is configured.

    Args:
        config: Full configuration dictionary
        llm_client: LLM client; built from config and environment when omitted

    Returns:
        Extractor instance

    Raises:
        ConfigurationError: If the strategy name is unknown
    """
    raw_strategy = get_section(config, 'extraction').get('strategy', ExtractionStrategy.AUTO.value)
    try:
        strategy = ExtractionStrategy(str(raw_strategy).lower())
    except ValueError:
        raise ConfigurationError(f"Unknown extraction strategy: {raw_strategy}")

    pattern_extractor = PatternExtractor()
    if strategy == ExtractionStrategy.PATTERN:
        logger.info("Using pattern extraction", strategy=strategy.value)
        return pattern_extractor

    client = llm_client or LLMClient.from_config(config)
    if strategy == ExtractionStrategy.AUTO and not client.is_configured:
        logger.info("No LLM API key configured, using pattern extraction", strategy=strategy.value)
        return pattern_extractor

    logger.info("Using AI extraction with pattern fallback", strategy=strategy.value, model=client.model)
    return AIExtractor(client, fallback=pattern_extractor)
