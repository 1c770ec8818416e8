"""Deterministic pattern-based transaction extraction"""

from typing import Any, Dict, Iterable, List, Tuple
from mpesa_engine.tools.recognizers import RECOGNIZERS, Recognizer, RecognizedFragment
from mpesa_engine.utils.logging import get_logger
from mpesa_engine.utils.metrics import transactions_extracted

logger = get_logger(__name__)


class PatternExtractor:
    """
    Extract candidate transactions from raw statement text with regex recognizers.

    Pure: identical text always yields identical candidates, and text that no
    recognizer understands simply yields nothing. When two recognizers match
    overlapping text, the one registered first keeps the span.
    """

    strategy = "pattern"

    def __init__(self, recognizers: Iterable[Recognizer] = RECOGNIZERS):
        self.recognizers = tuple(recognizers)

    def recognize(self, raw_text: str) -> List[RecognizedFragment]:
        """
        Run every recognizer and resolve overlapping spans.

        Args:
            raw_text: Statement text

        Returns:
            Accepted fragments in order of appearance
        """
        claimed: List[Tuple[int, int]] = []
        accepted: List[RecognizedFragment] = []

        for recognizer in self.recognizers:
            for fragment in recognizer.recognize(raw_text):
                if any(fragment.start < end and start < fragment.end for start, end in claimed):
                    logger.debug(
                        "Span already claimed by an earlier recognizer",
                        recognizer=recognizer.name,
                        transaction_id=fragment.candidate['transaction_id']
                    )
                    continue
                claimed.append((fragment.start, fragment.end))
                accepted.append(fragment)

        accepted.sort(key=lambda fragment: fragment.start)
        return accepted

    def extract(self, raw_text: str) -> List[Dict[str, Any]]:
        """
        Extract candidate transactions.

        Args:
            raw_text: Statement text (one or many confirmation messages)

        Returns:
            Candidate dicts in the shared extraction shape
        """
        if not raw_text or not isinstance(raw_text, str):
            return []

        candidates = [fragment.candidate for fragment in self.recognize(raw_text)]

        transactions_extracted.labels(strategy=self.strategy).inc(len(candidates))
        logger.info(f"Pattern extraction found {len(candidates)} candidates", strategy=self.strategy)
        return candidates
