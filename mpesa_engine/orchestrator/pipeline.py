"""Statement pipeline - coordinates extraction, categorization, anomaly checks and reconciliation"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Protocol, Union
from mpesa_engine.constants import InputFormat, IMAGE_FORMATS, TransactionType
from mpesa_engine.models import (
    Transaction,
    BusinessProfile,
    BookEntry,
    AnomalyReport,
    ReconciliationResult
)
from mpesa_engine.tools.anomaly_tools import AnomalySettings, detect_anomalies, build_anomaly_report
from mpesa_engine.tools.categorization_tools import (
    categorize_transactions,
    summarize_categorization,
    suggested_vat_rate
)
from mpesa_engine.tools.category_store import CategoryStore
from mpesa_engine.tools.extraction import Extractor, build_extractor
from mpesa_engine.tools.insights_tools import get_transaction_insights
from mpesa_engine.tools.llm_client import LLMClient
from mpesa_engine.tools.reconciliation_tools import reconcile
from mpesa_engine.tools.validation_tools import validate_and_normalize, deduplicate_transactions
from mpesa_engine.utils.config_loader import load_config, get_section
from mpesa_engine.utils.errors import ExtractionError
from mpesa_engine.utils.logging import get_logger
from mpesa_engine.utils.metrics import pipeline_stage_time

logger = get_logger(__name__)

MESSAGES = {
    'en': "Found {count} transactions. Total amount: KES {total}",
    'sw': "Nimepata miamala {count}. Jumla ya pesa: KES {total}",
}


class OCRClient(Protocol):
    """Turns an image payload into plain text"""

    def image_to_text(self, payload: Union[str, bytes]) -> str:
        ...


def calculate_total(transactions: List[Transaction]) -> Decimal:
    """Received amounts count positive, every other type negative"""
    return sum(
        (t.amount if t.type == TransactionType.RECEIVED else -t.amount for t in transactions),
        Decimal("0")
    )


def average_confidence(transactions: List[Transaction]) -> float:
    if not transactions:
        return 0.0
    return sum(t.confidence_score for t in transactions) / len(transactions)


class StatementPipeline:
    """
    Entry point for statement processing.

    Collaborators (extractor, category store, OCR client) are injected; when
    omitted the extractor is built from configuration and the optional
    collaborators stay disabled. Nothing is cached between calls.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        extractor: Optional[Extractor] = None,
        llm_client: Optional[LLMClient] = None,
        category_store: Optional[CategoryStore] = None,
        ocr_client: Optional[OCRClient] = None
    ):
        self.config = config if config is not None else load_config()
        self.extractor = extractor or build_extractor(self.config, llm_client=llm_client)
        self.category_store = category_store
        self.ocr_client = ocr_client
        self.anomaly_settings = AnomalySettings.from_config(self.config)

        categorization = get_section(self.config, 'categorization')
        self.learning_mode = bool(categorization.get('learning_mode', False))
        self.min_learned_confidence = categorization.get('min_learned_confidence', 0.8)
        self.default_account_type = get_section(self.config, 'reconciliation').get('default_account_type', 'all')

    def _statement_text(self, statement_data: Union[str, bytes], input_format: InputFormat) -> str:
        if input_format in IMAGE_FORMATS:
            if self.ocr_client is None:
                raise ExtractionError(f"No OCR client configured for {input_format.value} input")
            return self.ocr_client.image_to_text(statement_data)
        if isinstance(statement_data, bytes):
            return statement_data.decode('utf-8', errors='replace')
        return statement_data or ''

    def extract_transactions(
        self,
        statement_data: Union[str, bytes],
        business_id: Optional[str] = None,
        input_format: Union[InputFormat, str] = InputFormat.SMS_TEXT
    ) -> List[Transaction]:
        """
        Extract, validate and deduplicate transactions from a statement.

        Args:
            statement_data: Statement text, or an image payload for image formats
            business_id: Owning business account
            input_format: sms_text, pdf (already text), whatsapp_image or screenshot

        Returns:
            Validated, deduplicated transactions

        Raises:
            ExtractionError: If an image arrives without an OCR client
        """
        input_format = InputFormat(input_format)
        raw_text = self._statement_text(statement_data, input_format)

        with pipeline_stage_time.labels(stage='extract').time():
            candidates = self.extractor.extract(raw_text)

        with pipeline_stage_time.labels(stage='validate').time():
            transactions = deduplicate_transactions(validate_and_normalize(candidates, business_id))

        return transactions

    def parse_statement(
        self,
        statement_data: Union[str, bytes],
        business_id: Optional[str] = None,
        input_format: Union[InputFormat, str] = InputFormat.SMS_TEXT,
        language: str = 'en'
    ) -> Dict[str, Any]:
        """
        Parse a statement and summarize the result.

        Returns:
            {
                'success': True,
                'transactions': [...],
                'total_count': int,
                'total_amount': Decimal,         # received positive, others negative
                'business_id': str,
                'message': str,                  # English or Swahili
                'processing_confidence': float,  # mean confidence
                'timestamp': str
            }
        """
        run_id = str(uuid.uuid4())
        input_format = InputFormat(input_format)
        logger.info("Parsing statement", run_id=run_id, business_id=business_id, format=input_format.value)

        transactions = self.extract_transactions(statement_data, business_id, input_format)
        total = calculate_total(transactions)
        template = MESSAGES.get(language, MESSAGES['en'])

        logger.info(f"Parsed {len(transactions)} transactions", run_id=run_id, business_id=business_id)

        return {
            'success': True,
            'transactions': transactions,
            'total_count': len(transactions),
            'total_amount': total,
            'business_id': business_id,
            'message': template.format(count=len(transactions), total=total),
            'processing_confidence': average_confidence(transactions),
            'timestamp': datetime.now().isoformat()
        }

    def categorize(
        self,
        transactions: List[Transaction],
        profile: Optional[BusinessProfile] = None,
        learning_mode: Optional[bool] = None
    ) -> Dict[str, Any]:
        """
        Categorize transactions and summarize.

        Raises:
            CategoryStoreError: If the learned store fails
        """
        learning = self.learning_mode if learning_mode is None else learning_mode

        with pipeline_stage_time.labels(stage='categorize').time():
            categorized = categorize_transactions(
                transactions,
                profile,
                category_store=self.category_store,
                learning_mode=learning,
                min_learned_confidence=self.min_learned_confidence
            )

        summary = summarize_categorization(categorized, learning_updated=learning and self.category_store is not None)
        return {
            'success': True,
            'categorized_transactions': categorized,
            'suggested_vat_rates': {t.transaction_id: suggested_vat_rate(t) for t in categorized},
            **summary
        }

    def detect_anomalies(
        self,
        transactions: List[Transaction],
        profile: Optional[BusinessProfile] = None,
        sensitivity: Optional[str] = None
    ) -> AnomalyReport:
        with pipeline_stage_time.labels(stage='anomalies').time():
            findings = detect_anomalies(transactions, profile, sensitivity, settings=self.anomaly_settings)
        return build_anomaly_report(findings, business_id=profile.business_id if profile else None)

    def reconcile(
        self,
        transactions: List[Transaction],
        book_entries: List[Union[BookEntry, Dict[str, Any]]],
        account_type: Optional[str] = None
    ) -> ReconciliationResult:
        with pipeline_stage_time.labels(stage='reconcile').time():
            return reconcile(transactions, book_entries, account_type or self.default_account_type)

    def insights(
        self,
        transactions: List[Transaction],
        metrics: Optional[Iterable[str]] = None,
        business_id: Optional[str] = None
    ) -> Dict[str, Any]:
        return get_transaction_insights(transactions, metrics, business_id)

    def run(
        self,
        statement_data: Union[str, bytes],
        profile: Optional[BusinessProfile] = None,
        book_entries: Optional[List[Union[BookEntry, Dict[str, Any]]]] = None,
        input_format: Union[InputFormat, str] = InputFormat.SMS_TEXT,
        sensitivity: Optional[str] = None,
        language: str = 'en'
    ) -> Dict[str, Any]:
        """
        Full flow: parse, categorize, detect anomalies and, when book entries
        are given, reconcile.
        """
        business_id = profile.business_id if profile else None
        parsed = self.parse_statement(statement_data, business_id, input_format, language)
        categorization = self.categorize(parsed['transactions'], profile)
        transactions = categorization['categorized_transactions']

        result = {
            'statement': {key: value for key, value in parsed.items() if key != 'transactions'},
            'transactions': transactions,
            'categorization': {key: value for key, value in categorization.items() if key != 'categorized_transactions'},
            'anomalies': self.detect_anomalies(transactions, profile, sensitivity),
            'insights': self.insights(transactions, business_id=business_id),
        }
        if book_entries is not None:
            result['reconciliation'] = self.reconcile(transactions, book_entries).to_summary()

        return result
