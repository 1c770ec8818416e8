"""Tests for the statement pipeline"""

import pytest
from decimal import Decimal
from unittest.mock import MagicMock
from mpesa_engine.constants import RiskLevel
from mpesa_engine.models import BusinessProfile, AnomalyReport
from mpesa_engine.orchestrator.pipeline import StatementPipeline, calculate_total
from mpesa_engine.tools.ai_extractor import AIExtractor
from mpesa_engine.tools.category_store import InMemoryCategoryStore
from mpesa_engine.tools.pattern_extractor import PatternExtractor
from mpesa_engine.utils.config_loader import load_config, DEFAULT_CONFIG_PATH
from mpesa_engine.utils.errors import ExtractionError, LLMError

RECEIVED_SMS = (
    "QCK1234567 Confirmed. You have received Ksh500.00 from JOHN DOE 254712345678 on 15/1/25 at 2:30 PM. "
    "New M-PESA balance is Ksh15,500.00. Transaction cost, Ksh0.00."
)
PAYBILL_SMS = (
    "QBP1234567 Confirmed. Ksh1,000.00 paid to KENYA POWER. Account number 123456789 on 15/1/25 at 4:00 PM. "
    "New M-PESA balance is Ksh14,300.00. Transaction cost, Ksh0.00."
)
DUPLICATE_SENDS = (
    "QFL0000001 Confirmed. Ksh20,000.00 sent to UNKNOWN TRADER 254733000111 on 16/1/25 at 11:02 PM. "
    "New M-PESA balance is Ksh4,900.00. Transaction cost, Ksh105.00.\n"
    "QFL0000002 Confirmed. Ksh20,000.00 sent to UNKNOWN TRADER 254733000111 on 16/1/25 at 11:03 PM. "
    "New M-PESA balance is Ksh4,900.00. Transaction cost, Ksh105.00."
)


@pytest.fixture
def config():
    config = load_config(str(DEFAULT_CONFIG_PATH))
    config['extraction']['strategy'] = 'pattern'
    return config


@pytest.fixture
def pipeline(config):
    return StatementPipeline(config)


@pytest.fixture
def profile():
    return BusinessProfile(
        business_id="biz_001",
        average_transaction_size=Decimal("2000"),
        peak_hours=["07:00-12:00", "13:00-20:00"]
    )


def test_pipeline_uses_configured_extractor(pipeline):
    """Test that the pattern strategy builds a pattern extractor"""
    assert isinstance(pipeline.extractor, PatternExtractor)


def test_parse_statement_summary(pipeline):
    """Test the parse summary for a single received message"""
    result = pipeline.parse_statement(RECEIVED_SMS, business_id="biz_001")

    assert result['success'] is True
    assert result['total_count'] == 1
    assert result['total_amount'] == Decimal("500.00")
    assert result['business_id'] == "biz_001"
    assert result['message'] == "Found 1 transactions. Total amount: KES 500.00"
    assert result['processing_confidence'] == 0.75
    assert result['transactions'][0].business_id == "biz_001"


def test_parse_statement_swahili(pipeline):
    """Test the Swahili summary message"""
    result = pipeline.parse_statement(RECEIVED_SMS, language='sw')

    assert result['message'] == "Nimepata miamala 1. Jumla ya pesa: KES 500.00"


def test_total_counts_outflows_negative(pipeline):
    """Test that received is positive and everything else negative"""
    result = pipeline.parse_statement(RECEIVED_SMS + "\n" + PAYBILL_SMS)

    assert result['total_count'] == 2
    assert result['total_amount'] == Decimal("-500.00")
    assert calculate_total([]) == Decimal("0")


def test_parse_statement_deduplicates(pipeline):
    """Test that identical sends collapse to one"""
    result = pipeline.parse_statement(DUPLICATE_SENDS)

    assert result['total_count'] == 1
    assert result['transactions'][0].transaction_id == "QFL0000001"


def test_parse_statement_empty_text(pipeline):
    """Test that an empty statement is a successful empty parse"""
    result = pipeline.parse_statement("")

    assert result['total_count'] == 0
    assert result['processing_confidence'] == 0.0


def test_parse_statement_bytes(pipeline):
    """Test that byte payloads are decoded as text"""
    result = pipeline.parse_statement(RECEIVED_SMS.encode('utf-8'), input_format='pdf')

    assert result['total_count'] == 1


def test_image_without_ocr_client_raises(pipeline):
    """Test that images need an OCR collaborator"""
    with pytest.raises(ExtractionError):
        pipeline.parse_statement(b"\x89PNG...", input_format='screenshot')


def test_image_with_ocr_client(config):
    """Test that OCR output flows into extraction"""
    ocr = MagicMock()
    ocr.image_to_text.return_value = RECEIVED_SMS
    pipeline = StatementPipeline(config, ocr_client=ocr)

    result = pipeline.parse_statement(b"\x89PNG...", input_format='whatsapp_image')

    assert result['total_count'] == 1
    ocr.image_to_text.assert_called_once_with(b"\x89PNG...")


def test_unknown_input_format(pipeline):
    """Test that formats are validated"""
    with pytest.raises(ValueError):
        pipeline.parse_statement(RECEIVED_SMS, input_format='fax')


def test_ai_failure_degrades_to_patterns(config):
    """Test that a failing LLM never breaks parsing"""
    llm = MagicMock()
    llm.is_configured = True
    llm.complete.side_effect = LLMError("provider down")
    pipeline = StatementPipeline(config, extractor=AIExtractor(llm))

    result = pipeline.parse_statement(RECEIVED_SMS)

    assert result['total_count'] == 1
    assert result['processing_confidence'] == 0.75


def test_categorize(pipeline, profile):
    """Test categorization output and VAT suggestions"""
    parsed = pipeline.parse_statement(RECEIVED_SMS + "\n" + PAYBILL_SMS, business_id="biz_001")

    result = pipeline.categorize(parsed['transactions'], profile)

    assert result['success'] is True
    assert [t.category for t in result['categorized_transactions']] == [
        "uncategorized", "expense_utilities_electricity"
    ]
    assert result['suggested_vat_rates'] == {"QCK1234567": Decimal("0"), "QBP1234567": Decimal("0.16")}
    assert result['learning_updated'] is False


def test_categorize_learning_mode(config, profile):
    """Test that learning mode updates the injected store"""
    store = InMemoryCategoryStore()
    pipeline = StatementPipeline(config, category_store=store)
    parsed = pipeline.parse_statement(PAYBILL_SMS, business_id="biz_001")

    result = pipeline.categorize(parsed['transactions'], profile, learning_mode=True)

    assert result['learning_updated'] is True
    assert store.get("biz_001", "kenya power").category == "expense_utilities_electricity"


def test_detect_anomalies(pipeline, profile):
    """Test the anomaly report for a late, large, round send to a suspicious name"""
    parsed = pipeline.parse_statement(DUPLICATE_SENDS, business_id="biz_001")

    report = pipeline.detect_anomalies(parsed['transactions'], profile)

    assert isinstance(report, AnomalyReport)
    assert report.anomalies_detected == 1
    finding = report.anomalies[0]
    assert finding.anomaly_types == ["unusual_amount", "unusual_time", "fraud_name_pattern", "round_number_fraud"]
    assert finding.risk_score == 0.625
    assert finding.requires_immediate_attention is True
    assert finding.recommendation.startswith("URGENT")
    assert report.risk_level == RiskLevel.LOW
    assert report.business_id == "biz_001"


def test_reconcile(pipeline):
    """Test reconciliation through the pipeline with dict book entries"""
    parsed = pipeline.parse_statement(RECEIVED_SMS + "\n" + PAYBILL_SMS)

    result = pipeline.reconcile(
        parsed['transactions'],
        [{'entry_id': 'be_001', 'date': '2025-01-15', 'amount': '500.00', 'account_type': 'revenue'}]
    )

    assert result.matched_count == 1
    assert result.unmatched_source_count == 1
    assert result.reconciliation_rate == pytest.approx(1 / 3)


def test_run_full_flow(pipeline, profile):
    """Test the combined result of a full run"""
    results = pipeline.run(
        RECEIVED_SMS + "\n" + PAYBILL_SMS,
        profile=profile,
        book_entries=[{'entry_id': 'be_001', 'date': '2025-01-15', 'amount': '1000', 'account_type': 'expense'}]
    )

    assert results['statement']['total_count'] == 2
    assert 'transactions' not in results['statement']
    assert len(results['transactions']) == 2
    assert results['categorization']['categories_found'] == ["uncategorized", "expense_utilities_electricity"]
    assert results['anomalies'].anomalies_detected == 0
    assert results['insights']['revenue']['total_revenue'] == 500.0
    assert results['reconciliation']['matched_count'] == 1


def test_run_without_book_entries(pipeline):
    """Test that reconciliation is skipped when no book entries are given"""
    results = pipeline.run(RECEIVED_SMS)

    assert 'reconciliation' not in results
