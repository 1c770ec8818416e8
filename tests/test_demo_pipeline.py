"""
Tests for demo mode and the command-line entry point

Runs the full pipeline over the bundled sample data without network access.
"""

import json
import pytest
from decimal import Decimal
from pathlib import Path
from mpesa_engine.demo import DemoDataLoader
from mpesa_engine.demo.demo_config import (
    DEFAULT_DEMO_DATA_DIR,
    apply_demo_overrides,
    get_demo_config_overrides,
    is_demo_mode,
    get_demo_data_dir
)
from mpesa_engine.orchestrator.pipeline import StatementPipeline
from mpesa_engine.tools.category_store import InMemoryCategoryStore
from mpesa_engine.tools.pattern_extractor import PatternExtractor
from mpesa_engine.utils.config_loader import load_config, DEFAULT_CONFIG_PATH


@pytest.fixture
def loader():
    return DemoDataLoader(str(DEFAULT_DEMO_DATA_DIR))


@pytest.fixture
def demo_results(loader):
    store = InMemoryCategoryStore()
    pipeline = StatementPipeline(apply_demo_overrides(load_config(str(DEFAULT_CONFIG_PATH))), category_store=store)
    results = pipeline.run(
        loader.load_statement_text(),
        profile=loader.load_business_profile(),
        book_entries=loader.load_book_entries()
    )
    results['store'] = store
    return results


def test_demo_mode_detection(monkeypatch):
    """Test demo mode environment flags"""
    monkeypatch.delenv("DEMO_MODE", raising=False)
    monkeypatch.delenv("ENVIRONMENT", raising=False)
    assert is_demo_mode() is False

    monkeypatch.setenv("ENVIRONMENT", "demo")
    assert is_demo_mode() is True


def test_demo_overrides_do_not_mutate_config():
    """Test that overrides are merged into a copy"""
    config = load_config(str(DEFAULT_CONFIG_PATH))
    original_strategy = config['extraction']['strategy']

    merged = apply_demo_overrides(config)

    assert merged['extraction']['strategy'] == get_demo_config_overrides()['extraction']['strategy'] == 'pattern'
    assert merged['categorization']['learning_mode'] is True
    assert merged['llm'] == config['llm']
    assert config['extraction']['strategy'] == original_strategy


def test_demo_data_dir_from_environment(monkeypatch, tmp_path):
    """Test DEMO_DATA_DIR override"""
    monkeypatch.setenv("DEMO_DATA_DIR", str(tmp_path))

    assert get_demo_data_dir() == str(tmp_path)


def test_loader_missing_directory(tmp_path):
    """Test that a missing data directory is reported"""
    with pytest.raises(FileNotFoundError):
        DemoDataLoader(str(tmp_path / "missing"))


def test_loader_missing_files_use_defaults(tmp_path):
    """Test that missing files degrade to empty inputs"""
    loader = DemoDataLoader(str(tmp_path))

    assert loader.load_statement_text() == ""
    assert loader.load_book_entries() == []
    assert loader.load_business_profile().business_id is None


def test_loader_reads_sample_data(loader):
    """Test the bundled sample files"""
    stats = loader.get_summary_stats()
    profile = loader.load_business_profile()
    entries = loader.load_book_entries()

    assert stats['statement_messages'] == 10
    assert stats['book_entries'] == 5
    assert profile.business_id == "biz_demo_001"
    assert profile.average_transaction_size == Decimal("2000")
    assert set(type(profile).model_fields) == {
        "business_id", "name", "average_transaction_size", "peak_hours", "home_network"
    }
    assert entries[0].entry_id == "be_001"
    assert entries[0].amount == Decimal("500.00")
    assert entries[2].reference is None


def test_sample_statement_extraction(loader):
    """Test that every sample message is recognized"""
    candidates = PatternExtractor().extract(loader.load_statement_text())

    assert len(candidates) == 10
    assert [c['type'] for c in candidates] == [
        "received", "sent", "paybill", "buy_goods", "withdraw", "airtime",
        "received", "sent", "sent", "deposit"
    ]


def test_demo_run_statement(demo_results):
    """Test parse summary over the sample statement"""
    statement = demo_results['statement']

    # The second UNKNOWN TRADER send is a duplicate
    assert statement['total_count'] == 9
    assert statement['total_amount'] == Decimal("-23100.00")
    assert statement['business_id'] == "biz_demo_001"


def test_demo_run_categorization(demo_results):
    """Test categories and learned write-back over the sample statement"""
    categorization = demo_results['categorization']

    assert categorization['categories_found'] == [
        "uncategorized", "expense_utilities_electricity", "income_sales"
    ]
    assert categorization['high_confidence_count'] == 2
    assert categorization['vat_applicable_count'] == 2
    assert categorization['learning_updated'] is True
    assert len(demo_results['store']) == 2


def test_demo_run_anomalies(demo_results):
    """Test that the late round send to UNKNOWN TRADER is flagged"""
    report = demo_results['anomalies']

    assert report.anomalies_detected == 1
    assert report.anomalies[0].transaction_id == "QFL1234574"
    assert report.immediate_attention_count == 1


def test_demo_run_reconciliation(demo_results):
    """Test matches against the sample book entries"""
    reconciliation = demo_results['reconciliation']

    assert reconciliation['matched_count'] == 4
    assert reconciliation['unmatched_source_count'] == 5
    assert reconciliation['unmatched_target_count'] == 1
    assert reconciliation['unmatched_target'][0]['entry_id'] == "be_005"
    assert reconciliation['reconciliation_rate'] == pytest.approx(4 / 14)


def test_demo_run_insights(demo_results):
    """Test revenue and expense insights over the sample statement"""
    insights = demo_results['insights']

    assert insights['revenue']['total_revenue'] == 3000.0
    assert insights['revenue']['peak_day'] == "2025-01-16"
    assert insights['expenses']['total_expenses'] == 23000.0


def test_cli_outputs_json(monkeypatch, capsys):
    """Test the command-line entry point end to end"""
    from mpesa_engine.main import main

    monkeypatch.setenv("DEMO_MODE", "true")
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
    data_dir = Path(DEFAULT_DEMO_DATA_DIR)

    main([
        str(data_dir / "statements.txt"),
        "--profile", str(data_dir / "business_profile.yaml"),
        "--categorize",
        "--anomalies",
        "--books", str(data_dir / "book_entries.csv"),
        "--insights",
    ])

    output = json.loads(capsys.readouterr().out)
    assert output['statement']['total_count'] == 9
    assert output['statement']['business_id'] == "biz_demo_001"
    assert output['statement']['transactions'][0]['transaction_id'] == "QCK1234567"
    assert output['categorization']['suggested_vat_rates']['QBP1234569'] == "0.16"
    assert output['anomalies']['anomalies_detected'] == 1
    assert output['reconciliation']['matched_count'] == 4
    assert output['insights']['revenue']['total_revenue'] == 3000.0
