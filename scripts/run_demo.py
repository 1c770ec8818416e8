#!/usr/bin/env python
"""
Demo runner script for the M-Pesa statement engine

Runs the full pipeline (parse, categorize, anomaly checks, reconciliation,
insights) over the sample statement, book entries and business profile.

Usage:
    python scripts/run_demo.py                       # Run full demo
    python scripts/run_demo.py --dry-run             # Preview data only
    python scripts/run_demo.py --sensitivity high    # Stricter anomaly checks
"""

import os
import sys
import argparse
from pathlib import Path
from datetime import datetime

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Set demo mode environment variables
os.environ["DEMO_MODE"] = "true"
os.environ["ENVIRONMENT"] = "demo"
os.environ["CATEGORY_STORE"] = "memory"
os.environ.setdefault("LOG_LEVEL", "WARNING")

from mpesa_engine.demo.csv_data_loader import DemoDataLoader, STATEMENT_FILE, BOOK_ENTRIES_FILE, PROFILE_FILE
from mpesa_engine.demo.demo_config import apply_demo_overrides
from mpesa_engine.orchestrator.pipeline import StatementPipeline
from mpesa_engine.tools.category_store import InMemoryCategoryStore
from mpesa_engine.utils.config_loader import load_config
from mpesa_engine.utils.logging import get_logger

logger = get_logger(__name__)


def print_header(title: str):
    """Print formatted section header"""
    print("\n" + "=" * 70)
    print(f"  {title}")
    print("=" * 70)


def validate_demo_data(data_dir: str) -> bool:
    """
    Validate that demo data files exist

    Args:
        data_dir: Path to demo data directory

    Returns:
        True if all required files exist
    """
    data_path = Path(data_dir)
    required_files = [STATEMENT_FILE, BOOK_ENTRIES_FILE, PROFILE_FILE]

    print_header("Demo Data Validation")

    if not data_path.exists():
        print(f"Demo data directory not found: {data_dir}")
        return False

    print(f"Demo data directory found: {data_path.absolute()}")

    missing_files = []
    for filename in required_files:
        filepath = data_path / filename
        if filepath.exists():
            size_kb = filepath.stat().st_size / 1024
            print(f"  [ok] {filename} ({size_kb:.1f} KB)")
        else:
            print(f"  [missing] {filename}")
            missing_files.append(filename)

    if missing_files:
        print(f"\nMissing required files: {missing_files}")
        return False

    return True


def show_data_summary(loader: DemoDataLoader):
    """Display summary statistics of demo data"""
    print_header("Demo Data Summary")

    stats = loader.get_summary_stats()
    profile = loader.load_business_profile()

    print(f"Data Directory: {stats['data_dir']}")
    print(f"Business: {profile.name} ({profile.business_id})")
    print(f"  Statement messages: {stats['statement_messages']}")
    print(f"  Book entries: {stats['book_entries']}")


def run_demo(loader: DemoDataLoader, sensitivity: str = None):
    """
    Run the full pipeline in demo mode

    Args:
        loader: Demo data source
        sensitivity: Optional anomaly sensitivity override
    """
    print_header("Running Demo Pipeline")
    print(f"Start time: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")

    config = apply_demo_overrides(load_config())
    pipeline = StatementPipeline(config, category_store=InMemoryCategoryStore())
    profile = loader.load_business_profile()

    results = pipeline.run(
        loader.load_statement_text(),
        profile=profile,
        book_entries=loader.load_book_entries(),
        sensitivity=sensitivity
    )

    statement = results['statement']
    print_header("Extraction")
    print(statement['message'])
    print(f"  Processing confidence: {statement['processing_confidence']:.2f}")
    for txn in results['transactions']:
        print(f"  {txn.transaction_id} {txn.type.value:<10} KES {txn.amount:>10} {txn.counterparty:<28} {txn.category}")

    categorization = results['categorization']
    print_header("Categorization")
    print(f"  Categories: {', '.join(categorization['categories_found'])}")
    print(f"  High confidence: {categorization['high_confidence_count']}")
    print(f"  VAT applicable: {categorization['vat_applicable_count']}")

    report = results['anomalies']
    print_header("Anomalies")
    print(f"  Risk level: {report.risk_level.value.upper()}")
    print(f"  Flagged: {report.anomalies_detected} (immediate attention: {report.immediate_attention_count})")
    for finding in report.anomalies:
        print(f"  {finding.transaction_id} risk={finding.risk_score:.2f} {', '.join(finding.anomaly_types)}")
        print(f"    -> {finding.recommendation}")

    reconciliation = results['reconciliation']
    print_header("Reconciliation")
    print(f"  Matched: {reconciliation['matched_count']}")
    print(f"  Unmatched wallet transactions: {reconciliation['unmatched_source_count']}")
    print(f"  Unmatched book entries: {reconciliation['unmatched_target_count']}")
    print(f"  Reconciliation rate: {reconciliation['reconciliation_rate']:.2%}")

    revenue = results['insights']['revenue']
    print_header("Insights")
    print(f"  Revenue: KES {revenue['total_revenue']:,.2f} ({revenue['growth_trend']})")
    print(f"  Expenses: KES {results['insights']['expenses']['total_expenses']:,.2f}")

    print_header("Demo Complete")
    return results


def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(
        description="Run the M-Pesa statement engine in demo mode with sample data",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        '--dry-run',
        action='store_true',
        help="Preview demo data without running the pipeline"
    )

    parser.add_argument(
        '--sensitivity',
        choices=['low', 'medium', 'high'],
        help="Anomaly detection sensitivity"
    )

    parser.add_argument(
        '--data-dir',
        default=str(project_root / "sample_data"),
        help="Path to demo data directory (default: sample_data)"
    )

    args = parser.parse_args()

    # Set data directory
    os.environ["DEMO_DATA_DIR"] = args.data_dir

    print_header("M-Pesa Statement Engine - Demo Mode")
    print(f"Data Directory: {args.data_dir}")

    if not validate_demo_data(args.data_dir):
        print("\nDemo data validation failed.")
        sys.exit(1)

    loader = DemoDataLoader(args.data_dir)
    show_data_summary(loader)

    if args.dry_run:
        print_header("Dry Run Complete")
        print("Run without --dry-run to execute the pipeline")
    else:
        try:
            run_demo(loader, sensitivity=args.sensitivity)
        except Exception as e:
            logger.error(f"Demo run failed: {e}")
            sys.exit(1)


if __name__ == "__main__":
    main()
