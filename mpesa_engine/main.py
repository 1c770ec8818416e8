"""Command-line entry point for the statement engine"""

import argparse
import json
import sys
from datetime import date, time
from decimal import Decimal
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables FIRST, before any other imports
# Find the .env file in the project root
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(dotenv_path=env_path)

from pydantic import BaseModel
from mpesa_engine.constants import InputFormat, Sensitivity
from mpesa_engine.demo.csv_data_loader import read_book_entries_csv, read_business_profile_yaml
from mpesa_engine.demo.demo_config import is_demo_mode, apply_demo_overrides
from mpesa_engine.models import BusinessProfile
from mpesa_engine.orchestrator.pipeline import StatementPipeline
from mpesa_engine.tools.category_store import build_category_store
from mpesa_engine.tools.reconciliation_tools import ACCOUNT_TYPES
from mpesa_engine.utils.config_loader import load_config
from mpesa_engine.utils.logging import get_logger

logger = get_logger(__name__)


def to_jsonable(value):
    """json.dumps default for models, decimals and dates"""
    if isinstance(value, BaseModel):
        return value.model_dump(mode='json')
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (date, time)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Extract, categorize and audit M-Pesa statement transactions"
    )
    parser.add_argument('statement', help="Path to a statement text file")
    parser.add_argument('--business-id', help="Business account ID (defaults to the profile's)")
    parser.add_argument('--profile', help="Business profile YAML")
    parser.add_argument(
        '--format',
        default=InputFormat.SMS_TEXT.value,
        choices=[InputFormat.SMS_TEXT.value, InputFormat.PDF.value],
        help="Statement format (image formats need an OCR collaborator)"
    )
    parser.add_argument('--language', default='en', choices=['en', 'sw'])
    parser.add_argument('--categorize', action='store_true', help="Categorize extracted transactions")
    parser.add_argument('--learning', action='store_true', help="Use and update the learned category store")
    parser.add_argument('--anomalies', action='store_true', help="Run anomaly detection")
    parser.add_argument('--sensitivity', choices=[level.value for level in Sensitivity])
    parser.add_argument('--books', help="Book entries CSV to reconcile against")
    parser.add_argument('--account-type', choices=list(ACCOUNT_TYPES))
    parser.add_argument('--insights', action='store_true', help="Include revenue, expense and trend insights")
    parser.add_argument('--config', help="Configuration YAML (defaults to config/rules.yaml)")
    return parser


def main(argv=None):
    """Main entry point"""
    args = build_parser().parse_args(argv)

    config = load_config(args.config)
    if is_demo_mode():
        config = apply_demo_overrides(config)

    profile = read_business_profile_yaml(Path(args.profile)) if args.profile else BusinessProfile()
    business_id = args.business_id or profile.business_id

    category_store = build_category_store() if args.learning else None
    pipeline = StatementPipeline(config, category_store=category_store)

    statement_text = Path(args.statement).read_text(encoding='utf-8')
    parsed = pipeline.parse_statement(statement_text, business_id, args.format, args.language)
    transactions = parsed['transactions']
    output = {'statement': parsed}

    if args.categorize or args.learning:
        categorization = pipeline.categorize(transactions, profile, learning_mode=args.learning or None)
        transactions = categorization['categorized_transactions']
        output['categorization'] = categorization

    if args.anomalies:
        output['anomalies'] = pipeline.detect_anomalies(transactions, profile, args.sensitivity)

    if args.books:
        book_entries = read_book_entries_csv(Path(args.books))
        output['reconciliation'] = pipeline.reconcile(transactions, book_entries, args.account_type).to_summary()

    if args.insights:
        output['insights'] = pipeline.insights(transactions, business_id=business_id)

    json.dump(output, sys.stdout, indent=2, default=to_jsonable)
    sys.stdout.write("\n")
    return output


if __name__ == "__main__":
    main()
