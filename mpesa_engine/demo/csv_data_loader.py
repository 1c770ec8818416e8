"""Demo data loader - statement text, book entries CSV and business profile YAML"""

import pandas as pd
import yaml
from pathlib import Path
from typing import List, Optional
from mpesa_engine.demo.demo_config import get_demo_data_dir
from mpesa_engine.models import BookEntry, BusinessProfile
from mpesa_engine.utils.logging import get_logger

logger = get_logger(__name__)

STATEMENT_FILE = "statements.txt"
BOOK_ENTRIES_FILE = "book_entries.csv"
PROFILE_FILE = "business_profile.yaml"


def read_book_entries_csv(filepath: Path) -> List[BookEntry]:
    """Read book entries from a CSV with columns entry_id, date, amount, description, account_type, reference"""
    df = pd.read_csv(filepath, dtype=str, keep_default_na=False)
    logger.info(f"Loaded {len(df)} book entries from {filepath}")
    return [BookEntry(**{key: (value or None) for key, value in row.items()}) for row in df.to_dict('records')]


def read_business_profile_yaml(filepath: Path) -> BusinessProfile:
    with open(filepath, 'r') as f:
        data = yaml.safe_load(f) or {}
    return BusinessProfile(**data)


class DemoDataLoader:
    """
    Loads demo inputs from a local directory.

    Mirrors what a caller would otherwise fetch from a messaging channel and
    an accounting system, so the same pipeline code runs offline.
    """

    def __init__(self, data_dir: Optional[str] = None):
        """
        Initialize demo data loader

        Args:
            data_dir: Directory holding the demo files (defaults to DEMO_DATA_DIR or sample_data/)
        """
        if data_dir is None:
            data_dir = get_demo_data_dir()

        self.data_dir = Path(data_dir)
        if not self.data_dir.exists():
            raise FileNotFoundError(f"Demo data directory not found: {data_dir}")

        logger.info(f"Demo data loader initialized with data from: {self.data_dir}")

    def load_statement_text(self, filename: str = STATEMENT_FILE) -> str:
        filepath = self.data_dir / filename
        if not filepath.exists():
            logger.warning(f"File not found: {filepath}")
            return ""
        text = filepath.read_text(encoding='utf-8')
        logger.info(f"Loaded statement text from {filename}", characters=len(text))
        return text

    def load_book_entries(self, filename: str = BOOK_ENTRIES_FILE) -> List[BookEntry]:
        filepath = self.data_dir / filename
        if not filepath.exists():
            logger.warning(f"File not found: {filepath}")
            return []
        return read_book_entries_csv(filepath)

    def load_business_profile(self, filename: str = PROFILE_FILE) -> BusinessProfile:
        filepath = self.data_dir / filename
        if not filepath.exists():
            logger.warning(f"File not found: {filepath}, using default profile")
            return BusinessProfile()
        return read_business_profile_yaml(filepath)

    def get_summary_stats(self) -> dict:
        """Counts of the demo inputs"""
        statement = self.load_statement_text()
        return {
            'statement_characters': len(statement),
            'statement_messages': statement.count('Confirmed'),
            'book_entries': len(self.load_book_entries()),
            'data_dir': str(self.data_dir),
        }
