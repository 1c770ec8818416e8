"""Demo-specific configuration helpers"""

import copy
import os
from pathlib import Path
from typing import Dict, Any

DEFAULT_DEMO_DATA_DIR = Path(__file__).resolve().parents[2] / "sample_data"


def is_demo_mode() -> bool:
    """
    Check if system is running in demo mode

    Returns:
        True if demo mode is active
    """
    return (
        os.getenv("DEMO_MODE") == "true" or
        os.getenv("ENVIRONMENT") == "demo"
    )


def get_demo_config_overrides() -> Dict[str, Any]:
    """
    Get demo-specific configuration overrides

    Demo runs are offline and repeatable: pattern extraction only, and the
    learned category store is exercised through the in-memory backend.

    Returns:
        Dictionary of config overrides, keyed by top-level section
    """
    return {
        'extraction': {
            'strategy': 'pattern',
        },
        'categorization': {
            'learning_mode': True,
        },
        'anomaly_detection': {
            'default_sensitivity': 'medium',
        },
    }


def apply_demo_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of config with the demo overrides merged into each section"""
    merged = copy.deepcopy(config)
    for section, values in get_demo_config_overrides().items():
        merged.setdefault(section, {})
        merged[section].update(values)
    return merged


def get_demo_data_dir() -> str:
    """
    Get demo data directory path

    Returns:
        Path to demo data directory
    """
    return os.getenv("DEMO_DATA_DIR", str(DEFAULT_DEMO_DATA_DIR))
