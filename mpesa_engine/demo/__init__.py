"""Demo module for running the pipeline against local sample data"""

from .csv_data_loader import DemoDataLoader

__all__ = ['DemoDataLoader']
