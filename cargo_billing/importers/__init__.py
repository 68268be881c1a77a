# cargo_billing/importers/__init__.py

"""
Importers package

Spreadsheet reading, row conversion and batched ingestion into the store.
"""

from .base_importer import CSVReader, HeaderNormalizer, SpreadsheetReader
from .cargo_converter import CargoRecordConverter
from .ingestion import BatchIngestionPipeline

__all__ = [
    "CSVReader",
    "HeaderNormalizer",
    "SpreadsheetReader",
    "CargoRecordConverter",
    "BatchIngestionPipeline",
]
