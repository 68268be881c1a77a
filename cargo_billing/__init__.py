# cargo_billing/__init__.py

"""
Cargo billing core.

Rule-based customer and rate assignment for imported mail/cargo shipment
records, batched ingestion into the record store, and a quota-aware local
cache.
"""

__version__ = "1.0.0"
