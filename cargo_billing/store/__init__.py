# cargo_billing/store/__init__.py

from .base import RecordStore
from .sqlalchemy_store import SqlAlchemyRecordStore

__all__ = ["RecordStore", "SqlAlchemyRecordStore"]
