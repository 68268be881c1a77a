import uuid
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Boolean, Float, DateTime, ForeignKey, JSON
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


class Customer(Base):
    __tablename__ = "customers"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(200), nullable=False)
    code = Column(String(50))
    is_active = Column(Boolean, default=True, nullable=False)


class Rate(Base):
    __tablename__ = "rates"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(200), nullable=False)
    description = Column(String(500))
    rate_type = Column(String(20), nullable=False)    # fixed / per_kg / multiplier
    base_rate = Column(Float, nullable=False, default=0.0)
    multiplier = Column(Float)
    currency = Column(String(3), nullable=False, default="EUR")
    is_active = Column(Boolean, default=True, nullable=False)


class RuleColumnsMixin:
    """Columns shared by customer and rate rules."""

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(200), nullable=False)
    description = Column(String(500))
    is_active = Column(Boolean, default=True, nullable=False)
    priority = Column(Integer, nullable=False, unique=True)  # 1 = evaluated first
    conditions = Column(JSON, nullable=False, default=list)
    logic = Column(String(3), nullable=False, default="AND")
    match_count = Column(Integer, default=0, nullable=False)
    last_run = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class CustomerRule(RuleColumnsMixin, Base):
    __tablename__ = "customer_rules"

    assign_to = Column(String(36), ForeignKey("customers.id"))  # target customer


class RateRule(RuleColumnsMixin, Base):
    __tablename__ = "rate_rules"

    rate_id = Column(String(36), ForeignKey("rates.id"))  # target rate definition


class CargoRecord(Base):
    __tablename__ = "cargo_data"

    id = Column(String(36), primary_key=True, default=_uuid)
    rec_id = Column(String(100), nullable=False, index=True)
    inb_flight_date = Column(String(50))
    outb_flight_date = Column(String(50))
    des_no = Column(String(20))
    rec_numb = Column(String(10))
    orig_oe = Column(String(10))
    dest_oe = Column(String(10))
    inb_flight_no = Column(String(20))
    outb_flight_no = Column(String(20))
    mail_cat = Column(String(5))
    mail_class = Column(String(10))
    total_kg = Column(Float, default=0.0)
    invoice = Column(String(50))
    customer_name_number = Column(String(200))

    # Assignment results
    assigned_customer = Column(String(36))
    assigned_rate = Column(Float)
    rate_currency = Column(String(3))
    rate_id = Column(String(36))
    rate_value = Column(Float)
    assigned_at = Column(String(50))

    processed_at = Column(String(50))
    created_at = Column(DateTime, default=datetime.utcnow)

    def to_record(self) -> dict:
        """Plain field mapping of the row."""
        return {c.name: getattr(self, c.name) for c in self.__table__.columns}
