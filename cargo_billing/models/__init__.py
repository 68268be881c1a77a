# cargo_billing/models/__init__.py
from .models import Base, Customer, Rate, CustomerRule, RateRule, CargoRecord
