# cargo_billing/core/__init__.py
