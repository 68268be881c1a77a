# cargo_billing/services/__init__.py

"""
Application services.

Import services from their modules; the store package depends on
database_service, so nothing is re-exported here.
"""
