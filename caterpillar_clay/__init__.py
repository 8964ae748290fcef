"""Storefront core: configuration, errors, SQLite data models and request guards."""

__version__ = "0.1.0"