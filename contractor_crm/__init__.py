"""Contractor CRM backend: public lead intake and admin CRM API."""

__version__ = "0.1.0"
