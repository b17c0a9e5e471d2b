"""Game library reconciliation for console boot-menu storage."""

__version__ = "0.1.0"
