"""Personal finance tracker: spreadsheet ingestion and transaction API."""

__version__ = "0.1.0"
