"""OpenFinance Sync: transaction ingestion with a primary store and a best-effort Notion mirror."""

__version__ = "1.0.0"
