"""Terminal banking simulator built around a concurrency-safe account ledger."""

__version__ = "0.1.0"
