"""Per-message SMS gateway routing and dispatch with provider fallback."""

__version__ = "1.0.0"
