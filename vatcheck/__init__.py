"""vatcheck: EU VAT number verification with provider fallback and caching."""

__version__ = "0.1.0"
