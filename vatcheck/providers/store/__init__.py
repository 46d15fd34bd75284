"""Durable verification stores."""

from vatcheck.providers.store.sqlite_verification_store import SQLiteVerificationStore

__all__ = ["SQLiteVerificationStore"]
