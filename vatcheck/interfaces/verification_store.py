"""Abstract base class for the durable verification store.

The verification service persists one record per ``(vat_code,
country_code)`` so that answers survive process restarts and the fast cache
can be re-populated without calling a registry again.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from vatcheck.models.verification import PersistedRecord


class IVerificationStore(ABC):
    """Contract for durable verification persistence."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables/indices if they do not exist yet."""

    @abstractmethod
    async def find_by_vat_code_and_country(
        self, vat_code: str, country_code: str
    ) -> PersistedRecord | None:
        """Return the record for *vat_code* in *country_code*, or ``None``.

        Parameters
        ----------
        vat_code:
            Full VAT code including the country prefix, e.g. ``"ESB12345678"``.
        country_code:
            ISO alpha-2 country code; matched case-insensitively.
        """

    @abstractmethod
    async def save(self, record: PersistedRecord) -> PersistedRecord:
        """Insert *record* or overwrite the existing one for the same key.

        There is never more than one record per ``(vat_code, country_code)``.
        Returns the record as stored.
        """

    @abstractmethod
    async def delete(self, vat_code: str, country_code: str) -> bool:
        """Soft-delete the record for the key; returns ``True`` if one was found."""
