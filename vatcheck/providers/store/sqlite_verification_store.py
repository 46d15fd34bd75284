"""SQLite-backed verification store.

Persists one verification per ``(vat_code, country_code)`` to a local
SQLite database at ``data/vat_verifications.db``.  Uses ``aiosqlite`` for
async I/O.  Deleting a record only sets a ``deleted_at`` tombstone; the
next save for the same key revives the row in place.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from vatcheck.interfaces.verification_store import IVerificationStore
from vatcheck.models.verification import PersistedRecord

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/vat_verifications.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS vat_verifications (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    vat_code        TEXT    NOT NULL,
    country_code    TEXT    NOT NULL,
    is_valid        INTEGER NOT NULL,
    company_name    TEXT,
    company_address TEXT,
    api_source      TEXT    NOT NULL DEFAULT 'UNKNOWN',
    verified_at     TEXT,
    response_data   TEXT,
    created_at      TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    updated_at      TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    deleted_at      TEXT,
    UNIQUE(vat_code, country_code)
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_vat_verifications_country ON vat_verifications(country_code);",
    "CREATE INDEX IF NOT EXISTS idx_vat_verifications_verified ON vat_verifications(verified_at);",
]

_UPSERT_SQL = """\
INSERT INTO vat_verifications
    (vat_code, country_code, is_valid, company_name, company_address,
     api_source, verified_at, response_data)
VALUES (?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(vat_code, country_code)
DO UPDATE SET is_valid        = excluded.is_valid,
              company_name    = excluded.company_name,
              company_address = excluded.company_address,
              api_source      = excluded.api_source,
              verified_at     = excluded.verified_at,
              response_data   = excluded.response_data,
              deleted_at      = NULL,
              updated_at      = strftime('%Y-%m-%dT%H:%M:%fZ', 'now');
"""

_SELECT_SQL = """\
SELECT vat_code, country_code, is_valid, company_name, company_address,
       api_source, verified_at, response_data
FROM vat_verifications
WHERE vat_code = ? AND country_code = ? AND deleted_at IS NULL;
"""

_SOFT_DELETE_SQL = """\
UPDATE vat_verifications
SET deleted_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now')
WHERE vat_code = ? AND country_code = ? AND deleted_at IS NULL;
"""


class SQLiteVerificationStore(IVerificationStore):
    """SQLite-backed verification persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the verifications table and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_TABLE_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("verification_db_initialized", path=str(self._db_path))

    async def find_by_vat_code_and_country(
        self, vat_code: str, country_code: str
    ) -> PersistedRecord | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(_SELECT_SQL, (vat_code, country_code.upper()))
            row = await cursor.fetchone()

        if row is None:
            return None
        return self._row_to_record(dict(row))

    async def save(self, record: PersistedRecord) -> PersistedRecord:
        """Upsert *record*; the unique key guarantees a single row per VAT."""
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(
                _UPSERT_SQL,
                (
                    record.vat_code,
                    record.country_code.upper(),
                    int(record.is_valid),
                    record.company_name,
                    record.company_address,
                    record.api_source,
                    record.verified_at.isoformat() if record.verified_at else None,
                    json.dumps(record.response_data) if record.response_data is not None else None,
                ),
            )
            await db.commit()

        logger.debug(
            "verification_saved",
            vat_code=record.vat_code,
            country_code=record.country_code,
            api_source=record.api_source,
        )
        return record

    async def delete(self, vat_code: str, country_code: str) -> bool:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(_SOFT_DELETE_SQL, (vat_code, country_code.upper()))
            await db.commit()
            deleted = cursor.rowcount > 0

        logger.info("verification_deleted", vat_code=vat_code, found=deleted)
        return deleted

    @staticmethod
    def _row_to_record(row: dict[str, Any]) -> PersistedRecord:
        verified_at = datetime.fromisoformat(row["verified_at"]) if row["verified_at"] else None
        response_data = json.loads(row["response_data"]) if row["response_data"] else None
        return PersistedRecord(
            vat_code=row["vat_code"],
            country_code=row["country_code"],
            is_valid=bool(row["is_valid"]),
            company_name=row["company_name"],
            company_address=row["company_address"],
            api_source=row["api_source"] or "UNKNOWN",
            verified_at=verified_at,
            response_data=response_data,
        )
