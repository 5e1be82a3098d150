"""
SpeedWatch Record Store

SQLite-backed store for violation records. The only component that
touches the database file.

Invariants:
- id is AUTOINCREMENT: never reused, even after deleteAll()
- receivedAt is assigned here, at insert, in server-local time
- Records are never updated; deleteAll() is the only destructive operation
- Every operation is a single statement; insert commits before returning
- Reads are newest-first by receivedAt, ties broken by id

Schema:
- violations: one row per record, indexed on device, tier, receivedAt

Property of Uncompromising Sensors LLC.
"""

import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from speedwatch.logging import getLogger

from .queryBuilder import ViolationFilter
from .records import DeviceSummary, SummaryStats, ViolationInput, ViolationRecord


class StoreError(Exception):
    """Underlying persistence failure (disk, corruption, locked database)"""
    pass


class NotFoundError(Exception):
    """No record with the requested id"""
    pass


_COLUMNS = "id, device, speed, speedLimit, excess, tier, lat, lon, receivedAt"


class RecordStore:
    """
    SQLite violation store.

    One instance per process, created at startup and closed at shutdown.
    Writes go through a single connection under a write lock; reads use a
    dedicated query-only connection (WAL lets them run alongside a write).
    """

    def __init__(self, dbPath: str):
        """
        Open (or create) the store.

        Args:
            dbPath: Path to SQLite database file (':memory:' is not supported,
                    the read connection needs a shared file)
        """
        self.log = getLogger()
        self.dbPath = Path(dbPath)
        self.dbPath.parent.mkdir(parents=True, exist_ok=True)
        self.conn: Optional[sqlite3.Connection] = None
        self._readConn: Optional[sqlite3.Connection] = None
        self._writeLock = threading.Lock()
        self._readLock = threading.Lock()
        try:
            self._connect()
            self._initSchema()
        except sqlite3.Error as e:
            raise StoreError(f"Cannot open database {self.dbPath}: {e}") from e
        self.log.info(f"[RecordStore] SQLite ready at {self.dbPath}")

    def _connect(self):
        """Open the write connection"""
        self.conn = sqlite3.connect(
            str(self.dbPath),
            check_same_thread=False,
            timeout=30.0
        )
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        # FULL: a record is on disk before insert() returns
        self.conn.execute("PRAGMA synchronous=FULL")
        self.conn.commit()

    def _getReadConnection(self) -> sqlite3.Connection:
        if self._readConn is None:
            self._readConn = sqlite3.connect(
                str(self.dbPath),
                check_same_thread=False,
                timeout=30.0
            )
            self._readConn.row_factory = sqlite3.Row
            self._readConn.execute("PRAGMA query_only=ON")
        return self._readConn

    def _initSchema(self):
        with self._writeLock:
            self.conn.executescript("""
                CREATE TABLE IF NOT EXISTS violations (
                    id          INTEGER PRIMARY KEY AUTOINCREMENT,
                    device      TEXT NOT NULL,
                    speed       REAL NOT NULL,
                    speedLimit  REAL NOT NULL,
                    excess      REAL NOT NULL,
                    tier        TEXT NOT NULL CHECK (tier IN ('MINOR', 'MODERATE', 'SEVERE')),
                    lat         REAL,
                    lon         REAL,
                    receivedAt  TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_violations_device   ON violations(device);
                CREATE INDEX IF NOT EXISTS idx_violations_tier     ON violations(tier);
                CREATE INDEX IF NOT EXISTS idx_violations_received ON violations(receivedAt);
            """)
            self.conn.commit()

    def _read(self, sql: str, params=()) -> List[sqlite3.Row]:
        """Run one SELECT on the read connection"""
        if self.conn is None:
            raise StoreError("Record store is closed")
        with self._readLock:
            try:
                return self._getReadConnection().execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise StoreError(f"Read failed: {e}") from e

    # =========================================================================
    # Writes
    # =========================================================================

    def insert(self, record: ViolationInput) -> int:
        """
        Append one violation.

        Returns:
            Store-assigned id

        Raises:
            StoreError: On database failure (nothing is written)
        """
        receivedAt = datetime.now().isoformat(sep=' ', timespec='milliseconds')

        with self._writeLock:
            if self.conn is None:
                raise StoreError("Record store is closed")
            try:
                cursor = self.conn.execute("""
                    INSERT INTO violations (
                        device, speed, speedLimit, excess, tier, lat, lon, receivedAt
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    record.device,
                    record.speed,
                    record.speedLimit,
                    record.excess,
                    record.tier.value,
                    record.lat,
                    record.lon,
                    receivedAt
                ))
                self.conn.commit()
                return cursor.lastrowid
            except sqlite3.Error as e:
                self.conn.rollback()
                raise StoreError(f"Insert failed: {e}") from e

    def deleteAll(self) -> int:
        """
        Remove every record. Irreversible.

        Returns:
            Number of records removed
        """
        with self._writeLock:
            if self.conn is None:
                raise StoreError("Record store is closed")
            try:
                cursor = self.conn.execute("DELETE FROM violations")
                self.conn.commit()
                return cursor.rowcount
            except sqlite3.Error as e:
                self.conn.rollback()
                raise StoreError(f"Delete failed: {e}") from e

    # =========================================================================
    # Reads
    # =========================================================================

    def getById(self, recordId: int) -> ViolationRecord:
        """
        Raises:
            NotFoundError: No record with this id
        """
        rows = self._read(f"SELECT {_COLUMNS} FROM violations WHERE id = ?", (recordId,))
        if not rows:
            raise NotFoundError(f"Violation {recordId} not found")
        return ViolationRecord.fromRow(rows[0])

    def list(self, violationFilter: ViolationFilter) -> List[ViolationRecord]:
        """Records matching the filter, newest first, at most filter.limit"""
        where, params = violationFilter.whereClause()
        sql = f"SELECT {_COLUMNS} FROM violations{where} ORDER BY receivedAt DESC, id DESC LIMIT ?"
        rows = self._read(sql, params + [violationFilter.limit])
        return [ViolationRecord.fromRow(row) for row in rows]

    def count(self) -> int:
        return self._read("SELECT COUNT(*) AS n FROM violations")[0]['n']

    def summaryStats(self) -> SummaryStats:
        """Rollup over the full current record set"""
        row = self._read("""
            SELECT
                COUNT(*)                                             AS total,
                COUNT(DISTINCT device)                               AS distinctDeviceCount,
                ROUND(AVG(excess), 2)                                AS avgExcess,
                ROUND(MAX(speed), 2)                                 AS maxSpeed,
                COALESCE(SUM(CASE WHEN tier = 'SEVERE'   THEN 1 ELSE 0 END), 0) AS severeCount,
                COALESCE(SUM(CASE WHEN tier = 'MODERATE' THEN 1 ELSE 0 END), 0) AS moderateCount,
                COALESCE(SUM(CASE WHEN tier = 'MINOR'    THEN 1 ELSE 0 END), 0) AS minorCount
            FROM violations
        """)[0]
        return SummaryStats(**{k: row[k] for k in SummaryStats.__dataclass_fields__})

    def deviceSummaries(self) -> List[DeviceSummary]:
        """One summary per distinct device, most recently seen first"""
        rows = self._read("""
            SELECT
                device,
                COUNT(*)         AS totalViolations,
                MAX(speed)       AS maxSpeed,
                MAX(receivedAt)  AS lastSeen
            FROM violations
            GROUP BY device
            ORDER BY lastSeen DESC, MAX(id) DESC
        """)
        return [DeviceSummary(**{k: row[k] for k in DeviceSummary.__dataclass_fields__}) for row in rows]

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def close(self):
        """Close both connections, folding the WAL back into the database file"""
        if self._readConn:
            with self._readLock:
                try:
                    self._readConn.close()
                except sqlite3.Error:
                    pass
                self._readConn = None

        if self.conn:
            with self._writeLock:
                try:
                    self.conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
                except sqlite3.Error as e:
                    self.log.warning(f"[RecordStore] Final checkpoint failed: {e}")
                self.conn.close()
                self.conn = None
            self.log.info("[RecordStore] Closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
