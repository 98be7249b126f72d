"""
SQLite vehicle registry and access log.

Tables:
- schema_meta: tracks schema version
- vehicles: registered plates (soft-deleted via the active flag)
- access_logs: one row per emitted access decision

Unlike a cache, the registry holds data an operator typed in, so a schema
version mismatch is reported instead of dropping tables.
"""

from __future__ import annotations

import logging
import os
import sqlite3
import threading
import time
from typing import Any, Dict, Iterable, List, Optional

from models.access import AccessDecision, RegistryEntry

# Schema version - increment when schema changes
EXPECTED_SCHEMA_VERSION = 1


class RegistryError(Exception):
    """Raised when the registry cannot be read."""


class Database:
    """
    Vehicle registry backed by a single SQLite file.

    Read methods used for access decisions (find_exact, find_all_active)
    raise RegistryError on failure so the caller can deny with "lookup
    failed". Write and admin methods log errors and return None/False.
    """

    def __init__(self, local_database_path: str):
        """
        Initialize the database.

        Args:
            local_database_path: Path to the SQLite database file.
        """
        self.local_database_path = local_database_path
        self.conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

        db_dir = os.path.dirname(local_database_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        logging.info(f"Database initialized at {local_database_path}")

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self.conn is None:
            self.conn = sqlite3.connect(self.local_database_path, check_same_thread=False)
            self.conn.row_factory = sqlite3.Row
        return self.conn

    def _get_schema_version(self) -> Optional[int]:
        """Get current schema version from database."""
        try:
            cursor = self._get_connection().cursor()
            cursor.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_meta'"
            )
            if cursor.fetchone() is None:
                return None

            cursor.execute("SELECT schema_version FROM schema_meta LIMIT 1")
            row = cursor.fetchone()
            return row[0] if row else None
        except sqlite3.Error:
            return None

    def _create_schema(self) -> None:
        cursor = self._get_connection().cursor()

        cursor.execute("""
            CREATE TABLE schema_meta (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                schema_version INTEGER NOT NULL,
                created_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS vehicles (
                id INTEGER PRIMARY KEY,
                code TEXT NOT NULL UNIQUE,
                owner_name TEXT NOT NULL,
                vehicle_model TEXT NOT NULL DEFAULT '',
                vehicle_color TEXT,
                active INTEGER NOT NULL DEFAULT 1,
                registered_at INTEGER NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS access_logs (
                id INTEGER PRIMARY KEY,
                ts INTEGER NOT NULL,
                plate_code TEXT NOT NULL,
                matched_code TEXT,
                vehicle_info TEXT,
                authorized INTEGER NOT NULL,
                reason TEXT NOT NULL,
                distance INTEGER
            )
        """)

        cursor.execute("CREATE INDEX IF NOT EXISTS idx_vehicles_active ON vehicles(active)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_access_logs_ts ON access_logs(ts)")

        cursor.execute(
            "INSERT INTO schema_meta (id, schema_version) VALUES (1, ?)",
            (EXPECTED_SCHEMA_VERSION,)
        )

        self._get_connection().commit()
        logging.info(f"Created schema version {EXPECTED_SCHEMA_VERSION}")

    def initialize(self) -> None:
        """
        Initialize the database schema.

        Creates the schema on a fresh file. A file carrying a different
        schema version is left untouched and RegistryError is raised.
        """
        with self._lock:
            try:
                self._get_connection()
                current_version = self._get_schema_version()

                if current_version is None:
                    logging.info("No schema found, creating fresh database.")
                    self._create_schema()
                elif current_version != EXPECTED_SCHEMA_VERSION:
                    raise RegistryError(
                        f"Schema version mismatch: found {current_version}, "
                        f"expected {EXPECTED_SCHEMA_VERSION}"
                    )
                else:
                    logging.info(f"Schema version {current_version} is current")

            except sqlite3.Error as e:
                logging.error(f"Database initialization error: {e}")
                raise RegistryError(str(e)) from e

    # -------------------------------------------------------------------------
    # Lookups (raise RegistryError)
    # -------------------------------------------------------------------------

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> RegistryEntry:
        return RegistryEntry(
            entry_id=row["id"],
            code=row["code"],
            owner_name=row["owner_name"],
            vehicle_model=row["vehicle_model"] or "",
            vehicle_color=row["vehicle_color"],
            active=bool(row["active"]),
            registered_at=row["registered_at"] / 1000.0 if row["registered_at"] is not None else None,
        )

    def find_exact(self, code: str) -> Optional[RegistryEntry]:
        """Entry whose code equals code, active or not."""
        with self._lock:
            try:
                cursor = self._get_connection().cursor()
                cursor.execute("SELECT * FROM vehicles WHERE code = ?", (code,))
                row = cursor.fetchone()
            except sqlite3.Error as e:
                logging.error(f"Error looking up vehicle {code}: {e}")
                raise RegistryError(f"registry unavailable: {e}") from e
        return self._row_to_entry(row) if row else None

    def find_all_active(self) -> List[RegistryEntry]:
        """All active entries, ordered by id."""
        with self._lock:
            try:
                cursor = self._get_connection().cursor()
                cursor.execute("SELECT * FROM vehicles WHERE active = 1 ORDER BY id")
                rows = cursor.fetchall()
            except sqlite3.Error as e:
                logging.error(f"Error listing active vehicles: {e}")
                raise RegistryError(f"registry unavailable: {e}") from e
        return [self._row_to_entry(r) for r in rows]

    # -------------------------------------------------------------------------
    # Write Operations
    # -------------------------------------------------------------------------

    def log_decision(self, decision: AccessDecision) -> bool:
        """
        Append a decision to the access log.

        Returns:
            True if the row was written.
        """
        with self._lock:
            try:
                cursor = self._get_connection().cursor()
                cursor.execute("""
                    INSERT INTO access_logs (
                        ts, plate_code, matched_code, vehicle_info,
                        authorized, reason, distance
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """, (
                    int(decision.timestamp * 1000),
                    decision.code,
                    decision.matched_code,
                    decision.info,
                    1 if decision.authorized else 0,
                    decision.reason,
                    decision.distance,
                ))
                self._get_connection().commit()
                return True
            except sqlite3.Error as e:
                logging.error(f"Error logging access decision for {decision.code}: {e}")
                return False

    def add_vehicle(
        self,
        code: str,
        owner_name: str,
        vehicle_model: str = "",
        vehicle_color: Optional[str] = None,
    ) -> Optional[int]:
        """
        Register a plate, or re-activate and update it if it already exists.

        Returns:
            ID of the vehicle row, or None on error.
        """
        code = code.strip().upper()
        with self._lock:
            try:
                cursor = self._get_connection().cursor()
                cursor.execute("""
                    INSERT INTO vehicles (code, owner_name, vehicle_model, vehicle_color, active, registered_at)
                    VALUES (?, ?, ?, ?, 1, ?)
                    ON CONFLICT(code) DO UPDATE SET
                        owner_name = excluded.owner_name,
                        vehicle_model = excluded.vehicle_model,
                        vehicle_color = excluded.vehicle_color,
                        active = 1
                """, (code, owner_name, vehicle_model or "", vehicle_color, int(time.time() * 1000)))
                self._get_connection().commit()

                cursor.execute("SELECT id FROM vehicles WHERE code = ?", (code,))
                row = cursor.fetchone()
                logging.info(f"Vehicle registered: {code} ({owner_name})")
                return row[0] if row else None
            except sqlite3.Error as e:
                logging.error(f"Error adding vehicle {code}: {e}")
                return None

    def deactivate_vehicle(self, code: str) -> bool:
        """
        Soft-delete a plate.

        Returns:
            True if an active vehicle was deactivated.
        """
        code = code.strip().upper()
        with self._lock:
            try:
                cursor = self._get_connection().cursor()
                cursor.execute(
                    "UPDATE vehicles SET active = 0 WHERE code = ? AND active = 1",
                    (code,)
                )
                self._get_connection().commit()
                changed = cursor.rowcount > 0
            except sqlite3.Error as e:
                logging.error(f"Error deactivating vehicle {code}: {e}")
                return False

        if changed:
            logging.info(f"Vehicle deactivated: {code}")
        return changed

    def seed_vehicles(self, vehicles: Iterable[Dict[str, Any]]) -> int:
        """
        Insert default vehicles, but only into an empty registry.

        Args:
            vehicles: Dicts with code, owner_name and optionally
                      vehicle_model and vehicle_color.

        Returns:
            Number of vehicles added.
        """
        vehicles = list(vehicles)
        if not vehicles:
            return 0

        with self._lock:
            try:
                cursor = self._get_connection().cursor()
                cursor.execute("SELECT COUNT(*) FROM vehicles")
                if cursor.fetchone()[0] > 0:
                    return 0
            except sqlite3.Error as e:
                logging.error(f"Error checking registry before seeding: {e}")
                return 0

            added = 0
            for v in vehicles:
                if self.add_vehicle(
                    code=v["code"],
                    owner_name=v["owner_name"],
                    vehicle_model=v.get("vehicle_model", ""),
                    vehicle_color=v.get("vehicle_color"),
                ) is not None:
                    added += 1

        logging.info(f"Registry seeded with {added} default vehicle(s)")
        return added

    # -------------------------------------------------------------------------
    # Read Operations - Admin
    # -------------------------------------------------------------------------

    def list_vehicles(self, include_inactive: bool = False) -> List[RegistryEntry]:
        with self._lock:
            try:
                cursor = self._get_connection().cursor()
                if include_inactive:
                    cursor.execute("SELECT * FROM vehicles ORDER BY id")
                else:
                    cursor.execute("SELECT * FROM vehicles WHERE active = 1 ORDER BY id")
                rows = cursor.fetchall()
            except sqlite3.Error as e:
                logging.error(f"Error listing vehicles: {e}")
                return []
        return [self._row_to_entry(r) for r in rows]

    def get_history(self, limit: int = 100) -> List[Dict[str, Any]]:
        """
        Most recent access log rows, newest first.

        Returns:
            List of dicts with timestamp (seconds), plate_code, matched_code,
            vehicle_info, authorized, reason and distance.
        """
        with self._lock:
            try:
                cursor = self._get_connection().cursor()
                cursor.execute("""
                    SELECT id, ts, plate_code, matched_code, vehicle_info,
                           authorized, reason, distance
                    FROM access_logs
                    ORDER BY ts DESC, id DESC
                    LIMIT ?
                """, (limit,))
                rows = cursor.fetchall()
            except sqlite3.Error as e:
                logging.error(f"Error getting access history: {e}")
                return []

        return [
            {
                "id": r["id"],
                "timestamp": r["ts"] / 1000.0,
                "plate_code": r["plate_code"],
                "matched_code": r["matched_code"],
                "vehicle_info": r["vehicle_info"],
                "authorized": bool(r["authorized"]),
                "reason": r["reason"],
                "distance": r["distance"],
            }
            for r in rows
        ]

    def cleanup_old_logs(self, retention_days: int = 90) -> int:
        """
        Delete access log rows older than the retention period.

        Returns:
            Number of rows deleted.
        """
        cutoff_ms = int((time.time() - retention_days * 86400) * 1000)
        with self._lock:
            try:
                cursor = self._get_connection().cursor()
                cursor.execute("DELETE FROM access_logs WHERE ts < ?", (cutoff_ms,))
                self._get_connection().commit()
                deleted = cursor.rowcount
            except sqlite3.Error as e:
                logging.error(f"Error cleaning up old access logs: {e}")
                return 0

        if deleted:
            logging.info(f"Cleaned up {deleted} access log rows older than {retention_days} days")
        return deleted

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self.conn:
                self.conn.close()
                self.conn = None
