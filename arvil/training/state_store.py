"""
Local state persistence for Arvil.

Provides portable persistence for:
- Spaced items (SM-2 review state per tracked fact), upserted by id
- Drill result log plus the running user stats derived from it
- NDM (National Decision Model) entries
- Export / import of everything as one JSON document

Two implementations share the same behaviour:
- SQLiteStateStore: durable, ~/.arvil/state.db by default
- MemoryStateStore: dict-backed, for tests and throwaway sessions

Storage faults never reach the caller: reads fall back to empty defaults and
failed writes are logged and dropped.
"""

from __future__ import annotations

import json
import sqlite3
import threading
from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from loguru import logger

from .errors import StoreImportError
from .models import DrillResult, NDMEntry, SpacedItem, UserStats, now_ms

# Accuracy needed for a drill to count as "correct" in the per-type counters
PLATE_CORRECT_THRESHOLD = 80.0
SCENE_CORRECT_THRESHOLD = 60.0


# =============================================================================
# Interfaces
# =============================================================================


@runtime_checkable
class ItemStore(Protocol):
    """Keyed storage for spaced items."""

    def get_all(self) -> list[SpacedItem]: ...

    def get(self, item_id: str) -> SpacedItem | None: ...

    def save(self, item: SpacedItem) -> None: ...

    def get_due_items(
        self, now: int | None = None, item_type: str | None = None
    ) -> list[SpacedItem]: ...

    def find(self, item_type: str, content: str) -> SpacedItem | None: ...


@runtime_checkable
class ResultLog(Protocol):
    """Append-only log of completed drills."""

    def get_drill_results(self) -> list[DrillResult]: ...

    def save_drill_result(self, result: DrillResult) -> None: ...

    def get_user_stats(self) -> UserStats: ...


# =============================================================================
# Stats Update
# =============================================================================


def apply_result_to_stats(stats: UserStats, result: DrillResult) -> UserStats:
    """
    Fold one drill result into the running stats.

    Streaks count local calendar days: a drill on the same day as the last
    one leaves the streak alone, a drill on the following day extends it,
    anything else starts a new streak of 1.

    Args:
        stats: Current aggregates (mutated and returned)
        result: The newly logged result

    Returns:
        The updated stats
    """
    stats.total_drills += 1
    stats.total_accuracy = (
        stats.total_accuracy * (stats.total_drills - 1) + result.accuracy
    ) / stats.total_drills
    stats.best_accuracy = max(stats.best_accuracy, result.accuracy)

    drill_day = date.fromtimestamp(result.timestamp / 1000)
    today = drill_day.isoformat()
    yesterday = (drill_day - timedelta(days=1)).isoformat()

    if stats.last_drill_date == today:
        pass
    elif stats.last_drill_date == yesterday:
        stats.streak += 1
    else:
        stats.streak = 1
    stats.last_drill_date = today

    if result.drill_type == "reg-plate":
        stats.plates_attempted += 1
        if result.accuracy >= PLATE_CORRECT_THRESHOLD:
            stats.plates_correct += 1
    elif result.drill_type == "scene-snapshot":
        stats.scenes_attempted += 1
        if result.accuracy >= SCENE_CORRECT_THRESHOLD:
            stats.scenes_correct += 1

    return stats


def _unseen(records: list[Any], known_ids: set[str]) -> list[Any]:
    """Records whose id is neither known nor repeated earlier in the list."""
    seen = set(known_ids)
    fresh = []
    for record in records:
        if record.id in seen:
            continue
        seen.add(record.id)
        fresh.append(record)
    return fresh


# =============================================================================
# Base Store
# =============================================================================


class StateStore(ABC):
    """
    Shared behaviour for all stores.

    Subclasses supply the storage primitives; the stats rules, due-set
    filtering, export, import and clear are implemented once here.
    """

    backup_dir: Path | None = None

    # --- Spaced item primitives ---------------------------------------------

    @abstractmethod
    def get_all(self) -> list[SpacedItem]:
        """All stored items in insertion order."""

    @abstractmethod
    def get(self, item_id: str) -> SpacedItem | None:
        """Item with this id, or None."""

    @abstractmethod
    def save(self, item: SpacedItem) -> None:
        """Insert the item, or replace the stored item sharing its id."""

    # --- Result / NDM / stats primitives ------------------------------------

    @abstractmethod
    def get_drill_results(self) -> list[DrillResult]:
        """All logged results, oldest first."""

    @abstractmethod
    def _append_drill_result(self, result: DrillResult) -> None: ...

    @abstractmethod
    def get_user_stats(self) -> UserStats:
        """Current aggregates (defaults when nothing logged)."""

    @abstractmethod
    def _save_user_stats(self, stats: UserStats) -> None: ...

    @abstractmethod
    def get_ndm_entries(self) -> list[NDMEntry]:
        """All NDM entries, oldest first."""

    @abstractmethod
    def save_ndm_entry(self, entry: NDMEntry) -> None:
        """Append an NDM entry."""

    @abstractmethod
    def _clear(self) -> None: ...

    # --- Queries ------------------------------------------------------------

    def get_due_items(
        self,
        now: int | None = None,
        item_type: str | None = None,
    ) -> list[SpacedItem]:
        """
        Items whose next review time has passed.

        Args:
            now: Reference time in epoch ms (defaults to the wall clock)
            item_type: Only return items from this drill type

        Returns:
            Due items in store order; returning them changes nothing
        """
        current = now_ms() if now is None else now
        return [
            item
            for item in self.get_all()
            if item.is_due(current)
            and (item_type is None or item.item_type == item_type)
        ]

    def find(self, item_type: str, content: str) -> SpacedItem | None:
        """First item tracking this exact fact, if any."""
        for item in self.get_all():
            if item.item_type == item_type and item.content == content:
                return item
        return None

    def count_due_items(self, now: int | None = None) -> int:
        return len(self.get_due_items(now))

    # --- Result log -----------------------------------------------------------

    def save_drill_result(self, result: DrillResult) -> None:
        """Append a result and fold it into the user stats."""
        self._append_drill_result(result)
        stats = apply_result_to_stats(self.get_user_stats(), result)
        self._save_user_stats(stats)
        logger.debug(
            f"Logged {result.drill_type} result {result.id}: "
            f"accuracy={result.accuracy:.1f}, streak={stats.streak}"
        )

    # --- Export / Import ------------------------------------------------------

    def export_data(self) -> dict[str, Any]:
        """Every collection as plain data, plus the export time."""
        return {
            "drillResults": [r.to_dict() for r in self.get_drill_results()],
            "spacedItems": [i.to_dict() for i in self.get_all()],
            "ndmEntries": [e.to_dict() for e in self.get_ndm_entries()],
            "userStats": self.get_user_stats().to_dict(),
            "exportDate": datetime.now().astimezone().isoformat(),
        }

    def export_all(self, indent: int | None = 2) -> str:
        """Export document serialized as JSON."""
        return json.dumps(self.export_data(), indent=indent, default=str)

    def import_data(self, document: str | dict[str, Any]) -> dict[str, int]:
        """
        Restore an export document.

        Items are upserted by id; results and NDM entries already present
        (same id) are skipped; the stats record replaces the current one.

        Args:
            document: Export document, as JSON text or already parsed

        Returns:
            Count of restored records per collection

        Raises:
            StoreImportError: If the document is not a valid export
        """
        if isinstance(document, str):
            try:
                document = json.loads(document)
            except json.JSONDecodeError as e:
                raise StoreImportError(f"Export document is not valid JSON: {e}") from e

        if not isinstance(document, dict):
            raise StoreImportError("Export document must be a JSON object")

        try:
            items = [SpacedItem.from_dict(d) for d in document.get("spacedItems", [])]
            results = [DrillResult.from_dict(d) for d in document.get("drillResults", [])]
            entries = [NDMEntry.from_dict(d) for d in document.get("ndmEntries", [])]
            stats_data = document.get("userStats")
            stats = UserStats.from_dict(stats_data) if stats_data is not None else None
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise StoreImportError(f"Malformed export document: {e}") from e

        for item in items:
            self.save(item)

        new_results = _unseen(results, {r.id for r in self.get_drill_results()})
        for result in new_results:
            self._append_drill_result(result)

        new_entries = _unseen(entries, {e.id for e in self.get_ndm_entries()})
        for entry in new_entries:
            self.save_ndm_entry(entry)

        if stats is not None:
            self._save_user_stats(stats)

        counts = {
            "spacedItems": len(items),
            "drillResults": len(new_results),
            "ndmEntries": len(new_entries),
        }
        logger.info(f"Imported {counts}")
        return counts

    def clear_all(self, backup: bool = True) -> Path | None:
        """
        Delete all stored progress.

        Args:
            backup: Write the export document to the backup directory first

        Returns:
            Path of the backup file, or None if none was written
        """
        backup_file = None
        if backup and self.backup_dir is not None:
            try:
                self.backup_dir.mkdir(parents=True, exist_ok=True)
                timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
                backup_file = self.backup_dir / f"progress_backup_{timestamp}.json"
                backup_file.write_text(self.export_all(), encoding="utf-8")
                logger.info(f"Backup saved: {backup_file}")
            except OSError as e:
                logger.error(f"Backup failed, progress not cleared: {e}")
                raise

        self._clear()
        logger.info("All progress cleared")
        return backup_file

    def list_backups(self) -> list[Path]:
        """Backup files, most recent first."""
        if self.backup_dir is None or not self.backup_dir.exists():
            return []
        return sorted(self.backup_dir.glob("progress_backup_*.json"), reverse=True)

    def close(self) -> None:
        """Release any held resources."""


# =============================================================================
# In-Memory Store
# =============================================================================


class MemoryStateStore(StateStore):
    """Dict-backed store; contents live as long as the object."""

    def __init__(self, backup_dir: Path | None = None):
        self.backup_dir = backup_dir
        self._items: dict[str, SpacedItem] = {}
        self._results: list[DrillResult] = []
        self._entries: list[NDMEntry] = []
        self._stats = UserStats()
        self._lock = threading.RLock()

    def get_all(self) -> list[SpacedItem]:
        with self._lock:
            return [_copy_item(item) for item in self._items.values()]

    def get(self, item_id: str) -> SpacedItem | None:
        with self._lock:
            item = self._items.get(item_id)
            return _copy_item(item) if item else None

    def save(self, item: SpacedItem) -> None:
        # dict assignment keeps the original insertion slot for known ids
        with self._lock:
            self._items[item.id] = _copy_item(item)

    def get_drill_results(self) -> list[DrillResult]:
        with self._lock:
            return list(self._results)

    def _append_drill_result(self, result: DrillResult) -> None:
        with self._lock:
            self._results.append(result)

    def save_drill_result(self, result: DrillResult) -> None:
        with self._lock:
            super().save_drill_result(result)

    def get_user_stats(self) -> UserStats:
        with self._lock:
            return UserStats(**vars(self._stats))

    def _save_user_stats(self, stats: UserStats) -> None:
        with self._lock:
            self._stats = UserStats(**vars(stats))

    def get_ndm_entries(self) -> list[NDMEntry]:
        with self._lock:
            return list(self._entries)

    def save_ndm_entry(self, entry: NDMEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def _clear(self) -> None:
        with self._lock:
            self._items.clear()
            self._results.clear()
            self._entries.clear()
            self._stats = UserStats()


def _copy_item(item: SpacedItem) -> SpacedItem:
    return SpacedItem(**vars(item))


# =============================================================================
# SQLite Store
# =============================================================================


class SQLiteStateStore(StateStore):
    """
    SQLite-backed state persistence.

    Handles:
    - Spaced items keyed by id (ON CONFLICT upsert keeps the original row)
    - Drill result log with JSON details
    - NDM entries
    - Single-row user stats
    """

    DEFAULT_DB_PATH = Path.home() / ".arvil" / "state.db"

    def __init__(self, db_path: Path | None = None):
        """
        Initialize the state store.

        Args:
            db_path: Custom database path (defaults to ~/.arvil/state.db)
        """
        self.db_path = Path(db_path) if db_path else self.DEFAULT_DB_PATH
        self.backup_dir = self.db_path.parent / "backups"
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()

        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._init_schema()
            logger.info(f"StateStore initialized at {self.db_path}")
        except (OSError, sqlite3.Error) as e:
            logger.error(f"StateStore unavailable at {self.db_path}: {e}")

    @property
    def conn(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def _init_schema(self) -> None:
        """Initialize database schema."""
        with self._lock:
            cursor = self.conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS spaced_items (
                    id TEXT PRIMARY KEY,
                    item_type TEXT NOT NULL,
                    content TEXT NOT NULL,
                    ease_factor REAL NOT NULL DEFAULT 2.5,
                    interval_days INTEGER NOT NULL DEFAULT 1,
                    repetitions INTEGER NOT NULL DEFAULT 0,
                    next_review INTEGER NOT NULL,
                    last_review INTEGER NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS drill_results (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT UNIQUE NOT NULL,
                    drill_type TEXT NOT NULL,
                    timestamp INTEGER NOT NULL,
                    accuracy REAL NOT NULL,
                    speed_ms REAL NOT NULL DEFAULT 0,
                    difficulty INTEGER NOT NULL DEFAULT 1,
                    details TEXT NOT NULL DEFAULT '{}'
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS ndm_entries (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT UNIQUE NOT NULL,
                    timestamp INTEGER NOT NULL,
                    drill_id TEXT,
                    gather TEXT, assess TEXT, powers TEXT,
                    options TEXT, action TEXT, review TEXT
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS user_stats (
                    id INTEGER PRIMARY KEY CHECK (id = 1),
                    payload TEXT NOT NULL
                )
            """)

            # Index for fast due-date queries
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_spaced_items_next_review
                ON spaced_items(next_review)
            """)

            self.conn.commit()

    # =========================================================================
    # Spaced Item Operations
    # =========================================================================

    def get_all(self) -> list[SpacedItem]:
        try:
            with self._lock:
                rows = self.conn.execute(
                    "SELECT * FROM spaced_items ORDER BY rowid"
                ).fetchall()
        except sqlite3.Error as e:
            logger.warning(f"Could not read spaced items: {e}")
            return []
        return [self._row_to_item(row) for row in rows]

    def get(self, item_id: str) -> SpacedItem | None:
        try:
            with self._lock:
                row = self.conn.execute(
                    "SELECT * FROM spaced_items WHERE id = ?", (item_id,)
                ).fetchone()
        except sqlite3.Error as e:
            logger.warning(f"Could not read spaced item {item_id}: {e}")
            return None
        return self._row_to_item(row) if row else None

    def save(self, item: SpacedItem) -> None:
        """
        Save or update a spaced item.

        Args:
            item: SpacedItem to persist
        """
        try:
            with self._lock:
                self.conn.execute(
                    """
                    INSERT INTO spaced_items (
                        id, item_type, content, ease_factor,
                        interval_days, repetitions, next_review, last_review
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        item_type = excluded.item_type,
                        content = excluded.content,
                        ease_factor = excluded.ease_factor,
                        interval_days = excluded.interval_days,
                        repetitions = excluded.repetitions,
                        next_review = excluded.next_review,
                        last_review = excluded.last_review
                """,
                    (
                        item.id,
                        item.item_type,
                        item.content,
                        item.ease_factor,
                        item.interval,
                        item.repetitions,
                        item.next_review,
                        item.last_review,
                    ),
                )
                self.conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Storage write failed for spaced item {item.id}: {e}")

    def get_due_items(
        self,
        now: int | None = None,
        item_type: str | None = None,
    ) -> list[SpacedItem]:
        current = now_ms() if now is None else now
        query = "SELECT * FROM spaced_items WHERE next_review <= ?"
        params: list[Any] = [current]
        if item_type is not None:
            query += " AND item_type = ?"
            params.append(item_type)
        query += " ORDER BY rowid"

        try:
            with self._lock:
                rows = self.conn.execute(query, params).fetchall()
        except sqlite3.Error as e:
            logger.warning(f"Could not query due items: {e}")
            return []
        return [self._row_to_item(row) for row in rows]

    def find(self, item_type: str, content: str) -> SpacedItem | None:
        try:
            with self._lock:
                row = self.conn.execute(
                    """
                    SELECT * FROM spaced_items
                    WHERE item_type = ? AND content = ?
                    ORDER BY rowid LIMIT 1
                """,
                    (item_type, content),
                ).fetchone()
        except sqlite3.Error as e:
            logger.warning(f"Could not look up {item_type} item: {e}")
            return None
        return self._row_to_item(row) if row else None

    @staticmethod
    def _row_to_item(row: sqlite3.Row) -> SpacedItem:
        return SpacedItem(
            id=row["id"],
            item_type=row["item_type"],
            content=row["content"],
            ease_factor=row["ease_factor"],
            interval=row["interval_days"],
            repetitions=row["repetitions"],
            next_review=row["next_review"],
            last_review=row["last_review"],
        )

    # =========================================================================
    # Drill Result Operations
    # =========================================================================

    def get_drill_results(self) -> list[DrillResult]:
        try:
            with self._lock:
                rows = self.conn.execute(
                    "SELECT * FROM drill_results ORDER BY seq"
                ).fetchall()
        except sqlite3.Error as e:
            logger.warning(f"Could not read drill results: {e}")
            return []

        results = []
        for row in rows:
            try:
                details = json.loads(row["details"])
            except json.JSONDecodeError:
                logger.warning(f"Discarding unreadable details for result {row['id']}")
                details = {}
            results.append(
                DrillResult(
                    id=row["id"],
                    drill_type=row["drill_type"],
                    timestamp=row["timestamp"],
                    accuracy=row["accuracy"],
                    speed_ms=row["speed_ms"],
                    difficulty=row["difficulty"],
                    details=details,
                )
            )
        return results

    def _append_drill_result(self, result: DrillResult) -> None:
        try:
            with self._lock:
                self.conn.execute(
                    """
                    INSERT INTO drill_results (
                        id, drill_type, timestamp, accuracy,
                        speed_ms, difficulty, details
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                    (
                        result.id,
                        result.drill_type,
                        result.timestamp,
                        result.accuracy,
                        result.speed_ms,
                        result.difficulty,
                        json.dumps(result.details, default=str),
                    ),
                )
                self.conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Storage write failed for drill result {result.id}: {e}")

    def save_drill_result(self, result: DrillResult) -> None:
        with self._lock:
            super().save_drill_result(result)

    def get_user_stats(self) -> UserStats:
        try:
            with self._lock:
                row = self.conn.execute(
                    "SELECT payload FROM user_stats WHERE id = 1"
                ).fetchone()
            if row is None:
                return UserStats()
            return UserStats.from_dict(json.loads(row["payload"]))
        except (sqlite3.Error, ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Could not read user stats: {e}")
            return UserStats()

    def _save_user_stats(self, stats: UserStats) -> None:
        try:
            with self._lock:
                self.conn.execute(
                    """
                    INSERT INTO user_stats (id, payload) VALUES (1, ?)
                    ON CONFLICT(id) DO UPDATE SET payload = excluded.payload
                """,
                    (json.dumps(stats.to_dict()),),
                )
                self.conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Storage write failed for user stats: {e}")

    # =========================================================================
    # NDM Operations
    # =========================================================================

    def get_ndm_entries(self) -> list[NDMEntry]:
        try:
            with self._lock:
                rows = self.conn.execute(
                    "SELECT * FROM ndm_entries ORDER BY seq"
                ).fetchall()
        except sqlite3.Error as e:
            logger.warning(f"Could not read NDM entries: {e}")
            return []

        return [
            NDMEntry(
                id=row["id"],
                timestamp=row["timestamp"],
                drill_id=row["drill_id"],
                gather=row["gather"] or "",
                assess=row["assess"] or "",
                powers=row["powers"] or "",
                options=row["options"] or "",
                action=row["action"] or "",
                review=row["review"] or "",
            )
            for row in rows
        ]

    def save_ndm_entry(self, entry: NDMEntry) -> None:
        try:
            with self._lock:
                self.conn.execute(
                    """
                    INSERT INTO ndm_entries (
                        id, timestamp, drill_id, gather, assess,
                        powers, options, action, review
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                    (
                        entry.id,
                        entry.timestamp,
                        entry.drill_id,
                        entry.gather,
                        entry.assess,
                        entry.powers,
                        entry.options,
                        entry.action,
                        entry.review,
                    ),
                )
                self.conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Storage write failed for NDM entry {entry.id}: {e}")

    # =========================================================================
    # Maintenance
    # =========================================================================

    def _clear(self) -> None:
        try:
            with self._lock:
                cursor = self.conn.cursor()
                cursor.execute("DELETE FROM spaced_items")
                cursor.execute("DELETE FROM drill_results")
                cursor.execute("DELETE FROM ndm_entries")
                cursor.execute("DELETE FROM user_stats")
                self.conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Could not clear stored progress: {e}")

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None
