"""
Usage ledger.

Append-only, capped store of usage records with aggregate queries and
CSV export. The full record list is stored as one JSON blob under a
single key and rewritten on every append.
"""

import csv
import io
import json
import logging
import threading
from datetime import datetime
from typing import Callable, Dict, Hashable, List, Optional

from ai_usage_meter.core.pricing import PRICING_TABLE, PricingTable, calculate_cost
from ai_usage_meter.core.token_counter import TokenUsage

from .db import DEFAULT_DB_PATH
from .kv import KeyValueStore, SQLiteKeyValueStore
from .models import UsageRecord, UsageStats

logger = logging.getLogger(__name__)

STORAGE_KEY = "ai-usage-records"
MAX_RECORDS = 10000

CSV_HEADERS = [
    "Timestamp",
    "Date",
    "Time",
    "Provider",
    "Model",
    "Command",
    "Input Tokens",
    "Output Tokens",
    "Cost (USD)",
    "Success",
    "Error",
]

# One lock per underlying store, shared by every ledger over it
_store_locks: Dict[Hashable, threading.Lock] = {}
_store_locks_guard = threading.Lock()


def _lock_for(store) -> threading.Lock:
    key = getattr(store, "lock_key", None)
    if key is None:
        key = ("store", id(store))
    with _store_locks_guard:
        return _store_locks.setdefault(key, threading.Lock())


class UsageLedger:
    """Capped, append-only ledger of LLM usage records.

    Appends are serialized with a lock per store, so ledgers in one
    process that share a store never lose records in the read-modify-write
    of the blob.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        max_records: int = MAX_RECORDS,
        pricing: PricingTable = PRICING_TABLE,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize the ledger.

        Args:
            store: Key-value store (defaults to SQLite at DEFAULT_DB_PATH)
            max_records: Maximum number of retained records
            pricing: Pricing table used to cost new records
            clock: Source of record timestamps

        Raises:
            ValueError: If max_records is not positive
        """
        if max_records <= 0:
            raise ValueError("max_records must be > 0")

        self.store = store if store is not None else SQLiteKeyValueStore(DEFAULT_DB_PATH)
        self.max_records = max_records
        self.pricing = pricing
        self.clock = clock
        self._lock = _lock_for(self.store)

    def record(
        self,
        provider: str,
        model: str,
        command: str,
        input_tokens: int,
        output_tokens: int,
        success: bool,
        error: Optional[str] = None,
    ) -> Optional[UsageRecord]:
        """Cost, timestamp and append a usage record.

        Never raises: usage tracking must not abort the caller's
        operation, so persistence failures are logged and dropped.

        Returns:
            The stored record, or None if it could not be persisted
        """
        try:
            cost = calculate_cost(
                provider,
                model,
                TokenUsage(input_tokens=input_tokens, output_tokens=output_tokens),
                self.pricing,
            )
            entry = UsageRecord(
                timestamp=self.clock(),
                provider=provider,
                model=model,
                command=command,
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                cost=cost,
                success=success,
                error=error,
            )
            with self._lock:
                records = self._load(strict=True)
                records.append(entry)
                # Keep only the most recent records
                if len(records) > self.max_records:
                    del records[: len(records) - self.max_records]
                self._save(records)
            return entry
        except Exception:
            logger.exception("Failed to record usage for %s/%s (%s)", provider, model, command)
            return None

    def all_records(self) -> List[UsageRecord]:
        """All retained records, oldest first."""
        with self._lock:
            return self._load()

    def statistics(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> UsageStats:
        """Aggregate statistics over records in the window [start, end).

        Args:
            start: Inclusive lower bound (None for unbounded)
            end: Exclusive upper bound (None for unbounded)

        Returns:
            UsageStats with totals and provider/model/command breakdowns
        """
        stats = UsageStats()
        for entry in self._filter(start, end):
            stats.add(entry)
        return stats

    def statistics_for_today(self, now: Optional[datetime] = None) -> UsageStats:
        """Statistics since local midnight."""
        now = now or self.clock()
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
        return self.statistics(start_of_day)

    def statistics_for_current_month(self, now: Optional[datetime] = None) -> UsageStats:
        """Statistics since the first of the current month."""
        now = now or self.clock()
        start_of_month = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        return self.statistics(start_of_month)

    def export_csv(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> str:
        """Export records in the window [start, end) as CSV.

        Fields containing commas, quotes or newlines are quoted per RFC 4180.
        Rows are newline separated with no trailing newline.
        """
        output = io.StringIO()
        writer = csv.writer(output, lineterminator="\n")
        writer.writerow(CSV_HEADERS)
        for entry in self._filter(start, end):
            writer.writerow([
                int(entry.timestamp.timestamp() * 1000),
                entry.timestamp.strftime("%Y-%m-%d"),
                entry.timestamp.strftime("%H:%M:%S"),
                entry.provider,
                entry.model,
                entry.command,
                entry.input_tokens,
                entry.output_tokens,
                f"{entry.cost:.6f}",
                "Yes" if entry.success else "No",
                entry.error or "",
            ])
        return output.getvalue()[:-1]

    def clear(self) -> None:
        """Erase all records irreversibly."""
        with self._lock:
            self.store.remove(STORAGE_KEY)

    def _filter(self, start: Optional[datetime], end: Optional[datetime]) -> List[UsageRecord]:
        return [
            entry for entry in self.all_records()
            if (start is None or entry.timestamp >= start)
            and (end is None or entry.timestamp < end)
        ]

    def _load(self, strict: bool = False) -> List[UsageRecord]:
        """Decode the stored records.

        Reads fall back to an empty list on unreadable data; appends pass
        strict=True so a bad blob is never overwritten.
        """
        data = self.store.get(STORAGE_KEY)
        if not data:
            return []
        try:
            return [UsageRecord.from_dict(item) for item in json.loads(data)]
        except (ValueError, KeyError, TypeError):
            if strict:
                raise
            logger.exception("Stored usage records are unreadable; treating ledger as empty")
            return []

    def _save(self, records: List[UsageRecord]) -> None:
        self.store.set(STORAGE_KEY, json.dumps([entry.to_dict() for entry in records]))


# Shared ledger instances, one per database file
_ledgers: Dict[Hashable, UsageLedger] = {}
_ledgers_guard = threading.Lock()


def get_ledger(db_path: str = DEFAULT_DB_PATH, max_records: int = MAX_RECORDS) -> UsageLedger:
    """Get the shared ledger instance for a database file.

    Repeated calls with the same path return the same ledger; `max_records`
    only applies when that ledger is first created.

    Args:
        db_path: Path to SQLite database file
        max_records: Maximum number of retained records

    Returns:
        An instance of UsageLedger
    """
    store = SQLiteKeyValueStore(db_path)
    with _ledgers_guard:
        if store.lock_key not in _ledgers:
            _ledgers[store.lock_key] = UsageLedger(store, max_records=max_records)
        return _ledgers[store.lock_key]
