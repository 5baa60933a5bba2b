"""Durable storage for hot keyword rows, backed by Google Sheets."""
from __future__ import annotations

import asyncio
import json
import logging
import uuid
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Protocol

import gspread
from dateutil import parser as date_parser
from google.auth.exceptions import TransportError
from google.oauth2.service_account import Credentials

from hotkeys.core.config import Settings, get_settings
from hotkeys.core.exceptions import (
    ConfigurationError,
    DuplicateHotKeyError,
    StorageError,
    StorageUnavailableError,
)
from hotkeys.domain.models import AreaTag, HotKeyRecord

logger = logging.getLogger(__name__)

SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
# network failures from requests subclass OSError
SHEET_TRANSPORT_ERRORS = (gspread.exceptions.GSpreadException, OSError, TransportError)


class HotKeyStore(Protocol):
    """Storage contract used by the persistence service."""

    async def find_by_area_and_key(self, area: AreaTag, hot_key: str) -> HotKeyRecord | None: ...

    async def insert(self, record: HotKeyRecord) -> HotKeyRecord: ...

    async def update(self, record_id: str, patch: dict[str, Any]) -> HotKeyRecord: ...

    async def delete_older_than(self, cutoff: datetime) -> int: ...

    async def list_by_area(self, area: AreaTag | None, limit: int) -> list[HotKeyRecord]: ...

    async def health_check(self) -> bool: ...


def new_record_id() -> str:
    return str(uuid.uuid4())


class InMemoryHotKeyStore:
    """Process-local store. Enforces (area, hot_key) uniqueness like a table constraint."""

    def __init__(self) -> None:
        self._rows: dict[str, HotKeyRecord] = {}
        self._lock = asyncio.Lock()

    async def find_by_area_and_key(self, area: AreaTag, hot_key: str) -> HotKeyRecord | None:
        for row in self._rows.values():
            if row.area == area and row.hot_key == hot_key:
                return row.model_copy()
        return None

    async def insert(self, record: HotKeyRecord) -> HotKeyRecord:
        async with self._lock:
            if any(row.area == record.area and row.hot_key == record.hot_key for row in self._rows.values()):
                raise DuplicateHotKeyError(record.area.value, record.hot_key)
            stored = record.model_copy(update={"id": record.id or new_record_id()})
            self._rows[stored.id] = stored
            return stored.model_copy()

    async def update(self, record_id: str, patch: dict[str, Any]) -> HotKeyRecord:
        async with self._lock:
            current = self._rows.get(record_id)
            if current is None:
                raise StorageError(f"Hot key {record_id} not found")
            updated = current.model_copy(update=patch)
            self._rows[record_id] = updated
            return updated.model_copy()

    async def delete_older_than(self, cutoff: datetime) -> int:
        async with self._lock:
            expired = [row_id for row_id, row in self._rows.items() if row.updated_at < cutoff]
            for row_id in expired:
                del self._rows[row_id]
            return len(expired)

    async def list_by_area(self, area: AreaTag | None, limit: int) -> list[HotKeyRecord]:
        rows = [row for row in self._rows.values() if area is None or row.area == area]
        rows.sort(key=lambda row: row.updated_at, reverse=True)
        return [row.model_copy() for row in rows[:limit]]

    async def health_check(self) -> bool:
        return True


class SheetHotKeyStore:
    """
    Hot keyword table kept in a Google Sheets worksheet.

    gspread is synchronous, so every call runs in a worker thread. Sheets has
    no unique constraint; inserts re-check (area, hot_key) under a lock so a
    single process never appends a duplicate row.
    """

    SHEET_NAME = "World_Hot_Keys"
    HEADER = ["id", "area", "hot_key", "hot_key_desc", "created_at", "updated_at"]

    def __init__(self, sheets_client: gspread.Client, spreadsheet_id: str) -> None:
        self.sheets_client = sheets_client
        self.spreadsheet_id = spreadsheet_id
        self._worksheet: gspread.Worksheet | None = None
        self._write_lock = asyncio.Lock()

    def _get_worksheet(self) -> gspread.Worksheet:
        """Get or create the hot keys worksheet."""
        if self._worksheet is not None:
            return self._worksheet
        try:
            spreadsheet = self.sheets_client.open_by_key(self.spreadsheet_id)
        except SHEET_TRANSPORT_ERRORS as exc:
            raise StorageUnavailableError(f"Failed to open sheet: {exc}") from exc
        try:
            worksheet = spreadsheet.worksheet(self.SHEET_NAME)
        except gspread.exceptions.WorksheetNotFound:
            try:
                worksheet = spreadsheet.add_worksheet(title=self.SHEET_NAME, rows=1000, cols=len(self.HEADER))
                worksheet.update(range_name="A1:F1", values=[self.HEADER])
            except SHEET_TRANSPORT_ERRORS as exc:
                raise StorageUnavailableError(f"Failed to create worksheet '{self.SHEET_NAME}': {exc}") from exc
        except SHEET_TRANSPORT_ERRORS as exc:
            raise StorageUnavailableError(f"Failed to open worksheet '{self.SHEET_NAME}': {exc}") from exc
        self._worksheet = worksheet
        return worksheet

    @staticmethod
    def _parse_timestamp(value: Any) -> datetime:
        parsed = date_parser.parse(str(value))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)

    def _row_to_record(self, row: dict[str, Any]) -> HotKeyRecord | None:
        try:
            return HotKeyRecord(
                id=str(row["id"]),
                area=AreaTag(str(row["area"])),
                hot_key=str(row["hot_key"]),
                hot_key_desc=str(row.get("hot_key_desc") or ""),
                created_at=self._parse_timestamp(row["created_at"]),
                updated_at=self._parse_timestamp(row["updated_at"]),
            )
        except (KeyError, ValueError, TypeError, OverflowError, date_parser.ParserError) as exc:
            logger.warning("Skipping unreadable hot key row %r: %s", row, exc)
            return None

    @staticmethod
    def _record_to_row(record: HotKeyRecord) -> list[str]:
        return [
            record.id,
            record.area.value,
            record.hot_key,
            record.hot_key_desc,
            record.created_at.isoformat(),
            record.updated_at.isoformat(),
        ]

    def _read_all(self) -> list[tuple[int, HotKeyRecord]]:
        """Return (sheet row number, record) pairs. Row 1 is the header."""
        try:
            rows = self._get_worksheet().get_all_records(expected_headers=self.HEADER, numericise_ignore=["all"])
        except SHEET_TRANSPORT_ERRORS as exc:
            raise StorageError(f"Failed to read hot keys: {exc}") from exc
        records: list[tuple[int, HotKeyRecord]] = []
        for offset, row in enumerate(rows):
            record = self._row_to_record(row)
            if record is not None:
                records.append((offset + 2, record))
        return records

    def _find_sync(self, area: AreaTag, hot_key: str) -> tuple[int, HotKeyRecord] | None:
        for row_number, record in self._read_all():
            if record.area == area and record.hot_key == hot_key:
                return row_number, record
        return None

    async def find_by_area_and_key(self, area: AreaTag, hot_key: str) -> HotKeyRecord | None:
        match = await asyncio.to_thread(self._find_sync, area, hot_key)
        return match[1] if match else None

    def _insert_sync(self, record: HotKeyRecord) -> HotKeyRecord:
        if self._find_sync(record.area, record.hot_key) is not None:
            raise DuplicateHotKeyError(record.area.value, record.hot_key)
        stored = record.model_copy(update={"id": record.id or new_record_id()})
        try:
            self._get_worksheet().append_row(self._record_to_row(stored), value_input_option="RAW")
        except SHEET_TRANSPORT_ERRORS as exc:
            raise StorageError(f"Failed to insert hot key {stored.hot_key}: {exc}") from exc
        return stored

    async def insert(self, record: HotKeyRecord) -> HotKeyRecord:
        async with self._write_lock:
            return await asyncio.to_thread(self._insert_sync, record)

    def _update_sync(self, record_id: str, patch: dict[str, Any]) -> HotKeyRecord:
        for row_number, record in self._read_all():
            if record.id != record_id:
                continue
            updated = record.model_copy(update=patch)
            try:
                self._get_worksheet().update(
                    range_name=f"A{row_number}:F{row_number}",
                    values=[self._record_to_row(updated)],
                    value_input_option="RAW",
                )
            except SHEET_TRANSPORT_ERRORS as exc:
                raise StorageError(f"Failed to update hot key {record_id}: {exc}") from exc
            return updated
        raise StorageError(f"Hot key {record_id} not found")

    async def update(self, record_id: str, patch: dict[str, Any]) -> HotKeyRecord:
        async with self._write_lock:
            return await asyncio.to_thread(self._update_sync, record_id, patch)

    def _delete_older_than_sync(self, cutoff: datetime) -> int:
        expired_rows = [row_number for row_number, record in self._read_all() if record.updated_at < cutoff]
        worksheet = self._get_worksheet()
        try:
            # bottom-up so earlier deletions do not shift pending row numbers
            for row_number in sorted(expired_rows, reverse=True):
                worksheet.delete_rows(row_number)
        except SHEET_TRANSPORT_ERRORS as exc:
            raise StorageError(f"Failed to delete expired hot keys: {exc}") from exc
        return len(expired_rows)

    async def delete_older_than(self, cutoff: datetime) -> int:
        async with self._write_lock:
            return await asyncio.to_thread(self._delete_older_than_sync, cutoff)

    async def list_by_area(self, area: AreaTag | None, limit: int) -> list[HotKeyRecord]:
        rows = await asyncio.to_thread(self._read_all)
        records = [record for _, record in rows if area is None or record.area == area]
        records.sort(key=lambda record: record.updated_at, reverse=True)
        return records[:limit]

    async def health_check(self) -> bool:
        try:
            await asyncio.to_thread(self._get_worksheet)
            return True
        except StorageError as exc:
            logger.error("Hot key sheet unreachable: %s", exc)
            return False


def build_sheets_client(settings: Settings) -> gspread.Client:
    try:
        credentials = Credentials.from_service_account_info(
            json.loads(settings.GOOGLE_CREDENTIALS or ""),
            scopes=SHEETS_SCOPES,
        )
        return gspread.authorize(credentials)
    except (json.JSONDecodeError, ValueError, TypeError) as exc:
        raise ConfigurationError(f"Invalid GOOGLE_CREDENTIALS: {exc}") from exc


@lru_cache(maxsize=1)
def get_hotkey_store() -> HotKeyStore:
    """Get the shared store: Google Sheets when configured, in-memory otherwise."""
    settings = get_settings()
    if not settings.sheets_configured:
        logger.warning("Google credentials or Sheet ID not configured; hot keys kept in memory only")
        return InMemoryHotKeyStore()

    store = SheetHotKeyStore(
        sheets_client=build_sheets_client(settings),
        spreadsheet_id=settings.SHEET_ID or "",
    )
    logger.info("Hot key storage initialised with Google Sheets persistence")
    return store
