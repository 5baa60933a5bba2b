"""Tests for the hot key storage backends."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, call

import gspread
import pytest

from hotkeys.core.exceptions import DuplicateHotKeyError, StorageError
from hotkeys.domain.models import AreaTag, HotKeyRecord
from hotkeys.storage.hotkey_store import InMemoryHotKeyStore, SheetHotKeyStore

NOW = datetime(2024, 5, 20, 12, 0, tzinfo=timezone.utc)


def make_record(hot_key, area=AreaTag.GLOBAL, updated_at=NOW, record_id=""):
    return HotKeyRecord(
        id=record_id,
        area=area,
        hot_key=hot_key,
        hot_key_desc="description",
        created_at=updated_at,
        updated_at=updated_at,
    )


def sheet_row(record_id, hot_key, area="global", updated_at=NOW):
    return {
        "id": record_id,
        "area": area,
        "hot_key": hot_key,
        "hot_key_desc": "description",
        "created_at": updated_at.isoformat(),
        "updated_at": updated_at.isoformat(),
    }


class TestInMemoryHotKeyStore:
    @pytest.mark.asyncio
    async def test_insert_assigns_id(self):
        store = InMemoryHotKeyStore()

        stored = await store.insert(make_record("Bitcoin"))

        assert stored.id
        assert (await store.find_by_area_and_key(AreaTag.GLOBAL, "Bitcoin")).id == stored.id

    @pytest.mark.asyncio
    async def test_duplicate_insert_rejected(self):
        store = InMemoryHotKeyStore()
        await store.insert(make_record("Bitcoin"))

        with pytest.raises(DuplicateHotKeyError):
            await store.insert(make_record("Bitcoin"))

        # same key in another area is a different row
        await store.insert(make_record("Bitcoin", area=AreaTag.ASIA))

    @pytest.mark.asyncio
    async def test_update_unknown_id_raises(self):
        store = InMemoryHotKeyStore()

        with pytest.raises(StorageError):
            await store.update("missing", {"hot_key_desc": "x"})

    @pytest.mark.asyncio
    async def test_returned_rows_are_copies(self):
        store = InMemoryHotKeyStore()
        stored = await store.insert(make_record("Bitcoin"))

        found = await store.find_by_area_and_key(AreaTag.GLOBAL, "Bitcoin")
        found.hot_key_desc = "mutated"

        assert (await store.find_by_area_and_key(AreaTag.GLOBAL, "Bitcoin")).hot_key_desc == stored.hot_key_desc


@pytest.fixture
def worksheet():
    sheet = MagicMock()
    sheet.get_all_records.return_value = [
        sheet_row("row-1", "Bitcoin", updated_at=NOW - timedelta(days=8)),
        sheet_row("row-2", "Ethereum", area="asia", updated_at=NOW),
        sheet_row("row-3", "Dogecoin", updated_at=NOW - timedelta(days=9)),
    ]
    return sheet


@pytest.fixture
def sheet_store(worksheet):
    client = MagicMock()
    client.open_by_key.return_value.worksheet.return_value = worksheet
    return SheetHotKeyStore(sheets_client=client, spreadsheet_id="sheet-id")


class TestSheetHotKeyStore:
    @pytest.mark.asyncio
    async def test_find_reads_typed_record(self, sheet_store):
        record = await sheet_store.find_by_area_and_key(AreaTag.ASIA, "Ethereum")

        assert record.id == "row-2"
        assert record.updated_at == NOW

    @pytest.mark.asyncio
    async def test_unreadable_rows_are_skipped(self, sheet_store, worksheet):
        worksheet.get_all_records.return_value = [
            {"id": "bad", "area": "atlantis", "hot_key": "x", "created_at": "?", "updated_at": "?"},
            sheet_row("row-2", "Ethereum"),
        ]

        rows = await sheet_store.list_by_area(None, 10)

        assert [row.id for row in rows] == ["row-2"]

    @pytest.mark.asyncio
    async def test_insert_appends_row(self, sheet_store, worksheet):
        stored = await sheet_store.insert(make_record("Solana"))

        appended = worksheet.append_row.call_args.args[0]
        assert appended[0] == stored.id
        assert appended[1:4] == ["global", "Solana", "description"]

    @pytest.mark.asyncio
    async def test_insert_duplicate_raises_without_writing(self, sheet_store, worksheet):
        with pytest.raises(DuplicateHotKeyError):
            await sheet_store.insert(make_record("Bitcoin"))

        worksheet.append_row.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_rewrites_matching_row(self, sheet_store, worksheet):
        updated = await sheet_store.update("row-2", {"hot_key_desc": "new", "updated_at": NOW})

        assert updated.hot_key_desc == "new"
        kwargs = worksheet.update.call_args.kwargs
        assert kwargs["range_name"] == "A3:F3"
        assert kwargs["values"][0][3] == "new"

    @pytest.mark.asyncio
    async def test_delete_older_than_removes_rows_bottom_up(self, sheet_store, worksheet):
        deleted = await sheet_store.delete_older_than(NOW - timedelta(days=7))

        assert deleted == 2
        assert worksheet.delete_rows.call_args_list == [call(4), call(2)]

    @pytest.mark.asyncio
    async def test_list_by_area_sorted_newest_first(self, sheet_store):
        rows = await sheet_store.list_by_area(AreaTag.GLOBAL, 10)

        assert [row.hot_key for row in rows] == ["Bitcoin", "Dogecoin"]

    @pytest.mark.asyncio
    async def test_missing_worksheet_is_created_with_header(self):
        client = MagicMock()
        spreadsheet = client.open_by_key.return_value
        spreadsheet.worksheet.side_effect = gspread.exceptions.WorksheetNotFound("World_Hot_Keys")
        store = SheetHotKeyStore(sheets_client=client, spreadsheet_id="sheet-id")

        assert await store.health_check() is True
        spreadsheet.add_worksheet.assert_called_once()
        header_call = spreadsheet.add_worksheet.return_value.update.call_args.kwargs
        assert header_call["values"] == [SheetHotKeyStore.HEADER]

    @pytest.mark.asyncio
    async def test_health_check_false_when_sheet_unreachable(self):
        client = MagicMock()
        client.open_by_key.side_effect = gspread.exceptions.SpreadsheetNotFound("nope")
        store = SheetHotKeyStore(sheets_client=client, spreadsheet_id="sheet-id")

        assert await store.health_check() is False

    @pytest.mark.asyncio
    async def test_health_check_false_on_connection_error(self):
        client = MagicMock()
        client.open_by_key.side_effect = ConnectionError("connection reset")
        store = SheetHotKeyStore(sheets_client=client, spreadsheet_id="sheet-id")

        assert await store.health_check() is False

    @pytest.mark.asyncio
    async def test_transport_error_on_write_raises_storage_error(self, sheet_store, worksheet):
        worksheet.append_row.side_effect = ConnectionError("connection reset")

        with pytest.raises(StorageError, match="connection reset"):
            await sheet_store.insert(make_record("Solana"))
