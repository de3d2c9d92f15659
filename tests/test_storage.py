"""Tests for the storage backends and the change feed."""

import threading

import pytest

from finbuddy.models.audit import AuditEvent, AuditEventType
from finbuddy.models.records import Expense, Table
from finbuddy.orchestrator import create_storage
from finbuddy.services.realtime import ChangeEvent, ChangeFeed, ChangeType
from finbuddy.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsRecordStorage,
    InMemoryRecordStorage,
    NotFoundError,
    StorageError,
)
from finbuddy.services.storage.google_sheets import decode_cell, default_columns, encode_cell

from tests.conftest import OTHER_USER_ID, USER_ID

EXPENSES = Table.EXPENSES.value


def expense_row(amount: float, day: str = "2026-03-01", category: str = "Other") -> dict:
    row = Expense(user_id=USER_ID, category=category, amount=amount).to_row()
    row["date"] = day
    return row


class FakeWorksheet:
    """Just enough of gspread.Worksheet for the record storage."""

    def __init__(self):
        self.values: list[list[str]] = []
        self.col_count = 26
        self.read_threads: set[int] = set()

    def get_all_values(self):
        self.read_threads.add(threading.get_ident())
        return [list(row) for row in self.values]

    def append_row(self, row, value_input_option=None):
        self.values.append(list(row))

    def batch_update(self, updates, value_input_option=None):
        for update in updates:
            row_number = int(update["range"].lstrip("ABCDEFGHIJKLMNOPQRSTUVWXYZ"))
            self.values[row_number - 1] = list(update["values"][0])

    def add_cols(self, count):
        self.col_count += count

    def delete_rows(self, index):
        del self.values[index - 1]


class FakeSheetsClient:
    def __init__(self):
        self.sheets: dict[str, FakeWorksheet] = {}

    def get_table_sheet(self, table):
        return self.sheets.setdefault(table, FakeWorksheet())


@pytest.fixture(params=["memory", "sheets"])
def backend(request, feed):
    if request.param == "memory":
        return InMemoryRecordStorage(feed)
    return GoogleSheetsRecordStorage(FakeSheetsClient(), feed)


class TestRecordStorage:
    """Behaviour shared by every backend."""

    @pytest.mark.asyncio
    async def test_insert_forces_owner(self, backend):
        row = expense_row(100)
        row["user_id"] = "someone-else"
        stored = await backend.insert(EXPENSES, USER_ID, row)
        assert stored["user_id"] == USER_ID

    @pytest.mark.asyncio
    async def test_reads_are_scoped_to_owner(self, backend):
        stored = await backend.insert(EXPENSES, USER_ID, expense_row(100))

        assert await backend.get(EXPENSES, OTHER_USER_ID, stored["id"]) is None
        assert await backend.list(EXPENSES, OTHER_USER_ID) == []
        assert len(await backend.list(EXPENSES, USER_ID)) == 1

    @pytest.mark.asyncio
    async def test_other_user_cannot_update_or_delete(self, backend):
        stored = await backend.insert(EXPENSES, USER_ID, expense_row(100))

        with pytest.raises(NotFoundError):
            await backend.update(EXPENSES, OTHER_USER_ID, stored["id"], {"amount": 1})
        assert await backend.delete(EXPENSES, OTHER_USER_ID, stored["id"]) is False
        assert (await backend.get(EXPENSES, USER_ID, stored["id"]))["amount"] == 100

    @pytest.mark.asyncio
    async def test_update_merges_changes(self, backend):
        stored = await backend.insert(EXPENSES, USER_ID, expense_row(100))
        updated = await backend.update(EXPENSES, USER_ID, stored["id"], {"amount": 150.0})

        assert updated["amount"] == 150.0
        assert updated["category"] == "Other"
        assert Expense.model_validate(updated).amount == 150.0

    @pytest.mark.asyncio
    async def test_update_cannot_change_owner(self, backend):
        stored = await backend.insert(EXPENSES, USER_ID, expense_row(100))
        updated = await backend.update(EXPENSES, USER_ID, stored["id"], {"user_id": OTHER_USER_ID})
        assert updated["user_id"] == USER_ID

    @pytest.mark.asyncio
    async def test_duplicate_id_rejected(self, backend):
        row = expense_row(100)
        await backend.insert(EXPENSES, USER_ID, row)
        with pytest.raises(DuplicateError):
            await backend.insert(EXPENSES, USER_ID, row)

    @pytest.mark.asyncio
    async def test_delete(self, backend):
        stored = await backend.insert(EXPENSES, USER_ID, expense_row(100))
        assert await backend.delete(EXPENSES, USER_ID, stored["id"]) is True
        assert await backend.list(EXPENSES, USER_ID) == []
        assert await backend.delete(EXPENSES, USER_ID, stored["id"]) is False

    @pytest.mark.asyncio
    async def test_order_and_limit(self, backend):
        for amount, day in ((10, "2026-03-01"), (30, "2026-03-03"), (20, "2026-03-02")):
            await backend.insert(EXPENSES, USER_ID, expense_row(amount, day))

        rows = await backend.list(EXPENSES, USER_ID, order_by="date", descending=True, limit=2)
        assert [r["amount"] for r in rows] == [30, 20]

    @pytest.mark.asyncio
    async def test_writes_publish_changes(self, backend, feed):
        events: list[ChangeEvent] = []
        feed.subscribe(EXPENSES, USER_ID, events.append)

        stored = await backend.insert(EXPENSES, USER_ID, expense_row(100))
        await backend.update(EXPENSES, USER_ID, stored["id"], {"amount": 5})
        await backend.delete(EXPENSES, USER_ID, stored["id"])

        assert [e.event_type for e in events] == [
            ChangeType.INSERT,
            ChangeType.UPDATE,
            ChangeType.DELETE,
        ]
        assert events[1].old["amount"] == 100
        assert events[2].record_id == stored["id"]


class TestSheetsCells:
    """Tests for the worksheet cell encoding."""

    def test_none_is_empty_cell(self):
        assert encode_cell(None) == ""
        assert decode_cell("") is None

    def test_values_round_trip(self):
        for value in (12.5, "Food & Dining", True, {"a": 1}):
            assert decode_cell(encode_cell(value)) == value

    def test_bare_text_is_kept(self):
        assert decode_cell("typed by hand") == "typed by hand"

    def test_default_columns_start_with_owner(self):
        columns = default_columns(EXPENSES)
        assert columns[:2] == ["id", "user_id"]
        assert "amount" in columns


class TestChangeFeed:
    """Tests for the in-process change feed."""

    def event(self, user_id=USER_ID, table=EXPENSES):
        return ChangeEvent(table=table, event_type=ChangeType.INSERT, user_id=user_id, new={"id": "r1"})

    def test_delivers_only_matching_events(self):
        feed = ChangeFeed()
        received = []
        feed.subscribe(EXPENSES, USER_ID, received.append)

        feed.publish(self.event())
        feed.publish(self.event(user_id=OTHER_USER_ID))
        feed.publish(self.event(table=Table.GOALS.value))

        assert len(received) == 1
        assert received[0].record_id == "r1"

    def test_unsubscribe_stops_delivery(self):
        feed = ChangeFeed()
        received = []
        with feed.subscribe(EXPENSES, USER_ID, received.append) as subscription:
            feed.publish(self.event())
        feed.publish(self.event())

        assert len(received) == 1
        assert not subscription.active
        assert feed.subscriber_count == 0
        subscription.unsubscribe()

    def test_failing_callback_does_not_block_others(self):
        feed = ChangeFeed()
        received = []

        def broken(event):
            raise RuntimeError("boom")

        feed.subscribe(EXPENSES, USER_ID, broken)
        feed.subscribe(EXPENSES, USER_ID, received.append)

        assert feed.publish(self.event()) == 1
        assert len(received) == 1


class UnreachableSheetsClient:
    """A spreadsheet that never answers."""

    def __init__(self):
        self.attempts = 0

    def _fail(self, *args):
        self.attempts += 1
        raise ConnectionError("Spreadsheet not found: sheet-1")

    get_spreadsheet = _fail
    get_table_sheet = _fail
    get_audit_sheet = _fail


def audit_event() -> AuditEvent:
    return AuditEvent(event_type=AuditEventType.SYSTEM_ERROR, description="test event")


class TestStorageSelection:
    """Tests for choosing the backend at startup."""

    def test_memory_backend(self, feed):
        storage, _ = create_storage("memory", feed)
        assert isinstance(storage, InMemoryRecordStorage)

    @pytest.mark.asyncio
    async def test_unreachable_sheets_is_not_replaced_by_memory(self, feed, monkeypatch):
        monkeypatch.setattr("finbuddy.orchestrator.GoogleSheetsClient", UnreachableSheetsClient)

        storage, _ = create_storage("sheets", feed)

        assert isinstance(storage, GoogleSheetsRecordStorage)
        with pytest.raises(StorageError, match="Spreadsheet not found"):
            await storage.list(EXPENSES, USER_ID)
        with pytest.raises(StorageError):
            await storage.insert(EXPENSES, USER_ID, expense_row(100))


class TestSheetsThreading:
    """gspread calls block, so they must stay off the event loop thread."""

    @pytest.mark.asyncio
    async def test_reads_run_in_worker_thread(self, feed):
        client = FakeSheetsClient()
        storage = GoogleSheetsRecordStorage(client, feed)

        await storage.insert(EXPENSES, USER_ID, expense_row(100))
        await storage.list(EXPENSES, USER_ID)

        sheet = client.sheets[EXPENSES]
        assert sheet.read_threads
        assert threading.get_ident() not in sheet.read_threads

    @pytest.mark.asyncio
    async def test_failed_audit_append_is_not_retried(self):
        client = UnreachableSheetsClient()
        storage = GoogleSheetsAuditStorage(client)

        assert await storage.append_event(audit_event()) is False
        assert client.attempts == 1


class TestAuditStorageContract:

    @pytest.mark.asyncio
    async def test_append_is_the_whole_contract(self):
        """An audit sink only needs append_event; audit reads are not part of it."""

        class Sink(AuditStorageInterface):
            async def append_event(self, event):
                return True

        assert await Sink().append_event(audit_event()) is True
