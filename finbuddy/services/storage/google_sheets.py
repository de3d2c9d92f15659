"""
Google Sheets Storage Implementation

DESIGN DECISION: A spreadsheet is the hosted store. Every expense,
goal and bill is visible and editable in Sheets, and a service
account key is the only setup.

Layout: one worksheet per table. Row 1 holds the column names and is
created on first use; every other row is one record with each cell
holding the JSON encoding of its value. Columns missing from the header
are appended to it when a row first needs them.

TRADEOFFS:
- Not suitable for high-volume data (fine for personal use)
- No transactions (we read-modify-write one row at a time)
- Limited query capabilities (we filter and sort in Python)
"""

import asyncio
import json
from typing import Any, Optional
from uuid import uuid4

import gspread
import structlog
from google.oauth2.service_account import Credentials
from gspread.utils import rowcol_to_a1
from tenacity import retry, stop_after_attempt, wait_exponential

from finbuddy.config import get_settings
from finbuddy.models.audit import AuditEvent
from finbuddy.models.records import RECORD_TYPES, Table, utcnow
from finbuddy.services.realtime import ChangeFeed, ChangeType
from finbuddy.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    RecordStorageInterface,
    StorageError,
    sort_rows,
)

logger = structlog.get_logger(__name__)


# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "user_id",
    "entity_type",
    "entity_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


def default_columns(table: str) -> list[str]:
    """Header for a new worksheet: the model's fields, id and user_id first."""
    try:
        model = RECORD_TYPES[Table(table)]
    except ValueError:
        return ["id", "user_id", "created_at", "updated_at"]
    fields = list(model.model_fields)
    head = ["id", "user_id"]
    return head + [f for f in fields if f not in head]


def encode_cell(value: Any) -> str:
    """JSON-encode one value; None becomes an empty cell."""
    if value is None:
        return ""
    return json.dumps(value, ensure_ascii=False, default=str)


def decode_cell(raw: str) -> Any:
    if raw == "":
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        # Hand-edited cells may hold bare text
        return raw


class GoogleSheetsClient:
    """
    Thin gspread wrapper: authorizes the service account, opens the
    spreadsheet once and caches worksheet handles. Connecting retries
    with exponential backoff.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._sheets: dict[str, gspread.Worksheet] = {}
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Authorize with the service account key (cached after success).
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_sheet(self, title: str, columns: list[str], rows: Optional[int] = None) -> gspread.Worksheet:
        """Get or create a worksheet whose first row is `columns`."""
        if title in self._sheets:
            return self._sheets[title]

        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows or self._settings.worksheet_rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
            logger.info("worksheet_created", title=title, columns=len(columns))

        self._sheets[title] = sheet
        return sheet

    def get_table_sheet(self, table: str) -> gspread.Worksheet:
        return self.get_sheet(table, default_columns(table))

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self.get_sheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


class GoogleSheetsRecordStorage(RecordStorageInterface):
    """
    Google Sheets implementation of record storage.

    Each table is a worksheet; rows are filtered by the user_id column.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        feed: Optional[ChangeFeed] = None,
    ):
        super().__init__(feed)
        self._client = client or GoogleSheetsClient()

    def _read(self, table: str) -> tuple[gspread.Worksheet, list[str], list[list[str]]]:
        """Return (sheet, header, data rows) for a table."""
        sheet = self._client.get_table_sheet(table)
        values = sheet.get_all_values()
        if not values:
            header = default_columns(table)
            sheet.append_row(header)
            return sheet, header, []
        return sheet, values[0], values[1:]

    @staticmethod
    def _row_to_dict(header: list[str], row: list[str]) -> dict:
        record = {}
        for idx, column in enumerate(header):
            raw = row[idx] if idx < len(row) else ""
            record[column] = decode_cell(raw)
        return record

    @staticmethod
    def _dict_to_row(header: list[str], record: dict) -> list[str]:
        return [encode_cell(record.get(column)) for column in header]

    def _ensure_columns(self, sheet: gspread.Worksheet, header: list[str], record: dict) -> list[str]:
        """Extend the header row with any columns `record` introduces."""
        missing = [k for k in record if k not in header]
        if not missing:
            return header
        header = header + missing
        if sheet.col_count < len(header):
            sheet.add_cols(len(header) - sheet.col_count)
        sheet.batch_update(
            [{"range": "A1", "values": [header]}],
            value_input_option="RAW",
        )
        return header

    @staticmethod
    def _find(header: list[str], rows: list[list[str]], user_id: str, record_id: str) -> Optional[int]:
        """Index into `rows` of the user's row with this id."""
        id_col = header.index("id")
        user_col = header.index("user_id")
        wanted_id = encode_cell(str(record_id))
        wanted_user = encode_cell(user_id)
        for idx, row in enumerate(rows):
            if len(row) <= max(id_col, user_col):
                continue
            if row[id_col] == wanted_id and row[user_col] == wanted_user:
                return idx
        return None

    def _insert_row(self, table: str, record: dict) -> None:
        sheet, header, rows = self._read(table)
        id_col = header.index("id")
        if any(len(r) > id_col and r[id_col] == encode_cell(record["id"]) for r in rows):
            raise DuplicateError(f"Row already exists in {table}: {record['id']}")
        header = self._ensure_columns(sheet, header, record)
        sheet.append_row(self._dict_to_row(header, record), value_input_option="RAW")

    def _get_row(self, table: str, user_id: str, record_id: str) -> Optional[dict]:
        _, header, rows = self._read(table)
        idx = self._find(header, rows, user_id, record_id)
        if idx is None:
            return None
        return self._row_to_dict(header, rows[idx])

    def _update_row(
        self,
        table: str,
        user_id: str,
        record_id: str,
        changes: dict[str, Any],
    ) -> tuple[dict, dict]:
        sheet, header, rows = self._read(table)
        idx = self._find(header, rows, user_id, record_id)
        if idx is None:
            raise NotFoundError(f"Row not found in {table}: {record_id}")

        old = self._row_to_dict(header, rows[idx])
        record = dict(old)
        record.update({k: v for k, v in changes.items() if k not in ("id", "user_id")})
        record["updated_at"] = utcnow().isoformat()

        header = self._ensure_columns(sheet, header, record)
        sheet_row = idx + 2  # Row 1 is the header
        sheet.batch_update(
            [{"range": rowcol_to_a1(sheet_row, 1), "values": [self._dict_to_row(header, record)]}],
            value_input_option="RAW",
        )
        return old, record

    def _delete_row(self, table: str, user_id: str, record_id: str) -> Optional[dict]:
        sheet, header, rows = self._read(table)
        idx = self._find(header, rows, user_id, record_id)
        if idx is None:
            return None
        old = self._row_to_dict(header, rows[idx])
        sheet.delete_rows(idx + 2)
        return old

    def _list_rows(self, table: str, user_id: str) -> list[dict]:
        _, header, rows = self._read(table)
        user_col = header.index("user_id")
        wanted_user = encode_cell(user_id)
        return [
            self._row_to_dict(header, row)
            for row in rows
            if len(row) > user_col and row[user_col] == wanted_user
        ]

    # gspread blocks on HTTP, so every call runs in a worker thread

    async def insert(self, table: str, user_id: str, values: dict[str, Any]) -> dict:
        record = dict(values)
        record["id"] = str(record.get("id") or uuid4())
        record["user_id"] = user_id
        now = utcnow().isoformat()
        record.setdefault("created_at", now)
        record.setdefault("updated_at", now)

        try:
            await asyncio.to_thread(self._insert_row, table, record)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to insert into {table}: {e}")

        self._publish(table, ChangeType.INSERT, user_id, new=record)
        return record

    async def get(self, table: str, user_id: str, record_id: str) -> Optional[dict]:
        try:
            return await asyncio.to_thread(self._get_row, table, user_id, record_id)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get row from {table}: {e}")

    async def update(
        self,
        table: str,
        user_id: str,
        record_id: str,
        changes: dict[str, Any],
    ) -> dict:
        try:
            old, record = await asyncio.to_thread(
                self._update_row, table, user_id, record_id, changes
            )
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update row in {table}: {e}")

        self._publish(table, ChangeType.UPDATE, user_id, new=record, old=old)
        return record

    async def delete(self, table: str, user_id: str, record_id: str) -> bool:
        try:
            old = await asyncio.to_thread(self._delete_row, table, user_id, record_id)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete row from {table}: {e}")

        if old is None:
            return False
        self._publish(table, ChangeType.DELETE, user_id, old=old)
        return True

    async def list(
        self,
        table: str,
        user_id: str,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict]:
        try:
            records = await asyncio.to_thread(self._list_rows, table, user_id)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list rows of {table}: {e}")

        return sort_rows(records, order_by, descending, limit)


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Audit events as rows of the AuditLog worksheet, appended only.

    A failed append is logged and dropped; only connecting retries.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _append(self, event: AuditEvent) -> None:
        sheet = self._client.get_audit_sheet()
        sheet.append_row(event.to_sheets_row(), value_input_option="RAW")

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            await asyncio.to_thread(self._append, event)
            return True
        except Exception as e:
            # Audit logging must not break the main flow
            logger.warning("audit_write_failed", error=str(e), event_id=str(event.event_id))
            return False
