# services/api/adapters/sheets/__init__.py
from __future__ import annotations

import functools
import json
import logging
import threading
from typing import Any, Dict, List, Optional

import gspread
import requests
from google.auth.exceptions import TransportError
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from ..base import BackendError, Grid, SheetNotFound

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]


def _sa_client_from_json_or_path(google_sa_json: str) -> gspread.Client:
    """
    Accepts either:
      - absolute/relative path to a service-account JSON file, OR
      - a literal JSON string.
    Returns an authorized gspread Client.
    """
    if not google_sa_json:
        raise ValueError("GOOGLE_SA_JSON is required (path to file or inline JSON).")

    # Try to treat as inline JSON first
    try:
        parsed = json.loads(google_sa_json)
        creds = Credentials.from_service_account_info(parsed, scopes=SCOPES)
        return gspread.authorize(creds)
    except json.JSONDecodeError:
        # Not JSON; treat as file path
        creds = Credentials.from_service_account_file(google_sa_json, scopes=SCOPES)
        return gspread.authorize(creds)


# ========== Retry decorator for Google Sheets API calls ==========
def retry_sheets_api(func):
    """
    Retry Sheets API calls with exponential backoff on quota / transient errors,
    then surface whatever is left as BackendError.
    """
    retrying = retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(
            (gspread.exceptions.APIError, requests.RequestException, TransportError)
        ),
        reraise=True,
    )(func)

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return retrying(*args, **kwargs)
        except (gspread.exceptions.APIError, requests.RequestException, TransportError) as e:
            raise BackendError(str(e)) from e

    return wrapper


class SheetsBackend:
    """
    Google Sheets implementation of SheetBackend.
    - Worksheet handles are looked up lazily and kept for the process lifetime
    - Every remote call goes through retry_sheets_api
    - Values are written RAW (no formula / date parsing by Sheets)
    """

    def __init__(self, google_sa_json: Optional[str], spreadsheet_id: Optional[str]) -> None:
        if not google_sa_json or not spreadsheet_id:
            raise ValueError("SheetsBackend requires GOOGLE_SA_JSON and SHEETS_SPREADSHEET_ID")

        self.gc = _sa_client_from_json_or_path(google_sa_json)
        self.ss = self.gc.open_by_key(spreadsheet_id)
        self.ws: dict[str, gspread.Worksheet] = {}
        self._ws_lock = threading.Lock()

    # ========== Worksheet helpers ==========

    def _worksheet(self, name: str) -> gspread.Worksheet:
        """Cached worksheet handle; the lookup runs under the caller's retry."""
        with self._ws_lock:
            ws = self.ws.get(name)
        if ws is not None:
            return ws
        try:
            ws = self.ss.worksheet(name)
        except gspread.WorksheetNotFound:
            raise SheetNotFound(name)
        with self._ws_lock:
            return self.ws.setdefault(name, ws)

    # ========== SheetBackend API ==========

    @retry_sheets_api
    def get_range(self, sheet: str, range_spec: str | None = None) -> Grid:
        ws = self._worksheet(sheet)
        if range_spec is None:
            return ws.get_all_values()
        return ws.get_values(range_spec)

    @retry_sheets_api
    def append_row(self, sheet: str, values: List[Any]) -> None:
        self._worksheet(sheet).append_row(values, value_input_option="RAW")
        logger.info(f"Row appended to sheet '{sheet}'")

    @retry_sheets_api
    def update_cell(self, sheet: str, a1_range: str, value: Any) -> None:
        self._worksheet(sheet).update(
            range_name=a1_range, values=[[value]], value_input_option="RAW"
        )

    @retry_sheets_api
    def batch_update_cells(self, sheet: str, updates: List[Dict[str, Any]]) -> None:
        if not updates:
            return
        data = [{"range": u["range"], "values": [[u["value"]]]} for u in updates]
        self._worksheet(sheet).batch_update(data, value_input_option="RAW")

    @retry_sheets_api
    def get_sheet_id(self, sheet: str) -> int:
        return self._worksheet(sheet).id

    @retry_sheets_api
    def delete_row(self, sheet: str, row_index: int) -> None:
        sheet_id = self._worksheet(sheet).id
        self.ss.batch_update(
            {
                "requests": [
                    {
                        "deleteDimension": {
                            "range": {
                                "sheetId": sheet_id,
                                "dimension": "ROWS",
                                "startIndex": row_index - 1,
                                "endIndex": row_index,
                            }
                        }
                    }
                ]
            }
        )
        logger.info(f"Row {row_index} deleted from sheet '{sheet}'")

    def ping(self) -> None:
        """Cheap connectivity check for readiness probes."""
        self.ss.fetch_sheet_metadata()
