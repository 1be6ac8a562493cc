from __future__ import annotations

import base64
import binascii
import json
import logging
import os
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from google.auth.exceptions import RefreshError, TransportError
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from ..config.loader import ConfigError
from .base import CellUpdate, column_letter
from .errors import NotFoundError, StorePermissionError, TransientStoreError

"""Google Sheets store (Sheets API v4 via google-api-python-client).

Credentials come from a service account:
    1. GOOGLE_CREDENTIALS: base64 encoded service-account JSON
    2. GOOGLE_APPLICATION_CREDENTIALS or config ``store.credentials_file``: JSON key file

All cell values are read and written as text (valueInputOption=RAW), and every
HttpError is classified by status before leaving this module.
"""

__all__ = [
    "SCOPES",
    "GoogleSheetsStore",
    "load_service_account_info",
    "build_sheets_service",
]

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
_REQUIRED_KEYS = ("client_email", "private_key")


def load_service_account_info(
    env: Mapping[str, str] | None = None, credentials_file: str | None = None
) -> dict[str, Any]:
    """Resolve service-account info from the environment or a key file.

    Raises:
        ConfigError: no credentials configured, or they are unreadable / incomplete
    """
    env = os.environ if env is None else env
    encoded = env.get("GOOGLE_CREDENTIALS")
    if encoded:
        try:
            info = json.loads(base64.b64decode(encoded).decode("utf-8"))
        except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ConfigError(f"GOOGLE_CREDENTIALS is not base64 encoded JSON: {e}") from e
    else:
        path = env.get("GOOGLE_APPLICATION_CREDENTIALS") or credentials_file
        if not path:
            raise ConfigError("Google credentials not configured (GOOGLE_CREDENTIALS / GOOGLE_APPLICATION_CREDENTIALS)")
        try:
            info = json.loads(Path(path).read_text(encoding="utf-8"))
        except FileNotFoundError as e:
            raise ConfigError(f"credentials file not found: {path}") from e
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"invalid credentials file {path}: {e}") from e

    if not isinstance(info, dict):
        raise ConfigError("invalid credentials: expected a JSON object")
    missing = [k for k in _REQUIRED_KEYS if not info.get(k)]
    if missing:
        raise ConfigError(f"invalid credentials: missing required fields {missing}")
    return info


def build_sheets_service(info: Mapping[str, Any]) -> Any:
    creds = service_account.Credentials.from_service_account_info(dict(info), scopes=SCOPES)
    return build("sheets", "v4", credentials=creds, cache_discovery=False)


def _classify_http_error(e: HttpError, action: str) -> Exception:
    status = getattr(e.resp, "status", None)
    try:
        status = int(status) if status is not None else None
    except (TypeError, ValueError):
        status = None
    detail = e.reason if hasattr(e, "reason") and e.reason else str(e)
    if status in (401, 403):
        return StorePermissionError(f"{action}: access denied ({status}): {detail}")
    if status == 404:
        return NotFoundError(f"{action}: spreadsheet not found: {detail}")
    if status == 400 and "Unable to parse range" in str(e):
        return NotFoundError(f"{action}: worksheet or range not found: {detail}")
    return TransientStoreError(f"{action}: Sheets API error ({status}): {detail}")


@contextmanager
def _classified(action: str) -> Iterator[None]:
    try:
        yield
    except HttpError as e:
        raise _classify_http_error(e, action) from e
    except RefreshError as e:
        raise StorePermissionError(f"{action}: credentials rejected: {e}") from e
    except (TransportError, TimeoutError, ConnectionError) as e:
        raise TransientStoreError(
            f"{action}: request did not complete ({e}); the change may or may not have applied, re-read before retrying"
        ) from e
    except OSError as e:
        raise TransientStoreError(f"{action}: network error: {e}") from e


class GoogleSheetsStore:
    """One worksheet of a Google spreadsheet.

    Args:
        service: Sheets API service object (``build("sheets", "v4", ...)``)
        spreadsheet_id: Spreadsheet key
        sheet_name: Worksheet (tab) name
    """

    def __init__(self, service: Any, spreadsheet_id: str, sheet_name: str = "Sheet1") -> None:
        self.service = service
        self.spreadsheet_id = spreadsheet_id
        self.sheet_name = sheet_name

    @classmethod
    def from_credentials(
        cls,
        spreadsheet_id: str,
        sheet_name: str = "Sheet1",
        env: Mapping[str, str] | None = None,
        credentials_file: str | None = None,
    ) -> GoogleSheetsStore:
        info = load_service_account_info(env, credentials_file)
        return cls(build_sheets_service(info), spreadsheet_id, sheet_name)

    def _range(self, a1: str = "") -> str:
        quoted = "'" + self.sheet_name.replace("'", "''") + "'"
        return f"{quoted}!{a1}" if a1 else quoted

    def title(self) -> str:
        with _classified("probe"):
            meta = (
                self.service.spreadsheets()
                .get(spreadsheetId=self.spreadsheet_id, fields="properties.title")
                .execute()
            )
        return meta.get("properties", {}).get("title", "")

    def read_all(self) -> list[list[str]]:
        with _classified("read"):
            result = (
                self.service.spreadsheets()
                .values()
                .get(spreadsheetId=self.spreadsheet_id, range=self._range())
                .execute()
            )
        rows = [[str(c) for c in row] for row in result.get("values", [])]
        logger.debug("read spreadsheet=%s sheet=%s rows=%d", self.spreadsheet_id, self.sheet_name, len(rows))
        return rows

    def read_rows(self, row_numbers: Sequence[int]) -> dict[int, list[str]]:
        numbers = list(row_numbers)
        if not numbers:
            return {}
        with _classified("read rows"):
            result = (
                self.service.spreadsheets()
                .values()
                .batchGet(spreadsheetId=self.spreadsheet_id, ranges=[self._range(f"{n}:{n}") for n in numbers])
                .execute()
            )
        found: dict[int, list[str]] = {}
        for n, value_range in zip(numbers, result.get("valueRanges", []), strict=False):
            values = value_range.get("values") or []
            if values and any(str(c).strip() for c in values[0]):
                found[n] = [str(c) for c in values[0]]
        return found

    def write_cells(self, updates: Sequence[CellUpdate]) -> int:
        if not updates:
            return 0
        body = {
            "valueInputOption": "RAW",
            "data": [
                {"range": self._range(f"{column_letter(u.column)}{u.row}"), "values": [[u.value]]}
                for u in updates
            ],
        }
        with _classified("write"):
            result = (
                self.service.spreadsheets()
                .values()
                .batchUpdate(spreadsheetId=self.spreadsheet_id, body=body)
                .execute()
            )
        applied = int(result.get("totalUpdatedCells", 0))
        logger.debug("batchUpdate spreadsheet=%s cells=%d/%d", self.spreadsheet_id, applied, len(updates))
        return applied
