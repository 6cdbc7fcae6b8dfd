"""
Google Sheets v4 REST backend.

Authenticated with a service account (google-auth); requests go through the
shared HttpClient wrapping an AuthorizedSession. All HTTP failures surface as
StoreError so the batch layer can record them and move on.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any
from urllib.parse import quote

import requests

from .http_client import HttpClient
from .store import SheetBackend, StoreError, TagRule
from .utils import col_letter

log = logging.getLogger(__name__)

SHEETS_BASE_URL = "https://sheets.googleapis.com/v4/spreadsheets"
SCOPES = ("https://www.googleapis.com/auth/spreadsheets",)

HEADER_BACKGROUND = {"red": 0.2, "green": 0.2, "blue": 0.2}
HEADER_FOREGROUND = {"red": 1, "green": 1, "blue": 1}


def _rgb(values: Sequence[float]) -> dict[str, float]:
    r, g, b = values
    return {"red": r, "green": g, "blue": b}


class GoogleSheetsBackend(SheetBackend):
    def __init__(
        self,
        spreadsheet_id: str,
        *,
        http: HttpClient,
        sheet_name: str | None = None,
        sheet_gid: int | None = None,
    ) -> None:
        self.spreadsheet_id = spreadsheet_id
        self.sheet_name = sheet_name
        self._sheet_gid = sheet_gid
        self._http = http

    @property
    def sheet_gid(self) -> int:
        """Numeric sheetId for formatting requests; looked up by tab title once, first tab otherwise."""
        if self._sheet_gid is None:
            self._sheet_gid = self._lookup_gid() if self.sheet_name else 0
        return self._sheet_gid

    def _lookup_gid(self) -> int:
        data = self._call(
            "get",
            self._http.get_json,
            f"{SHEETS_BASE_URL}/{self.spreadsheet_id}",
            params={"fields": "sheets.properties(sheetId,title)"},
        )
        for sheet in data.get("sheets") or []:
            props = sheet.get("properties") or {}
            if props.get("title") == self.sheet_name:
                return int(props.get("sheetId", 0))
        raise StoreError(f"Sheet tab {self.sheet_name!r} not found in spreadsheet {self.spreadsheet_id}")

    @classmethod
    def from_service_account(
        cls,
        spreadsheet_id: str,
        info: dict[str, Any],
        *,
        sheet_name: str | None = None,
    ) -> GoogleSheetsBackend:
        from google.auth.transport.requests import AuthorizedSession
        from google.oauth2 import service_account

        try:
            creds = service_account.Credentials.from_service_account_info(info, scopes=list(SCOPES))
        except (ValueError, KeyError) as e:
            raise StoreError(f"Failed to initialize Google Sheets client: {e}") from e
        http = HttpClient(session=AuthorizedSession(creds))
        return cls(spreadsheet_id, http=http, sheet_name=sheet_name)

    # ---- A1 helpers ----
    def a1(self, ref: str) -> str:
        if not self.sheet_name:
            return ref
        escaped = self.sheet_name.replace("'", "''")
        return f"'{escaped}'!{ref}"

    def _values_url(self, ref: str, suffix: str = "") -> str:
        return f"{SHEETS_BASE_URL}/{self.spreadsheet_id}/values/{quote(self.a1(ref), safe='!:$')}{suffix}"

    def _call(self, op: str, fn, *args, **kwargs) -> Any:
        try:
            return fn(*args, **kwargs)
        except (requests.RequestException, ValueError) as e:
            raise StoreError(f"sheets.{op} failed: {e}") from e

    def _get_values(self, ref: str) -> list[list[str]]:
        data = self._call("get", self._http.get_json, self._values_url(ref))
        return [[str(c) for c in row] for row in (data.get("values") or [])]

    def _batch_update(self, requests_: list[dict[str, Any]]) -> Any:
        url = f"{SHEETS_BASE_URL}/{self.spreadsheet_id}:batchUpdate"
        return self._call("batchUpdate", self._http.send_json, "POST", url, {"requests": requests_})

    # ---- reads ----
    def read_row(self, row: int) -> list[str]:
        values = self._get_values(f"A{row}:{row}")
        return values[0] if values else []

    def read_column(self, col: int) -> list[str]:
        letter = col_letter(col)
        return [r[0] if r else "" for r in self._get_values(f"{letter}:{letter}")]

    def read_rows(self) -> list[list[str]]:
        return self._get_values("A:H")

    # ---- writes ----
    def write_row(self, row: int, values: Sequence[str]) -> None:
        ref = f"A{row}:{col_letter(len(values) - 1)}{row}"
        self._call(
            "update",
            self._http.send_json,
            "PUT",
            self._values_url(ref),
            {"values": [list(values)]},
            params={"valueInputOption": "RAW"},
        )

    def append_rows(self, rows: Sequence[Sequence[str]]) -> str | None:
        if not rows:
            return None
        width = max(len(r) for r in rows)
        data = self._call(
            "append",
            self._http.send_json,
            "POST",
            self._values_url(f"A:{col_letter(width - 1)}", ":append"),
            {"values": [list(r) for r in rows]},
            params={"valueInputOption": "RAW", "insertDataOption": "INSERT_ROWS"},
        )
        return (data.get("updates") or {}).get("updatedRange")

    def update_cell(self, row: int, col: int, value: str) -> None:
        ref = f"{col_letter(col)}{row}"
        self._call(
            "update",
            self._http.send_json,
            "PUT",
            self._values_url(ref),
            {"values": [[value]]},
            params={"valueInputOption": "RAW"},
        )

    def style_header(self, width: int) -> None:
        self._batch_update([
            {
                "repeatCell": {
                    "range": {
                        "sheetId": self.sheet_gid,
                        "startRowIndex": 0,
                        "endRowIndex": 1,
                        "startColumnIndex": 0,
                        "endColumnIndex": width,
                    },
                    "cell": {
                        "userEnteredFormat": {
                            "backgroundColor": HEADER_BACKGROUND,
                            "textFormat": {"foregroundColor": HEADER_FOREGROUND, "bold": True},
                        }
                    },
                    "fields": "userEnteredFormat(backgroundColor,textFormat)",
                }
            }
        ])

    def existing_tag_values(self, col: int) -> set[str]:
        """TEXT_EQ values already covered by a conditional rule on `col`."""
        gid = self.sheet_gid
        url = f"{SHEETS_BASE_URL}/{self.spreadsheet_id}"
        data = self._call(
            "get",
            self._http.get_json,
            url,
            params={"fields": "sheets(properties.sheetId,conditionalFormats)"},
        )
        found: set[str] = set()
        for sheet in data.get("sheets") or []:
            if (sheet.get("properties") or {}).get("sheetId", 0) != gid:
                continue
            for rule in sheet.get("conditionalFormats") or []:
                ranges = rule.get("ranges") or []
                if not any(r.get("startColumnIndex") == col for r in ranges):
                    continue
                cond = (rule.get("booleanRule") or {}).get("condition") or {}
                if cond.get("type") != "TEXT_EQ":
                    continue
                for v in cond.get("values") or []:
                    found.add(str(v.get("userEnteredValue", "")))
        return found

    def apply_tag_rules(self, col: int, rules: Sequence[TagRule]) -> None:
        present = self.existing_tag_values(col)
        missing = [r for r in rules if r.value not in present]
        if not missing:
            return
        requests_ = []
        for i, rule in enumerate(missing):
            requests_.append({
                "addConditionalFormatRule": {
                    "rule": {
                        "ranges": [{"sheetId": self.sheet_gid, "startColumnIndex": col, "endColumnIndex": col + 1}],
                        "booleanRule": {
                            "condition": {"type": "TEXT_EQ", "values": [{"userEnteredValue": rule.value}]},
                            "format": {
                                "backgroundColor": _rgb(rule.background),
                                "textFormat": {"foregroundColor": _rgb(rule.foreground)},
                            },
                        },
                    },
                    "index": i,
                }
            })
        log.debug("Adding %d conditional format rule(s) on column %s", len(requests_), col_letter(col))
        self._batch_update(requests_)
