# tests/test_sheets_api.py
import pytest
import requests

from modules.job_scout.lib.sheets_api import SHEETS_BASE_URL, GoogleSheetsBackend
from modules.job_scout.lib.store import LABEL_COL, TAG_RULES, StoreError


class _FakeHttp:
    def __init__(self, *, get=None, send=None):
        self.get = get or {}
        self.send = send
        self.calls = []

    def get_json(self, url, *, params=None, headers=None, timeout=None):
        self.calls.append(("GET", url, params, None))
        result = self.get.get(url.split("/values/")[-1] if "/values/" in url else "meta", {})
        if isinstance(result, Exception):
            raise result
        return result

    def send_json(self, method, url, body, *, params=None, timeout=None):
        self.calls.append((method, url, params, body))
        if isinstance(self.send, Exception):
            raise self.send
        return self.send or {}


def test_reads_column_and_rows():
    http = _FakeHttp(get={
        "E:E": {"values": [["Apply Link"], [], ["https://x/1"]]},
        "A1:1": {"values": [["Date", "Company"]]},
    })
    sheet = GoogleSheetsBackend("sid", http=http)

    assert sheet.read_column(4) == ["Apply Link", "", "https://x/1"]
    assert sheet.read_row(1) == ["Date", "Company"]


def test_sheet_name_is_quoted_in_ranges():
    sheet = GoogleSheetsBackend("sid", http=_FakeHttp(), sheet_name="Bob's Jobs")
    assert sheet.a1("A:H") == "'Bob''s Jobs'!A:H"


def test_append_uses_insert_rows_and_returns_range():
    http = _FakeHttp(send={"updates": {"updatedRange": "Sheet1!A5:H6"}})
    sheet = GoogleSheetsBackend("sid", http=http)

    rng = sheet.append_rows([["a"] * 8, ["b"] * 8])

    assert rng == "Sheet1!A5:H6"
    method, url, params, body = http.calls[0]
    assert method == "POST"
    assert url == f"{SHEETS_BASE_URL}/sid/values/A:H:append"
    assert params == {"valueInputOption": "RAW", "insertDataOption": "INSERT_ROWS"}
    assert len(body["values"]) == 2


def test_update_cell_targets_a1_cell():
    http = _FakeHttp()
    GoogleSheetsBackend("sid", http=http).update_cell(7, 7, "Applied")
    method, url, params, body = http.calls[0]
    assert (method, url.rsplit("/", 1)[-1], body) == ("PUT", "H7", {"values": [["Applied"]]})


def test_only_missing_tag_rules_are_added():
    existing = {
        "sheets": [
            {
                "properties": {"sheetId": 0},
                "conditionalFormats": [
                    {
                        "ranges": [{"sheetId": 0, "startColumnIndex": LABEL_COL, "endColumnIndex": LABEL_COL + 1}],
                        "booleanRule": {"condition": {"type": "TEXT_EQ", "values": [{"userEnteredValue": "GOOD_FIT"}]}},
                    }
                ],
            }
        ]
    }
    http = _FakeHttp(get={"meta": existing})
    GoogleSheetsBackend("sid", http=http).apply_tag_rules(LABEL_COL, TAG_RULES)

    [(method, url, _, body)] = [c for c in http.calls if c[0] == "POST"]
    assert url.endswith("/sid:batchUpdate")
    values = [
        r["addConditionalFormatRule"]["rule"]["booleanRule"]["condition"]["values"][0]["userEnteredValue"]
        for r in body["requests"]
    ]
    assert values == ["MAYBE_FIT", "IGNORE"]


def test_http_failures_become_store_errors():
    http = _FakeHttp(get={"E:E": requests.HTTPError("403 Forbidden")})
    with pytest.raises(StoreError, match="403"):
        GoogleSheetsBackend("sid", http=http).read_column(4)


def test_bad_service_account_is_store_error():
    pytest.importorskip("google.oauth2")
    with pytest.raises(StoreError):
        GoogleSheetsBackend.from_service_account("sid", {"type": "service_account"})


def _two_tab_meta():
    return {
        "sheets": [
            {"properties": {"sheetId": 0, "title": "Sheet1"}},
            {
                "properties": {"sheetId": 123456, "title": "Jobs"},
                "conditionalFormats": [
                    {
                        "ranges": [{"sheetId": 123456, "startColumnIndex": LABEL_COL}],
                        "booleanRule": {"condition": {"type": "TEXT_EQ", "values": [{"userEnteredValue": "IGNORE"}]}},
                    }
                ],
            },
        ]
    }


def test_named_tab_formatting_targets_its_own_sheet_id():
    http = _FakeHttp(get={"meta": _two_tab_meta()})
    sheet = GoogleSheetsBackend("sid", http=http, sheet_name="Jobs")

    sheet.style_header(8)
    sheet.apply_tag_rules(LABEL_COL, TAG_RULES)

    posts = [body for method, _, _, body in http.calls if method == "POST"]
    header_range = posts[0]["requests"][0]["repeatCell"]["range"]
    assert header_range["sheetId"] == 123456

    added = posts[1]["requests"]
    assert {r["addConditionalFormatRule"]["rule"]["ranges"][0]["sheetId"] for r in added} == {123456}
    values = [r["addConditionalFormatRule"]["rule"]["booleanRule"]["condition"]["values"][0]["userEnteredValue"] for r in added]
    assert values == ["GOOD_FIT", "MAYBE_FIT"]

    # the tab lookup happens once
    lookups = [c for c in http.calls if c[0] == "GET" and c[2] == {"fields": "sheets.properties(sheetId,title)"}]
    assert len(lookups) == 1


def test_unknown_tab_name_is_store_error():
    sheet = GoogleSheetsBackend("sid", http=_FakeHttp(get={"meta": _two_tab_meta()}), sheet_name="Archive")
    with pytest.raises(StoreError, match="Archive"):
        sheet.style_header(8)


def test_unnamed_sheet_uses_first_tab_without_lookup():
    http = _FakeHttp()
    sheet = GoogleSheetsBackend("sid", http=http)
    sheet.style_header(8)
    assert [c[0] for c in http.calls] == ["POST"]
    assert http.calls[0][3]["requests"][0]["repeatCell"]["range"]["sheetId"] == 0
