import importlib
import io
import json
from types import SimpleNamespace

import pytest

from api.config import ColumnMap


class FakeRequest:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error

    def execute(self):
        if self.error is not None:
            raise self.error
        return self.result


class FakeSheetsService:
    """Just enough of the Sheets v4 service for values().batchGet()"""

    def __init__(self, value_ranges=None, error=None):
        self.value_ranges = value_ranges or []
        self.error = error
        self.calls = []

    def spreadsheets(self):
        return self

    def values(self):
        return self

    def batchGet(self, spreadsheetId, ranges):
        self.calls.append({'spreadsheetId': spreadsheetId, 'ranges': list(ranges)})
        return FakeRequest({'valueRanges': self.value_ranges}, self.error)


def make_row(width=43, columns=None, **cells):
    """Row with cells placed by column map field name"""
    columns = columns or ColumnMap()
    row = [""] * width
    for name, value in cells.items():
        row[getattr(columns, name)] = value
    return row


def load_endpoint(name):
    """Import an api/ endpoint module (file names may contain dashes)"""
    return importlib.import_module(f"api.{name}")


def call_handler(handler_cls, method, path):
    """Run one request through a BaseHTTPRequestHandler subclass in memory"""
    h = handler_cls.__new__(handler_cls)
    h.command = method
    h.path = path
    h.request_version = 'HTTP/1.1'
    h.requestline = f'{method} {path} HTTP/1.1'
    h.client_address = ('127.0.0.1', 0)
    h.rfile = io.BytesIO()
    h.wfile = io.BytesIO()

    getattr(h, f'do_{method}')()

    head, _, body = h.wfile.getvalue().partition(b'\r\n\r\n')
    lines = head.decode('latin-1').split('\r\n')
    headers = {}
    for line in lines[1:]:
        key, _, value = line.partition(':')
        headers[key.strip().lower()] = value.strip()

    return SimpleNamespace(
        status=int(lines[0].split()[1]),
        headers=headers,
        body=body,
        json=lambda: json.loads(body),
    )


@pytest.fixture
def catalog_env(monkeypatch):
    """Minimal environment for the catalog endpoint"""
    for var in (
        'GOOGLE_SERVICE_ACCOUNT_JSON', 'GCP_PROJECT_ID', 'GCP_CLIENT_EMAIL',
        'GCP_PRIVATE_KEY', 'SHEETS_RANGE', 'SHEETS_PIN_RANGE',
        'SHEETS_MANUFACTURER_RANGE', 'SHEETS_TERM_SIZE_RANGE',
        'SHEETS_COLUMN_MAP', 'IMAGE_PROXY_PATH',
    ):
        monkeypatch.delenv(var, raising=False)

    monkeypatch.setenv('GOOGLE_SERVICE_ACCOUNT_JSON', json.dumps({
        'type': 'service_account',
        'client_email': 'catalog@example.iam.gserviceaccount.com',
    }))
    monkeypatch.setenv('SHEETS_SPREADSHEET_ID', 'sheet-123')


@pytest.fixture
def image_env(monkeypatch):
    for var in ('IMAGE_PROXY_ALLOWED_HOSTS', 'IMAGE_THUMBNAIL_SIZE', 'IMAGE_PROXY_TIMEOUT'):
        monkeypatch.delenv(var, raising=False)
