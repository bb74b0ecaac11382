import httplib2
import pytest
from googleapiclient.errors import HttpError

from api.config import CatalogSettings, ColumnMap
from api.errors import ConfigurationError, UpstreamError
from api.sheets import ConnectorSheetsClient

from .conftest import FakeSheetsService, make_row


def make_settings(**overrides):
    return CatalogSettings(
        credentials_info={'client_email': 'catalog@example.com'},
        spreadsheet_id='sheet-123',
        **overrides
    )


def value_ranges(rows, pins=None, suppliers=None, term_sizes=None, main_range="'Connector Inventory'!A2:AQ1000"):
    return [
        {'range': main_range, 'values': rows},
        {'range': 'Stats!A2:A1000', 'values': pins or []},
        {'range': 'Stats!E2:E1000', 'values': suppliers or []},
        {'range': 'Stats!S5:S150', 'values': term_sizes or []},
    ]


def test_get_catalog_single_batched_call():
    service = FakeSheetsService(value_ranges(
        rows=[
            make_row(part_number='12345', pins='8', shop_qty='3', ford='TRUE'),
            make_row(),
            make_row(part_number='67890', pins='4'),
        ],
        pins=[['4'], ['2'], ['4'], [], ['8']],
        suppliers=[['Yazaki'], ['Aptiv'], ['Yazaki']],
        term_sizes=[['2.8'], ['0.64'], ['1.5']],
    ))

    payload = ConnectorSheetsClient(make_settings(), service=service).get_catalog()

    assert len(service.calls) == 1
    assert service.calls[0] == {
        'spreadsheetId': 'sheet-123',
        'ranges': ["'Connector Inventory'!A2:AQ", 'Stats!A2:A', 'Stats!E2:E', 'Stats!S5:S150'],
    }
    assert [i['partNumber'] for i in payload['items']] == ['12345', '67890']
    assert payload['items'][0]['shopQty'] == 3
    assert payload['items'][0]['vehicle'] == 'Ford'
    assert payload['pinOptions'] == ['2', '4', '8']
    assert payload['manufacturerOptions'] == ['Aptiv', 'Yazaki']
    assert payload['termSizeOptions'] == ['0.64', '1.5', '2.8']


def test_get_catalog_without_term_sizes():
    ranges = value_ranges(rows=[])[:3]
    service = FakeSheetsService(ranges)

    payload = ConnectorSheetsClient(make_settings(term_size_range=None), service=service).get_catalog()

    assert payload == {'items': [], 'pinOptions': [], 'manufacturerOptions': []}
    assert len(service.calls[0]['ranges']) == 3


def test_get_catalog_empty_ranges_have_no_values_key():
    service = FakeSheetsService([
        {'range': "'Connector Inventory'!A2:AQ1000"},
        {'range': 'Stats!A2:A1000'},
        {'range': 'Stats!E2:E1000'},
        {'range': 'Stats!S5:S150'},
    ])

    payload = ConnectorSheetsClient(make_settings(), service=service).get_catalog()

    assert payload['items'] == []
    assert payload['termSizeOptions'] == []


def test_column_map_wider_than_fetched_range():
    service = FakeSheetsService(value_ranges(rows=[], main_range="'Connector Inventory'!A2:AE1000"))

    with pytest.raises(ConfigurationError, match='price=37'):
        ConnectorSheetsClient(make_settings(), service=service).get_catalog()


def test_custom_column_map():
    columns = ColumnMap.from_dict({'part_number': 0, 'price': 2, 'picture': None, 'terminal_sizes': None})
    service = FakeSheetsService(value_ranges(
        rows=[['P-1', '', '$4.25'] + [''] * 40],
    ))

    payload = ConnectorSheetsClient(make_settings(columns=columns), service=service).get_catalog()

    assert payload['items'][0]['partNumber'] == 'P-1'
    assert payload['items'][0]['details']['price'] == 4.25


def test_sheets_http_error():
    error = HttpError(httplib2.Response({'status': 403}), b'{"error": {"message": "denied"}}')
    service = FakeSheetsService(error=error)

    with pytest.raises(UpstreamError) as exc:
        ConnectorSheetsClient(make_settings(), service=service).fetch_ranges()

    assert exc.value.upstream_status == 403
    assert exc.value.status == 502


def test_unexpected_range_count():
    service = FakeSheetsService(value_ranges(rows=[])[:2])

    with pytest.raises(UpstreamError):
        ConnectorSheetsClient(make_settings(), service=service).fetch_ranges()
