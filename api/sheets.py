"""
Connector Catalog - Google Sheets Integration

Reads the connector inventory and the Stats option columns in one batched
call and reshapes them into the catalog payload served by /api/connectors.
"""

import logging

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .catalog import column_values, extract_options, normalize_rows
from .config import SHEETS_SCOPES, CatalogSettings, range_width
from .errors import UpstreamError

logger = logging.getLogger(__name__)


# ============================================================
# SHEETS CLIENT
# ============================================================

class ConnectorSheetsClient:
    """
    Google Sheets client for the connector inventory.

    One instance per request; the Sheets service is built lazily from the
    settings' service account credentials.

    Usage:
        client = ConnectorSheetsClient(CatalogSettings.from_env())
        payload = client.get_catalog()
    """

    def __init__(self, settings: CatalogSettings, service=None):
        self.settings = settings
        self._service = service

    @property
    def service(self):
        """Lazy-load the Google Sheets service"""
        if self._service is None:
            creds = service_account.Credentials.from_service_account_info(
                self.settings.credentials_info,
                scopes=SHEETS_SCOPES
            )
            self._service = build('sheets', 'v4', credentials=creds, cache_discovery=False)

        return self._service

    def fetch_ranges(self) -> list[dict]:
        """
        Fetch the primary and auxiliary ranges in a single batchGet.

        Returns:
            The value ranges in request order, each a dict with 'range' and
            (when the range has data) 'values'

        Raises:
            UpstreamError: when the Sheets API rejects the call
        """
        ranges = self.settings.ranges

        try:
            result = self.service.spreadsheets().values().batchGet(
                spreadsheetId=self.settings.spreadsheet_id,
                ranges=ranges
            ).execute()
        except HttpError as e:
            status = getattr(e.resp, 'status', None)
            raise UpstreamError(
                f"Google Sheets API error: {status} - {e}",
                upstream_status=status
            ) from e

        value_ranges = result.get('valueRanges', [])
        if len(value_ranges) != len(ranges):
            raise UpstreamError(
                f"Expected {len(ranges)} ranges from Google Sheets, got {len(value_ranges)}"
            )

        return value_ranges

    def get_catalog(self) -> dict:
        """
        Build the catalog payload.

        Returns:
            Dict with:
            - 'items': normalized connector items
            - 'pinOptions': pin count dropdown values
            - 'manufacturerOptions': manufacturer dropdown values
            - 'termSizeOptions': terminal size dropdown values (when configured)
        """
        value_ranges = self.fetch_ranges()
        main, pin_range, manufacturer_range = value_ranges[:3]

        columns = self.settings.columns
        # The API echoes the range it actually read, e.g. "'Connector Inventory'!A2:AQ1000"
        columns.validate(range_width(main.get('range') or self.settings.main_range))

        rows = main.get('values', [])
        items = normalize_rows(rows, columns, self.settings.image_proxy_path)

        payload = {
            'items': [item.to_dict() for item in items],
            'pinOptions': extract_options(column_values(pin_range.get('values', []))),
            'manufacturerOptions': extract_options(
                column_values(manufacturer_range.get('values', [])),
                numeric=False
            ),
        }

        if self.settings.term_size_range:
            payload['termSizeOptions'] = extract_options(
                column_values(value_ranges[3].get('values', []))
            )

        logger.info(
            "Catalog built: %d rows read, %d items (column map %s)",
            len(rows), len(items), columns.version
        )

        return payload


# ============================================================
# API HANDLER FOR VERCEL
# ============================================================

def get_connector_catalog(environ=None) -> dict:
    """
    Get the connector catalog.
    Called by the /api/connectors route.
    """
    client = ConnectorSheetsClient(CatalogSettings.from_env(environ))
    return client.get_catalog()
