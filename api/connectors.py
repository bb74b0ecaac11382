"""
/api/connectors.py - Connector catalog from Google Sheets

Vercel Serverless Function

GET /api/connectors

Returns:
{
    "items": [...],
    "pinOptions": ["2", "4", ...],
    "manufacturerOptions": ["Aptiv", ...],
    "termSizeOptions": ["0.64", ...]
}
"""

from http.server import BaseHTTPRequestHandler
import json
import logging

from .errors import CatalogError
from .sheets import get_connector_catalog

logger = logging.getLogger(__name__)


class handler(BaseHTTPRequestHandler):
    """Vercel serverless function handler"""

    def do_GET(self):
        """GET /api/connectors - Return the connector catalog"""
        try:
            catalog = get_connector_catalog()
            self._json_response(200, catalog)

        except CatalogError as e:
            logger.exception("get-connectors failed")
            self._json_response(e.status, {'error': str(e)})

        except Exception as e:
            logger.exception("get-connectors error")
            self._json_response(500, {'error': str(e) or 'Server error'})

    def do_HEAD(self):
        self._method_not_allowed()

    def do_POST(self):
        self._method_not_allowed()

    def do_PUT(self):
        self._method_not_allowed()

    def do_PATCH(self):
        self._method_not_allowed()

    def do_DELETE(self):
        self._method_not_allowed()

    def do_OPTIONS(self):
        """Handle CORS preflight"""
        self.send_response(200)
        self._send_cors_headers()
        self.end_headers()

    def _method_not_allowed(self):
        self._json_response(405, {'error': 'Method not allowed'}, allow='GET, OPTIONS')

    def _json_response(self, status: int, data: dict, allow: str = None):
        body = json.dumps(data).encode()

        self.send_response(status)
        self._send_cors_headers()
        self.send_header('Content-Type', 'application/json')
        self.send_header('Content-Length', str(len(body)))
        if allow:
            self.send_header('Allow', allow)
        self.end_headers()

        self.wfile.write(body)

    def _send_cors_headers(self):
        self.send_header('Access-Control-Allow-Origin', '*')
        self.send_header('Access-Control-Allow-Methods', 'GET, OPTIONS')
        self.send_header('Access-Control-Allow-Headers', 'Content-Type')
