"""
/api/image-proxy.py - Relay connector pictures from Google Drive

Vercel Serverless Function

GET /api/image-proxy?id=<drive file id>
GET /api/image-proxy?url=<http(s) url on an allow-listed host>

Drive files are fetched through the thumbnail endpoint so responses stay
small. The image bytes are passed through untouched with a one-day public
cache header.
"""

from http.server import BaseHTTPRequestHandler
import json
import logging
from urllib.parse import urlparse, parse_qs

from .config import ImageProxySettings
from .drive import ImageRelay
from .errors import CatalogError, UpstreamError

logger = logging.getLogger(__name__)


class handler(BaseHTTPRequestHandler):
    """Vercel serverless function handler"""

    # Swapped for an httpx.MockTransport in tests
    transport = None

    def do_GET(self):
        """GET /api/image-proxy - Fetch one image and re-serve it"""
        try:
            params = parse_qs(urlparse(self.path).query)
            file_id = params.get('id', [None])[0]
            url = params.get('url', [None])[0]

            relay = ImageRelay(ImageProxySettings.from_env(), transport=self.transport)
            image = relay.fetch(file_id=file_id, url=url)

            self.send_response(200)
            self.send_header('Content-Type', image.content_type)
            self.send_header('Content-Length', str(len(image.content)))
            self.send_header('Cache-Control', image.cache_control)
            self.send_header('Access-Control-Allow-Origin', '*')
            self.end_headers()

            self.wfile.write(image.content)

        except UpstreamError as e:
            self._json_response(e.status, {
                'error': str(e),
                'upstreamStatus': e.upstream_status
            })

        except CatalogError as e:
            logger.warning("image-proxy rejected %s: %s", self.path, e)
            self._json_response(e.status, {'error': str(e)})

        except Exception:
            logger.exception("image-proxy error")
            self._json_response(500, {'error': 'Internal Server Error'})

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
        self.send_header('Access-Control-Allow-Origin', '*')
        self.send_header('Access-Control-Allow-Methods', 'GET, OPTIONS')
        self.send_header('Access-Control-Allow-Headers', 'Content-Type')
        self.end_headers()

    def _method_not_allowed(self):
        self._json_response(405, {'error': 'Method not allowed'})

    def _json_response(self, status: int, data: dict):
        body = json.dumps(data).encode()

        self.send_response(status)
        self.send_header('Content-Type', 'application/json')
        self.send_header('Content-Length', str(len(body)))
        self.send_header('Access-Control-Allow-Origin', '*')
        self.end_headers()

        self.wfile.write(body)
