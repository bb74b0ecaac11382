"""
Connector Catalog - Google Drive images

Picture cells in the inventory sheet hold whatever someone pasted: a
"uc?export=view&id=..." link, a "/file/d/<id>/view" share link, a bare file
id, or a link to some other image host. ``resolve_image_reference`` turns
those into something the browser can load, and ``ImageRelay`` fetches the
bytes for the /api/image-proxy endpoint.

Drive images are always served through our own proxy (never hot-linked)
because Drive's direct links change behaviour without notice.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional
from urllib.parse import quote, urlparse

import httpx

from .config import DEFAULT_IMAGE_PROXY_PATH, ImageProxySettings
from .errors import ImageRequestError, UpstreamError

logger = logging.getLogger(__name__)


DRIVE_THUMBNAIL_URL = "https://drive.google.com/thumbnail"
DEFAULT_CONTENT_TYPE = "image/jpeg"
CACHE_CONTROL = "public, max-age=86400"
MAX_REDIRECTS = 5

DRIVE_HOST_HINTS = ("drive.google.com", "docs.google.com", "googleusercontent.com")

_FILE_ID = r"[A-Za-z0-9_-]"
QUERY_ID_PATTERN = re.compile(rf"[?&]id=({_FILE_ID}+)")
PATH_ID_PATTERN = re.compile(rf"/d/({_FILE_ID}+)")
BARE_ID_PATTERN = re.compile(rf"^{_FILE_ID}{{25,}}$")

QUOTE_CHARS = "\"'“”‘’"


# ============================================================
# REFERENCE RESOLUTION
# ============================================================

def _match_query_id(value: str) -> Optional[str]:
    match = QUERY_ID_PATTERN.search(value)
    return match.group(1) if match else None


def _match_path_id(value: str) -> Optional[str]:
    match = PATH_ID_PATTERN.search(value)
    return match.group(1) if match else None


def _match_bare_id(value: str) -> Optional[str]:
    return value if BARE_ID_PATTERN.match(value) else None


# Tried in order; the first matcher that finds an id wins
ID_MATCHERS: tuple[Callable[[str], Optional[str]], ...] = (
    _match_query_id,
    _match_path_id,
    _match_bare_id,
)


def clean_reference(raw) -> str:
    """Strip whitespace and the quote marks left behind by sheet formulas"""
    if raw is None:
        return ""
    return str(raw).strip().strip(QUOTE_CHARS).strip()


def is_drive_reference(value: str) -> bool:
    """Looks like a Drive link or a bare Drive file id"""
    lowered = value.lower()
    return any(hint in lowered for hint in DRIVE_HOST_HINTS) or bool(BARE_ID_PATTERN.match(value))


def extract_file_id(value: str) -> Optional[str]:
    for matcher in ID_MATCHERS:
        file_id = matcher(value)
        if file_id:
            return file_id
    return None


def proxy_url(file_id: str, proxy_path: str = DEFAULT_IMAGE_PROXY_PATH) -> str:
    return f"{proxy_path}?id={quote(file_id, safe='')}"


def resolve_image_reference(raw, proxy_path: str = DEFAULT_IMAGE_PROXY_PATH) -> str:
    """
    Turn a stored picture reference into a URL the frontend can load.

    - empty -> ""
    - non-Drive URL (CDN etc.) -> unchanged
    - Drive link or bare id -> same-origin proxy URL for that file id
    - Drive link without a recognizable id -> the cleaned string
    """
    value = clean_reference(raw)
    if not value:
        return ""

    if not is_drive_reference(value):
        return value

    file_id = extract_file_id(value)
    if not file_id:
        return value

    return proxy_url(file_id, proxy_path)


# ============================================================
# IMAGE RELAY
# ============================================================

@dataclass
class ImageResponse:
    """Image bytes ready to be written back to the browser"""
    content: bytes
    content_type: str
    cache_control: str = CACHE_CONTROL


class ImageRelay:
    """
    Fetches one image per request from Drive (by id) or from an
    allow-listed http(s) URL.

    Usage:
        relay = ImageRelay(ImageProxySettings.from_env())
        image = relay.fetch(file_id="1AbC...")
    """

    def __init__(self, settings: ImageProxySettings = None, transport: httpx.BaseTransport = None):
        self.settings = settings or ImageProxySettings()
        self.transport = transport

    def thumbnail_url(self, file_id: str) -> str:
        return (
            f"{DRIVE_THUMBNAIL_URL}?id={quote(file_id, safe='')}"
            f"&sz={quote(self.settings.thumbnail_size, safe='')}"
        )

    def check_url(self, url: str) -> str:
        """
        Enforce the http(s) scheme and host allow-list on a URL.

        Raises:
            ImageRequestError: non-http(s) scheme or no host (400), host
                outside the allow-list (403)
        """
        parsed = urlparse(url)
        if parsed.scheme.lower() not in ("http", "https"):
            raise ImageRequestError(f"Unsupported URL scheme: {parsed.scheme or '(none)'}")
        if not parsed.hostname:
            raise ImageRequestError("URL has no host")
        if not self.settings.is_host_allowed(parsed.hostname):
            raise ImageRequestError(f"Host not allowed: {parsed.hostname}", status=403)

        return url

    def target_url(self, file_id: str = None, url: str = None) -> str:
        """
        Pick the upstream URL for a request.

        Raises:
            ImageRequestError: missing parameter (400), non-http(s) scheme
                (400) or host outside the allow-list (403)
        """
        file_id = clean_reference(file_id)
        url = clean_reference(url)

        if file_id:
            return self.thumbnail_url(file_id)

        if not url:
            raise ImageRequestError("Missing id or url parameter")

        return self.check_url(url)

    def _get(self, client: httpx.Client, target: str) -> httpx.Response:
        """GET following at most MAX_REDIRECTS redirects, each one re-checked"""
        response = client.get(target)

        for _ in range(MAX_REDIRECTS):
            if response.next_request is None:
                return response

            location = str(response.next_request.url)
            try:
                self.check_url(location)
            except ImageRequestError as e:
                logger.error("Blocked redirect from %s to %s: %s", response.url, location, e)
                raise UpstreamError(
                    f"Image host redirected to a disallowed location: {e}",
                    upstream_status=response.status_code,
                ) from e

            response = client.send(response.next_request)

        if response.next_request is not None:
            raise UpstreamError(
                f"Too many redirects fetching image (limit {MAX_REDIRECTS})",
                upstream_status=response.status_code,
            )
        return response

    def fetch(self, file_id: str = None, url: str = None) -> ImageResponse:
        """
        Fetch the image bytes. No retries; failures surface immediately.

        Redirects are followed by hand so every hop goes through the same
        scheme and host checks as the requested URL.

        Raises:
            ImageRequestError: bad request parameters
            UpstreamError: non-success status, blocked redirect or transport failure
        """
        target = self.target_url(file_id=file_id, url=url)

        try:
            with httpx.Client(
                timeout=self.settings.timeout,
                follow_redirects=False,
                transport=self.transport,
            ) as client:
                response = self._get(client, target)
        except httpx.TransportError as e:
            logger.error("Image fetch failed for %s: %s", target, e)
            raise UpstreamError(f"Could not reach image host: {e}") from e

        if not response.is_success:
            logger.error("Image host returned %s for %s", response.status_code, target)
            raise UpstreamError(
                f"Failed to fetch image (upstream status {response.status_code})",
                upstream_status=response.status_code,
            )

        content_type = response.headers.get("content-type") or DEFAULT_CONTENT_TYPE
        logger.info("Relayed %d bytes (%s) from %s", len(response.content), content_type, target)

        return ImageResponse(content=response.content, content_type=content_type)
