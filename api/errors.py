"""
Connector Catalog - error types

Configuration problems, bad client requests and upstream failures each get
their own exception so the handlers can map them to a status code.
"""


class CatalogError(Exception):
    """Base class for catalog and image proxy errors"""
    status = 500


class ConfigurationError(CatalogError):
    """Missing or invalid environment configuration / column map"""
    status = 500


class ImageRequestError(CatalogError):
    """Bad image proxy request (missing parameter, blocked scheme or host)"""

    def __init__(self, message: str, status: int = 400):
        super().__init__(message)
        self.status = status


class UpstreamError(CatalogError):
    """Google Sheets or the image host answered with a failure"""
    status = 502

    def __init__(self, message: str, upstream_status: int = None):
        super().__init__(message)
        self.upstream_status = upstream_status
