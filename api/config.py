"""
Connector Catalog - configuration

Environment settings for the two endpoints and the versioned column map
that ties semantic fields to positions in the inventory sheet.

Settings are read per request (``from_env``) so each invocation builds its
own context; nothing is cached at import time.
"""

import json
import os
import re
from dataclasses import dataclass, field, fields, replace
from typing import Mapping, Optional

from .errors import ConfigurationError


# ============================================================
# DEFAULTS
# ============================================================

DEFAULT_MAIN_RANGE = "'Connector Inventory'!A2:AQ"
DEFAULT_PIN_RANGE = "Stats!A2:A"
DEFAULT_MANUFACTURER_RANGE = "Stats!E2:E"
DEFAULT_TERM_SIZE_RANGE = "Stats!S5:S150"

DEFAULT_IMAGE_PROXY_PATH = "/api/image-proxy"
DEFAULT_THUMBNAIL_SIZE = "w600"
DEFAULT_ALLOWED_HOSTS = (
    "drive.google.com",
    "docs.google.com",
    "drive.usercontent.google.com",
    "googleusercontent.com",
)
DEFAULT_TIMEOUT = 30.0

SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets.readonly"]


# ============================================================
# COLUMN MAP
# ============================================================

@dataclass(frozen=True)
class ColumnMap:
    """
    Zero-based column positions inside the primary range.

    The sheet layout drifts whenever someone inserts a column, so the map
    carries a version string and is checked against the width of the range
    that was actually fetched. Gaps between indices are fine.

    Fields typed ``Optional[int]`` may be switched off with ``None``.
    """
    version: str = "connector-inventory/2"

    part_number: int = 1         # B
    shop: int = 7                # H
    shop_qty: int = 8            # I
    van: int = 9                 # J
    van_qty: int = 10            # K
    gender: int = 11             # L
    pins: int = 12               # M
    category: int = 13           # N
    description: int = 14        # O
    alt_number: int = 15         # P
    manufacturer: int = 16       # Q

    ford: int = 17               # R
    gm: int = 18                 # S
    hyundai_kia: int = 19        # T
    nissan: int = 20             # U
    toyota: int = 21             # V

    term1_tub: int = 22          # W
    term1_bin: int = 23          # X
    term1_code: int = 24         # Y
    term2_code: int = 27         # AB
    term2_bin: int = 28          # AC
    term2_tub: int = 29          # AD

    mating: int = 30             # AE
    price: int = 37              # AL

    terminal_sizes: Optional[int] = 41   # AP
    picture: Optional[int] = 42          # AQ
    description_continued: Optional[int] = None

    OPTIONAL = ("terminal_sizes", "picture", "description_continued")

    @classmethod
    def field_names(cls) -> list[str]:
        return [f.name for f in fields(cls) if f.name != "version"]

    @classmethod
    def from_dict(cls, data: Mapping) -> "ColumnMap":
        """
        Build a column map from a JSON-style dict, starting from the defaults.

        Unknown keys and negative or non-integer indices are rejected.
        """
        known = set(cls.field_names())
        overrides = {}

        for key, value in data.items():
            if key == "version":
                overrides["version"] = str(value)
                continue
            if key not in known:
                raise ConfigurationError(f"Unknown column map field: {key}")
            if value is None and key in cls.OPTIONAL:
                overrides[key] = None
                continue
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ConfigurationError(
                    f"Column map field {key} must be a non-negative integer, got {value!r}"
                )
            overrides[key] = value

        return replace(cls(), **overrides)

    def indices(self) -> dict[str, int]:
        """Every configured (non-None) field with its index"""
        return {
            name: getattr(self, name)
            for name in self.field_names()
            if getattr(self, name) is not None
        }

    def validate(self, width: Optional[int]) -> None:
        """
        Check every configured index fits inside a range ``width`` columns wide.

        Raises:
            ConfigurationError: listing each out-of-range field
        """
        missing = [
            name for name in self.field_names()
            if getattr(self, name) is None and name not in self.OPTIONAL
        ]
        if missing:
            raise ConfigurationError(
                f"Column map {self.version} has no index for: {', '.join(missing)}"
            )

        if width is None:
            return

        out_of_range = [
            f"{name}={index}"
            for name, index in self.indices().items()
            if index >= width
        ]
        if out_of_range:
            raise ConfigurationError(
                f"Column map {self.version} does not fit the fetched range "
                f"({width} columns): {', '.join(out_of_range)}"
            )


def column_letters_to_index(letters: str) -> int:
    """'A' -> 0, 'Z' -> 25, 'AA' -> 26, 'AQ' -> 42"""
    index = 0
    for ch in letters.upper():
        index = index * 26 + (ord(ch) - ord("A") + 1)
    return index - 1


_A1_RANGE = re.compile(r"^\$?([A-Za-z]{1,3})\$?\d*(?::\$?([A-Za-z]{1,3})\$?\d*)?$")


def range_width(a1_range: str) -> Optional[int]:
    """
    Number of columns covered by an A1 range such as "'Sheet'!A2:AQ1000".

    Returns None when the range has no column letters (e.g. a bare sheet
    name or a row-only range), in which case the width is unknown.
    """
    if not a1_range:
        return None

    cells = a1_range.rsplit("!", 1)[-1]
    match = _A1_RANGE.match(cells.strip())
    if not match:
        return None

    start = column_letters_to_index(match.group(1))
    end = column_letters_to_index(match.group(2) or match.group(1))
    return end - start + 1


# ============================================================
# SETTINGS
# ============================================================

def _load_column_map(raw: Optional[str]) -> ColumnMap:
    if not raw:
        return ColumnMap()
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise ConfigurationError(f"SHEETS_COLUMN_MAP is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError("SHEETS_COLUMN_MAP must be a JSON object")
    return ColumnMap.from_dict(data)


def _load_credentials(environ: Mapping) -> Optional[dict]:
    """
    Service account info from GOOGLE_SERVICE_ACCOUNT_JSON, or from the split
    GCP_PROJECT_ID / GCP_CLIENT_EMAIL / GCP_PRIVATE_KEY variables.
    """
    creds_json = environ.get("GOOGLE_SERVICE_ACCOUNT_JSON")
    if creds_json:
        try:
            info = json.loads(creds_json)
        except ValueError as e:
            raise ConfigurationError(
                f"GOOGLE_SERVICE_ACCOUNT_JSON is not valid JSON: {e}"
            ) from e
        if not isinstance(info, dict):
            raise ConfigurationError("GOOGLE_SERVICE_ACCOUNT_JSON must be a JSON object")
        return info

    project_id = environ.get("GCP_PROJECT_ID")
    client_email = environ.get("GCP_CLIENT_EMAIL")
    private_key = environ.get("GCP_PRIVATE_KEY", "")
    if not (project_id and client_email and private_key):
        return None

    return {
        "type": "service_account",
        "project_id": project_id,
        "private_key": private_key.replace("\\n", "\n"),
        "client_email": client_email,
        "token_uri": "https://oauth2.googleapis.com/token",
    }


@dataclass(frozen=True)
class CatalogSettings:
    """Everything the catalog endpoint needs from the environment"""
    credentials_info: dict
    spreadsheet_id: str
    main_range: str = DEFAULT_MAIN_RANGE
    pin_range: str = DEFAULT_PIN_RANGE
    manufacturer_range: str = DEFAULT_MANUFACTURER_RANGE
    term_size_range: Optional[str] = DEFAULT_TERM_SIZE_RANGE
    columns: ColumnMap = field(default_factory=ColumnMap)
    image_proxy_path: str = DEFAULT_IMAGE_PROXY_PATH

    @classmethod
    def from_env(cls, environ: Mapping = None) -> "CatalogSettings":
        """
        Read settings from the environment.

        Raises:
            ConfigurationError: when credentials or the spreadsheet id are missing
        """
        environ = os.environ if environ is None else environ

        credentials_info = _load_credentials(environ)
        spreadsheet_id = environ.get("SHEETS_SPREADSHEET_ID", "").strip()

        if not credentials_info or not spreadsheet_id:
            raise ConfigurationError(
                "Missing GOOGLE_SERVICE_ACCOUNT_JSON (or GCP_PROJECT_ID, "
                "GCP_CLIENT_EMAIL, GCP_PRIVATE_KEY) or SHEETS_SPREADSHEET_ID env vars"
            )

        return cls(
            credentials_info=credentials_info,
            spreadsheet_id=spreadsheet_id,
            main_range=environ.get("SHEETS_RANGE") or DEFAULT_MAIN_RANGE,
            pin_range=environ.get("SHEETS_PIN_RANGE") or DEFAULT_PIN_RANGE,
            manufacturer_range=(
                environ.get("SHEETS_MANUFACTURER_RANGE") or DEFAULT_MANUFACTURER_RANGE
            ),
            # An explicitly empty value switches the terminal size options off
            term_size_range=environ.get("SHEETS_TERM_SIZE_RANGE", DEFAULT_TERM_SIZE_RANGE) or None,
            columns=_load_column_map(environ.get("SHEETS_COLUMN_MAP")),
            image_proxy_path=environ.get("IMAGE_PROXY_PATH") or DEFAULT_IMAGE_PROXY_PATH,
        )

    @property
    def ranges(self) -> list[str]:
        """Ranges for the batched call; the primary range is always first"""
        ranges = [self.main_range, self.pin_range, self.manufacturer_range]
        if self.term_size_range:
            ranges.append(self.term_size_range)
        return ranges


@dataclass(frozen=True)
class ImageProxySettings:
    """Settings for the image relay"""
    thumbnail_size: str = DEFAULT_THUMBNAIL_SIZE
    allowed_hosts: tuple = DEFAULT_ALLOWED_HOSTS
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_env(cls, environ: Mapping = None) -> "ImageProxySettings":
        environ = os.environ if environ is None else environ

        hosts_raw = environ.get("IMAGE_PROXY_ALLOWED_HOSTS")
        if hosts_raw:
            allowed_hosts = tuple(
                h.strip().lower().lstrip(".") for h in hosts_raw.split(",") if h.strip()
            )
        else:
            allowed_hosts = DEFAULT_ALLOWED_HOSTS

        timeout_raw = environ.get("IMAGE_PROXY_TIMEOUT")
        try:
            timeout = float(timeout_raw) if timeout_raw else DEFAULT_TIMEOUT
        except ValueError as e:
            raise ConfigurationError(
                f"IMAGE_PROXY_TIMEOUT must be a number, got {timeout_raw!r}"
            ) from e

        return cls(
            thumbnail_size=environ.get("IMAGE_THUMBNAIL_SIZE") or DEFAULT_THUMBNAIL_SIZE,
            allowed_hosts=allowed_hosts,
            timeout=timeout,
        )

    def is_host_allowed(self, host: str) -> bool:
        """Exact match or subdomain of an allow-listed host"""
        host = (host or "").lower()
        return any(
            host == allowed or host.endswith("." + allowed)
            for allowed in self.allowed_hosts
        )
