"""
Connector Catalog - row normalization

Turns raw inventory rows into catalog items and auxiliary Stats columns
into dropdown option lists. Everything here is pure: malformed cells fall
back to a safe value instead of raising, so one bad row never takes the
whole catalog down.
"""

import math
import re
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence, Union

from .config import ColumnMap
from .drive import resolve_image_reference


# ============================================================
# CONSTANTS
# ============================================================

# Fixed OEM order: (display name, column map field)
OEMS = (
    ("Ford", "ford"),
    ("GM", "gm"),
    ("HyundaiKia", "hyundai_kia"),
    ("Nissan", "nissan"),
    ("Toyota", "toyota"),
)

# Fields that make a row "real"; rows with all of them empty are spacers.
# description_continued counts as part of the description when configured.
SIGNIFICANT_FIELDS = (
    "part_number", "description", "description_continued",
    "shop", "van", "pins", "category",
)

# Checkbox / text values that mean "not fitted to this OEM"
FALSE_FLAGS = {"", "false", "0", "no", "n"}

TERM_RANGE_PATTERN = re.compile(r"#\s*(\d+\s*-\s*\d+)")

# Plain decimal, commas only as thousands separators: "12", "-3.5", "1,200.50", ".5"
NUMBER_PATTERN = re.compile(r"^[+-]?(?:(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d*)?|\.\d+)$")


# ============================================================
# DATA CLASSES
# ============================================================

@dataclass(frozen=True)
class ItemDetails:
    """Secondary attributes shown in the item's expanded view"""
    terminal1_code: str = ""
    terminal1_tub: str = ""
    terminal1_range: str = ""
    terminal2_code: str = ""
    terminal2_tub: str = ""
    terminal2_range: str = ""
    mating: str = ""
    price: Union[int, float, str] = ""
    alt_number: str = ""
    ford: str = ""
    gm: str = ""
    hyundai_kia: str = ""
    nissan: str = ""
    toyota: str = ""

    def to_dict(self) -> dict:
        return {
            'terminal1Code': self.terminal1_code,
            'terminal1Tub': self.terminal1_tub,
            'terminal1Range': self.terminal1_range,
            'terminal2Code': self.terminal2_code,
            'terminal2Tub': self.terminal2_tub,
            'terminal2Range': self.terminal2_range,
            'mating': self.mating,
            'price': self.price,
            'altNumber': self.alt_number,
            'ford': self.ford,
            'gm': self.gm,
            'hyundaiKia': self.hyundai_kia,
            'nissan': self.nissan,
            'toyota': self.toyota,
        }


@dataclass(frozen=True)
class Item:
    """One connector in the catalog"""
    picture: str
    part_number: str
    description: str
    alt_number: str
    shop: str
    shop_qty: int
    van: str
    van_qty: int
    pins: str
    category: str
    gender: str
    manufacturer: str
    oems: tuple = ()
    vehicle: str = ""
    terminal_sizes: str = ""
    details: ItemDetails = field(default_factory=ItemDetails)

    def to_dict(self) -> dict:
        """JSON shape expected by the frontend (camelCase keys)"""
        return {
            'picture': self.picture,
            'partNumber': self.part_number,
            'description': self.description,
            'altNumber': self.alt_number,
            'shop': self.shop,
            'shopQty': self.shop_qty,
            'van': self.van,
            'vanQty': self.van_qty,
            'pins': self.pins,
            'category': self.category,
            'gender': self.gender,
            'manufacturer': self.manufacturer,
            'oems': list(self.oems),
            'vehicle': self.vehicle,
            'terminalSizes': self.terminal_sizes,
            'details': self.details.to_dict(),
        }


# ============================================================
# CELL HELPERS
# ============================================================

def cell(row: Sequence, index: Optional[int]) -> str:
    """Trimmed cell text; "" for a missing column, short row or empty cell"""
    if index is None or index < 0 or index >= len(row):
        return ""
    value = row[index]
    if value is None:
        return ""
    return str(value).strip()


def _parse_float(value: str) -> Optional[float]:
    """Finite float from a plain decimal cell ("1,200.5"), or None"""
    if not value:
        return None
    text = str(value).strip()
    if not NUMBER_PATTERN.match(text):
        return None
    number = float(text.replace(",", ""))
    return number if math.isfinite(number) else None


def is_number(value) -> bool:
    return _parse_float(str(value).strip() if value is not None else "") is not None


def parse_quantity(value) -> int:
    """
    Stock quantity as a non-negative int.

    Empty or non-numeric input gives 0, fractions truncate toward zero.
    """
    number = _parse_float(str(value).strip() if value is not None else "")
    if number is None:
        return 0
    return max(int(number), 0)


def normalize_price(value):
    """
    Price as a number when the cell is a clean number ("12.5", "$1,200").

    Anything else, including notes like "call for quote", comes back as the
    original string.
    """
    if value is None:
        return ""
    text = str(value)
    cleaned = text.strip()
    if cleaned.startswith("$"):
        cleaned = cleaned[1:].strip()

    number = _parse_float(cleaned)
    if number is None:
        return text
    return int(number) if number.is_integer() else number


def compose_description(first: str, second: str = "") -> str:
    """Join the non-empty parts of a two-column description with one space"""
    parts = [p.strip() for p in (first or "", second or "") if p and p.strip()]
    return " ".join(parts)


def format_term_range(raw) -> str:
    """
    Shorten a terminal range label: "Terminals #1-8" -> "T:1-8".

    Text without a "#<n>-<m>" range is returned unchanged.
    """
    if not raw:
        return ""
    text = str(raw)
    match = TERM_RANGE_PATTERN.search(text)
    if not match:
        return text
    return "T:" + re.sub(r"\s+", "", match.group(1))


def is_flag_set(value) -> bool:
    """OEM checkbox/marker cell -> bool ("TRUE", "x", "Yes" are set)"""
    if value is None:
        return False
    return str(value).strip().lower() not in FALSE_FLAGS


def derive_vehicles(flags: dict) -> list[str]:
    """
    OEM names whose flag is set, always in the fixed OEM order.

    Args:
        flags: OEM display name -> raw flag value; absent names count as unset
    """
    return [name for name, _ in OEMS if is_flag_set(flags.get(name))]


# ============================================================
# ROW NORMALIZER
# ============================================================

def is_blank_row(row: Sequence, columns: ColumnMap) -> bool:
    """True for spacer rows: every significant field is empty"""
    return not any(cell(row, getattr(columns, name)) for name in SIGNIFICANT_FIELDS)


def normalize_row(row: Sequence, columns: ColumnMap, image_proxy_path: str = None) -> Item:
    """Build an Item from one primary-range row"""
    get = lambda name: cell(row, getattr(columns, name))

    alt_number = get("alt_number")
    oem_flags = {name: get(attr) for name, attr in OEMS}
    oems = derive_vehicles(oem_flags)

    resolve_kwargs = {"proxy_path": image_proxy_path} if image_proxy_path else {}

    return Item(
        picture=resolve_image_reference(get("picture"), **resolve_kwargs),
        part_number=get("part_number"),
        description=compose_description(get("description"), get("description_continued")),
        alt_number=alt_number,
        shop=get("shop"),
        shop_qty=parse_quantity(get("shop_qty")),
        van=get("van"),
        van_qty=parse_quantity(get("van_qty")),
        pins=get("pins"),
        category=get("category"),
        gender=get("gender"),
        manufacturer=get("manufacturer"),
        oems=tuple(oems),
        vehicle=", ".join(oems),
        terminal_sizes=get("terminal_sizes"),
        details=ItemDetails(
            terminal1_code=get("term1_code"),
            terminal1_tub=get("term1_tub"),
            terminal1_range=format_term_range(get("term1_bin")),
            terminal2_code=get("term2_code"),
            terminal2_tub=get("term2_tub"),
            terminal2_range=format_term_range(get("term2_bin")),
            mating=get("mating"),
            price=normalize_price(get("price")),
            alt_number=alt_number,
            ford=oem_flags["Ford"],
            gm=oem_flags["GM"],
            hyundai_kia=oem_flags["HyundaiKia"],
            nissan=oem_flags["Nissan"],
            toyota=oem_flags["Toyota"],
        ),
    )


def normalize_rows(
    rows: Iterable[Sequence],
    columns: ColumnMap,
    image_proxy_path: str = None
) -> list[Item]:
    """One Item per non-blank row, in sheet order"""
    return [
        normalize_row(row, columns, image_proxy_path)
        for row in rows
        if not is_blank_row(row, columns)
    ]


# ============================================================
# OPTION EXTRACTOR
# ============================================================

def column_values(rows: Iterable[Sequence]) -> list[str]:
    """First cell of each row of a single-column range"""
    return [cell(row, 0) for row in rows]


def extract_options(values: Iterable, numeric: bool = True) -> list[str]:
    """
    Dropdown options: blanks dropped, duplicates removed, then sorted.

    Sorted numerically when ``numeric`` is set and every value is a number,
    otherwise by plain string order.
    """
    seen = set()
    options = []
    for value in values:
        text = str(value).strip() if value is not None else ""
        if not text or text in seen:
            continue
        seen.add(text)
        options.append(text)

    if numeric and all(is_number(v) for v in options):
        return sorted(options, key=_parse_float)
    return sorted(options)
