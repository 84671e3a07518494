"""Shop catalogue loader for CSV and Excel files."""

from __future__ import annotations

import csv
import functools
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

from openpyxl import load_workbook

from ..config import settings
from ..models.domain import Shop

logger = logging.getLogger(__name__)

_ID_KEYS = ("id", "shop_id", "ShopId")
_NAME_KEYS = ("name", "Name", "shop_name", "ShopName")
_ADDRESS_KEYS = ("address", "Address")
_LAT_KEYS = ("latitude", "Latitude", "lat")
_LON_KEYS = ("longitude", "Longitude", "lng", "lon")


def _first(row: Mapping[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        value = row.get(key)
        if value is not None and str(value).strip() != "":
            return value
    return None


def _coerce_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).replace(",", ""))
    except ValueError as exc:
        raise ValueError(f"Unable to parse float from value '{value}'") from exc


def _row_to_shop(row: Mapping[str, Any], line: int) -> Optional[Shop]:
    try:
        lat = _coerce_float(_first(row, _LAT_KEYS))
        lon = _coerce_float(_first(row, _LON_KEYS))
    except ValueError as exc:
        logger.warning("Skipping shop on line %d: %s", line, exc)
        return None
    if lat is None or lon is None:
        return None  # ignore records without coordinates
    if not (-90 <= lat <= 90 and -180 <= lon <= 180):
        logger.warning("Skipping shop on line %d with out-of-range coordinates (%s, %s)", line, lat, lon)
        return None
    shop_id = _first(row, _ID_KEYS)
    name = _first(row, _NAME_KEYS)
    address = _first(row, _ADDRESS_KEYS)
    return Shop(
        shop_id=str(shop_id).strip() if shop_id is not None else str(line),
        name=str(name).strip() if name is not None else f"Shop {line}",
        latitude=lat,
        longitude=lon,
        address=str(address).strip() if address is not None else None,
    )


def _load_shops_from_csv(path: Path) -> list[Shop]:
    shops: list[Shop] = []
    with path.open(mode="r", encoding="utf-8-sig", newline="") as handle:
        reader = csv.DictReader(handle)
        if not reader.fieldnames:
            raise ValueError(f"Shop file '{path}' is missing a header row.")
        for line, row in enumerate(reader, start=2):
            shop = _row_to_shop(row, line)
            if shop is not None:
                shops.append(shop)
    return shops


def _load_shops_from_workbook(path: Path) -> list[Shop]:
    wb = load_workbook(path, data_only=True, read_only=True)
    try:
        sheet = wb.active
        rows = sheet.iter_rows(min_row=1, values_only=True)
        header = next(rows, None)
        if header is None:
            raise ValueError(f"Shop workbook '{path}' is empty.")
        columns = [str(name).strip() if name is not None else "" for name in header]
        shops: list[Shop] = []
        for line, values in enumerate(rows, start=2):
            shop = _row_to_shop(dict(zip(columns, values)), line)
            if shop is not None:
                shops.append(shop)
        return shops
    finally:
        wb.close()


@functools.lru_cache(maxsize=1)
def load_shops(source: Optional[Path] = None) -> tuple[Shop, ...]:
    """Load shops from the configured CSV or XLSX file."""

    path = source or settings.shops_file
    if not path.exists():
        raise FileNotFoundError(f"Shop file not found: {path}")

    if path.suffix.lower() in {".xlsx", ".xlsm"}:
        shops = _load_shops_from_workbook(path)
    else:
        shops = _load_shops_from_csv(path)
    logger.info("Loaded %d shops from %s", len(shops), path)
    return tuple(shops)


def get_shop(shop_id: str, source: Optional[Path] = None) -> Optional[Shop]:
    return next((shop for shop in load_shops(source) if shop.shop_id == shop_id), None)
