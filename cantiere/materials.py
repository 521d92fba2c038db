"""Material rows: one canonical shape for manual entries and both catalogs."""

from __future__ import annotations

from typing import Any, Iterable

from .constants import (
    DEFAULT_MATERIAL_UNIT,
    MATERIAL_SOURCE_CATALOG,
    MATERIAL_SOURCE_MANUAL,
    UNTITLED_MATERIAL_LABEL,
)
from .models import MaterialLine
from .utils import normalize_string, safe_get_from_dict, to_amount, to_float

NAME_KEYS = ("nome_prodotto", "display_name", "displayName", "name")
PRICE_KEYS = ("prezzo", "price")
QUANTITY_KEYS = ("total_quantity", "numero_confezioni", "quantity")


def normalize_material_row(row: dict[str, Any], source: str = MATERIAL_SOURCE_CATALOG) -> MaterialLine:
    """Map a raw material row onto ``MaterialLine``.

    Catalog rows are priced at quantity times unit price. Manual rows carry
    quantity only and never add cost.
    """
    name = normalize_string(safe_get_from_dict(row, *NAME_KEYS), default=UNTITLED_MATERIAL_LABEL)
    unit = normalize_string(row.get("unit"), default=DEFAULT_MATERIAL_UNIT)
    quantity = to_amount(safe_get_from_dict(row, *QUANTITY_KEYS))
    count = int(to_amount(row.get("usage_count")))

    unit_price = None
    total_cost = 0.0
    if source == MATERIAL_SOURCE_CATALOG:
        unit_price = to_float(safe_get_from_dict(row, *PRICE_KEYS))
        if unit_price is not None:
            total_cost = quantity * unit_price

    return MaterialLine(
        name=name,
        total_quantity=quantity,
        unit=unit,
        unit_price=unit_price,
        total_cost=total_cost,
        count=count,
        source=source,
    )


def merge_material_lines(
    manual: Iterable[MaterialLine],
    catalog: Iterable[MaterialLine],
) -> list[MaterialLine]:
    """Merge manual and catalog lines by name, keeping first-seen order."""
    merged: dict[str, MaterialLine] = {}
    for line in list(manual) + list(catalog):
        existing = merged.get(line.name)
        if existing is None:
            merged[line.name] = line.model_copy()
            continue
        existing.total_quantity += line.total_quantity
        existing.count += line.count
        existing.total_cost += line.total_cost
        if existing.unit_price is None:
            existing.unit_price = line.unit_price
    return list(merged.values())


def total_material_cost(lines: Iterable[MaterialLine]) -> float:
    return sum((line.total_cost for line in lines), 0.0)


__all__ = [
    "MATERIAL_SOURCE_CATALOG",
    "MATERIAL_SOURCE_MANUAL",
    "merge_material_lines",
    "normalize_material_row",
    "total_material_cost",
]
