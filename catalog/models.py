"""
行存储返回数据与内存结构之间的转换

数据库里的行是 dict（见 database.row_to_dict），进入业务逻辑前统一在这里转换成
明确的数据类：必填字段缺失直接报错，可选字段给默认值，形状不对的字段丢弃而不是强转。
"""

import json
from dataclasses import dataclass, field
from typing import Any

from constants import UNIT_OF_MEASURE_OPTIONS


@dataclass
class Category:
    id: int
    name: str
    attributes: list[str] = field(default_factory=list)


@dataclass
class CustomField:
    key: str = ""
    value: str = ""


@dataclass
class InventoryItem:
    id: int
    name: str
    description: str = ""
    category: str = ""
    category_id: int | None = None
    unit_of_measure: str = "pieces"
    purchase_cost: float = 0.0
    selling_price: float = 0.0
    current_stock: int = 0
    reorder_level: int = 0
    sku: str = ""
    is_active: bool = True
    specifications: str = "{}"
    is_website_item: bool = False
    image_url: str = ""
    sale_price: float | None = None
    weight: float = 0.0
    created_at: str = ""
    updated_at: str = ""


def parse_attributes(value: Any) -> list[str]:
    """category.attributes 列（JSON 数组文本）→ 属性名列表；非字符串项丢弃。"""
    if isinstance(value, str):
        try:
            value = json.loads(value) if value.strip() else []
        except json.JSONDecodeError:
            return []
    if not isinstance(value, list):
        return []
    return [a for a in value if isinstance(a, str)]


def _require(row: dict, key: str) -> Any:
    if row.get(key) is None:
        raise ValueError(f"行数据缺少必填字段：{key}")
    return row[key]


def _as_float(value: Any, default: float | None = 0.0) -> float | None:
    try:
        return float(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def category_from_row(row: dict) -> Category:
    return Category(
        id=_require(row, "id"),
        name=str(_require(row, "name")),
        attributes=parse_attributes(row.get("attributes")),
    )


def item_from_row(row: dict) -> InventoryItem:
    unit = row.get("unit_of_measure") or "pieces"
    if unit not in UNIT_OF_MEASURE_OPTIONS:
        unit = "pieces"

    return InventoryItem(
        id=_require(row, "id"),
        name=str(_require(row, "name")),
        description=row.get("description") or "",
        category=row.get("category") or "",
        category_id=row.get("category_id"),
        unit_of_measure=unit,
        purchase_cost=_as_float(row.get("purchase_cost")),
        selling_price=_as_float(row.get("selling_price")),
        current_stock=_as_int(row.get("current_stock")),
        reorder_level=_as_int(row.get("reorder_level")),
        sku=row.get("sku") or "",
        is_active=bool(row.get("is_active", True)),
        specifications=row.get("specifications") or "{}",
        is_website_item=bool(row.get("is_website_item") or False),
        image_url=row.get("image_url") or "",
        sale_price=_as_float(row.get("sale_price"), default=None),
        weight=_as_float(row.get("weight")),
        created_at=row.get("created_at") or "",
        updated_at=row.get("updated_at") or "",
    )
