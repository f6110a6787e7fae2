import logging
import math

from catalog.errors import StoreError
from catalog.models import CustomField, InventoryItem
from catalog.specification import (
    assemble_specifications,
    normalize_specifications,
    redistribute,
    serialize_specifications,
    split_custom_fields,
)
from constants import DESCRIPTION_KEY, UNIT_OF_MEASURE_OPTIONS

logger = logging.getLogger(__name__)

FORM_FIELDS = (
    "name",
    "unit_of_measure",
    "purchase_cost",
    "selling_price",
    "current_stock",
    "reorder_level",
    "sku",
    "is_active",
    "is_website_item",
    "image_url",
    "sale_price",
    "weight",
)


def _empty_form() -> dict:
    return {
        "name": "",
        "unit_of_measure": "pieces",
        "purchase_cost": "0",
        "selling_price": "0",
        "current_stock": "0",
        "reorder_level": "0",
        "sku": "",
        "is_active": True,
        "is_website_item": False,
        "image_url": "",
        "sale_price": "",
        "weight": "0",
    }


def _parse_number(text, integer: bool = False):
    text = str(text if text is not None else "").strip()
    try:
        value = int(text) if integer else float(text)
    except ValueError:
        return None
    if not integer and not math.isfinite(value):
        return None
    return value


def store_error_message(exc: StoreError) -> str:
    """把行存储的错误翻译成用户能看懂的提示。"""
    if exc.is_unique_violation:
        details = (exc.details or exc.message).lower()
        if "sku" in details:
            return "SKU 已存在，请换一个 SKU 或留空"
        if "name" in details:
            return "物品名称已存在，请换一个名称"
        return "该物品与已有数据冲突，请检查输入"
    return f"数据库错误：{exc.message or '未知错误'}"


class ItemFormSession:
    """
    物品新增/编辑会话

    功能说明:
        持有一次编辑过程中的表单数据、规格字典和自定义字段列表；
        切换类别时调用 specification.redistribute 搬移字段，
        提交时组装规格并通过行存储写入。

    错误处理:
        - 校验失败：不调用存储，状态不变，返回 (False, msg, None)
        - 存储失败：返回可读提示，状态不变，用户修改后可以重新提交
    """

    def __init__(self, registry, store):
        self.registry = registry
        self.store = store
        self.item_id: int | None = None
        self.category_id = None
        self.form = _empty_form()
        self.specification: dict[str, str] = {}
        self.custom_fields: list[CustomField] = []

    @property
    def is_edit_mode(self) -> bool:
        return self.item_id is not None

    # ==================== 载入 ====================

    def new(self) -> None:
        """新建物品：默认选中第一个类别。"""
        self.item_id = None
        self.category_id = None
        self.form = _empty_form()
        self.specification = {}
        self.custom_fields = []

        categories = self.registry.list()
        if categories:
            self.change_category(categories[0].id)

    def load(self, item_id: int) -> tuple[bool, str]:
        item = self.store.get_item(item_id)
        if item is None:
            logger.error("Item not found with ID: %s", item_id)
            return False, "物品不存在"
        self._load_item(item)
        return True, f"已载入物品：{item.name}"

    def _load_item(self, item: InventoryItem) -> None:
        category = self.registry.find_by_id(item.category_id) if item.category_id else None
        if category is None:
            # 旧记录只存了类别名称
            category = self.registry.find_by_name(item.category)

        spec = normalize_specifications(item.specifications)
        if item.description and not spec.get(DESCRIPTION_KEY):
            spec[DESCRIPTION_KEY] = item.description
        spec, custom_fields = split_custom_fields(spec, category.attributes if category else [])

        self.item_id = item.id
        self.category_id = category.id if category else None
        self.form = {
            "name": item.name,
            "unit_of_measure": item.unit_of_measure,
            "purchase_cost": str(item.purchase_cost),
            "selling_price": str(item.selling_price),
            "current_stock": str(item.current_stock),
            "reorder_level": str(item.reorder_level),
            "sku": item.sku,
            "is_active": item.is_active,
            "is_website_item": item.is_website_item,
            "image_url": item.image_url,
            "sale_price": "" if item.sale_price is None else str(item.sale_price),
            "weight": str(item.weight),
        }
        self.specification = spec
        self.custom_fields = custom_fields

    # ==================== 编辑 ====================

    def set_field(self, name: str, value) -> None:
        if name not in FORM_FIELDS:
            raise ValueError(f"未知的表单字段：{name}")
        self.form[name] = value

    def set_specification(self, key: str, value: str) -> None:
        self.specification = {**self.specification, key: value}

    def add_custom_field(self, key: str = "", value: str = "") -> None:
        self.custom_fields = [*self.custom_fields, CustomField(key=key, value=value)]

    def update_custom_field(self, index: int, field: str, value: str) -> None:
        if field not in ("key", "value"):
            raise ValueError(f"未知的自定义字段属性：{field}")
        if not 0 <= index < len(self.custom_fields):
            raise IndexError(index)
        current = self.custom_fields[index]
        updated = CustomField(
            key=value if field == "key" else current.key,
            value=value if field == "value" else current.value,
        )
        self.custom_fields = [updated if i == index else c for i, c in enumerate(self.custom_fields)]

    def remove_custom_field(self, index: int) -> None:
        self.custom_fields = [c for i, c in enumerate(self.custom_fields) if i != index]

    def category_attributes(self) -> list[str]:
        return self.registry.attributes_of(self.category_id)

    def change_category(self, category_id) -> None:
        self._switch(self.category_attributes(), category_id)

    def _switch(self, old_attributes: list[str], category_id) -> None:
        new_category = self.registry.find_by_id(category_id)
        new_attributes = new_category.attributes if new_category else []

        self.specification, self.custom_fields = redistribute(
            self.specification, self.custom_fields, old_attributes, new_attributes
        )
        self.category_id = new_category.id if new_category else None

    def category_created(self, category_id, name: str) -> None:
        """类别管理新建类别后的回调：刷新注册表并选中新类别。"""
        old_attributes = self.category_attributes()
        self.registry.category_saved(category_id, name)
        self._switch(old_attributes, category_id)

    # ==================== 提交 ====================

    def validate(self) -> tuple[bool, str, dict]:
        if not str(self.form.get("name") or "").strip():
            return False, "物品名称不能为空", {}

        unit = self.form.get("unit_of_measure") or "pieces"
        if unit not in UNIT_OF_MEASURE_OPTIONS:
            return False, f"计量单位不合法：{unit}", {}

        numbers = {}
        checks = [
            ("purchase_cost", "采购成本", False),
            ("selling_price", "售价", False),
            ("current_stock", "当前库存", True),
            ("reorder_level", "补货阈值", True),
        ]
        for field, label, integer in checks:
            value = _parse_number(self.form.get(field), integer=integer)
            if value is None or value < 0:
                return False, f"{label}必须是非负数", {}
            numbers[field] = value

        if self.form.get("is_website_item"):
            sale_price_text = str(self.form.get("sale_price") or "").strip()
            if sale_price_text:
                sale_price = _parse_number(sale_price_text)
                if sale_price is None or sale_price < 0:
                    return False, "促销价必须是非负数", {}
                numbers["sale_price"] = sale_price
            weight = _parse_number(self.form.get("weight") or "0")
            if weight is None or weight < 0:
                return False, "重量必须是非负数", {}
            numbers["weight"] = weight

        return True, "OK", numbers

    def build_row(self, numbers: dict) -> dict:
        category = self.registry.find_by_id(self.category_id)
        specifications = assemble_specifications(self.specification, self.custom_fields)
        is_website_item = bool(self.form.get("is_website_item"))

        return {
            "name": str(self.form["name"]).strip(),
            "description": specifications.get(DESCRIPTION_KEY, ""),
            # 类别名称用于展示和兼容旧数据，触发器会按 category_id 重新同步
            "category": category.name if category else "",
            "category_id": category.id if category else None,
            "unit_of_measure": self.form.get("unit_of_measure") or "pieces",
            "purchase_cost": numbers["purchase_cost"],
            "selling_price": numbers["selling_price"],
            "current_stock": numbers["current_stock"],
            "reorder_level": numbers["reorder_level"],
            "sku": str(self.form.get("sku") or "").strip(),
            "is_active": bool(self.form.get("is_active", True)),
            "is_website_item": is_website_item,
            "image_url": (self.form.get("image_url") or None) if is_website_item else None,
            "sale_price": numbers.get("sale_price") if is_website_item else None,
            "weight": numbers.get("weight", 0) if is_website_item else 0,
            "specifications": serialize_specifications(specifications),
        }

    def submit(self) -> tuple[bool, str, InventoryItem | None]:
        ok, msg, numbers = self.validate()
        if not ok:
            return False, msg, None

        row = self.build_row(numbers)
        logger.debug("Submitting specifications: %s", row["specifications"])
        try:
            if self.is_edit_mode:
                item = self.store.update_item(self.item_id, row)
                msg = f"已更新物品：{item.name}"
            else:
                item = self.store.create_item(row)
                msg = f"已添加物品：{item.name}"
        except StoreError as exc:
            logger.error("Error saving item: %s", exc)
            return False, store_error_message(exc), None

        self.item_id = item.id
        return True, msg, item
