import logging
from typing import Any

from catalog.attribute_selector import AttributeSelector
from catalog.errors import StoreError
from catalog.models import Category

from constants import CATEGORY_ATTRIBUTES as DEFAULT_CATEGORY_ATTRIBUTES
from constants import DEFAULT_ATTRIBUTES
from constants import DEFAULT_CATEGORIES
from constants import DESCRIPTION_KEY
from constants import MAX_CATEGORY_ATTRIBUTES
from constants import MAX_CATEGORY_NAME_LENGTH

logger = logging.getLogger(__name__)


def _validate_attributes(attributes: Any) -> tuple[bool, str]:
    if not isinstance(attributes, (list, tuple)) or not all(isinstance(a, str) for a in attributes):
        return False, "属性必须是字符串数组"

    seen: set[str] = set()
    for attr in attributes:
        name = attr.strip()
        if not name:
            return False, "属性名称不能为空"
        if name == DESCRIPTION_KEY:
            return False, "description 是保留字段，不能作为类别属性"
        if name.casefold() in seen:
            return False, f"属性重复：{name}"
        seen.add(name.casefold())
    return True, "OK"


def build_attributes(attributes: list[str]) -> tuple[bool, str, list[str]]:
    """校验属性列表，并把默认属性固定在最前面。"""
    ok, msg = _validate_attributes(attributes)
    if not ok:
        return False, msg, []

    selector = AttributeSelector(DEFAULT_ATTRIBUTES)
    for attr in attributes:
        if selector.is_default(attr):
            continue
        selector.add(attr)

    final = selector.items
    if len(final) > MAX_CATEGORY_ATTRIBUTES:
        return False, f"属性数量超过上限 {MAX_CATEGORY_ATTRIBUTES}", []
    return True, "OK", final


def save_category(
    store,
    registry,
    old_id: int | None,
    new_name: str,
    attributes: list[str],
) -> tuple[bool, str, Category | None]:
    """
    新增/更新/改名一个类别

    old_id 为空：新增；否则更新该类别的名称与属性。
    保存成功后通知注册表（registry.category_saved），由它在下一次读取时刷新。
    """
    new_name = (new_name or "").strip()
    if not new_name:
        return False, "类别名称不能为空", None
    if len(new_name) > MAX_CATEGORY_NAME_LENGTH:
        return False, f"类别名称过长（≤ {MAX_CATEGORY_NAME_LENGTH} 字符）", None

    ok, msg, final_attributes = build_attributes(attributes)
    if not ok:
        return False, msg, None

    try:
        if old_id in (None, ""):
            category = store.create_category(new_name, final_attributes)
            msg = f"已创建类别：{new_name}"
        else:
            category = store.update_category(old_id, new_name, final_attributes)
            msg = f"已更新类别：{new_name}"
    except StoreError as exc:
        if exc.is_unique_violation:
            return False, "类别名称已存在，请换一个名称", None
        logger.error("Error saving category %s: %s", new_name, exc)
        return False, f"保存类别失败：{exc.message}", None

    registry.category_saved(category.id, category.name)
    return True, msg, category


def delete_category(store, registry, category_id: int | None) -> tuple[bool, str]:
    if category_id in (None, ""):
        return False, "请选择要删除的类别"

    category = registry.find_by_id(category_id)
    try:
        deleted = store.delete_category(category_id)
    except StoreError as exc:
        logger.error("Error deleting category %s: %s", category_id, exc)
        return False, f"删除类别失败：{exc.message}"
    if not deleted:
        return False, "类别不存在"

    registry.invalidate()
    # 已引用该类别的物品 category_id 会被置空，但保留原来的类别名称
    return True, f"已删除类别：{category.name if category else category_id}"


def seed_default_categories(store) -> int:
    """写入默认类别；同名类别已存在时跳过。返回新建的数量。"""
    existing = {c.name for c in store.fetch_categories()}
    created = 0
    for name in DEFAULT_CATEGORIES:
        if name in existing:
            continue
        ok, _, attributes = build_attributes(DEFAULT_CATEGORY_ATTRIBUTES.get(name, []))
        if not ok:
            logger.warning("Skipping default category with invalid attributes: %s", name)
            continue
        store.create_category(name, attributes)
        created += 1
    return created
