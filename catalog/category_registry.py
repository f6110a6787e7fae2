from __future__ import annotations

import logging

from catalog.errors import StoreError
from catalog.models import Category

logger = logging.getLogger(__name__)


class CategoryRegistry:
    """
    类别注册表：行存储中 category 表的内存缓存

    功能说明:
        提供当前所有类别 {id, name, attributes}，支持按 id / 名称查找。
        注册表不会自己发现外部变更，只在调用方通知（invalidate / category_saved）
        之后的下一次读取时重新拉取。

    失败处理:
        拉取失败时保留上一次的列表，错误记录在 last_error 并抛给调用方；
        查找落空只返回 None，调用方按“没有类别属性”处理。
    """

    def __init__(self, store):
        self._store = store
        self._categories: list[Category] = []
        self._stale = True
        self.last_error: StoreError | None = None

    def refresh(self) -> list[Category]:
        try:
            categories = self._store.fetch_categories()
        except StoreError as exc:
            self.last_error = exc
            logger.error("Error fetching categories: %s", exc)
            raise
        self._categories = sorted(categories, key=lambda c: c.name)
        self._stale = False
        self.last_error = None
        logger.debug("Categories loaded: %d", len(self._categories))
        return list(self._categories)

    def invalidate(self) -> None:
        self._stale = True

    def category_saved(self, category_id, name: str) -> None:
        """类别管理在新增/修改成功后调用；下一次读取时重新拉取。"""
        logger.info("Category saved, refreshing registry: %s (id=%s)", name, category_id)
        self.invalidate()

    def _ensure_loaded(self) -> None:
        if not self._stale:
            return
        try:
            self.refresh()
        except StoreError:
            # 旧列表仍然可用；错误已记录在 last_error
            pass

    def list(self) -> list[Category]:
        self._ensure_loaded()
        return list(self._categories)

    def find_by_id(self, category_id) -> Category | None:
        if category_id in (None, ""):
            return None
        self._ensure_loaded()
        for category in self._categories:
            if str(category.id) == str(category_id):
                return category
        return None

    def find_by_name(self, name: str | None) -> Category | None:
        """兼容旧记录：早期物品只存了类别名称，没有 category_id。"""
        if not name:
            return None
        self._ensure_loaded()
        for category in self._categories:
            if category.name == name:
                return category
        return None

    def attributes_of(self, category_id) -> list[str]:
        category = self.find_by_id(category_id)
        return list(category.attributes) if category else []
