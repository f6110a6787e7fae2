from typing import Iterable


class AttributeSelector:
    """
    类别属性编辑器（输入后回车添加的标签列表）

    默认属性（defaults）是受保护的：
        - 不能手动添加（已经隐含存在）
        - 不能删除
        - 每次增删之后都排在列表最前面，保持配置里的顺序
    其他属性保持添加的先后顺序。

    add / remove 返回 (ok, msg)；被拒绝时列表不变，msg 用于提示用户。
    """

    def __init__(
        self,
        defaults: Iterable[str] = (),
        items: Iterable[str] = (),
        allow_duplicates: bool = False,
        max_items: int | None = None,
    ):
        self.defaults = [d.strip() for d in defaults if d and d.strip()]
        self.allow_duplicates = allow_duplicates
        self.max_items = max_items
        self._items = self._pin_defaults([str(i).strip() for i in items if str(i).strip()])

    @property
    def items(self) -> list[str]:
        return list(self._items)

    def is_default(self, value: str) -> bool:
        folded = value.strip().casefold()
        return any(d.casefold() == folded for d in self.defaults)

    def _pin_defaults(self, values: list[str]) -> list[str]:
        others = [v for v in values if not self.is_default(v)]
        return [*self.defaults, *others]

    def add(self, value: str) -> tuple[bool, str]:
        value = (value or "").strip()
        if not value:
            return False, ""

        if self.is_default(value):
            return False, f"{value} 是默认属性，无需手动添加"

        if not self.allow_duplicates and value in self._items:
            return False, f"属性已存在：{value}"

        if self.max_items and len(self._items) >= self.max_items:
            return False, f"属性数量已达上限 {self.max_items}"

        self._items = self._pin_defaults([*self._items, value])
        return True, f"已添加属性：{value}"

    def remove(self, index: int) -> tuple[bool, str]:
        if index < 0 or index >= len(self._items):
            return False, "要删除的属性不存在"

        value = self._items[index]
        if self.is_default(value):
            return False, f"{value} 是默认属性，不能删除"

        self._items = self._pin_defaults(
            [v for i, v in enumerate(self._items) if i != index]
        )
        return True, f"已删除属性：{value}"

    def remove_last(self) -> tuple[bool, str]:
        # 输入框为空时按退格：删除最后一个属性
        if not self._items:
            return False, ""
        return self.remove(len(self._items) - 1)
