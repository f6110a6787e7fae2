"""
物品规格（specifications）的解析、类别切换时的字段搬移、提交时的组装

规格是 {属性名: 值} 的扁平字典，持久化为一段 JSON 文本。
字段分两类：
    - 类别属性：当前类别 attributes 里定义的键（比较时不区分大小写）
    - 自定义字段：当前类别没有定义、只属于这一件物品的键值对
description 是保留键，永远当作自由文本，不参与两类字段之间的搬移。
"""

import json
import logging
from typing import Any, Iterable

from catalog.models import CustomField
from constants import DESCRIPTION_KEY

logger = logging.getLogger(__name__)


def _fold(key: str) -> str:
    return str(key).strip().casefold()


def _is_description(key: str) -> bool:
    return str(key).strip() == DESCRIPTION_KEY


def _as_text(value: Any) -> str:
    return "" if value is None else str(value)


def _flat(obj: dict) -> dict[str, str]:
    # 值里还嵌着数组/对象的不算扁平规格
    if any(isinstance(v, (dict, list)) for v in obj.values()):
        return {}
    return {str(k): _as_text(v) for k, v in obj.items()}


def normalize_specifications(raw: Any) -> dict[str, str]:
    """
    把数据库里存的规格整理成扁平字典，任何情况下都不抛异常

    支持的输入:
        - None / 空字符串              → {}
        - 扁平字典，或它的 JSON 文本    → 原样返回（值转成字符串）
        - 旧格式 {"features": ["<JSON 对象文本>", ...]}
                                       → 取 features[0] 里的键，去掉其中的 description
        - 其他形状（数组、数字、嵌套对象、解析失败……）→ {}
    """
    if raw is None:
        return {}

    parsed = raw
    if isinstance(raw, (str, bytes)):
        if not raw.strip():
            return {}
        try:
            parsed = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError, RecursionError):
            logger.debug("Unparseable specifications ignored: %r", raw[:80])
            return {}

    if not isinstance(parsed, dict):
        return {}

    features = parsed.get("features")
    if isinstance(features, list) and features and isinstance(features[0], str):
        try:
            nested = json.loads(features[0])
        except (json.JSONDecodeError, RecursionError):
            nested = None
        if isinstance(nested, dict):
            # 内层的 description 被丢弃，不并回结果
            nested.pop(DESCRIPTION_KEY, None)
            return _flat(nested)

    return _flat(parsed)


def serialize_specifications(spec: dict[str, str]) -> str:
    return json.dumps(spec, ensure_ascii=False)


def split_custom_fields(
    spec: dict[str, str], attributes: Iterable[str]
) -> tuple[dict[str, str], list[CustomField]]:
    """
    加载已有物品时，把规格拆成“类别属性”与“自定义字段”两部分

    返回值:
        (spec, custom_fields)
        spec 只保留 description 和当前类别定义的键；其余键变成自定义字段，保持原顺序。
    """
    schema = {_fold(a) for a in attributes}
    kept: dict[str, str] = {}
    custom_fields: list[CustomField] = []
    for key, value in spec.items():
        if _is_description(key) or _fold(key) in schema:
            kept[key] = value
        else:
            custom_fields.append(CustomField(key=key, value=_as_text(value)))
    return kept, custom_fields


def redistribute(
    spec: dict[str, str],
    custom_fields: list[CustomField],
    old_attributes: Iterable[str],
    new_attributes: Iterable[str],
) -> tuple[dict[str, str], list[CustomField]]:
    """
    物品从旧类别切换到新类别时，在规格与自定义字段之间搬移数据

    步骤（顺序不能换）:
        1. 自定义字段的键命中新类别属性 → 值写入 spec（用新类别里的写法），从自定义字段中移除
        2. 旧类别独有的属性，且 spec 中有非空值 → 挪到自定义字段末尾，从 spec 中移除
        3. 新类别属性在 spec 中缺失或为空 → 补一个空字符串，保证表单每个属性都有输入框
    description 始终原样保留。旧值只会被“降级”为自定义字段，不会丢失。

    输入参数不会被修改，返回新的 (spec, custom_fields)。
    """
    new_attributes = [a for a in new_attributes if not _is_description(a)]
    new_by_fold = {}
    for attr in new_attributes:
        new_by_fold.setdefault(_fold(attr), attr)

    updated = dict(spec)
    remaining: list[CustomField] = []

    for custom in custom_fields:
        attr = new_by_fold.get(_fold(custom.key))
        if attr is None:
            remaining.append(CustomField(key=custom.key, value=custom.value))
            continue
        # 同名但大小写不同的旧键先删掉，避免一个属性出现两次
        for key in [k for k in updated if _fold(k) == _fold(attr) and k != attr]:
            del updated[key]
        updated[attr] = custom.value

    for attr in old_attributes:
        if _is_description(attr) or _fold(attr) in new_by_fold:
            continue
        for key in [k for k in updated if _fold(k) == _fold(attr)]:
            value = updated[key]
            if not _as_text(value):
                continue
            remaining.append(CustomField(key=key, value=_as_text(value)))
            del updated[key]

    for attr in new_attributes:
        present = [k for k in updated if _fold(k) == _fold(attr)]
        if not any(_as_text(updated[k]) for k in present):
            for key in present:
                del updated[key]
            updated[attr] = ""

    return updated, remaining


def assemble_specifications(
    spec: dict[str, str], custom_fields: Iterable[CustomField]
) -> dict[str, str]:
    """
    提交表单时组装最终要保存的规格

    顺序：description（去空白后非空才写）→ spec 里其余非空的键 → 非空的自定义字段。
    自定义字段最后写入，键冲突时以自定义字段的值为准；空值一律不落库。
    """
    result: dict[str, str] = {}

    description = _as_text(spec.get(DESCRIPTION_KEY)).strip()
    if description:
        result[DESCRIPTION_KEY] = description

    for key, value in spec.items():
        if key == DESCRIPTION_KEY:
            continue
        text = _as_text(value).strip()
        if text:
            result[key] = text

    for custom in custom_fields:
        key = _as_text(custom.key).strip()
        value = _as_text(custom.value).strip()
        if key and value and key != DESCRIPTION_KEY:
            result[key] = value

    return result
