import re
import sqlite3

UNIQUE_VIOLATION = "23505"
NOT_NULL_VIOLATION = "23502"
FOREIGN_KEY_VIOLATION = "23503"
CHECK_VIOLATION = "23514"
STORE_FAILURE = "XX000"


class StoreError(Exception):
    """行存储调用失败。

    code 沿用 SQLSTATE 的写法（唯一约束冲突为 23505），details 里带着出错的列，
    上层据此生成面向用户的提示。
    """

    def __init__(self, message: str, code: str = STORE_FAILURE, details: str = ""):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details

    @property
    def is_unique_violation(self) -> bool:
        return self.code == UNIQUE_VIOLATION


_CONSTRAINT_CODES = [
    ("UNIQUE constraint failed", UNIQUE_VIOLATION),
    ("NOT NULL constraint failed", NOT_NULL_VIOLATION),
    ("FOREIGN KEY constraint failed", FOREIGN_KEY_VIOLATION),
    ("CHECK constraint failed", CHECK_VIOLATION),
]


def from_sqlite_error(exc: sqlite3.Error) -> StoreError:
    """把 sqlite3 的异常翻译成 StoreError。"""
    message = str(exc)
    for prefix, code in _CONSTRAINT_CODES:
        if message.startswith(prefix):
            # "UNIQUE constraint failed: inventory_items.sku" -> "Key (sku) already exists"
            columns = ", ".join(re.findall(r"\w+\.(\w+)", message))
            if not columns:
                details = message
            elif code == UNIQUE_VIOLATION:
                details = f"Key ({columns}) already exists"
            else:
                details = f"Failing column ({columns})"
            return StoreError(message, code=code, details=details)
    return StoreError(message)
