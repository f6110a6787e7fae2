import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator

from catalog.errors import StoreError, from_sqlite_error
from catalog.models import Category, InventoryItem, category_from_row, item_from_row
from constants import ADJUSTMENT_REASONS

logger = logging.getLogger(__name__)

# inventory_items 允许写入的列；其余键一律拒绝，不拼进 SQL
ITEM_COLUMNS = (
    "name",
    "description",
    "category",
    "category_id",
    "unit_of_measure",
    "purchase_cost",
    "selling_price",
    "current_stock",
    "reorder_level",
    "sku",
    "is_active",
    "specifications",
    "is_website_item",
    "image_url",
    "sale_price",
    "weight",
)


def row_to_dict(row: sqlite3.Row | None) -> dict | None:
    if row is None:
        return None
    return {k: row[k] for k in row.keys()}


def _now() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


def _column_exists(conn: sqlite3.Connection, table: str, column: str) -> bool:
    rows = conn.execute(f"PRAGMA table_info({table})").fetchall()
    return any(r[1] == column for r in rows)


def _ensure_column(conn: sqlite3.Connection, table: str, column: str, column_def_sql: str) -> None:
    if _column_exists(conn, table, column):
        return
    conn.execute(f"ALTER TABLE {table} ADD COLUMN {column_def_sql}")


def _get_db_connection(db_file: str) -> sqlite3.Connection:
    """创建 SQLite 连接，启用 Row 工厂便于按列名取值，并打开外键约束。"""
    conn = sqlite3.connect(db_file)
    conn.row_factory = sqlite3.Row
    # SQLite 默认不检查外键，ON DELETE SET NULL 需要这一句才会生效
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def _transaction(db_file: str) -> Iterator[sqlite3.Connection]:
    """一次事务：正常结束提交，异常回滚；sqlite 异常统一翻译成 StoreError。"""
    conn = _get_db_connection(db_file)
    try:
        with conn:
            yield conn
    except sqlite3.Error as exc:
        logger.warning("Row store call failed: %s", exc)
        raise from_sqlite_error(exc) from exc
    finally:
        conn.close()


def _ensure_db_schema(db_file: str) -> None:
    """确保数据库表和触发器存在；即便没运行 init_db.py 也能启动应用。"""
    with _transaction(db_file) as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS category (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT UNIQUE NOT NULL,
                attributes TEXT NOT NULL DEFAULT '[]',
                created_at TEXT,
                last_modified TEXT
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS inventory_items (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT UNIQUE NOT NULL,
                description TEXT DEFAULT '',
                category TEXT DEFAULT '',
                category_id INTEGER REFERENCES category(id) ON DELETE SET NULL,
                unit_of_measure TEXT DEFAULT 'pieces',
                purchase_cost REAL DEFAULT 0,
                selling_price REAL DEFAULT 0,
                current_stock INTEGER DEFAULT 0,
                reorder_level INTEGER DEFAULT 0,
                sku TEXT UNIQUE,
                is_active INTEGER DEFAULT 1,
                specifications TEXT DEFAULT '{}',
                is_website_item INTEGER DEFAULT 0,
                image_url TEXT,
                sale_price REAL,
                weight REAL DEFAULT 0,
                created_at TEXT,
                updated_at TEXT
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS inventory_adjustments (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                item_id INTEGER NOT NULL REFERENCES inventory_items(id) ON DELETE CASCADE,
                previous_quantity INTEGER NOT NULL,
                new_quantity INTEGER NOT NULL,
                reason TEXT NOT NULL,
                notes TEXT DEFAULT '',
                created_by TEXT DEFAULT 'System',
                adjustment_date TEXT
            )
            """
        )

        # 兼容旧数据库：早期版本的物品表没有 category_id / specifications
        _ensure_column(conn, "inventory_items", "category_id", "category_id INTEGER")
        _ensure_column(conn, "inventory_items", "specifications", "specifications TEXT DEFAULT '{}'")

        # 行级触发器：category 列始终跟随 category_id 对应的类别名称
        conn.execute(
            """
            CREATE TRIGGER IF NOT EXISTS sync_item_category_on_insert
            AFTER INSERT ON inventory_items
            WHEN NEW.category_id IS NOT NULL
            BEGIN
                UPDATE inventory_items
                SET category = (SELECT name FROM category WHERE id = NEW.category_id)
                WHERE id = NEW.id;
            END
            """
        )
        conn.execute(
            """
            CREATE TRIGGER IF NOT EXISTS sync_item_category_on_update
            AFTER UPDATE OF category_id ON inventory_items
            WHEN NEW.category_id IS NOT NULL
            BEGIN
                UPDATE inventory_items
                SET category = (SELECT name FROM category WHERE id = NEW.category_id)
                WHERE id = NEW.id;
            END
            """
        )
        conn.execute(
            """
            CREATE TRIGGER IF NOT EXISTS sync_item_category_on_rename
            AFTER UPDATE OF name ON category
            BEGIN
                UPDATE inventory_items SET category = NEW.name WHERE category_id = NEW.id;
            END
            """
        )


def _item_values(row: dict[str, Any]) -> dict[str, Any]:
    unknown = sorted(set(row) - set(ITEM_COLUMNS))
    if unknown:
        raise ValueError(f"未知的物品字段：{', '.join(unknown)}")

    values = dict(row)
    if "sku" in values:
        # 空 SKU 存 NULL，避免和唯一约束冲突
        sku = (values["sku"] or "").strip()
        values["sku"] = sku or None
    if "category_id" in values:
        values["category_id"] = values["category_id"] or None
    for flag in ("is_active", "is_website_item"):
        if flag in values:
            values[flag] = 1 if values[flag] else 0
    return values


class RowStore:
    """
    基于 SQLite 的行存储

    类别注册表和物品编辑会话只通过这里读写数据；
    所有方法在失败时抛出 StoreError（或在参数不合法时抛出 ValueError）。
    """

    def __init__(self, db_file: str):
        self.db_file = db_file
        _ensure_db_schema(db_file)

    # ==================== 类别 ====================

    def fetch_categories(self) -> list[Category]:
        with _transaction(self.db_file) as conn:
            rows = conn.execute(
                "SELECT id, name, attributes FROM category ORDER BY name ASC"
            ).fetchall()
        return [category_from_row(row_to_dict(r)) for r in rows]

    def get_category(self, category_id: int) -> Category | None:
        with _transaction(self.db_file) as conn:
            row = conn.execute(
                "SELECT id, name, attributes FROM category WHERE id = ?",
                (category_id,),
            ).fetchone()
        return category_from_row(row_to_dict(row)) if row else None

    def create_category(self, name: str, attributes: list[str]) -> Category:
        now = _now()
        with _transaction(self.db_file) as conn:
            cur = conn.execute(
                """
                INSERT INTO category (name, attributes, created_at, last_modified)
                VALUES (?, ?, ?, ?)
                """,
                (name, json.dumps(list(attributes), ensure_ascii=False), now, now),
            )
            new_id = cur.lastrowid
        logger.info("Category created: %s (id=%s)", name, new_id)
        return Category(id=new_id, name=name, attributes=list(attributes))

    def update_category(self, category_id: int, name: str, attributes: list[str]) -> Category:
        with _transaction(self.db_file) as conn:
            cur = conn.execute(
                """
                UPDATE category SET name = ?, attributes = ?, last_modified = ?
                WHERE id = ?
                """,
                (name, json.dumps(list(attributes), ensure_ascii=False), _now(), category_id),
            )
            if cur.rowcount == 0:
                raise StoreError(f"类别不存在：{category_id}", code="P0002")
        logger.info("Category updated: %s (id=%s)", name, category_id)
        return Category(id=category_id, name=name, attributes=list(attributes))

    def delete_category(self, category_id: int) -> bool:
        with _transaction(self.db_file) as conn:
            cur = conn.execute("DELETE FROM category WHERE id = ?", (category_id,))
        return cur.rowcount > 0

    # ==================== 物品 ====================

    def list_items(self) -> list[InventoryItem]:
        with _transaction(self.db_file) as conn:
            rows = conn.execute("SELECT * FROM inventory_items ORDER BY name ASC").fetchall()
        return [item_from_row(row_to_dict(r)) for r in rows]

    def get_item(self, item_id: int) -> InventoryItem | None:
        with _transaction(self.db_file) as conn:
            row = conn.execute("SELECT * FROM inventory_items WHERE id = ?", (item_id,)).fetchone()
        return item_from_row(row_to_dict(row)) if row else None

    def create_item(self, row: dict[str, Any]) -> InventoryItem:
        values = _item_values(row)
        if not values.get("name"):
            raise ValueError("物品名称不能为空")
        values["created_at"] = values["updated_at"] = _now()

        columns = ", ".join(values)
        placeholders = ", ".join("?" for _ in values)
        with _transaction(self.db_file) as conn:
            cur = conn.execute(
                f"INSERT INTO inventory_items ({columns}) VALUES ({placeholders})",
                tuple(values.values()),
            )
            new_id = cur.lastrowid
        logger.info("Inventory item created: %s (id=%s)", values["name"], new_id)
        return self.get_item(new_id)

    def update_item(self, item_id: int, partial_row: dict[str, Any]) -> InventoryItem:
        values = _item_values(partial_row)
        values["updated_at"] = _now()

        assignments = ", ".join(f"{k} = ?" for k in values)
        with _transaction(self.db_file) as conn:
            cur = conn.execute(
                f"UPDATE inventory_items SET {assignments} WHERE id = ?",
                (*values.values(), item_id),
            )
            if cur.rowcount == 0:
                raise StoreError(f"物品不存在：{item_id}", code="P0002")
        logger.info("Inventory item updated: id=%s fields=%s", item_id, sorted(partial_row))
        return self.get_item(item_id)

    def delete_item(self, item_id: int) -> bool:
        with _transaction(self.db_file) as conn:
            cur = conn.execute("DELETE FROM inventory_items WHERE id = ?", (item_id,))
        return cur.rowcount > 0

    def adjust_stock(
        self,
        item_id: int,
        quantity_change: int,
        reason: str,
        notes: str = "",
        created_by: str = "User",
    ) -> dict:
        """调整库存并记录一条 inventory_adjustments；结果库存不能为负。"""
        if reason not in ADJUSTMENT_REASONS:
            raise ValueError(f"调整原因不合法：{reason}")
        with _transaction(self.db_file) as conn:
            row = conn.execute(
                "SELECT current_stock FROM inventory_items WHERE id = ?", (item_id,)
            ).fetchone()
            if not row:
                raise StoreError(f"物品不存在：{item_id}", code="P0002")

            previous_quantity = row["current_stock"] or 0
            new_quantity = previous_quantity + quantity_change
            if new_quantity < 0:
                raise ValueError("调整后库存不能为负数")

            now = _now()
            conn.execute(
                """
                INSERT INTO inventory_adjustments
                    (item_id, previous_quantity, new_quantity, reason, notes, created_by, adjustment_date)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (item_id, previous_quantity, new_quantity, reason, notes or "", created_by, now),
            )
            conn.execute(
                "UPDATE inventory_items SET current_stock = ?, updated_at = ? WHERE id = ?",
                (new_quantity, now, item_id),
            )
        return {"previous_quantity": previous_quantity, "new_quantity": new_quantity}

    def list_adjustments(self, item_id: int | None = None) -> list[dict]:
        sql = "SELECT * FROM inventory_adjustments"
        params: tuple = ()
        if item_id is not None:
            sql += " WHERE item_id = ?"
            params = (item_id,)
        sql += " ORDER BY adjustment_date DESC, id DESC"
        with _transaction(self.db_file) as conn:
            rows = conn.execute(sql, params).fetchall()
        return [row_to_dict(r) for r in rows]
