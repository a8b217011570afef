from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence

from .errors import ConflictError, NotFoundError
from .schemas import PROFILE_FIELDS, Build, BuildItem, CompatibilityProfile, Part

log = logging.getLogger("kartforge.db")


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS parts (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL,
  sku TEXT NOT NULL UNIQUE,
  brand TEXT NOT NULL,
  category TEXT NOT NULL,
  description TEXT,
  price TEXT NOT NULL,
  image_urls_json TEXT NOT NULL DEFAULT '[]',
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS compatibility_profiles (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  part_id INTEGER NOT NULL REFERENCES parts(id) ON DELETE CASCADE,
  engine_model TEXT,
  shaft_diameter TEXT,
  bolt_pattern TEXT,
  chain_size TEXT,
  frame_type TEXT,
  notes TEXT
);

CREATE TABLE IF NOT EXISTS builds (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  label TEXT NOT NULL,
  created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS build_items (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  build_id INTEGER NOT NULL REFERENCES builds(id) ON DELETE CASCADE,
  part_id INTEGER NOT NULL REFERENCES parts(id) ON DELETE CASCADE,
  slot_category TEXT NOT NULL,
  quantity INTEGER NOT NULL CHECK (quantity >= 1),
  created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_profiles_part ON compatibility_profiles(part_id);
CREATE INDEX IF NOT EXISTS idx_items_build ON build_items(build_id);
CREATE INDEX IF NOT EXISTS idx_items_part ON build_items(part_id);
"""

PART_COLUMNS = ("name", "sku", "brand", "category", "description", "price", "image_urls")
ITEM_COLUMNS = ("build_id", "part_id", "slot_category", "quantity")


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


@contextmanager
def connect(db_path: Path, immediate: bool = False) -> Iterator[sqlite3.Connection]:
    """
    打开数据库连接 - Open a database connection

    每次调用是一个事务：成功提交，异常回滚，最后关闭连接。
    外键约束在每个连接上单独开启，级联删除依赖它。
    immediate=True 时一开始就拿写锁，先检查后写入的操作不会被其他连接插入修改。
    Each call is one transaction: commit on success, rollback on error, always closed.
    Foreign keys are enabled per connection; cascade deletes depend on it.
    With immediate=True the write lock is taken up front, so check-then-write
    sequences see no interleaved writes from other connections.
    """
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        with conn:
            if immediate:
                conn.execute("BEGIN IMMEDIATE")
            yield conn
    finally:
        conn.close()


def _exists(conn: sqlite3.Connection, table: str, row_id: int) -> bool:
    return conn.execute(f"SELECT 1 FROM {table} WHERE id = ?", (row_id,)).fetchone() is not None


def _require_row(conn: sqlite3.Connection, table: str, entity: str, row_id: int) -> None:
    if not _exists(conn, table, row_id):
        raise NotFoundError(entity, row_id)


def _require_free_sku(conn: sqlite3.Connection, sku: str, part_id: int | None = None) -> None:
    row = conn.execute("SELECT id FROM parts WHERE sku = ?", (sku,)).fetchone()
    if row is not None and row["id"] != part_id:
        raise ConflictError(f"Part with sku '{sku}' already exists")


def init_schema(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    with connect(db_path) as conn:
        conn.executescript(SCHEMA_SQL)
    log.info("schema ready at %s", db_path)


def _row_to_profile(row: sqlite3.Row) -> CompatibilityProfile:
    return CompatibilityProfile.model_validate(dict(row))


def _row_to_part(row: sqlite3.Row, profiles: List[CompatibilityProfile]) -> Part:
    return Part.model_validate(
        {
            "id": row["id"],
            "name": row["name"],
            "sku": row["sku"],
            "brand": row["brand"],
            "category": row["category"],
            "description": row["description"],
            "price": Decimal(row["price"]),
            "image_urls": json.loads(row["image_urls_json"] or "[]"),
            "created_at": row["created_at"],
            "updated_at": row["updated_at"],
            "compatibility_profiles": profiles,
        }
    )


def _load_parts(
    conn: sqlite3.Connection,
    part_ids: Optional[Sequence[int]] = None,
) -> Dict[int, Part]:
    """加载配件及其兼容性档案；part_ids 为 None 时加载全部"""
    if part_ids is None:
        rows = conn.execute("SELECT * FROM parts ORDER BY id").fetchall()
        profile_rows = conn.execute("SELECT * FROM compatibility_profiles ORDER BY id").fetchall()
    else:
        ids = sorted(set(part_ids))
        if not ids:
            return {}
        placeholders = ",".join("?" for _ in ids)
        rows = conn.execute(
            f"SELECT * FROM parts WHERE id IN ({placeholders}) ORDER BY id", ids
        ).fetchall()
        profile_rows = conn.execute(
            f"SELECT * FROM compatibility_profiles WHERE part_id IN ({placeholders}) ORDER BY id",
            ids,
        ).fetchall()

    grouped: Dict[int, List[CompatibilityProfile]] = {}
    for r in profile_rows:
        grouped.setdefault(r["part_id"], []).append(_row_to_profile(r))
    return {r["id"]: _row_to_part(r, grouped.get(r["id"], [])) for r in rows}


def _insert_profile(conn: sqlite3.Connection, part_id: int, attrs: dict) -> int:
    cur = conn.execute(
        """
        INSERT INTO compatibility_profiles (
          part_id, engine_model, shaft_diameter, bolt_pattern, chain_size, frame_type, notes
        ) VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (part_id, *(attrs.get(f) for f in PROFILE_FIELDS)),
    )
    return int(cur.lastrowid)


class SQLitePartsRepository:
    """
    SQLite 配件仓库类 - SQLite Parts Repository Class

    管理配件及其兼容性档案。配件拥有档案：删除配件会级联删除档案和引用它的装机条目。
    Manages parts and their compatibility profiles. A part owns its profiles:
    deleting a part cascades to its profiles and to build items that reference it.
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path
        init_schema(db_path)

    def all_parts(self) -> List[Part]:
        """
        获取所有配件 - Get all parts

        返回 Returns:
            所有配件列表，每个配件都带有兼容性档案
            List of all parts, each with its compatibility profiles embedded
        """
        with connect(self.db_path) as conn:
            return list(_load_parts(conn).values())

    def count(self) -> int:
        with connect(self.db_path) as conn:
            return int(conn.execute("SELECT COUNT(*) FROM parts").fetchone()[0])

    def get(self, part_id: int) -> Part | None:
        with connect(self.db_path) as conn:
            return _load_parts(conn, [part_id]).get(part_id)

    def find_by_sku(self, sku: str) -> Part | None:
        """
        按 SKU 查找配件 - Find part by SKU

        参数 Parameters:
            sku: 配件 SKU 编号
                 Part SKU number

        返回 Returns:
            找到的配件，如果不存在则返回 None
            Found part, or None if not found
        """
        with connect(self.db_path) as conn:
            row = conn.execute("SELECT id FROM parts WHERE sku = ?", (sku,)).fetchone()
            if row is None:
                return None
            return _load_parts(conn, [row["id"]]).get(row["id"])

    def create(self, fields: dict, profiles: Sequence[dict] = ()) -> Part:
        """
        创建配件 - Create a part

        SKU 检查、配件与嵌套的兼容性档案在同一个事务中完成，任何一步失败都不会留下孤立档案。
        The sku check, the part and its nested profiles share one transaction,
        so a failure part-way never leaves orphaned profiles behind.

        Raises:
            ConflictError: SKU 已被占用
        """
        stamp = now_iso()
        with connect(self.db_path, immediate=True) as conn:
            _require_free_sku(conn, fields["sku"])
            cur = conn.execute(
                """
                INSERT INTO parts (
                  name, sku, brand, category, description, price, image_urls_json, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    fields["name"],
                    fields["sku"],
                    fields["brand"],
                    fields["category"],
                    fields.get("description"),
                    str(fields["price"]),
                    json.dumps(list(fields.get("image_urls") or []), ensure_ascii=False),
                    stamp,
                    stamp,
                ),
            )
            part_id = int(cur.lastrowid)
            for attrs in profiles:
                _insert_profile(conn, part_id, attrs)
            return _load_parts(conn, [part_id])[part_id]

    def update(self, part_id: int, changes: dict) -> Part | None:
        assignments: List[str] = []
        params: List[object] = []
        for column in PART_COLUMNS:
            if column not in changes:
                continue
            value = changes[column]
            if column == "image_urls":
                assignments.append("image_urls_json = ?")
                params.append(json.dumps(list(value or []), ensure_ascii=False))
            elif column == "price":
                assignments.append("price = ?")
                params.append(str(value))
            else:
                assignments.append(f"{column} = ?")
                params.append(value)
        assignments.append("updated_at = ?")
        params.append(now_iso())

        with connect(self.db_path, immediate=True) as conn:
            if not _exists(conn, "parts", part_id):
                return None
            if changes.get("sku") is not None:
                _require_free_sku(conn, changes["sku"], part_id)
            conn.execute(
                f"UPDATE parts SET {', '.join(assignments)} WHERE id = ?",
                (*params, part_id),
            )
            return _load_parts(conn, [part_id])[part_id]

    def delete(self, part_id: int) -> bool:
        with connect(self.db_path) as conn:
            cur = conn.execute("DELETE FROM parts WHERE id = ?", (part_id,))
            return cur.rowcount > 0

    # === 兼容性档案 ===

    def list_profiles(self, part_id: int | None = None) -> List[CompatibilityProfile]:
        sql = "SELECT * FROM compatibility_profiles"
        params: tuple = ()
        if part_id is not None:
            sql += " WHERE part_id = ?"
            params = (part_id,)
        sql += " ORDER BY id DESC"
        with connect(self.db_path) as conn:
            return [_row_to_profile(r) for r in conn.execute(sql, params).fetchall()]

    def get_profile(self, profile_id: int) -> CompatibilityProfile | None:
        with connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT * FROM compatibility_profiles WHERE id = ?", (profile_id,)
            ).fetchone()
        return _row_to_profile(row) if row else None

    def create_profile(self, part_id: int, attrs: dict) -> CompatibilityProfile:
        with connect(self.db_path, immediate=True) as conn:
            _require_row(conn, "parts", "Part", part_id)
            profile_id = _insert_profile(conn, part_id, attrs)
            row = conn.execute(
                "SELECT * FROM compatibility_profiles WHERE id = ?", (profile_id,)
            ).fetchone()
        return _row_to_profile(row)

    def update_profile(self, profile_id: int, changes: dict) -> CompatibilityProfile | None:
        columns = [c for c in ("part_id", *PROFILE_FIELDS) if c in changes]
        with connect(self.db_path, immediate=True) as conn:
            if not _exists(conn, "compatibility_profiles", profile_id):
                return None
            if "part_id" in changes:
                _require_row(conn, "parts", "Part", changes["part_id"])
            if columns:
                conn.execute(
                    f"UPDATE compatibility_profiles SET {', '.join(f'{c} = ?' for c in columns)} WHERE id = ?",
                    (*(changes[c] for c in columns), profile_id),
                )
            row = conn.execute(
                "SELECT * FROM compatibility_profiles WHERE id = ?", (profile_id,)
            ).fetchone()
        return _row_to_profile(row) if row else None

    def delete_profile(self, profile_id: int) -> bool:
        with connect(self.db_path) as conn:
            cur = conn.execute("DELETE FROM compatibility_profiles WHERE id = ?", (profile_id,))
            return cur.rowcount > 0


class SQLiteBuildsRepository:
    """
    SQLite 装机仓库类 - SQLite Builds Repository Class

    装机拥有条目：删除装机会级联删除它的所有条目。条目返回时内嵌完整配件。
    A build owns its items: deleting a build cascades to all of them.
    Items are returned with their part embedded.
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path
        init_schema(db_path)

    def create(self, label: str) -> Build:
        with connect(self.db_path) as conn:
            cur = conn.execute(
                "INSERT INTO builds (label, created_at) VALUES (?, ?)", (label, now_iso())
            )
            row = conn.execute("SELECT * FROM builds WHERE id = ?", (cur.lastrowid,)).fetchone()
        return Build.model_validate(dict(row))

    def get(self, build_id: int) -> Build | None:
        with connect(self.db_path) as conn:
            row = conn.execute("SELECT * FROM builds WHERE id = ?", (build_id,)).fetchone()
        return Build.model_validate(dict(row)) if row else None

    def all_builds(self) -> List[Build]:
        with connect(self.db_path) as conn:
            rows = conn.execute("SELECT * FROM builds ORDER BY created_at DESC, id DESC").fetchall()
        return [Build.model_validate(dict(r)) for r in rows]

    def delete(self, build_id: int) -> bool:
        with connect(self.db_path) as conn:
            cur = conn.execute("DELETE FROM builds WHERE id = ?", (build_id,))
            return cur.rowcount > 0

    # === 装机条目 ===

    @staticmethod
    def _items_from_rows(conn: sqlite3.Connection, rows: List[sqlite3.Row]) -> List[BuildItem]:
        parts = _load_parts(conn, [r["part_id"] for r in rows])
        return [
            BuildItem.model_validate({**dict(r), "part": parts[r["part_id"]]})
            for r in rows
        ]

    def add_item(self, build_id: int, part_id: int, slot_category: str, quantity: int) -> BuildItem:
        """
        新增条目 - Add an item

        装机和配件的存在性检查与插入在同一个写事务里，检查通过后引用不会被其他连接删掉。
        The build and part lookups run in the same write transaction as the
        insert, so neither can disappear between the check and the write.

        Raises:
            NotFoundError: 装机或配件不存在
        """
        with connect(self.db_path, immediate=True) as conn:
            _require_row(conn, "builds", "Build", build_id)
            _require_row(conn, "parts", "Part", part_id)
            cur = conn.execute(
                """
                INSERT INTO build_items (build_id, part_id, slot_category, quantity, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (build_id, part_id, slot_category, quantity, now_iso()),
            )
            rows = conn.execute("SELECT * FROM build_items WHERE id = ?", (cur.lastrowid,)).fetchall()
            return self._items_from_rows(conn, rows)[0]

    def get_item(self, item_id: int) -> BuildItem | None:
        with connect(self.db_path) as conn:
            rows = conn.execute("SELECT * FROM build_items WHERE id = ?", (item_id,)).fetchall()
            items = self._items_from_rows(conn, rows)
        return items[0] if items else None

    def items_for_build(self, build_id: int) -> List[BuildItem]:
        with connect(self.db_path) as conn:
            rows = conn.execute(
                "SELECT * FROM build_items WHERE build_id = ? ORDER BY id ASC", (build_id,)
            ).fetchall()
            return self._items_from_rows(conn, rows)

    def list_items(
        self,
        build_id: int | None = None,
        part_id: int | None = None,
        slot_category: str | None = None,
    ) -> List[BuildItem]:
        clauses: List[str] = []
        params: List[object] = []
        for column, value in (
            ("build_id", build_id),
            ("part_id", part_id),
            ("slot_category", slot_category),
        ):
            if value is not None:
                clauses.append(f"{column} = ?")
                params.append(value)
        sql = "SELECT * FROM build_items"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY created_at DESC, id DESC"
        with connect(self.db_path) as conn:
            rows = conn.execute(sql, params).fetchall()
            return self._items_from_rows(conn, rows)

    def update_item(self, item_id: int, changes: dict) -> BuildItem | None:
        columns = [c for c in ITEM_COLUMNS if c in changes]
        with connect(self.db_path, immediate=True) as conn:
            if not _exists(conn, "build_items", item_id):
                return None
            if "build_id" in changes:
                _require_row(conn, "builds", "Build", changes["build_id"])
            if "part_id" in changes:
                _require_row(conn, "parts", "Part", changes["part_id"])
            if columns:
                conn.execute(
                    f"UPDATE build_items SET {', '.join(f'{c} = ?' for c in columns)} WHERE id = ?",
                    (*(changes[c] for c in columns), item_id),
                )
            rows = conn.execute("SELECT * FROM build_items WHERE id = ?", (item_id,)).fetchall()
            items = self._items_from_rows(conn, rows)
        return items[0] if items else None

    def delete_item(self, item_id: int) -> bool:
        with connect(self.db_path) as conn:
            cur = conn.execute("DELETE FROM build_items WHERE id = ?", (item_id,))
            return cur.rowcount > 0
