"""键值存储，存储层对外唯一的持久化协作者

每个 key 对应一个完整的字符串值，set_value 为单条语句加提交，读方只能看到写入前或写入后的完整值。
"""

import sqlite3

import medreminder.storage.db_config as db_config
from medreminder.errors import PersistenceError
from medreminder.logger import logger

__all__ = ["get_value", "set_value", "delete_value"]


def _ensure_conn():
    if db_config.conn is None:
        raise PersistenceError("数据库未初始化，请先调用 init_db()")


async def get_value(key: str) -> str | None:
    _ensure_conn()
    try:
        async with db_config.conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)) as cursor:
            row = await cursor.fetchone()
    except sqlite3.Error as e:
        raise PersistenceError(f"读取 {key} 失败: {e}") from e
    return row[0] if row else None


async def set_value(key: str, value: str) -> None:
    _ensure_conn()
    try:
        await db_config.conn.execute(
            "INSERT INTO kv_store (key, value, updated_at_utc) VALUES (?, ?, CURRENT_TIMESTAMP) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at_utc = CURRENT_TIMESTAMP",
            (key, value),
        )
        await db_config.conn.commit()
    except sqlite3.Error as e:
        raise PersistenceError(f"写入 {key} 失败: {e}") from e
    logger.trace(f"写入键值: key={key}, size={len(value)}")


async def delete_value(key: str) -> None:
    _ensure_conn()
    try:
        await db_config.conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        await db_config.conn.commit()
    except sqlite3.Error as e:
        raise PersistenceError(f"删除 {key} 失败: {e}") from e
