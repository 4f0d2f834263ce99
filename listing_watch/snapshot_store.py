"""
快照儲存模組

每個來源各自擁有一份快照：{刊登連結: fingerprint}。
快照在單一 SQLite 交易中整份替換，寫入失敗時保留前一份快照。
"""

import hashlib
import logging
import os
import sqlite3
from datetime import datetime
from typing import Dict, List, Mapping

from listing_watch.errors import StoreReadError, StoreWriteError

logger = logging.getLogger(__name__)


def source_key(source_url: str) -> str:
    """
    由來源 URL 產生儲存用的識別碼

    使用 SHA-256，不同 URL 不會產生相同的識別碼。

    Args:
        source_url: 來源搜尋頁 URL

    Returns:
        64 字元的十六進位字串
    """
    return hashlib.sha256(source_url.encode("utf-8")).hexdigest()


class SnapshotStore:
    """快照儲存服務"""

    def __init__(self, db_path: str = "data/snapshots.db"):
        self.db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        """建立連線並確保資料表存在"""
        directory = os.path.dirname(self.db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        conn = sqlite3.connect(self.db_path, timeout=30.0)
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("""
                CREATE TABLE IF NOT EXISTS sources (
                    source_key TEXT PRIMARY KEY,
                    source_url TEXT NOT NULL,
                    saved_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS snapshots (
                    source_key TEXT NOT NULL,
                    link TEXT NOT NULL,
                    fingerprint TEXT NOT NULL,
                    position INTEGER NOT NULL,
                    PRIMARY KEY (source_key, link)
                )
            """)
            conn.commit()
        except sqlite3.Error:
            conn.close()
            raise
        return conn

    def _read(self, source_url: str) -> Dict[str, str]:
        """讀取快照，失敗時拋出 StoreReadError"""
        if not os.path.exists(self.db_path):
            return {}
        try:
            conn = self._connect()
            try:
                cursor = conn.execute(
                    """SELECT link, fingerprint FROM snapshots
                       WHERE source_key = ?
                       ORDER BY position ASC""",
                    (source_key(source_url),)
                )
                rows = cursor.fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StoreReadError(f"Cannot read snapshot for {source_url}: {e}") from e

        snapshot = {}
        for link, value in rows:
            if not isinstance(link, str) or not isinstance(value, str):
                raise StoreReadError(f"Malformed snapshot row for {source_url}")
            snapshot[link] = value
        return snapshot

    def load(self, source_url: str) -> Dict[str, str]:
        """
        載入指定來源的快照

        找不到或無法讀取時返回空字典（視為首次觀察），不會拋出錯誤。

        Args:
            source_url: 來源搜尋頁 URL

        Returns:
            {link: fingerprint}
        """
        try:
            snapshot = self._read(source_url)
        except StoreReadError as e:
            logger.warning(f"{e}; treating as first observation")
            return {}
        logger.debug(f"Loaded {len(snapshot)} listings for {source_url}")
        return snapshot

    def save(self, source_url: str, snapshot: Mapping[str, str]) -> None:
        """
        以新快照完整取代指定來源的舊快照

        刪除與寫入在同一個交易中完成，失敗時回滾。

        Args:
            source_url: 來源搜尋頁 URL
            snapshot: {link: fingerprint}

        Raises:
            StoreWriteError: 寫入失敗或識別碼衝突
        """
        key = source_key(source_url)
        now = datetime.now().isoformat()
        try:
            conn = self._connect()
        except sqlite3.Error as e:
            raise StoreWriteError(f"Cannot open snapshot store {self.db_path}: {e}") from e

        try:
            with conn:
                row = conn.execute(
                    "SELECT source_url FROM sources WHERE source_key = ?",
                    (key,)
                ).fetchone()
                if row and row[0] != source_url:
                    raise StoreWriteError(
                        f"Source key collision: {source_url} and {row[0]} share key {key}"
                    )

                conn.execute("DELETE FROM snapshots WHERE source_key = ?", (key,))
                conn.executemany(
                    """INSERT INTO snapshots (source_key, link, fingerprint, position)
                       VALUES (?, ?, ?, ?)""",
                    [
                        (key, link, value, position)
                        for position, (link, value) in enumerate(snapshot.items())
                    ]
                )
                conn.execute(
                    """INSERT OR REPLACE INTO sources (source_key, source_url, saved_at)
                       VALUES (?, ?, ?)""",
                    (key, source_url, now)
                )
        except sqlite3.Error as e:
            raise StoreWriteError(f"Cannot save snapshot for {source_url}: {e}") from e
        finally:
            conn.close()

        logger.debug(f"Saved {len(snapshot)} listings for {source_url}")

    def list_sources(self) -> List[Dict]:
        """列出所有已儲存的來源及其快照數量"""
        if not os.path.exists(self.db_path):
            return []
        try:
            conn = self._connect()
            try:
                cursor = conn.execute("""
                    SELECT s.source_url, s.source_key, s.saved_at, COUNT(p.link)
                    FROM sources s
                    LEFT JOIN snapshots p ON p.source_key = s.source_key
                    GROUP BY s.source_key
                    ORDER BY s.source_url ASC
                """)
                rows = cursor.fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.warning(f"Cannot read snapshot store {self.db_path}: {e}")
            return []

        return [
            {
                "source_url": source_url,
                "source_key": key,
                "saved_at": saved_at,
                "listing_count": count,
            }
            for source_url, key, saved_at, count in rows
        ]
