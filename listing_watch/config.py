"""
設定檔載入模組

合併 JSON 設定檔、環境變數與預設值，並在啟動時驗證。
"""

import json
import os
from dataclasses import dataclass, field
from typing import Dict, Any, Optional, List, Mapping
from urllib.parse import urlparse

from listing_watch.errors import ConfigError


# 預設值定義
DEFAULT_CONFIG = {
    "interval_seconds": 60,
    "db_path": "data/snapshots.db",
    "headless": True,
    "tracking_urls": [],
}

DEFAULT_CONFIG_PATH = "config/sources.json"


@dataclass
class SourceConfig:
    """追蹤來源設定"""
    name: str
    url: str


@dataclass
class MonitorConfig:
    """監控程式設定"""
    sources: List[SourceConfig] = field(default_factory=list)
    interval_seconds: int = 60
    db_path: str = "data/snapshots.db"
    headless: bool = True

    def __post_init__(self):
        # 將 dict 轉換為 SourceConfig 物件
        self.sources = [
            SourceConfig(**source) if isinstance(source, dict) else source
            for source in self.sources
        ]


def _validate_url(url: str) -> None:
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigError(f"Invalid source URL: {url!r}")


def _parse_interval(value: Any) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"interval_seconds must be a positive integer, got {value!r}")
    try:
        interval = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"interval_seconds must be a positive integer, got {value!r}")
    if interval <= 0:
        raise ConfigError(f"interval_seconds must be a positive integer, got {value!r}")
    return interval


def _parse_bool(value: str) -> bool:
    return value.strip().lower() not in ("0", "false", "no", "off", "")


def load_config(
    config_path: str = DEFAULT_CONFIG_PATH,
    env: Optional[Mapping[str, str]] = None,
) -> MonitorConfig:
    """
    載入監控設定

    來源 URL 取自設定檔的 tracking_urls 及環境變數 TARGET_URL（可用逗號分隔多個），
    INTERVAL_SECONDS、SNAPSHOT_DB、HEADLESS 環境變數會覆蓋設定檔。

    Args:
        config_path: 設定檔路徑，不存在時使用預設值
        env: 環境變數，預設為 os.environ

    Returns:
        MonitorConfig: 監控設定物件

    Raises:
        ConfigError: 設定無效或沒有任何來源
    """
    if env is None:
        env = os.environ

    # 載入設定檔
    if os.path.exists(config_path):
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                config_data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            raise ConfigError(f"Cannot read config file {config_path}: {e}")
        if not isinstance(config_data, dict):
            raise ConfigError(f"Config file {config_path} must contain a JSON object")
    else:
        config_data = {}

    # 合併預設值
    merged: Dict[str, Any] = {**DEFAULT_CONFIG, **config_data}

    raw_sources = list(merged.get("tracking_urls") or [])
    for url in env.get("TARGET_URL", "").split(","):
        if url.strip():
            raw_sources.append({"name": url.strip(), "url": url.strip()})

    sources: List[SourceConfig] = []
    seen = set()
    for raw in raw_sources:
        if not isinstance(raw, dict) or not raw.get("url"):
            raise ConfigError(f"Each tracking URL needs a 'url' field, got {raw!r}")
        url = raw["url"].strip()
        _validate_url(url)
        # 重複的 URL 只保留第一個
        if url in seen:
            continue
        seen.add(url)
        sources.append(SourceConfig(name=raw.get("name") or url, url=url))

    if not sources:
        raise ConfigError("No sources configured: set TARGET_URL or tracking_urls in config")

    interval = env.get("INTERVAL_SECONDS") or merged["interval_seconds"]
    db_path = env.get("SNAPSHOT_DB") or merged["db_path"]
    headless = merged["headless"]
    if env.get("HEADLESS") is not None:
        headless = _parse_bool(env["HEADLESS"])

    return MonitorConfig(
        sources=sources,
        interval_seconds=_parse_interval(interval),
        db_path=db_path,
        headless=bool(headless),
    )
