"""
錯誤類別模組

每個來源的處理錯誤都可恢復，只有設定錯誤會在啟動時終止程式。
"""

from typing import Optional


class ListingWatchError(Exception):
    """所有錯誤的基礎類別"""
    pass


class FetchError(ListingWatchError):
    """爬取失敗（網路、逾時、頁面結構改變）"""

    def __init__(self, source_url: str, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"{source_url}: {message}")
        self.source_url = source_url
        self.cause = cause


class StoreReadError(ListingWatchError):
    """快照讀取失敗，呼叫端視為空快照"""
    pass


class StoreWriteError(ListingWatchError):
    """快照寫入失敗，先前的快照仍然有效"""
    pass


class DeliveryError(ListingWatchError):
    """通知寄送失敗，不影響已儲存的快照"""
    pass


class ConfigError(ListingWatchError, ValueError):
    """設定無效或缺少必要欄位"""
    pass
