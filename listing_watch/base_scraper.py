"""
爬蟲基礎類別模組

定義所有網站爬蟲的共用介面和行為，包括：
- 抽象方法定義 (scrape, parse_listing)
- 瀏覽器初始化和關閉邏輯
- User-Agent 輪換
- 重試延遲計算
"""

import logging
import random
from abc import ABC, abstractmethod
from typing import List, Dict, Optional
from playwright.sync_api import sync_playwright, Page, Browser, BrowserContext, Playwright

from listing_watch.models import Listing

logger = logging.getLogger(__name__)


class BaseScraper(ABC):
    """
    爬蟲基礎類別

    所有網站特定的爬蟲都應繼承此類別並實作抽象方法。
    瀏覽器在 open() 時啟動，整個監控期間共用，close() 時釋放。
    """

    # 預設 User-Agent 列表，用於輪換以避免被封鎖
    DEFAULT_USER_AGENTS = [
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.4 Safari/605.1.15",
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36",
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:125.0) Gecko/20100101 Firefox/125.0",
    ]

    # 預設重試設定
    DEFAULT_MAX_RETRIES = 2
    DEFAULT_RETRY_DELAY_BASE = 5  # 秒

    def __init__(self, headless: bool = True, user_agents: Optional[List[str]] = None):
        """
        初始化爬蟲

        Args:
            headless: 是否以無頭模式運行瀏覽器
            user_agents: 自訂 User-Agent 列表，若為 None 則使用預設列表
        """
        self.headless = headless
        self.user_agents = user_agents or self.DEFAULT_USER_AGENTS.copy()

        # 瀏覽器相關實例（延遲初始化）
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None

        self._current_user_agent: Optional[str] = None

    @property
    @abstractmethod
    def source_name(self) -> str:
        """返回來源名稱，例如 'olx_pl'"""
        pass

    @abstractmethod
    def scrape(self, url: str) -> List[Listing]:
        """
        爬取指定搜尋頁的所有刊登

        Args:
            url: 搜尋結果頁面 URL

        Returns:
            刊登列表，link 已轉為絕對 URL

        Raises:
            FetchError: 頁面載入或解析失敗
        """
        pass

    @abstractmethod
    def parse_listing(self, raw: Dict, source_url: str) -> Optional[Listing]:
        """
        解析單一刊登

        Args:
            raw: 從頁面提取的原始欄位
            source_url: 來源搜尋頁 URL

        Returns:
            Listing，若缺少連結則返回 None
        """
        pass

    @property
    def page(self) -> Optional[Page]:
        return self._page

    @property
    def is_open(self) -> bool:
        return self._page is not None

    def _get_user_agent(self) -> str:
        """隨機選擇一個 User-Agent"""
        self._current_user_agent = random.choice(self.user_agents)
        return self._current_user_agent

    def _rotate_user_agent(self) -> str:
        """
        輪換到新的 User-Agent

        選擇一個與當前不同的 User-Agent（如果可能）。
        """
        if len(self.user_agents) <= 1:
            return self._get_user_agent()

        available = [ua for ua in self.user_agents if ua != self._current_user_agent]
        self._current_user_agent = random.choice(available)
        return self._current_user_agent

    def _init_browser(self, user_agent: Optional[str] = None) -> None:
        """啟動 Playwright 和 Chromium，建立上下文和頁面"""
        self._playwright = sync_playwright().start()
        self._browser = self._playwright.chromium.launch(
            headless=self.headless,
            args=["--no-sandbox"],
        )
        self._context = self._browser.new_context(
            user_agent=user_agent or self._current_user_agent or self._get_user_agent()
        )
        self._page = self._context.new_page()
        logger.debug(f"Browser started (headless={self.headless})")

    def _close_browser(self) -> None:
        """
        關閉瀏覽器

        依序關閉頁面、上下文、瀏覽器和 Playwright 實例。
        """
        for name in ("_page", "_context", "_browser"):
            resource = getattr(self, name)
            if resource is not None:
                try:
                    resource.close()
                except Exception as e:
                    logger.debug(f"Ignoring error while closing {name.lstrip('_')}: {e}")
                setattr(self, name, None)

        if self._playwright is not None:
            try:
                self._playwright.stop()
            except Exception as e:
                logger.debug(f"Ignoring error while stopping playwright: {e}")
            self._playwright = None

    def _reset_browser_with_new_ua(self) -> None:
        """關閉瀏覽器並輪換 User-Agent，下次 open() 時以新的 UA 重新啟動"""
        self._close_browser()
        self._rotate_user_agent()

    def _calculate_retry_delay(self, attempt: int) -> float:
        """
        計算重試延遲時間

        Args:
            attempt: 當前重試次數（從 0 開始）

        Returns:
            延遲秒數
        """
        base_delay = self.DEFAULT_RETRY_DELAY_BASE * (attempt + 1)
        jitter = random.uniform(0, base_delay * 0.5)
        return base_delay + jitter

    def open(self) -> None:
        """啟動瀏覽器（已啟動時不重複啟動）"""
        if not self.is_open:
            self._init_browser()

    def close(self) -> None:
        self._close_browser()

    def __enter__(self):
        """支援 context manager 用法"""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """支援 context manager 用法"""
        self.close()
        return False
