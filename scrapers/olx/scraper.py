"""
OLX 爬蟲模組

繼承 BaseScraper，實作 OLX 搜尋結果頁的刊登提取。
每張刊登卡片 (div[data-cy="l-card"]) 轉為一筆 Listing，連結轉為絕對 URL。
"""

import logging
import time
from typing import List, Dict, Optional
from playwright.sync_api import Error as PlaywrightError

from listing_watch.base_scraper import BaseScraper
from listing_watch.errors import FetchError
from listing_watch.models import Listing, normalize_link

logger = logging.getLogger(__name__)


# 在瀏覽器中執行，將每張卡片轉為原始欄位
EXTRACT_CARDS_JS = """
cards => cards.map(card => {
    const text = (selector) => {
        const el = card.querySelector(selector);
        return el && el.innerText ? el.innerText.trim() : '';
    };
    const attr = (selector, name) => {
        const el = card.querySelector(selector);
        return el ? (el.getAttribute(name) || '') : '';
    };
    return {
        title: text('h4'),
        price: text('[data-testid="ad-price"]'),
        href: attr('a[href]', 'href'),
        image: attr('img', 'src'),
        condition: text('[title]'),
        location_date: text('[data-testid="location-date"]'),
    };
})
"""


class OlxScraper(BaseScraper):
    """
    OLX 爬蟲

    使用共用的瀏覽器頁面載入搜尋結果頁，解析所有刊登卡片。
    """

    CARD_SELECTOR = 'div[data-cy="l-card"]'
    PAGE_TIMEOUT_MS = 60000

    # 缺少欄位時的預設文字
    FALLBACKS = {
        "title": "No title",
        "price": "No price",
        "condition": "No condition",
        "location_date": "No location/date",
    }

    def __init__(self, headless: bool = True, max_retries: int = BaseScraper.DEFAULT_MAX_RETRIES):
        super().__init__(headless=headless)
        self.max_retries = max(1, max_retries)

    @property
    def source_name(self) -> str:
        return "olx_pl"

    def parse_listing(self, raw: Dict, source_url: str) -> Optional[Listing]:
        """
        解析單一刊登卡片

        Args:
            raw: EXTRACT_CARDS_JS 產生的原始欄位
            source_url: 來源搜尋頁 URL（用於補全相對連結）

        Returns:
            Listing，若卡片沒有連結則返回 None
        """
        href = (raw.get("href") or "").strip()
        if not href:
            return None

        def field(name: str) -> str:
            value = (raw.get(name) or "").strip()
            return value or self.FALLBACKS[name]

        return Listing(
            source_url=source_url,
            link=normalize_link(href, source_url),
            title=field("title"),
            price=field("price"),
            condition=field("condition"),
            location_date=field("location_date"),
            image_url=(raw.get("image") or "").strip(),
        )

    def _extract_listings(self, url: str) -> List[Listing]:
        """載入頁面並提取所有刊登"""
        page = self.page
        page.goto(url, wait_until="networkidle", timeout=self.PAGE_TIMEOUT_MS)
        raw_cards = page.eval_on_selector_all(self.CARD_SELECTOR, EXTRACT_CARDS_JS)

        listings = []
        skipped = 0
        for raw in raw_cards:
            listing = self.parse_listing(raw, url)
            if listing is None:
                skipped += 1
                continue
            listings.append(listing)

        if skipped:
            logger.debug(f"[{self.source_name}] Skipped {skipped} cards without a link on {url}")
        return listings

    def scrape(self, url: str) -> List[Listing]:
        """
        爬取指定搜尋頁的所有刊登

        失敗時更換 User-Agent 重試，全部失敗則拋出 FetchError。

        Args:
            url: 搜尋結果頁面 URL

        Returns:
            刊登列表
        """
        for attempt in range(self.max_retries):
            try:
                self.open()
                listings = self._extract_listings(url)
                logger.info(f"[{self.source_name}] Scraped {len(listings)} listings from {url}")
                return listings
            except PlaywrightError as e:
                logger.warning(f"[{self.source_name}] Attempt {attempt + 1} failed for {url}: {e}")
                if attempt < self.max_retries - 1:
                    wait_time = self._calculate_retry_delay(attempt)
                    logger.info(f"Retrying in {wait_time:.1f} seconds...")
                    time.sleep(wait_time)
                    self._reset_browser_with_new_ua()
                else:
                    raise FetchError(url, f"giving up after {self.max_retries} attempts: {e}", e) from e

        raise FetchError(url, "no attempts made")
