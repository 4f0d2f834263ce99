#!/usr/bin/env python3
"""
測試 OlxScraper 類別
以 MagicMock 取代 Playwright 頁面
"""
import unittest
from unittest.mock import patch, MagicMock
from playwright.sync_api import Error as PlaywrightError

from listing_watch.errors import FetchError
from scrapers.olx.scraper import OlxScraper, EXTRACT_CARDS_JS

SEARCH_URL = "https://www.olx.pl/oferty/q-lego-51515/"

RAW_CARDS = [
    {
        "title": "LEGO 51515 Robot Inventor",
        "price": "1 199 zł\ndo negocjacji",
        "href": "/d/oferta/lego-51515-robot-inventor-CID88-IDabc1.html",
        "image": "https://ireland.apollo.olxcdn.com/v1/files/abc1/image;s=216x152",
        "condition": "Używane",
        "location_date": "Warszawa, Mokotów - Dzisiaj o 09:41",
    },
    {
        "title": "",
        "price": "",
        "href": "https://www.otodom.pl/pl/oferta/ID4xyz",
        "image": "",
        "condition": "",
        "location_date": "",
    },
    {
        "title": "Karta bez linku",
        "price": "10 zł",
        "href": "",
        "image": "",
        "condition": "Nowe",
        "location_date": "Kraków",
    },
]


class TestOlxScraperParsing(unittest.TestCase):
    def setUp(self):
        self.scraper = OlxScraper(headless=True)

    def test_source_name(self):
        """測試來源名稱"""
        self.assertEqual(self.scraper.source_name, "olx_pl")

    def test_parse_listing(self):
        """測試解析完整的刊登卡片"""
        listing = self.scraper.parse_listing(RAW_CARDS[0], SEARCH_URL)

        self.assertEqual(listing.source_url, SEARCH_URL)
        self.assertEqual(
            listing.link,
            "https://www.olx.pl/d/oferta/lego-51515-robot-inventor-CID88-IDabc1.html",
        )
        self.assertEqual(listing.title, "LEGO 51515 Robot Inventor")
        self.assertEqual(listing.condition, "Używane")
        self.assertTrue(listing.image_url.startswith("https://ireland.apollo.olxcdn.com/"))

    def test_parse_listing_fallbacks(self):
        """測試缺少欄位時使用預設文字，絕對連結保持不變"""
        listing = self.scraper.parse_listing(RAW_CARDS[1], SEARCH_URL)

        self.assertEqual(listing.link, "https://www.otodom.pl/pl/oferta/ID4xyz")
        self.assertEqual(listing.title, "No title")
        self.assertEqual(listing.price, "No price")
        self.assertEqual(listing.condition, "No condition")
        self.assertEqual(listing.location_date, "No location/date")
        self.assertEqual(listing.image_url, "")

    def test_parse_listing_without_link(self):
        """測試沒有連結的卡片被略過"""
        self.assertIsNone(self.scraper.parse_listing(RAW_CARDS[2], SEARCH_URL))
        self.assertIsNone(self.scraper.parse_listing({}, SEARCH_URL))


class TestOlxScraperScrape(unittest.TestCase):
    def setUp(self):
        self.scraper = OlxScraper(headless=True, max_retries=2)
        self.page = MagicMock()
        # 已開啟的瀏覽器頁面
        self.scraper._page = self.page

    def test_scrape(self):
        """測試爬取並轉換所有卡片"""
        self.page.eval_on_selector_all.return_value = RAW_CARDS

        listings = self.scraper.scrape(SEARCH_URL)

        self.page.goto.assert_called_once_with(SEARCH_URL, wait_until="networkidle", timeout=60000)
        self.page.eval_on_selector_all.assert_called_once_with('div[data-cy="l-card"]', EXTRACT_CARDS_JS)
        self.assertEqual(len(listings), 2)
        self.assertTrue(all(listing.link.startswith("https://") for listing in listings))

    def test_scrape_logs_source_name(self):
        """測試爬取日誌標示來源名稱"""
        self.page.eval_on_selector_all.return_value = RAW_CARDS[:1]

        with self.assertLogs("scrapers.olx.scraper", level="INFO") as logs:
            self.scraper.scrape(SEARCH_URL)

        self.assertIn("[olx_pl] Scraped 1 listings", logs.output[0])

    def test_scrape_empty_page(self):
        """測試沒有刊登的頁面"""
        self.page.eval_on_selector_all.return_value = []
        self.assertEqual(self.scraper.scrape(SEARCH_URL), [])

    @patch("scrapers.olx.scraper.time.sleep")
    def test_scrape_retries_then_succeeds(self, mock_sleep):
        """測試第一次失敗後重試成功"""
        self.page.goto.side_effect = [PlaywrightError("Timeout 60000ms exceeded"), None]
        self.page.eval_on_selector_all.return_value = RAW_CARDS[:1]

        with patch.object(self.scraper, "_reset_browser_with_new_ua") as mock_reset:
            listings = self.scraper.scrape(SEARCH_URL)

        self.assertEqual(len(listings), 1)
        mock_sleep.assert_called_once()
        mock_reset.assert_called_once()

    @patch("scrapers.olx.scraper.time.sleep")
    def test_scrape_gives_up_with_fetch_error(self, mock_sleep):
        """測試重試用盡後拋出 FetchError"""
        self.page.goto.side_effect = PlaywrightError("net::ERR_NAME_NOT_RESOLVED")

        with patch.object(self.scraper, "_reset_browser_with_new_ua"):
            with self.assertRaises(FetchError) as ctx:
                self.scraper.scrape(SEARCH_URL)

        self.assertEqual(ctx.exception.source_url, SEARCH_URL)
        self.assertEqual(self.page.goto.call_count, 2)

    def test_close_releases_page(self):
        """測試關閉後釋放頁面"""
        self.scraper.close()
        self.page.close.assert_called_once()
        self.assertFalse(self.scraper.is_open)


if __name__ == "__main__":
    unittest.main()
