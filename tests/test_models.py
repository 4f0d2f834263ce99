#!/usr/bin/env python3
"""
測試資料模型與指紋計算
"""
import json
import unittest
from dataclasses import replace

from listing_watch.models import ChangeRecord, ChangeType, Listing, fingerprint, normalize_link


class TestFingerprint(unittest.TestCase):
    def setUp(self):
        self.listing = Listing(
            source_url="https://www.olx.pl/oferty/q-lego/",
            link="https://www.olx.pl/d/oferta/lego-51515-CID88-ID1.html",
            title="LEGO Mindstorms 51515",
            price="1 150 zł",
            condition="Używane",
            location_date="Gdańsk - 12 maja 2024",
            image_url="https://ireland.apollo.olxcdn.com/v1/files/abc/image",
        )

    def test_fingerprint_fields(self):
        """測試指紋只包含可變欄位，且順序固定"""
        data = json.loads(self.listing.fingerprint())
        self.assertEqual(list(data), ["title", "price", "condition", "location_date"])
        self.assertEqual(data["price"], "1 150 zł")

    def test_fingerprint_ignores_link_and_image(self):
        """測試連結與圖片不影響指紋"""
        other = replace(
            self.listing,
            link="https://www.olx.pl/d/oferta/other.html",
            image_url="https://example.com/new.jpg",
        )
        self.assertEqual(fingerprint(other), fingerprint(self.listing))

    def test_fingerprint_detects_each_field(self):
        """測試任一可變欄位改變都會改變指紋"""
        for name in ("title", "price", "condition", "location_date"):
            changed = replace(self.listing, **{name: "changed"})
            self.assertNotEqual(fingerprint(changed), fingerprint(self.listing), name)

    def test_fingerprint_keeps_unicode(self):
        """測試非 ASCII 字元不被跳脫"""
        self.assertIn("Używane", self.listing.fingerprint())


class TestChangeRecord(unittest.TestCase):
    def test_to_dict(self):
        """測試轉換為通知用字典"""
        listing = Listing(
            source_url="https://www.olx.pl/oferty/q-lego/",
            link="https://www.olx.pl/d/oferta/x.html",
            title="Klocki",
        )
        record = ChangeRecord(listing, ChangeType.NEW)
        data = record.to_dict()

        self.assertEqual(data["change_type"], "New")
        self.assertEqual(data["link"], listing.link)
        self.assertEqual(data["source_url"], listing.source_url)
        self.assertEqual(data["title"], "Klocki")
        self.assertIn("image_url", data)


class TestNormalizeLink(unittest.TestCase):
    def test_relative_link(self):
        """測試相對連結補全為絕對 URL"""
        self.assertEqual(
            normalize_link("/d/oferta/lego-ID1.html", "https://www.olx.pl/oferty/q-lego/"),
            "https://www.olx.pl/d/oferta/lego-ID1.html",
        )

    def test_absolute_link_unchanged(self):
        """測試絕對連結維持不變"""
        link = "https://www.otodom.pl/pl/oferta/mieszkanie-ID4abc"
        self.assertEqual(normalize_link(link, "https://www.olx.pl/oferty/"), link)

    def test_whitespace_stripped(self):
        """測試去除前後空白"""
        self.assertEqual(
            normalize_link("  /d/oferta/a.html \n", "https://www.olx.pl/"),
            "https://www.olx.pl/d/oferta/a.html",
        )


if __name__ == "__main__":
    unittest.main()
