"""
資料模型模組

定義刊登 (Listing)、變更紀錄 (ChangeRecord) 與指紋 (fingerprint) 計算。
"""

import json
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Dict
from urllib.parse import urljoin


# 參與變更偵測的欄位，順序固定以確保序列化結果一致
FINGERPRINT_FIELDS = ("title", "price", "condition", "location_date")


@dataclass(frozen=True)
class Listing:
    """單一刊登資訊"""
    source_url: str
    link: str
    title: str = ""
    price: str = ""
    condition: str = ""
    location_date: str = ""
    image_url: str = ""

    def fingerprint(self) -> str:
        return fingerprint(self)


class ChangeType(Enum):
    NEW = "New"
    UPDATED = "Updated"


@dataclass(frozen=True)
class ChangeRecord:
    """分類結果：刊登加上變更類型"""
    listing: Listing
    change_type: ChangeType

    @property
    def source_url(self) -> str:
        return self.listing.source_url

    @property
    def link(self) -> str:
        return self.listing.link

    def to_dict(self) -> Dict[str, str]:
        """
        轉換為通知用的字典

        Returns:
            包含所有 Listing 欄位及 change_type 的字典
        """
        data = asdict(self.listing)
        data["change_type"] = self.change_type.value
        return data


def fingerprint(listing: Listing) -> str:
    """
    計算刊登的指紋

    只包含可變的觀察欄位（標題、價格、狀態、地點/日期），
    不包含 link（識別用）和 image_url（圖片變更不視為更新）。

    Args:
        listing: 刊登資訊

    Returns:
        確定性的 JSON 字串
    """
    payload = {name: getattr(listing, name) for name in FINGERPRINT_FIELDS}
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))


def normalize_link(href: str, base_url: str) -> str:
    """將相對連結轉為絕對 URL"""
    return urljoin(base_url, href.strip())
