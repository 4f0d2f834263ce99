"""
通知批次模組

收集同一輪中所有來源的變更紀錄，並依來源分組產生通知內容。
"""

from collections import OrderedDict
from typing import Dict, Iterable, List

from listing_watch.models import ChangeRecord


class NotificationBatch:
    """單一輪次的變更紀錄集合（不會被儲存）"""

    def __init__(self):
        self._records: List[ChangeRecord] = []

    def accumulate(self, changes: Iterable[ChangeRecord]) -> None:
        """加入一個來源的變更紀錄"""
        self._records.extend(changes)

    @property
    def records(self) -> List[ChangeRecord]:
        return list(self._records)

    def grouped(self) -> "OrderedDict[str, List[ChangeRecord]]":
        """
        依 source_url 分組

        來源順序依第一次出現排列，每個來源內保留加入順序。
        """
        groups: "OrderedDict[str, List[ChangeRecord]]" = OrderedDict()
        for record in self._records:
            groups.setdefault(record.source_url, []).append(record)
        return groups

    def __len__(self) -> int:
        return len(self._records)


def should_notify(batch: NotificationBatch) -> bool:
    return len(batch) > 0


def render(batch: NotificationBatch) -> Dict:
    """
    產生通知內容

    Args:
        batch: 本輪的通知批次

    Returns:
        {"subject": str, "total": int, "sources": [{"source_url", "items"}]}
    """
    total = len(batch)
    return {
        "subject": f"[OLX Alert] {total} new/updated listings",
        "total": total,
        "sources": [
            {
                "source_url": source_url,
                "items": [record.to_dict() for record in records],
            }
            for source_url, records in batch.grouped().items()
        ],
    }
