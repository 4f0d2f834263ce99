"""
變更分類模組

比較儲存的快照與本次爬取結果，判斷每筆刊登為新增、更新或未變更。
本次未出現的刊登直接從新快照移除，不產生任何紀錄（沒有「已移除」類型）。
"""

from typing import Dict, Iterable, List, Mapping, Tuple

from listing_watch.models import ChangeRecord, ChangeType, Listing


def classify(
    previous: Mapping[str, str],
    observed: Iterable[Listing],
) -> Tuple[Dict[str, str], List[ChangeRecord]]:
    """
    比較前次快照與本次爬取結果

    同一 link 重複出現時，以最後一筆的欄位為準，但只產生一筆紀錄，
    位置保留在第一次出現的地方。

    Args:
        previous: 前次快照 {link: fingerprint}
        observed: 本次爬取的刊登列表

    Returns:
        (新快照, 變更紀錄列表)
    """
    latest: Dict[str, Listing] = {}
    for listing in observed:
        latest[listing.link] = listing

    new_snapshot: Dict[str, str] = {}
    changes: List[ChangeRecord] = []

    for link, listing in latest.items():
        current = listing.fingerprint()
        new_snapshot[link] = current

        if link not in previous:
            changes.append(ChangeRecord(listing, ChangeType.NEW))
        elif previous[link] != current:
            changes.append(ChangeRecord(listing, ChangeType.UPDATED))

    return new_snapshot, changes
