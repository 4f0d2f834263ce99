"""
排程模組

以固定間隔重複執行「爬取所有來源 → 分類 → 儲存 → 通知」。
同一時間只會有一輪在執行；執行中收到的觸發直接略過，不排隊。
收到關閉信號後不再開始新的一輪，但會等待執行中的一輪完成。
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from listing_watch.batcher import NotificationBatch, render, should_notify
from listing_watch.classifier import classify
from listing_watch.config import SourceConfig
from listing_watch.errors import DeliveryError, FetchError, StoreWriteError
from listing_watch.snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)


class SchedulerState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"


@dataclass
class CycleResult:
    """單一輪次的執行結果"""
    processed: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    batch: NotificationBatch = field(default_factory=NotificationBatch)
    delivered: bool = False


class RunContext:
    """
    執行期間共用的外部資源

    進入時啟動爬蟲的瀏覽器，離開時（包含發生錯誤）一定會關閉。

    Args:
        scraper: 具有 scrape(url) 的物件，可選擇實作 open()/close()
        store: 快照儲存服務
        sources: 追蹤來源列表
        notifier: 具有 deliver(batch) 的物件；None 表示不寄送（dry run）
    """

    def __init__(self, scraper, store: SnapshotStore, sources: List[SourceConfig], notifier=None):
        self.scraper = scraper
        self.store = store
        self.sources = sources
        self.notifier = notifier

    def __enter__(self):
        opener = getattr(self.scraper, "open", None)
        if opener is not None:
            opener()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        closer = getattr(self.scraper, "close", None)
        if closer is not None:
            closer()
        logger.debug("Released scraper resources")
        return False


class CycleScheduler:
    """固定間隔的輪次排程器"""

    def __init__(self, context: RunContext, interval_seconds: float = 60):
        self.context = context
        self.interval_seconds = interval_seconds
        self._state = SchedulerState.IDLE
        self._lock = threading.Lock()
        self._shutdown = threading.Event()

    @property
    def state(self) -> SchedulerState:
        if self._shutdown.is_set():
            return SchedulerState.SHUTTING_DOWN
        return self._state

    def request_shutdown(self) -> None:
        """
        要求關閉

        可在任何時間呼叫（包括信號處理器中），不取得鎖。執行中的一輪會正常完成。
        """
        self._shutdown.set()

    def tick(self) -> Optional[CycleResult]:
        """
        觸發一輪

        Returns:
            CycleResult；若已有一輪在執行或正在關閉則返回 None
        """
        with self._lock:
            if self._shutdown.is_set() or self._state is not SchedulerState.IDLE:
                logger.info(f"Skipping tick: scheduler is {self.state.value}")
                return None
            self._state = SchedulerState.RUNNING

        try:
            return self._run_cycle()
        finally:
            with self._lock:
                self._state = SchedulerState.IDLE

    def _process_source(self, source: SourceConfig, batch: NotificationBatch) -> None:
        """爬取、分類、儲存單一來源，並將變更加入批次"""
        store = self.context.store

        listings = self.context.scraper.scrape(source.url)
        previous = store.load(source.url)
        new_snapshot, changes = classify(previous, listings)

        # 儲存失敗時不加入通知，下一輪會重新偵測到這些變更
        store.save(source.url, new_snapshot)
        batch.accumulate(changes)

        logger.info(
            f"[{source.name}] {len(listings)} listings, {len(changes)} new/updated"
        )

    def _run_cycle(self) -> CycleResult:
        result = CycleResult()

        for source in self.context.sources:
            try:
                self._process_source(source, result.batch)
            except FetchError as e:
                logger.error(f"[{source.name}] Fetch failed: {e}")
                result.failed[source.url] = str(e)
                continue
            except StoreWriteError as e:
                logger.error(f"[{source.name}] Snapshot not saved, changes deferred: {e}")
                result.failed[source.url] = str(e)
                continue
            except Exception as e:
                logger.exception(f"[{source.name}] Error processing source")
                result.failed[source.url] = f"{type(e).__name__}: {e}"
                continue
            result.processed.append(source.url)

        if not should_notify(result.batch):
            logger.info("No new or changed listings.")
            return result

        notifier = self.context.notifier
        if notifier is None:
            payload = render(result.batch)
            logger.info(f"Dry run, not sending: {payload['subject']}")
            for group in payload["sources"]:
                for item in group["items"]:
                    logger.info(f"  [{item['change_type']}] {item['title']} | {item['price']} | {item['link']}")
            return result

        try:
            notifier.deliver(result.batch)
            result.delivered = True
        except DeliveryError as e:
            logger.error(f"Notification not delivered ({len(result.batch)} changes lost): {e}")
        except Exception:
            logger.exception(f"Unexpected error while delivering ({len(result.batch)} changes lost)")

        return result

    def _next_tick_after(self, previous_tick: float, now: float) -> float:
        """
        計算下一次觸發時間

        觸發點固定為 previous_tick 加上整數倍的間隔；已經過去的觸發點直接略過，
        因此返回值一定大於 now。
        """
        next_tick = previous_tick + self.interval_seconds
        if next_tick <= now:
            missed = int((now - next_tick) // self.interval_seconds) + 1
            logger.info(f"Cycle overran the interval, skipping {missed} tick(s)")
            next_tick += missed * self.interval_seconds
        return next_tick

    def run_forever(self) -> None:
        """
        持續執行直到收到關閉要求

        立即執行第一輪，之後依固定間隔觸發；若某一輪超過間隔，
        錯過的觸發直接略過。
        """
        logger.info(
            f"Monitoring {len(self.context.sources)} source(s) every {self.interval_seconds} seconds..."
        )
        with self.context:
            next_tick = time.monotonic()
            while not self._shutdown.is_set():
                self.tick()

                now = time.monotonic()
                next_tick = self._next_tick_after(next_tick, now)
                self._shutdown.wait(next_tick - now)

        logger.info("Scheduler stopped")
