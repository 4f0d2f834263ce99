#!/usr/bin/env python3
"""
刊登監控主程式

定期爬取設定的搜尋頁，偵測新增或變更的刊登並寄送 Email 摘要。
"""
import argparse
import logging
import signal
import sys
from dotenv import load_dotenv

from listing_watch.config import load_config, DEFAULT_CONFIG_PATH
from listing_watch.errors import ConfigError
from listing_watch.notifier import EmailNotifier
from listing_watch.scheduler import CycleScheduler, RunContext
from listing_watch.snapshot_store import SnapshotStore
from scrapers.olx.scraper import OlxScraper

# 載入 .env 檔案
load_dotenv()

logger = logging.getLogger("listing_watch")


def show_status(store: SnapshotStore, sources) -> None:
    """顯示每個來源已儲存的快照狀態"""
    stored = {entry["source_url"]: entry for entry in store.list_sources()}

    print(f"\n=== Snapshot store: {store.db_path} ===")
    for source in sources:
        entry = stored.get(source.url)
        print(f"\n--- {source.name} ---")
        print(f"URL: {source.url}")
        if entry:
            print(f"Listings: {entry['listing_count']}")
            print(f"Last saved: {entry['saved_at']}")
        else:
            print("Last saved: Never")


def main(argv=None) -> int:
    """主程式"""
    parser = argparse.ArgumentParser(
        description="OLX 搜尋結果監控，偵測新增與變更的刊登並寄送 Email",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
範例:
  %(prog)s                  # 持續監控（間隔由 INTERVAL_SECONDS 設定）
  %(prog)s --once           # 只執行一輪
  %(prog)s --once --dry-run # 執行一輪但不寄送 Email
  %(prog)s --status         # 顯示快照狀態
        """
    )
    parser.add_argument(
        "--config", "-c",
        default=DEFAULT_CONFIG_PATH,
        help="設定檔路徑"
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="只執行一輪後結束"
    )
    parser.add_argument(
        "--dry-run", "-n",
        action="store_true",
        help="測試模式，不寄送 Email"
    )
    parser.add_argument(
        "--headed",
        action="store_true",
        help="以有頭模式運行瀏覽器（用於除錯）"
    )
    parser.add_argument(
        "--status", "-s",
        action="store_true",
        help="顯示每個來源的快照狀態"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="顯示除錯訊息"
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    # 設定錯誤在啟動時直接結束
    try:
        config = load_config(args.config)
        notifier = None if (args.dry_run or args.status) else EmailNotifier()
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 2

    store = SnapshotStore(config.db_path)

    if args.status:
        show_status(store, config.sources)
        return 0

    headless = config.headless and not args.headed
    scraper = OlxScraper(headless=headless)
    context = RunContext(scraper, store, config.sources, notifier=notifier)
    scheduler = CycleScheduler(context, interval_seconds=config.interval_seconds)

    if args.dry_run:
        logger.info("Mode: DRY RUN (no emails)")

    if args.once:
        with context:
            result = scheduler.tick()
        return 0 if result is not None and not result.failed else 1

    def handle_signal(signum, frame):
        logger.info(f"Received signal {signum}, finishing current cycle before exit")
        scheduler.request_shutdown()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    scheduler.run_forever()
    return 0


if __name__ == "__main__":
    sys.exit(main())
