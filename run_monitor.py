#!/usr/bin/env python3
"""
TCA 指南監控執行腳本

載入指南清單後查詢 TCA 入口網站，可單次執行或定期監控。
"""
import argparse
import sys
import time
from typing import List, Optional
from dotenv import load_dotenv

from core.config import DEFAULT_CONFIG_PATH, MonitorConfig, load_config
from core.guides import SAMPLE_GUIDE_NUMBERS, build_batch, load_guides_from_file
from core.history import HistoryAggregator
from core.logging_setup import setup_logging
from core.models import Guide, NotificationSettings
from core.notifier import EmailNotifier, NotificationDispatcher
from core.scheduler import BatchResult, PollingScheduler
from core.storage import GuideStore

# 載入 .env 檔案
load_dotenv()


def build_client(config: MonitorConfig, headless: bool = True, endpoint: Optional[str] = None):
    """
    建立查詢客戶端

    有設定 check endpoint 時透過 HTTP 查詢，否則直接操作瀏覽器。
    """
    endpoint = endpoint or config.check_endpoint
    if endpoint:
        from scrapers.tca.endpoint import CheckEndpointClient
        return CheckEndpointClient(endpoint)

    from scrapers.tca.scraper import TCAPortalClient
    return TCAPortalClient(
        headless=headless,
        portal_url=config.portal_url,
        navigation_timeout_ms=config.navigation_timeout_ms,
        selector_timeout_ms=config.selector_timeout_ms,
        settle_ms=config.settle_ms,
    )


def build_dispatcher(config: MonitorConfig, dry_run: bool = False) -> NotificationDispatcher:
    """建立通知派送器；dry-run 模式停用聲音與 email"""
    settings = config.notifications
    if dry_run:
        settings = NotificationSettings(
            email_enabled=False,
            email_address="",
            sound_enabled=False,
            check_interval_minutes=settings.check_interval_minutes,
        )

    email_notifier = None
    if settings.email_ready:
        try:
            email_notifier = EmailNotifier(config.notification_endpoint)
        except ValueError as e:
            print(f"Warning: email notifier not configured: {e}")
    return NotificationDispatcher(settings, email_notifier=email_notifier)


def print_batch(result: BatchResult, dispatcher: NotificationDispatcher) -> None:
    """顯示批次結果"""
    print(f"\n{'='*60}")
    print(f"Batch finished at {result.finished_at.strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"{'='*60}")
    for guide in result.guides:
        line = f"  {guide.guide_number:<16} {guide.status}"
        if guide.extracted_data is not None:
            line += f"  ({guide.extracted_data.estado})"
        print(line)
    if result.errors:
        print("\nErrors:")
        for error in result.errors:
            print(f"  {error.guide_number}: {error.reason}")
    for message in dispatcher.messages:
        print(message)
    if result.summary is not None:
        print(f"\nToday: arrived={result.summary.arrived} pending={result.summary.pending}")


def show_history(history: HistoryAggregator) -> None:
    """顯示每日統計"""
    summaries = history.summaries()
    if not summaries:
        print("No history recorded yet")
        return
    print(f"{'Date':<12} {'Arrived':>8} {'Pending':>8}")
    for summary in summaries:
        print(f"{summary.date:<12} {summary.arrived:>8} {summary.pending:>8}")


def load_guides(guides_file: Optional[str], sample: bool) -> List[Guide]:
    if sample:
        return build_batch(SAMPLE_GUIDE_NUMBERS)
    return load_guides_from_file(guides_file)


def run_monitor(
    guides: List[Guide],
    config: MonitorConfig,
    once: bool = False,
    interval: Optional[int] = None,
    headless: bool = True,
    dry_run: bool = False,
    endpoint: Optional[str] = None,
) -> bool:
    """
    執行監控

    Args:
        guides: 要監控的指南
        config: 監控設定
        once: 只執行一次批次
        interval: 監控間隔（分鐘），預設使用設定檔
        headless: 是否以無頭模式運行瀏覽器
        dry_run: 是否為測試模式（不發送聲音與 email）
        endpoint: check endpoint URL（可選）

    Returns:
        是否成功執行
    """
    if not guides:
        print("No guides to monitor. Load a guide file first.")
        return False

    dispatcher = build_dispatcher(config, dry_run=dry_run)
    scheduler = PollingScheduler(
        client=build_client(config, headless=headless, endpoint=endpoint),
        store=GuideStore(guides),
        settings=config.notifications,
        dispatcher=dispatcher,
        history=HistoryAggregator(config.history_file),
        pacing_seconds=config.pacing_seconds,
    )

    print(f"Monitoring {len(guides)} guides")
    if dry_run:
        print("Mode: DRY RUN (no sound, no email)")

    try:
        if once:
            result = scheduler.run_once()
            dispatcher.join()
            print_batch(result, dispatcher)
            return not result.errors

        scheduler.start(interval)
        print(f"Checking every {interval or config.notifications.check_interval_minutes} minutes. Press Ctrl+C to stop.")
        printed = 0
        while True:
            time.sleep(1)
            if scheduler.batches_run > printed and scheduler.last_result is not None:
                printed = scheduler.batches_run
                print_batch(scheduler.last_result, dispatcher)
                dispatcher.clear_messages()
                if scheduler.last_error:
                    print(f"Last error: {scheduler.last_error}")
    except KeyboardInterrupt:
        print("\nStopping monitor...")
        return True
    finally:
        scheduler.shutdown()


def main():
    """主程式"""
    parser = argparse.ArgumentParser(
        description="TCA 航空貨運指南監控",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
範例:
  %(prog)s guias.csv                 # 定期監控 guias.csv 中的指南
  %(prog)s guias.txt --once          # 只查詢一次
  %(prog)s --sample --once --dry-run # 使用範例指南測試
  %(prog)s --status                  # 顯示每日統計
        """
    )

    parser.add_argument("guides_file", nargs="?", help="指南清單（.csv 含 GUIA 欄位，或每行一個號碼）")
    parser.add_argument("--sample", action="store_true", help="使用範例指南")
    parser.add_argument("--config", "-c", default=DEFAULT_CONFIG_PATH, help="設定檔路徑")
    parser.add_argument("--once", "-1", action="store_true", help="只執行一次批次")
    parser.add_argument("--interval", "-i", type=int, help="監控間隔（分鐘）")
    parser.add_argument("--endpoint", help="透過 check endpoint 查詢，而非直接操作瀏覽器")
    parser.add_argument("--headed", action="store_true", help="以有頭模式運行瀏覽器（用於除錯）")
    parser.add_argument("--dry-run", "-n", action="store_true", help="測試模式，不發送聲音與 email")
    parser.add_argument("--status", "-s", action="store_true", help="顯示每日統計")
    parser.add_argument("--log-level", default="INFO", help="日誌等級")

    args = parser.parse_args()
    setup_logging(args.log_level)

    try:
        config = load_config(args.config)
    except ValueError as e:
        print(f"Error loading config: {e}")
        return 1

    if args.status:
        show_history(HistoryAggregator(config.history_file))
        return 0

    if not args.guides_file and not args.sample:
        parser.print_help()
        return 1

    try:
        guides = load_guides(args.guides_file, args.sample)
    except FileNotFoundError as e:
        print(f"Error: {e}")
        return 1

    success = run_monitor(
        guides,
        config,
        once=args.once,
        interval=args.interval,
        headless=not args.headed,
        dry_run=args.dry_run,
        endpoint=args.endpoint,
    )
    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
