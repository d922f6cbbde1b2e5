"""
排程檢查模組

PollingScheduler 依序查詢 GuideStore 中的每個指南：
- 單次執行 run_once() 與定期執行 start() / stop()
- 同一時間最多只有一個批次在執行，計時器觸發時若批次未完成則略過
- 每次查詢之間強制等待 pacing_seconds，降低對入口網站的負載
- 單一指南失敗不影響其他指南
- 所有批次與 client.close() 都在同一個 guide-batch 執行緒執行；
  Playwright sync API 只能在建立 session 的執行緒上使用
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from .evaluator import evaluate
from .history import HistoryAggregator
from .models import DailySummary, Guide, GuideError, NotificationSettings, TransitionEvent, Unavailable
from .notifier import NotificationDispatcher
from .storage import GuideStore

logger = logging.getLogger(__name__)


# 預設每次查詢間隔（秒）
DEFAULT_PACING_SECONDS = 0.8


@dataclass
class BatchResult:
    """一次批次的結果"""
    started_at: datetime
    finished_at: datetime
    guides: List[Guide] = field(default_factory=list)
    events: List[TransitionEvent] = field(default_factory=list)
    errors: List[GuideError] = field(default_factory=list)
    summary: Optional[DailySummary] = None

    @property
    def checked(self) -> int:
        return len(self.guides)


class PollingScheduler:
    """
    指南輪詢排程器

    client 需提供 check_guide(prefix, suffix) 與 close()；
    瀏覽器 session 由 client 持有，shutdown() 時關閉。
    """

    def __init__(
        self,
        client,
        store: GuideStore,
        settings: NotificationSettings,
        dispatcher: Optional[NotificationDispatcher] = None,
        history: Optional[HistoryAggregator] = None,
        pacing_seconds: float = DEFAULT_PACING_SECONDS,
        clock: Callable[[], datetime] = datetime.now,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if pacing_seconds < 0:
            raise ValueError(f"pacing_seconds must be >= 0, got {pacing_seconds}")
        self.client = client
        self.store = store
        self.settings = settings
        self.dispatcher = dispatcher
        self.history = history or HistoryAggregator()
        self.pacing_seconds = pacing_seconds
        self._clock = clock
        self._sleep = sleep

        self._batch_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._timer: Optional[threading.Thread] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()
        self._future: Optional[Future] = None
        self._interval_seconds: Optional[float] = None

        self.skipped_ticks = 0
        self.batches_run = 0
        self.last_error: Optional[str] = None
        self.last_update: Optional[datetime] = None
        self.last_result: Optional[BatchResult] = None
        self.next_run_at: Optional[datetime] = None

    @property
    def is_running(self) -> bool:
        """是否有批次正在執行"""
        return self._batch_lock.locked()

    @property
    def is_monitoring(self) -> bool:
        """定期執行是否啟動中"""
        return self._timer is not None and self._timer.is_alive() and not self._stop_event.is_set()

    def run_once(self) -> Optional[BatchResult]:
        """
        執行一次批次

        Returns:
            BatchResult；若已有批次在執行則略過並返回 None
        """
        if not self._batch_lock.acquire(blocking=False):
            self._skip("run_once")
            return None
        try:
            future = self._submit(self._run_batch)
            self._future = future
            return future.result()
        finally:
            self._batch_lock.release()

    def _submit(self, fn) -> Future:
        """在持有 client 的 guide-batch 執行緒上執行"""
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="guide-batch")
            return self._executor.submit(fn)

    def _skip(self, trigger: str) -> None:
        self.skipped_ticks += 1
        logger.info("Batch already in progress, %s skipped", trigger)

    def _run_batch(self) -> BatchResult:
        """依序查詢所有指南（呼叫前必須持有 _batch_lock）"""
        started_at = self._clock()
        guides = self.store.snapshot()
        self.last_error = None
        logger.info("Checking %d guides", len(guides))

        updated: List[Guide] = []
        events: List[TransitionEvent] = []
        errors: List[GuideError] = []

        for index, guide in enumerate(guides):
            if index > 0 and self.pacing_seconds:
                self._sleep(self.pacing_seconds)

            logger.debug("Checking guide %d/%d: %s", index + 1, len(guides), guide.guide_number)
            evaluation = self._check_guide(guide)
            updated.append(evaluation.guide)

            if evaluation.event is not None:
                events.append(evaluation.event)
            if evaluation.error is not None:
                errors.append(GuideError(guide.guide_number, evaluation.error))
                self.last_error = f"Error checking guide {guide.guide_number}: {evaluation.error}"

        self.store.update_many(updated)
        summary: Optional[DailySummary] = None
        try:
            summary = self.history.record_pass(self.store.snapshot(), self._clock().date())
        except Exception as e:
            # 已寫入 store 的 arrived 不會再產生事件，通知必須照常送出
            logger.exception("Failed to record daily history")
            self.last_error = f"History update failed: {e}"

        if self.dispatcher is not None:
            for event in events:
                try:
                    self.dispatcher.dispatch(event)
                except Exception:
                    logger.exception("Failed to dispatch notification for %s", event.guide.guide_number)

        finished_at = self._clock()
        result = BatchResult(
            started_at=started_at,
            finished_at=finished_at,
            guides=updated,
            events=events,
            errors=errors,
            summary=summary,
        )
        self.batches_run += 1
        self.last_update = finished_at
        self.last_result = result
        logger.info(
            "Batch done: %d checked, %d arrived now, %d errors",
            result.checked, len(events), len(errors),
        )
        return result

    def _check_guide(self, guide: Guide):
        """查詢並判定單一指南；非預期的例外只影響這個指南"""
        now = self._clock()
        try:
            outcome = self.client.check_guide(guide.prefix, guide.suffix)
            return evaluate(guide, outcome, now)
        except Exception as e:
            logger.exception("Unexpected error checking guide %s", guide.guide_number)
            return evaluate(guide, Unavailable(f"unexpected error: {e}"), now)

    def start(self, interval_minutes: Optional[float] = None) -> None:
        """
        開始定期檢查

        立即執行一次批次，之後每 interval_minutes 分鐘觸發一次。

        Args:
            interval_minutes: 間隔分鐘數，預設使用 settings.check_interval_minutes

        Raises:
            RuntimeError: 已經在監控中
            ValueError: 間隔不是正數
        """
        if self.is_monitoring:
            raise RuntimeError("Monitoring already started")

        minutes = interval_minutes if interval_minutes is not None else self.settings.check_interval_minutes
        if minutes <= 0:
            raise ValueError(f"interval_minutes must be > 0, got {minutes}")

        self._interval_seconds = minutes * 60
        self._stop_event = threading.Event()
        self._timer = threading.Thread(
            target=self._timer_loop, args=(self._stop_event,), name="guide-poll-timer", daemon=True
        )
        logger.info("Monitoring started, interval %s minutes", minutes)
        self._timer.start()

    def _timer_loop(self, stop_event: threading.Event) -> None:
        self._on_tick()
        while True:
            self.next_run_at = self._clock() + timedelta(seconds=self._interval_seconds)
            if stop_event.wait(self._interval_seconds):
                break
            self._on_tick()
        self.next_run_at = None

    def _on_tick(self) -> bool:
        """
        計時器觸發

        批次交給 guide-batch 執行緒執行，計時器不會因批次耗時而延後。

        Returns:
            是否啟動了新的批次
        """
        if not self._batch_lock.acquire(blocking=False):
            self._skip("timer tick")
            return False

        try:
            self._future = self._submit(self._run_and_release)
        except RuntimeError:
            self._batch_lock.release()
            raise
        return True

    def _run_and_release(self) -> None:
        try:
            self._run_batch()
        except Exception as e:
            # 批次層級的錯誤不停止監控
            logger.exception("Batch failed")
            self.last_error = f"Batch failed: {e}"
        finally:
            self._batch_lock.release()

    def stop(self) -> None:
        """停止定期檢查；正在執行的批次會繼續完成"""
        self._stop_event.set()
        timer = self._timer
        if timer is not None and timer is not threading.current_thread():
            timer.join()
        self._timer = None
        self.next_run_at = None
        logger.info("Monitoring stopped")

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """
        等待正在執行的批次完成

        Returns:
            是否已無批次在執行
        """
        future = self._future
        if future is not None:
            wait([future], timeout)
        if timeout is None:
            with self._batch_lock:
                return True
        if self._batch_lock.acquire(timeout=timeout):
            self._batch_lock.release()
            return True
        return False

    def shutdown(self) -> None:
        """停止監控、等待批次完成並釋放瀏覽器 session 與通知執行緒"""
        self.stop()
        self.wait_idle()

        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is None:
            self.client.close()
        else:
            try:
                executor.submit(self.client.close).result()
            finally:
                executor.shutdown(wait=True)

        if self.dispatcher is not None:
            self.dispatcher.close()
        logger.info("Scheduler shut down")
