"""
通知服務模組

指南由 pending 轉為 arrived 時：
- 將通知訊息加入記憶體內的訊息列表
- 若啟用聲音，送出提示音請求
- 若啟用 email 且有設定地址，將 email 請求交給外部 notification endpoint

聲音與 email 透過佇列交由背景執行緒處理，失敗只記錄不影響批次。
"""

import logging
import os
import queue
import sys
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

import requests

from .models import ExtractedGuideData, NotificationSettings, TransitionEvent

logger = logging.getLogger(__name__)


def format_arrival_message(guide_number: str) -> str:
    """指南抵達時顯示的通知訊息"""
    return f"✅ Guía {guide_number} está LISTA para retirar!"


def play_terminal_bell() -> None:
    """預設的提示音：終端機響鈴"""
    sys.stdout.write("\a")
    sys.stdout.flush()


class EmailNotifier:
    """Notification endpoint 客戶端（email）"""

    def __init__(self, endpoint_url: Optional[str] = None, timeout: float = 10.0):
        self.endpoint_url = endpoint_url or os.getenv("TCA_NOTIFICATION_ENDPOINT")
        if not self.endpoint_url:
            raise ValueError("TCA_NOTIFICATION_ENDPOINT must be set")
        self.timeout = timeout

    def send_email(
        self,
        guide_number: str,
        email: str,
        tca_data: Optional[ExtractedGuideData] = None,
    ) -> bool:
        """
        要求 notification endpoint 發送抵達通知 email

        Args:
            guide_number: 指南號碼
            email: 收件地址
            tca_data: 入口網站擷取的資料（可選）

        Returns:
            是否發送成功
        """
        payload = {
            "type": "email",
            "guideNumber": guide_number,
            "email": email,
            "message": f"La guía {guide_number} ha arribado exitosamente",
        }
        if tca_data is not None:
            payload["tcaData"] = tca_data.to_dict()

        try:
            response = requests.post(self.endpoint_url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            result = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error("Failed to send email for guide %s: %s", guide_number, e)
            return False

        if not result.get("success"):
            logger.error("Notification endpoint rejected email for %s: %s", guide_number, result.get("message"))
            return False

        logger.info("Email for guide %s sent to %s", guide_number, email)
        return True


@dataclass(frozen=True)
class OutboundTask:
    """送往背景執行緒的通知工作"""
    kind: str  # "sound" 或 "email"
    guide_number: str
    email: str = ""
    tca_data: Optional[ExtractedGuideData] = None


class NotificationDispatcher:
    """
    轉換事件通知派送

    dispatch() 不會阻塞也不會拋出例外；實際的聲音與 email 由背景執行緒處理，
    每個工作最多重試 max_retries 次。
    """

    _STOP = object()

    def __init__(
        self,
        settings: NotificationSettings,
        email_notifier: Optional[EmailNotifier] = None,
        sound_player: Optional[Callable[[], None]] = None,
        max_retries: int = 2,
        retry_delay: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self.email_notifier = email_notifier
        self.sound_player = sound_player or play_terminal_bell
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._sleep = sleep

        self._messages: List[str] = []
        self._messages_lock = threading.Lock()
        self._queue: "queue.Queue" = queue.Queue()
        self._worker: Optional[threading.Thread] = None
        self._worker_lock = threading.Lock()
        self.failed_tasks = 0

    @property
    def messages(self) -> List[str]:
        """目前的通知訊息（副本）"""
        with self._messages_lock:
            return list(self._messages)

    def clear_messages(self) -> None:
        with self._messages_lock:
            self._messages.clear()

    def dispatch(self, event: TransitionEvent) -> str:
        """
        派送一個轉換事件

        Args:
            event: TransitionEvent

        Returns:
            加入訊息列表的通知文字
        """
        guide = event.guide
        message = format_arrival_message(guide.guide_number)
        with self._messages_lock:
            self._messages.append(message)
        logger.info(message)

        if self.settings.sound_enabled:
            self._enqueue(OutboundTask(kind="sound", guide_number=guide.guide_number))

        if self.settings.email_ready:
            if self.email_notifier is None:
                logger.warning("Email enabled but no notification endpoint configured; skipping %s", guide.guide_number)
            else:
                self._enqueue(
                    OutboundTask(
                        kind="email",
                        guide_number=guide.guide_number,
                        email=self.settings.email_address.strip(),
                        tca_data=guide.extracted_data,
                    )
                )
        return message

    def _enqueue(self, task: OutboundTask) -> None:
        self._ensure_worker()
        self._queue.put(task)

    def _ensure_worker(self) -> None:
        with self._worker_lock:
            if self._worker is None or not self._worker.is_alive():
                self._worker = threading.Thread(
                    target=self._run, name="notification-dispatcher", daemon=True
                )
                self._worker.start()

    def _run(self) -> None:
        while True:
            task = self._queue.get()
            try:
                if task is self._STOP:
                    return
                self._deliver(task)
            finally:
                self._queue.task_done()

    def _deliver(self, task: OutboundTask) -> bool:
        """執行單一工作，失敗時重試；永不拋出例外"""
        for attempt in range(self.max_retries + 1):
            try:
                if task.kind == "sound":
                    self.sound_player()
                    return True
                if self.email_notifier.send_email(task.guide_number, task.email, task.tca_data):
                    return True
            except Exception as e:
                logger.error("Notification %s for %s failed: %s", task.kind, task.guide_number, e)

            if attempt < self.max_retries:
                self._sleep(self.retry_delay)

        self.failed_tasks += 1
        logger.error(
            "Giving up %s notification for %s after %d attempts",
            task.kind, task.guide_number, self.max_retries + 1,
        )
        return False

    def join(self) -> None:
        """等待佇列中的所有工作完成"""
        self._queue.join()

    def close(self, timeout: Optional[float] = None) -> None:
        """處理完剩餘工作後停止背景執行緒"""
        with self._worker_lock:
            worker = self._worker
            self._worker = None
        if worker is None or not worker.is_alive():
            return
        self._queue.put(self._STOP)
        worker.join(timeout)
