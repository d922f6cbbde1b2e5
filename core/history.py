"""
每日統計模組

每次批次完成後統計 arrived / pending 數量，並以日期為鍵更新每日摘要。
可選擇將歷史記錄寫入 JSON 檔案。
"""

import json
import logging
import os
import threading
from datetime import date
from typing import Iterable, List, Optional

from .models import STATUS_ARRIVED, DailySummary, Guide

logger = logging.getLogger(__name__)


# 預設的歷史記錄檔案路徑
DEFAULT_HISTORY_FILE = "data/daily_history.json"


def _load_history(history_file: str) -> List[DailySummary]:
    """
    載入歷史記錄檔案

    Args:
        history_file: 歷史記錄檔案路徑

    Returns:
        List[DailySummary]: 歷史記錄，格式為 [{"date", "arrived", "pending"}]
    """
    if not os.path.exists(history_file):
        return []
    try:
        with open(history_file, "r", encoding="utf-8") as f:
            raw = json.load(f)
        return [
            DailySummary(date=item["date"], arrived=int(item["arrived"]), pending=int(item["pending"]))
            for item in raw
        ]
    except (json.JSONDecodeError, IOError, KeyError, TypeError, ValueError) as e:
        logger.warning("Ignoring unreadable history file %s: %s", history_file, e)
        return []


def _save_history(summaries: List[DailySummary], history_file: str) -> None:
    """儲存歷史記錄檔案"""
    directory = os.path.dirname(history_file)
    if directory:
        os.makedirs(directory, exist_ok=True)

    with open(history_file, "w", encoding="utf-8") as f:
        json.dump([s.to_dict() for s in summaries], f, indent=2, ensure_ascii=False)


class HistoryAggregator:
    """每日 arrived / pending 統計"""

    def __init__(self, history_file: Optional[str] = None):
        """
        Args:
            history_file: 歷史記錄檔案路徑，None 表示只保存在記憶體
        """
        self.history_file = history_file
        self._lock = threading.Lock()
        self._summaries: List[DailySummary] = (
            _load_history(history_file) if history_file else []
        )

    def record_pass(self, guides: Iterable[Guide], day: Optional[date] = None) -> DailySummary:
        """
        記錄一次完成的批次

        同一天的多次批次只保留最後一次的統計（覆寫）；新日期附加在最後。
        檔案寫入失敗只記錄錯誤，記憶體內的統計仍會更新。

        Args:
            guides: 目前整個指南集合
            day: 日期，預設為今天

        Returns:
            DailySummary: 該日期更新後的摘要
        """
        if day is None:
            day = date.today()
        key = day.isoformat()

        guides = list(guides)
        arrived = sum(1 for g in guides if g.status == STATUS_ARRIVED)
        pending = len(guides) - arrived

        with self._lock:
            summary = next((s for s in self._summaries if s.date == key), None)
            if summary is None:
                summary = DailySummary(date=key, arrived=arrived, pending=pending)
                self._summaries.append(summary)
            else:
                summary.arrived = arrived
                summary.pending = pending
            result = DailySummary(date=summary.date, arrived=summary.arrived, pending=summary.pending)

            if self.history_file:
                try:
                    _save_history(self._summaries, self.history_file)
                except OSError as e:
                    logger.error("Failed to save history file %s: %s", self.history_file, e)

        logger.debug("History for %s: arrived=%d pending=%d", key, arrived, pending)
        return result

    def summaries(self) -> List[DailySummary]:
        """取得所有每日摘要（依首次出現的日期順序）"""
        with self._lock:
            return [DailySummary(s.date, s.arrived, s.pending) for s in self._summaries]

    def get(self, day: date) -> Optional[DailySummary]:
        key = day.isoformat()
        for summary in self.summaries():
            if summary.date == key:
                return summary
        return None
