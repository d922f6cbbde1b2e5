"""
日誌設定模組

監控腳本啟動時呼叫一次 setup_logging()；各模組使用 logging.getLogger(__name__)。
批次在 guide-batch 執行緒執行，因此輸出格式包含執行緒名稱。
"""

import logging
import sys
from typing import Optional, TextIO

# 標記由本模組加入的 handler，重複呼叫時只更新等級
_HANDLER_NAME = "tca-monitor"

LOG_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str = "INFO", stream: Optional[TextIO] = None) -> logging.Logger:
    """
    設定 root logger

    Args:
        level: 日誌等級名稱（DEBUG / INFO / WARNING / ERROR）
        stream: 輸出串流，預設為 stdout

    Returns:
        logging.Logger: root logger
    """
    root = logging.getLogger()
    root.setLevel(level.upper())

    if any(h.get_name() == _HANDLER_NAME for h in root.handlers):
        return root

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    root.addHandler(handler)
    return root
