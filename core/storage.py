"""
指南儲存模組

記憶體內保存一次監控 session 的所有指南：
- 每個指南目前狀態的唯一來源
- 同一批次內指南號碼不可重複
- 執行期間只會取代記錄，不會刪除
"""

import threading
from typing import Dict, Iterable, List, Optional

from .models import STATUS_ARRIVED, Guide


class GuideStore:
    """指南儲存服務（記憶體內，執行緒安全）"""

    def __init__(self, guides: Optional[Iterable[Guide]] = None):
        self._lock = threading.Lock()
        self._guides: Dict[str, Guide] = {}
        if guides is not None:
            self.load(guides)

    def load(self, guides: Iterable[Guide]) -> None:
        """
        載入新的指南批次（取代目前內容）

        Raises:
            ValueError: 批次中有重複的指南號碼時
        """
        loaded: Dict[str, Guide] = {}
        for guide in guides:
            if guide.guide_number in loaded:
                raise ValueError(f"Duplicate guide number in batch: {guide.guide_number}")
            loaded[guide.guide_number] = guide
        with self._lock:
            self._guides = loaded

    def snapshot(self) -> List[Guide]:
        """取得目前所有指南（依載入順序）"""
        with self._lock:
            return list(self._guides.values())

    def get(self, guide_number: str) -> Optional[Guide]:
        with self._lock:
            return self._guides.get(guide_number)

    def update_many(self, guides: Iterable[Guide]) -> int:
        """
        以新的記錄取代既有指南

        不存在於目前批次的指南會被忽略。

        Returns:
            實際更新的筆數
        """
        updated = 0
        with self._lock:
            for guide in guides:
                if guide.guide_number in self._guides:
                    self._guides[guide.guide_number] = guide
                    updated += 1
        return updated

    def counts(self) -> Dict[str, int]:
        """回傳 {"arrived": n, "pending": m}"""
        with self._lock:
            arrived = sum(1 for g in self._guides.values() if g.status == STATUS_ARRIVED)
            return {"arrived": arrived, "pending": len(self._guides) - arrived}

    def arrived(self) -> List[Guide]:
        return [g for g in self.snapshot() if g.status == STATUS_ARRIVED]

    def pending(self) -> List[Guide]:
        return [g for g in self.snapshot() if g.status != STATUS_ARRIVED]

    def __len__(self) -> int:
        with self._lock:
            return len(self._guides)
