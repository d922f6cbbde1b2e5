"""
狀態判定模組

將入口網站的查詢結果套用到指南上，產生下一個狀態與轉換事件。
純函式，不修改傳入的 Guide。
"""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

from .models import (
    STATUS_ARRIVED,
    STATUS_PENDING,
    CheckOutcome,
    Found,
    Guide,
    NotFound,
    TrackingEntry,
    TransitionEvent,
    Unavailable,
)


@dataclass(frozen=True)
class Evaluation:
    """單一指南的判定結果"""
    guide: Guide
    event: Optional[TransitionEvent] = None
    error: Optional[str] = None


def evaluate(guide: Guide, outcome: CheckOutcome, now: datetime) -> Evaluation:
    """
    根據查詢結果計算指南的下一個狀態

    規則：
    - Found: 轉為 arrived；首次抵達時設定 arrived_at 並附加資料，產生 TransitionEvent
    - NotFound: 維持 pending；已抵達的指南不會退回 pending
    - Unavailable: 狀態不變，回傳錯誤原因

    每次查詢都會更新 last_checked 並附加一筆 tracking_history。

    Args:
        guide: 目前的指南
        outcome: PortalClient 查詢結果
        now: 查詢時間

    Returns:
        Evaluation 物件

    Raises:
        TypeError: outcome 不是已知的查詢結果類型
    """
    if isinstance(outcome, Found):
        entry = TrackingEntry(checked_at=now, outcome=outcome.kind, detail=outcome.data.estado or None)
        history = guide.tracking_history + (entry,)
        if guide.status == STATUS_ARRIVED:
            # 重複查詢已抵達的指南：不更動 arrived_at 與資料
            return Evaluation(guide=replace(guide, last_checked=now, tracking_history=history))

        arrived = replace(
            guide,
            status=STATUS_ARRIVED,
            last_checked=now,
            arrived_at=now,
            extracted_data=outcome.data,
            tracking_history=history,
        )
        return Evaluation(guide=arrived, event=TransitionEvent(guide=arrived, occurred_at=now))

    if isinstance(outcome, NotFound):
        entry = TrackingEntry(checked_at=now, outcome=outcome.kind)
        # arrived 為終態
        status = guide.status if guide.status == STATUS_ARRIVED else STATUS_PENDING
        return Evaluation(
            guide=replace(
                guide,
                status=status,
                last_checked=now,
                tracking_history=guide.tracking_history + (entry,),
            )
        )

    if isinstance(outcome, Unavailable):
        entry = TrackingEntry(checked_at=now, outcome=outcome.kind, detail=outcome.reason)
        return Evaluation(
            guide=replace(guide, last_checked=now, tracking_history=guide.tracking_history + (entry,)),
            error=outcome.reason,
        )

    raise TypeError(f"Unknown check outcome: {outcome!r}")
