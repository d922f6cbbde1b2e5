"""
資料模型模組

定義指南追蹤系統的領域物件：
- Guide: 單一航空貨運提單（guía）的追蹤狀態
- ExtractedGuideData: 從 TCA 入口網站擷取的 8 個欄位
- CheckOutcome: 入口網站查詢結果（Found / NotFound / Unavailable）
- DailySummary, NotificationSettings, TransitionEvent, TrackingEntry
"""

import re
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict, Optional, Tuple, Union


STATUS_PENDING = "pending"
STATUS_ARRIVED = "arrived"
VALID_STATUSES = {STATUS_PENDING, STATUS_ARRIVED}

# 入口網站回報「找不到指南」時的錯誤字串
NOT_FOUND_ERROR = "GUIA NO ENCONTRADA"


_INT_PATTERN = re.compile(r"^\s*([-+]?\d+)")
_FLOAT_PATTERN = re.compile(r"^\s*([-+]?(?:\d+(?:\.\d*)?|\.\d+))")


def parse_int(value: Any, default: int = 0) -> int:
    """
    解析整數，只讀取開頭的數字部分（"12 bultos" -> 12）

    格式錯誤或空值時返回預設值。
    """
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        try:
            return int(value)
        except (ValueError, OverflowError):
            return default
    match = _INT_PATTERN.match(str(value or ""))
    return int(match.group(1)) if match else default


def parse_float(value: Any, default: float = 0.0) -> float:
    """解析浮點數，規則同 parse_int"""
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    match = _FLOAT_PATTERN.match(str(value or ""))
    return float(match.group(1)) if match else default


@dataclass(frozen=True)
class ExtractedGuideData:
    """入口網站回報的指南資料（擷取後不可變）"""
    operacion: str = ""
    doc_ingreso: str = ""
    responsable_manifiesto: str = ""
    estado: str = ""
    numero_transporte: str = ""
    fecha_transporte: str = ""
    responsable_transporte: str = ""
    bultos: int = 0
    kilos: float = 0.0

    # Python 欄位名稱 -> wire 欄位名稱
    WIRE_KEYS = {
        "operacion": "operacion",
        "doc_ingreso": "docIngreso",
        "responsable_manifiesto": "responsableManifiesto",
        "estado": "estado",
        "numero_transporte": "numeroTransporte",
        "fecha_transporte": "fechaTransporte",
        "responsable_transporte": "responsableTransporte",
        "bultos": "bultos",
        "kilos": "kilos",
    }

    def to_dict(self) -> Dict[str, Any]:
        """轉換為 wire 格式（camelCase 欄位）"""
        data = asdict(self)
        return {self.WIRE_KEYS[key]: value for key, value in data.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExtractedGuideData":
        """
        從 wire 格式建立物件

        Args:
            data: 包含 camelCase 欄位的字典

        Returns:
            ExtractedGuideData 物件，bultos/kilos 格式錯誤時為 0
        """
        values = {}
        for attr, wire_key in cls.WIRE_KEYS.items():
            raw = data.get(wire_key)
            if attr == "bultos":
                values[attr] = parse_int(raw)
            elif attr == "kilos":
                values[attr] = parse_float(raw)
            else:
                values[attr] = "" if raw is None else str(raw).strip()
        return cls(**values)


@dataclass(frozen=True)
class Found:
    """入口網站顯示完整的指南資料（已抵達）"""
    data: ExtractedGuideData
    kind: str = field(default="found", init=False)


@dataclass(frozen=True)
class NotFound:
    """入口網站顯示 ERROR GUIA NO ENCONTRADA（尚未抵達）"""
    kind: str = field(default="not_found", init=False)


@dataclass(frozen=True)
class Unavailable:
    """查詢失敗，下一次排程再試"""
    reason: str
    kind: str = field(default="unavailable", init=False)


CheckOutcome = Union[Found, NotFound, Unavailable]


@dataclass(frozen=True)
class TrackingEntry:
    """單次查詢的稽核紀錄"""
    checked_at: datetime
    outcome: str
    detail: Optional[str] = None


@dataclass
class Guide:
    """
    航空貨運提單

    guide_number 為批次內唯一識別符；prefix/suffix 是查詢入口網站的鍵。
    狀態只允許 pending -> arrived。
    """
    guide_number: str
    prefix: str
    suffix: str
    status: str = STATUS_PENDING
    last_checked: Optional[datetime] = None
    arrived_at: Optional[datetime] = None
    extracted_data: Optional[ExtractedGuideData] = None
    tracking_history: Tuple[TrackingEntry, ...] = ()

    def __post_init__(self):
        if self.status not in VALID_STATUSES:
            raise ValueError(f"Invalid status: {self.status}. Must be one of {VALID_STATUSES}")

    @classmethod
    def from_number(cls, raw: str) -> "Guide":
        """
        從原始指南號碼建立 Guide

        prefix 為前 3 個字元，suffix 為其餘部分並移除所有 '-'。
        例如 "045-12195385" -> prefix "045", suffix "12195385"

        Raises:
            ValueError: 號碼為空白時
        """
        number = (raw or "").strip()
        if not number:
            raise ValueError("Guide number must not be blank")
        return cls(
            guide_number=number,
            prefix=number[:3],
            suffix=number[3:].replace("-", ""),
        )

    @property
    def is_arrived(self) -> bool:
        return self.status == STATUS_ARRIVED


@dataclass(frozen=True)
class TransitionEvent:
    """指南在某次批次中由 pending 轉為 arrived"""
    guide: Guide
    occurred_at: datetime


@dataclass(frozen=True)
class GuideError:
    """批次中單一指南的查詢錯誤"""
    guide_number: str
    reason: str


@dataclass
class DailySummary:
    """每日統計（以日期為唯一鍵）"""
    date: str
    arrived: int
    pending: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class NotificationSettings:
    """通知設定，由宿主程式持有，核心只讀取"""
    email_enabled: bool = False
    email_address: str = ""
    sound_enabled: bool = True
    check_interval_minutes: int = 5

    def __post_init__(self):
        if self.check_interval_minutes < 1:
            raise ValueError(
                f"check_interval_minutes must be >= 1, got {self.check_interval_minutes}"
            )

    @property
    def email_ready(self) -> bool:
        """是否需要發送 email"""
        return self.email_enabled and bool(self.email_address.strip())
