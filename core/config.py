"""
設定檔載入模組

從 JSON 設定檔載入監控設定，並以預設值填充缺少的欄位。
環境變數（可由 .env 載入）優先於設定檔。
"""

import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .models import NotificationSettings


DEFAULT_CONFIG_PATH = "config/monitor.json"

# 預設值定義
DEFAULT_CONFIG = {
    "portal_url": "http://portal.tca.aero/gestion_web/tca-guias-aereas-web/guia.html",
    "navigation_timeout_ms": 30000,
    "selector_timeout_ms": 10000,
    "settle_ms": 3000,
    "pacing_seconds": 0.8,
    "headless": True,
    "check_endpoint": None,
    "notification_endpoint": None,
    "history_file": "data/daily_history.json",
    "notifications": {
        "email_enabled": False,
        "email_address": "",
        "sound_enabled": True,
        "check_interval_minutes": 5,
    },
}

# 環境變數 -> 設定鍵
ENV_OVERRIDES = {
    "TCA_CHECK_ENDPOINT": "check_endpoint",
    "TCA_NOTIFICATION_ENDPOINT": "notification_endpoint",
}


@dataclass
class MonitorConfig:
    """監控設定"""
    portal_url: str
    navigation_timeout_ms: int
    selector_timeout_ms: int
    settle_ms: int
    pacing_seconds: float
    headless: bool
    check_endpoint: Optional[str] = None
    notification_endpoint: Optional[str] = None
    history_file: Optional[str] = None
    notifications: NotificationSettings = field(default_factory=NotificationSettings)

    def __post_init__(self):
        # 將 dict 轉換為 NotificationSettings 物件
        if isinstance(self.notifications, dict):
            self.notifications = NotificationSettings(**self.notifications)
        for name in ("navigation_timeout_ms", "selector_timeout_ms", "settle_ms"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0")
        if self.pacing_seconds < 0:
            raise ValueError("pacing_seconds must be >= 0")


def _merge(defaults: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """合併設定，notifications 區塊逐欄合併"""
    merged = {**defaults, **overrides}
    merged["notifications"] = {
        **defaults.get("notifications", {}),
        **(overrides.get("notifications") or {}),
    }
    return merged


def load_config(config_path: str = DEFAULT_CONFIG_PATH, env: Optional[Dict[str, str]] = None) -> MonitorConfig:
    """
    載入監控設定

    Args:
        config_path: 設定檔路徑，檔案不存在時使用預設值
        env: 環境變數，預設為 os.environ

    Returns:
        MonitorConfig: 監控設定物件

    Raises:
        ValueError: 設定檔格式錯誤或包含未知欄位時
    """
    if env is None:
        env = os.environ

    if os.path.exists(config_path):
        with open(config_path, "r", encoding="utf-8") as f:
            try:
                config_data = json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid config file {config_path}: {e}") from e
    else:
        config_data = {}

    unknown = set(config_data) - set(DEFAULT_CONFIG)
    if unknown:
        raise ValueError(f"Unknown config keys in {config_path}: {sorted(unknown)}")

    merged = _merge(DEFAULT_CONFIG, config_data)

    for env_name, key in ENV_OVERRIDES.items():
        if env.get(env_name):
            merged[key] = env[env_name]
    if env.get("TCA_NOTIFY_EMAIL"):
        merged["notifications"]["email_address"] = env["TCA_NOTIFY_EMAIL"]
        merged["notifications"]["email_enabled"] = True

    try:
        return MonitorConfig(**merged)
    except TypeError as e:
        raise ValueError(f"Invalid config: {e}") from e
