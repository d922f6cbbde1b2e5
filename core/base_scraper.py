"""
爬蟲基礎類別模組

管理單一長期存活的 Playwright 瀏覽器 session：
- 第一次使用時才啟動瀏覽器（延遲初始化）
- 每次查詢開新分頁，查詢結束後關閉分頁
- 只有在明確呼叫 close() 時才關閉瀏覽器
- User-Agent 輪換
"""

import logging
import random
from abc import ABC, abstractmethod
from typing import List, Optional
from playwright.sync_api import sync_playwright, Page, Browser, BrowserContext, Playwright

from .models import CheckOutcome

logger = logging.getLogger(__name__)


class BaseScraper(ABC):
    """
    爬蟲基礎類別

    子類別實作 check_guide()，透過 _ensure_session() 與 _new_page()
    取得瀏覽器資源。
    """

    # 預設 User-Agent 列表
    DEFAULT_USER_AGENTS = [
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.1 Safari/605.1.15",
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36",
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
    ]

    # 無沙箱啟動參數（容器環境需要）
    LAUNCH_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]

    VIEWPORT = {"width": 1280, "height": 800}

    def __init__(self, headless: bool = True, user_agents: Optional[List[str]] = None):
        """
        初始化爬蟲

        Args:
            headless: 是否以無頭模式運行瀏覽器
            user_agents: 自訂 User-Agent 列表，若為 None 則使用預設列表
        """
        self.headless = headless
        self.user_agents = user_agents or self.DEFAULT_USER_AGENTS.copy()

        # 瀏覽器相關實例（延遲初始化）
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None

        self._current_user_agent: Optional[str] = None

    @property
    @abstractmethod
    def source_name(self) -> str:
        """返回來源名稱"""
        pass

    @abstractmethod
    def check_guide(self, prefix: str, suffix: str) -> CheckOutcome:
        """
        查詢單一指南

        Args:
            prefix: 指南前綴（3 個字元）
            suffix: 指南號碼（已移除 '-'）

        Returns:
            Found / NotFound / Unavailable
        """
        pass

    @property
    def browser(self) -> Optional[Browser]:
        """取得當前瀏覽器實例"""
        return self._browser

    @property
    def has_session(self) -> bool:
        """瀏覽器 session 是否已建立且仍連線"""
        return self._browser is not None and self._browser.is_connected()

    def _get_user_agent(self) -> str:
        """隨機選擇一個 User-Agent"""
        self._current_user_agent = random.choice(self.user_agents)
        return self._current_user_agent

    def _ensure_session(self) -> bool:
        """
        確保瀏覽器 session 可用

        第一次呼叫時啟動 Playwright 與 Chromium；瀏覽器斷線時重新建立。
        啟動失敗不會拋出例外，下一次呼叫會再嘗試。

        Returns:
            session 是否可用
        """
        if self.has_session and self._context is not None:
            return True

        if self._browser is not None:
            logger.warning("Browser session lost, recreating")
            self.close()

        try:
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.launch(
                headless=self.headless, args=self.LAUNCH_ARGS
            )
            self._context = self._browser.new_context(
                user_agent=self._get_user_agent(), viewport=self.VIEWPORT
            )
        except Exception as e:
            logger.error("Failed to start browser session: %s", e)
            self.close()
            return False

        logger.info("Browser session started (headless=%s)", self.headless)
        return True

    def _new_page(self) -> Page:
        """在目前 session 開啟新分頁"""
        return self._context.new_page()

    @staticmethod
    def _close_page(page: Page) -> None:
        """關閉分頁；關閉失敗只記錄"""
        try:
            page.close()
        except Exception as e:
            logger.debug("Error closing page: %s", e)

    def close(self) -> None:
        """
        關閉瀏覽器 session

        依序關閉上下文、瀏覽器和 Playwright 實例。可重複呼叫；
        之後的查詢會重新建立 session。
        """
        for name in ("_context", "_browser"):
            resource = getattr(self, name)
            if resource is not None:
                try:
                    resource.close()
                except Exception as e:
                    logger.debug("Error closing %s: %s", name.lstrip("_"), e)
                setattr(self, name, None)

        if self._playwright is not None:
            try:
                self._playwright.stop()
            except Exception as e:
                logger.debug("Error stopping playwright: %s", e)
            self._playwright = None

    def __enter__(self):
        """支援 context manager 用法"""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """支援 context manager 用法"""
        self.close()
        return False
