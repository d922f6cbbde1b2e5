"""
TCA 入口網站爬蟲模組

繼承 BaseScraper，查詢 TCA 航空貨運指南入口網站：
- 在表單填入 prefijo / numero 並送出
- 頁面出現 "ERROR GUIA NO ENCONTRADA" 表示指南尚未抵達
- 否則以欄位標籤擷取 8 個欄位（Operación:, Doc. ing.:, ...）
"""

import logging
from typing import Dict, Optional
from playwright.sync_api import Page, Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from core.base_scraper import BaseScraper
from core.models import CheckOutcome, ExtractedGuideData, Found, NotFound, Unavailable, parse_float, parse_int

logger = logging.getLogger(__name__)


class TCAPortalClient(BaseScraper):
    """
    TCA 入口網站查詢客戶端

    單一瀏覽器 session 在多次查詢間共用；每次查詢使用獨立分頁。
    NotFound 與 Unavailable 皆以返回值表示，不拋出例外。
    """

    PORTAL_URL = "http://portal.tca.aero/gestion_web/tca-guias-aereas-web/guia.html"

    NOT_FOUND_MARKER = "ERROR GUIA NO ENCONTRADA"

    PREFIX_SELECTOR = 'input[name="prefijo"]'
    NUMBER_SELECTOR = 'input[name="numero"]'
    SUBMIT_SELECTOR = 'input[type="submit"], button[type="submit"]'

    # 欄位名稱 -> 頁面上的標籤文字
    FIELD_LABELS = {
        "operacion": "Operación:",
        "doc_ingreso": "Doc. ing.:",
        "responsable_manifiesto": "Resp. manif.:",
        "estado": "Estado:",
        "numero_transporte": "Número:",
        "fecha_transporte": "Fecha:",
        "responsable_transporte": "Responsable:",
        "bultos": "Bultos:",
        "kilos": "Kilos:",
    }

    def __init__(
        self,
        headless: bool = True,
        portal_url: Optional[str] = None,
        navigation_timeout_ms: int = 30000,
        selector_timeout_ms: int = 10000,
        settle_ms: int = 3000,
    ):
        """
        初始化 TCA 爬蟲

        Args:
            headless: 是否以無頭模式運行瀏覽器
            portal_url: 入口網站 URL，預設為 PORTAL_URL
            navigation_timeout_ms: 頁面載入逾時（毫秒）
            selector_timeout_ms: 等待表單欄位及讀取頁面內容的逾時（毫秒）
            settle_ms: 送出表單後等待頁面處理的時間（毫秒）
        """
        super().__init__(headless=headless)
        self.portal_url = portal_url or self.PORTAL_URL
        self.navigation_timeout_ms = navigation_timeout_ms
        self.selector_timeout_ms = selector_timeout_ms
        self.settle_ms = settle_ms

    @property
    def source_name(self) -> str:
        """返回來源名稱"""
        return "tca_portal"

    def check_guide(self, prefix: str, suffix: str) -> CheckOutcome:
        """
        查詢指南狀態

        流程：
        1. 確保瀏覽器 session（失敗 -> Unavailable("init failed")）
        2. 開新分頁並載入入口網站
        3. 填入 prefijo / numero 並送出
        4. 等待頁面處理後判斷結果
        5. 無論結果如何都關閉分頁

        Args:
            prefix: 指南前綴
            suffix: 指南號碼

        Returns:
            Found / NotFound / Unavailable
        """
        if not self._ensure_session():
            return Unavailable("init failed")

        try:
            page = self._new_page()
        except PlaywrightError as e:
            # 瀏覽器可能已經關閉，下次查詢重新建立 session
            logger.warning("Could not open page, resetting session: %s", e)
            self.close()
            return Unavailable("init failed")

        try:
            return self._query(page, prefix, suffix)
        finally:
            self._close_page(page)

    def _query(self, page: Page, prefix: str, suffix: str) -> CheckOutcome:
        """在指定分頁執行查詢"""
        guide = f"{prefix}-{suffix}"

        try:
            logger.debug("Navigating to %s", self.portal_url)
            page.goto(self.portal_url, wait_until="networkidle", timeout=self.navigation_timeout_ms)
        except PlaywrightTimeoutError:
            logger.warning("[%s] Navigation timeout", guide)
            return Unavailable("navigation timeout")
        except PlaywrightError as e:
            logger.warning("[%s] Navigation failed: %s", guide, e)
            return Unavailable(f"scraping error: {e}")

        try:
            page.wait_for_selector(self.PREFIX_SELECTOR, timeout=self.selector_timeout_ms)
            page.wait_for_selector(self.NUMBER_SELECTOR, timeout=self.selector_timeout_ms)

            logger.debug("[%s] Filling prefijo=%s numero=%s", guide, prefix, suffix)
            page.fill(self.PREFIX_SELECTOR, prefix)
            page.fill(self.NUMBER_SELECTOR, suffix)
            page.click(self.SUBMIT_SELECTOR, timeout=self.selector_timeout_ms)
        except PlaywrightTimeoutError:
            logger.warning("[%s] Query form not available", guide)
            return Unavailable("selector timeout")
        except PlaywrightError as e:
            logger.warning("[%s] Form submission failed: %s", guide, e)
            return Unavailable(f"scraping error: {e}")

        try:
            page.wait_for_timeout(self.settle_ms)
            body_text = page.text_content("body", timeout=self.selector_timeout_ms) or ""
        except PlaywrightTimeoutError:
            logger.warning("[%s] Result page did not settle", guide)
            return Unavailable("settle timeout")
        except PlaywrightError as e:
            logger.warning("[%s] Could not read result page: %s", guide, e)
            return Unavailable(f"scraping error: {e}")

        if self.NOT_FOUND_MARKER in body_text:
            logger.info("[%s] Guide not found on portal", guide)
            return NotFound()

        try:
            raw_fields = self._extract_raw_fields(page)
        except PlaywrightError as e:
            logger.warning("[%s] Field extraction failed: %s", guide, e)
            return Unavailable(f"scraping error: {e}")

        data = parse_guide_fields(raw_fields)
        if data is None:
            logger.warning("[%s] Neither not-found marker nor guide data found", guide)
            return Unavailable("extraction incomplete")

        logger.info("[%s] Guide data extracted (estado=%s)", guide, data.estado)
        return Found(data)

    def _extract_raw_fields(self, page: Page) -> Dict[str, str]:
        """
        以標籤文字擷取欄位

        找出包含標籤文字的儲存格，取其右側相鄰儲存格的文字。
        不受樣式或版面變動影響，但標籤文字改變時會失效。

        Returns:
            欄位名稱 -> 原始文字（找不到時為空字串）
        """
        raw = {}
        for attr, label in self.FIELD_LABELS.items():
            locator = page.locator(
                f'xpath=//td[contains(., "{label}")]/following-sibling::td[1]'
            ).first
            if locator.count() == 0:
                raw[attr] = ""
                continue
            text = locator.text_content(timeout=self.selector_timeout_ms)
            raw[attr] = (text or "").strip()
        return raw


def parse_guide_fields(raw: Dict[str, str]) -> Optional[ExtractedGuideData]:
    """
    將擷取的原始文字轉換為 ExtractedGuideData

    operacion 為主要欄位，空白時視為擷取不完整並返回 None。
    bultos / kilos 格式錯誤時為 0。

    Args:
        raw: 欄位名稱 -> 原始文字

    Returns:
        ExtractedGuideData 或 None
    """
    operacion = (raw.get("operacion") or "").strip()
    if not operacion:
        return None

    return ExtractedGuideData(
        operacion=operacion,
        doc_ingreso=(raw.get("doc_ingreso") or "").strip(),
        responsable_manifiesto=(raw.get("responsable_manifiesto") or "").strip(),
        estado=(raw.get("estado") or "").strip(),
        numero_transporte=(raw.get("numero_transporte") or "").strip(),
        fecha_transporte=(raw.get("fecha_transporte") or "").strip(),
        responsable_transporte=(raw.get("responsable_transporte") or "").strip(),
        bultos=parse_int(raw.get("bultos")),
        kilos=parse_float(raw.get("kilos")),
    )
