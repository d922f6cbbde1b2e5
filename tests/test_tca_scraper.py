#!/usr/bin/env python3
"""
測試 TCAPortalClient

以 MagicMock 模擬 Playwright 的 browser / context / page，
不需要實際啟動瀏覽器。
"""
import unittest
from unittest.mock import MagicMock, patch

from playwright.sync_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from core.models import Found, NotFound, Unavailable
from scrapers.tca.scraper import TCAPortalClient, parse_guide_fields


PORTAL_FIELDS = {
    "Operación:": "Importación",
    "Doc. ing.:": "2025-73-MANI-12195-F",
    "Resp. manif.:": "CROSSRACER INTERNATIONAL S.A.",
    "Estado:": "14 - CERRADO",
    "Número:": "ET512",
    "Fecha:": "14/01/2025",
    "Responsable:": "ETHIOPIAN AIRLINES ENTERPRISE",
    "Bultos:": "120",
    "Kilos:": "1530.5",
}


def make_page(body_text="", fields=None):
    """建立模擬分頁；fields 為 標籤 -> 相鄰儲存格文字"""
    fields = fields or {}
    page = MagicMock()
    page.text_content.return_value = body_text

    def locator(selector):
        match = MagicMock()
        value = None
        for label, text in fields.items():
            if f'"{label}"' in selector:
                value = text
                break
        match.first.count.return_value = 0 if value is None else 1
        match.first.text_content.return_value = value
        return match

    page.locator.side_effect = locator
    return page


class TestTCAPortalClient(unittest.TestCase):
    def setUp(self):
        patcher = patch("core.base_scraper.sync_playwright")
        self.mock_sync_playwright = patcher.start()
        self.addCleanup(patcher.stop)

        self.playwright = MagicMock()
        self.browser = self.playwright.chromium.launch.return_value
        self.browser.is_connected.return_value = True
        self.context = self.browser.new_context.return_value
        self.mock_sync_playwright.return_value.start.return_value = self.playwright

        self.client = TCAPortalClient(settle_ms=0)

    def use_page(self, page):
        self.context.new_page.return_value = page
        return page

    def test_session_created_lazily_and_reused(self):
        """session 在第一次查詢時才建立，之後重複使用"""
        self.mock_sync_playwright.assert_not_called()
        self.assertFalse(self.client.has_session)

        first = make_page("ERROR GUIA NO ENCONTRADA")
        second = make_page("ERROR GUIA NO ENCONTRADA")
        self.context.new_page.side_effect = [first, second]

        self.client.check_guide("045", "12195385")
        self.client.check_guide("071", "57197840")

        self.playwright.chromium.launch.assert_called_once()
        self.assertEqual(self.context.new_page.call_count, 2)
        first.close.assert_called_once()
        second.close.assert_called_once()
        self.browser.close.assert_not_called()

    def test_init_failure_is_retried_on_next_call(self):
        """瀏覽器啟動失敗返回 Unavailable，下一次查詢重新嘗試"""
        self.mock_sync_playwright.return_value.start.side_effect = [Exception("no chromium"), self.playwright]
        self.use_page(make_page("ERROR GUIA NO ENCONTRADA"))

        self.assertEqual(self.client.check_guide("045", "12195385"), Unavailable("init failed"))
        self.assertEqual(self.client.check_guide("045", "12195385"), NotFound())
        self.assertEqual(self.mock_sync_playwright.return_value.start.call_count, 2)

    def test_disconnected_browser_is_recreated(self):
        self.use_page(make_page("ERROR GUIA NO ENCONTRADA"))
        self.client.check_guide("045", "12195385")

        self.browser.is_connected.return_value = False
        self.client.check_guide("045", "12195385")

        self.assertEqual(self.playwright.chromium.launch.call_count, 2)

    def test_form_filled_and_submitted(self):
        page = self.use_page(make_page("ERROR GUIA NO ENCONTRADA"))

        self.client.check_guide("045", "12195385")

        page.goto.assert_called_once()
        self.assertEqual(page.goto.call_args[0][0], TCAPortalClient.PORTAL_URL)
        page.fill.assert_any_call('input[name="prefijo"]', "045")
        page.fill.assert_any_call('input[name="numero"]', "12195385")
        self.assertEqual(page.click.call_args[0][0], 'input[type="submit"], button[type="submit"]')

    def test_not_found_marker(self):
        page = self.use_page(make_page("Consulta de guías\nERROR GUIA NO ENCONTRADA\n"))
        self.assertEqual(self.client.check_guide("045", "12195385"), NotFound())
        page.locator.assert_not_called()
        page.close.assert_called_once()

    def test_found_extracts_fields(self):
        """找不到錯誤訊息時以標籤擷取欄位"""
        page = self.use_page(make_page("Datos de la guía", PORTAL_FIELDS))

        outcome = self.client.check_guide("071", "57197840")

        self.assertIsInstance(outcome, Found)
        data = outcome.data
        self.assertEqual(data.operacion, "Importación")
        self.assertEqual(data.doc_ingreso, "2025-73-MANI-12195-F")
        self.assertEqual(data.responsable_manifiesto, "CROSSRACER INTERNATIONAL S.A.")
        self.assertEqual(data.estado, "14 - CERRADO")
        self.assertEqual(data.numero_transporte, "ET512")
        self.assertEqual(data.fecha_transporte, "14/01/2025")
        self.assertEqual(data.responsable_transporte, "ETHIOPIAN AIRLINES ENTERPRISE")
        self.assertEqual(data.bultos, 120)
        self.assertEqual(data.kilos, 1530.5)
        page.close.assert_called_once()

    def test_malformed_numbers_do_not_fail_extraction(self):
        fields = dict(PORTAL_FIELDS, **{"Bultos:": "-", "Kilos:": "s/d"})
        self.use_page(make_page("Datos", fields))

        outcome = self.client.check_guide("071", "57197840")

        self.assertIsInstance(outcome, Found)
        self.assertEqual(outcome.data.bultos, 0)
        self.assertEqual(outcome.data.kilos, 0.0)

    def test_extraction_incomplete(self):
        """沒有錯誤訊息也沒有主要欄位時為 Unavailable"""
        fields = {k: v for k, v in PORTAL_FIELDS.items() if k != "Operación:"}
        page = self.use_page(make_page("Mantenimiento programado", fields))

        self.assertEqual(self.client.check_guide("071", "57197840"), Unavailable("extraction incomplete"))
        page.close.assert_called_once()

    def test_navigation_timeout(self):
        page = self.use_page(make_page())
        page.goto.side_effect = PlaywrightTimeoutError("Timeout 30000ms exceeded")

        self.assertEqual(self.client.check_guide("045", "12195385"), Unavailable("navigation timeout"))
        page.close.assert_called_once()
        page.fill.assert_not_called()

    def test_selector_timeout(self):
        page = self.use_page(make_page())
        page.wait_for_selector.side_effect = PlaywrightTimeoutError("Timeout 10000ms exceeded")

        self.assertEqual(self.client.check_guide("045", "12195385"), Unavailable("selector timeout"))
        page.close.assert_called_once()

    def test_settle_timeout(self):
        page = self.use_page(make_page())
        page.text_content.side_effect = PlaywrightTimeoutError("Timeout 10000ms exceeded")

        self.assertEqual(self.client.check_guide("045", "12195385"), Unavailable("settle timeout"))

    def test_playwright_error_is_unavailable(self):
        page = self.use_page(make_page())
        page.goto.side_effect = PlaywrightError("net::ERR_CONNECTION_REFUSED")

        outcome = self.client.check_guide("045", "12195385")

        self.assertIsInstance(outcome, Unavailable)
        self.assertIn("ERR_CONNECTION_REFUSED", outcome.reason)

    def test_unexpected_error_propagates_and_page_closed(self):
        page = self.use_page(make_page())
        page.goto.side_effect = RuntimeError("unexpected")

        with self.assertRaises(RuntimeError):
            self.client.check_guide("045", "12195385")
        page.close.assert_called_once()

    def test_close_releases_session(self):
        self.use_page(make_page("ERROR GUIA NO ENCONTRADA"))
        self.client.check_guide("045", "12195385")

        self.client.close()

        self.context.close.assert_called_once()
        self.browser.close.assert_called_once()
        self.playwright.stop.assert_called_once()
        self.assertFalse(self.client.has_session)

        # 可重複呼叫
        self.client.close()
        self.browser.close.assert_called_once()


class TestParseGuideFields(unittest.TestCase):
    def test_primary_field_required(self):
        self.assertIsNone(parse_guide_fields({"estado": "14 - CERRADO"}))
        self.assertIsNone(parse_guide_fields({"operacion": "   "}))

    def test_minimal_fields(self):
        data = parse_guide_fields({"operacion": " Importación "})
        self.assertEqual(data.operacion, "Importación")
        self.assertEqual(data.bultos, 0)
        self.assertEqual(data.kilos, 0.0)


if __name__ == "__main__":
    unittest.main()
