#!/usr/bin/env python3
"""
測試監控執行腳本
"""
import os
import shutil
import tempfile
import unittest
from unittest.mock import patch

from core.config import load_config
from core.guides import build_batch
from core.models import ExtractedGuideData, Found, NotFound
from run_monitor import build_client, build_dispatcher, run_monitor
from scrapers.tca.endpoint import CheckEndpointClient
from scrapers.tca.scraper import TCAPortalClient


class FakePortalClient:
    def __init__(self):
        self.closed = False

    def check_guide(self, prefix, suffix):
        if suffix == "57197840":
            return Found(ExtractedGuideData(operacion="Importación"))
        return NotFound()

    def close(self):
        self.closed = True


class TestRunMonitor(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.config = load_config(os.path.join(self.temp_dir, "missing.json"), env={})
        self.config.history_file = os.path.join(self.temp_dir, "history.json")
        self.config.pacing_seconds = 0

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_build_client(self):
        self.assertIsInstance(build_client(self.config), TCAPortalClient)
        self.assertIsInstance(build_client(self.config, endpoint="http://localhost/check"), CheckEndpointClient)

    def test_dry_run_disables_channels(self):
        dispatcher = build_dispatcher(self.config, dry_run=True)
        self.assertFalse(dispatcher.settings.sound_enabled)
        self.assertFalse(dispatcher.settings.email_ready)

    def test_run_once(self):
        client = FakePortalClient()
        guides = build_batch(["071-57197840", "045-12195385"])
        with patch("run_monitor.build_client", return_value=client):
            success = run_monitor(guides, self.config, once=True, dry_run=True)

        self.assertTrue(success)
        self.assertTrue(client.closed)
        self.assertTrue(os.path.exists(self.config.history_file))

    def test_empty_batch(self):
        self.assertFalse(run_monitor([], self.config, once=True))


if __name__ == "__main__":
    unittest.main()
